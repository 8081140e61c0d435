"""
End-to-end tests running the bundled Fibonacci example
"""

import io
import os
import unittest

from assembler import AssemblerMima, AssemblyError
from processor import FAULTED, HALTED, ProcessorMima

EXAMPLE = os.path.join(os.path.dirname(__file__), "..", "examples", "fibonacci.asm")


def load_example():
    with open(EXAMPLE, "r") as f:
        return f.read()


class TestFibonacci(unittest.TestCase):

    def setUp(self):
        self.program = AssemblerMima().assemble(load_example())

    def run_with_input(self, data):
        cpu = ProcessorMima(io.BytesIO(data))
        cpu.load_program(self.program)
        cpu.run(max_steps=100000)
        return cpu

    def test_assembles_without_warnings(self):
        self.assertEqual(self.program.warnings, [])
        self.assertEqual(
            list(self.program.symbols),
            ["last", "curr", "next", "count", "decr", "ascii", "loop", "out"],
        )

    def test_five(self):
        cpu = self.run_with_input(b"5")
        self.assertEqual(cpu.state, HALTED)
        self.assertEqual(list(cpu.output), [0, 1, 1, 2, 3])

    def test_three(self):
        cpu = self.run_with_input(b"3")
        self.assertEqual(cpu.state, HALTED)
        self.assertEqual(list(cpu.output), [0, 1, 1])

    def test_nine(self):
        cpu = self.run_with_input(b"9\n")
        self.assertEqual(list(cpu.output), [0, 1, 1, 2, 3, 5, 8, 13, 21])

    def test_zero(self):
        cpu = self.run_with_input(b"0")
        self.assertEqual(cpu.state, HALTED)
        self.assertEqual(bytes(cpu.output), b"")

    def test_no_input(self):
        # EOF - '0' is negative, so the loop exits immediately
        cpu = self.run_with_input(b"")
        self.assertEqual(cpu.state, HALTED)
        self.assertEqual(bytes(cpu.output), b"")

    def test_repeatable_after_reset(self):
        cpu = self.run_with_input(b"5")
        first = bytes(cpu.output)
        cpu.input_stream = io.BytesIO(b"5")
        cpu.reset()
        cpu.run(max_steps=100000)
        self.assertEqual(bytes(cpu.output), first)

    def test_misspelled_symbol_emits_nothing(self):
        source = load_example().replace("JMP loop", "JMP lop")
        with self.assertRaises(AssemblyError) as ctx:
            AssemblerMima().assemble(source)
        self.assertIn("Undefined symbol: lop", str(ctx.exception))

    def test_without_halt_faults(self):
        source = load_example().replace("HLT", "")
        program = AssemblerMima().assemble(source)
        cpu = ProcessorMima(io.BytesIO(b"2"))
        cpu.load_program(program)
        cpu.run(max_steps=100000)
        self.assertEqual(cpu.state, FAULTED)
        self.assertEqual(list(cpu.output), [0, 1])
        self.assertIn("program counter out of bounds", cpu.error)


if __name__ == "__main__":
    unittest.main()
