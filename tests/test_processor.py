"""
Unit tests for the MiMa processor
Instruction semantics, word arithmetic, devices and faults
"""

import io
import unittest

from assembler import UNDEFINED, WORD_MAX, WORD_MIN, AssemblerMima
from processor import EOF, FAULTED, HALTED, RUNNING, ProcessorMima


class ProcessorTestCase(unittest.TestCase):

    def load(self, source, stdin=b""):
        self.cpu = ProcessorMima(io.BytesIO(stdin))
        self.cpu.load_program(AssemblerMima().assemble(source))
        return self.cpu

    def load_and_run(self, source, stdin=b"", max_steps=10000):
        """Load program and run until halted or faulted"""
        self.load(source, stdin)
        return self.cpu.run(max_steps)


class TestProcessorBasic(ProcessorTestCase):

    def test_initial_state(self):
        cpu = self.load("x: DAT 3\nLDV x\nHLT\n")
        self.assertEqual(cpu.registers, {"ACC": 0, "PC": 0})
        self.assertEqual(cpu.state, RUNNING)
        self.assertEqual(cpu.memory, [3])

    def test_ldv_add_stv(self):
        result = self.load_and_run("a: DAT 2\nb: DAT 40\nc: DAT\nLDV a\nADD b\nSTV c\nHLT\n")
        self.assertEqual(result, "HALT")
        self.assertEqual(self.cpu.memory[2], 42)
        self.assertEqual(self.cpu.acc, 42)
        self.assertTrue(self.cpu.is_defined(2))

    def test_halt_keeps_pc(self):
        self.load_and_run("NOP\nHLT\n")
        self.assertEqual(self.cpu.state, HALTED)
        self.assertEqual(self.cpu.pc, 1)
        self.assertEqual(self.cpu.steps, 2)
        self.assertEqual(self.cpu.step(), "HALT")
        self.assertEqual(self.cpu.steps, 2)

    def test_step_returns_ok(self):
        cpu = self.load("LDC 1\nHLT\n")
        self.assertEqual(cpu.step(), "OK")
        self.assertEqual(cpu.pc, 1)
        self.assertEqual(cpu.last_instruction, "LDC 1")

    def test_reset_restores_initial_state(self):
        self.load_and_run("x: DAT\nLDC 9\nSTV x\nHLT\n")
        self.assertEqual(self.cpu.memory, [9])
        self.cpu.reset()
        self.assertEqual(self.cpu.memory, [UNDEFINED])
        self.assertFalse(self.cpu.is_defined(0))
        self.assertEqual(self.cpu.state, RUNNING)
        self.assertEqual(self.cpu.acc, 0)
        self.assertEqual(self.cpu.steps, 0)

    def test_max_steps_leaves_running(self):
        result = self.load_and_run("loop: JMP loop\n", max_steps=100)
        self.assertEqual(result, "OK")
        self.assertEqual(self.cpu.state, RUNNING)
        self.assertEqual(self.cpu.steps, 100)


class TestProcessorJumps(ProcessorTestCase):
    """JMN branches only on a strictly negative accumulator"""

    SOURCE = "v: DAT {value}\nLDV v\nJMN neg\nLDC 1\nHLT\nneg: LDC 2\nHLT\n"

    def test_jmn_negative(self):
        self.load_and_run(self.SOURCE.format(value=-1))
        self.assertEqual(self.cpu.acc, 2)

    def test_jmn_zero(self):
        self.load_and_run(self.SOURCE.format(value=0))
        self.assertEqual(self.cpu.acc, 1)

    def test_jmn_positive(self):
        self.load_and_run(self.SOURCE.format(value=5))
        self.assertEqual(self.cpu.acc, 1)

    def test_jmn_most_negative(self):
        self.load_and_run(self.SOURCE.format(value=WORD_MIN))
        self.assertEqual(self.cpu.acc, 2)

    def test_jmp(self):
        self.load_and_run("JMP skip\nLDC 1\nHLT\nskip: LDC 7\nHLT\n")
        self.assertEqual(self.cpu.acc, 7)


class TestProcessorArithmetic(ProcessorTestCase):

    def test_add_wraps_positive(self):
        self.load_and_run(f"a: DAT {WORD_MAX}\nb: DAT 1\nLDV a\nADD b\nHLT\n")
        self.assertEqual(self.cpu.acc, WORD_MIN)
        self.assertEqual(self.cpu.state, HALTED)

    def test_add_wraps_negative(self):
        self.load_and_run(f"a: DAT {WORD_MIN}\nb: DAT -1\nLDV a\nADD b\nHLT\n")
        self.assertEqual(self.cpu.acc, WORD_MAX)

    def test_logic_ops(self):
        src = "m: DAT 0b1100\nLDC 0b1010\n{op} m\nHLT\n"
        for op, expected in (("AND", 0b1000), ("OR", 0b1110), ("XOR", 0b0110)):
            with self.subTest(op=op):
                self.load_and_run(src.format(op=op))
                self.assertEqual(self.cpu.acc, expected)

    def test_eql(self):
        self.load_and_run("v: DAT 3\nLDC 3\nEQL v\nHLT\n")
        self.assertEqual(self.cpu.acc, -1)
        self.load_and_run("v: DAT 3\nLDC 4\nEQL v\nHLT\n")
        self.assertEqual(self.cpu.acc, 0)

    def test_not(self):
        self.load_and_run("LDC 0\nNOT\nHLT\n")
        self.assertEqual(self.cpu.acc, -1)

    def test_rar(self):
        self.load_and_run("LDC 1\nRAR 1\nHLT\n")
        self.assertEqual(self.cpu.acc, WORD_MIN)
        self.load_and_run("LDC 0x10\nRAR 4\nHLT\n")
        self.assertEqual(self.cpu.acc, 1)


class TestProcessorMemory(ProcessorTestCase):

    def test_undefined_read(self):
        result = self.load_and_run("u: DAT\nLDV u\nHLT\n")
        self.assertEqual(result, "HALT")
        self.assertEqual(self.cpu.acc, UNDEFINED)
        self.assertFalse(self.cpu.is_defined(0))

    def test_undefined_is_not_zero(self):
        self.assertNotEqual(UNDEFINED, 0)
        self.assertEqual(UNDEFINED & 0xFFFFFFFF, 0xDEADBEEF)


class TestProcessorDevices(ProcessorTestCase):

    def test_getc_reads_bytes(self):
        self.load_and_run("a: DAT\nLDV stdin.getc\nSTV a\nLDV stdin.getc\nHLT\n", stdin=b"AB")
        self.assertEqual(self.cpu.memory[0], ord("A"))
        self.assertEqual(self.cpu.acc, ord("B"))

    def test_getc_eof(self):
        self.load_and_run("LDV stdin.getc\nHLT\n", stdin=b"")
        self.assertEqual(self.cpu.acc, EOF)

    def test_getc_without_stream(self):
        cpu = ProcessorMima()
        cpu.load_program(AssemblerMima().assemble("LDV stdin.getc\nHLT\n"))
        cpu.run()
        self.assertEqual(cpu.acc, EOF)

    def test_getc_text_stream_is_utf8(self):
        cpu = ProcessorMima(io.StringIO("a\u20ac"))
        cpu.load_program(AssemblerMima().assemble(
            "loop: LDV stdin.getc\nJMN done\nSTV stdout.putc\nJMP loop\ndone: HLT\n"
        ))
        self.assertEqual(cpu.run(), "HALT")
        self.assertEqual(bytes(cpu.output), "a\u20ac".encode("utf-8"))

    def test_reset_drops_partial_character(self):
        cpu = ProcessorMima(io.StringIO("\u20ac"))
        cpu.load_program(AssemblerMima().assemble("LDV stdin.getc\nHLT\n"))
        cpu.run()
        self.assertEqual(cpu.acc, 0xE2)
        cpu.input_stream = io.StringIO("")
        cpu.reset()
        cpu.run()
        self.assertEqual(cpu.acc, EOF)

    def test_putc_writes_low_byte(self):
        out = io.BytesIO()
        cpu = ProcessorMima(io.BytesIO(), out)
        cpu.load_program(AssemblerMima().assemble("LDC 0x141\nSTV stdout.putc\nHLT\n"))
        cpu.run()
        self.assertEqual(bytes(cpu.output), b"A")
        self.assertEqual(out.getvalue(), b"A")

    def test_echo(self):
        src = "loop: LDV stdin.getc\nJMN done\nSTV stdout.putc\nJMP loop\ndone: HLT\n"
        result = self.load_and_run(src, stdin=b"hello")
        self.assertEqual(result, "HALT")
        self.assertEqual(bytes(self.cpu.output), b"hello")


class TestProcessorFaults(ProcessorTestCase):

    def test_pc_out_of_bounds(self):
        result = self.load_and_run("LDC 1\n")
        self.assertEqual(result, "ERROR")
        self.assertEqual(self.cpu.state, FAULTED)
        self.assertIn("program counter out of bounds", self.cpu.error)

    def test_empty_program_faults(self):
        result = self.load_and_run("x: DAT 1\n")
        self.assertEqual(result, "ERROR")
        self.assertIn("program counter out of bounds: 0", self.cpu.error)

    def test_jump_to_trailing_label_faults(self):
        result = self.load_and_run("JMP end\nend:\n")
        self.assertEqual(result, "ERROR")
        self.assertEqual(self.cpu.pc, 1)

    def test_write_to_stdin(self):
        result = self.load_and_run("STV stdin.getc\nHLT\n")
        self.assertEqual(result, "ERROR")
        self.assertIn("Illegal write to read-only device stdin.getc", self.cpu.error)

    def test_read_from_stdout(self):
        result = self.load_and_run("LDV stdout.putc\nHLT\n")
        self.assertEqual(result, "ERROR")
        self.assertIn("Illegal read from write-only device stdout.putc", self.cpu.error)

    def test_fault_is_sticky(self):
        self.load_and_run("STV stdin.getc\nHLT\n")
        steps = self.cpu.steps
        self.assertEqual(self.cpu.step(), "ERROR")
        self.assertEqual(self.cpu.steps, steps)
        self.assertEqual(self.cpu.pc, 0)


if __name__ == "__main__":
    unittest.main()
