"""
Tests for the headless neomima-run command
"""

import io
import os
import tempfile
import unittest
from unittest import mock

import runner

FIBONACCI = os.path.join(os.path.dirname(__file__), "..", "examples", "fibonacci.asm")


class TestRunner(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)

        self.stdout = io.TextIOWrapper(io.BytesIO(), write_through=True)
        self.stderr = io.StringIO()
        patcher_out = mock.patch("sys.stdout", self.stdout)
        patcher_err = mock.patch("sys.stderr", self.stderr)
        patcher_out.start()
        patcher_err.start()
        self.addCleanup(patcher_out.stop)
        self.addCleanup(patcher_err.stop)

    def write(self, name, content, mode="w"):
        path = os.path.join(self.tmp.name, name)
        with open(path, mode) as f:
            f.write(content)
        return path

    def output_bytes(self):
        self.stdout.flush()
        return self.stdout.buffer.getvalue()

    def test_fibonacci_from_input_file(self):
        data = self.write("in.bin", b"5", "wb")
        self.assertEqual(runner.main([FIBONACCI, "-i", data]), runner.EXIT_HALTED)
        self.assertEqual(self.output_bytes(), bytes([0, 1, 1, 2, 3]))

    def test_fibonacci_from_stdin(self):
        stdin = io.TextIOWrapper(io.BytesIO(b"3"))
        with mock.patch("sys.stdin", stdin):
            self.assertEqual(runner.main([FIBONACCI]), runner.EXIT_HALTED)
        self.assertEqual(self.output_bytes(), bytes([0, 1, 1]))

    def test_fault_exit_code(self):
        source = self.write("fault.asm", "STV stdin.getc\nHLT\n")
        self.assertEqual(runner.main([source, "-W", "-i", os.devnull]), runner.EXIT_FAULTED)
        self.assertIn("[ERROR] Fault: Illegal write to read-only device stdin.getc", self.stderr.getvalue())
        self.assertNotIn("[WARNING]", self.stderr.getvalue())

    def test_assembly_error_exit_code(self):
        source = self.write("bad.asm", "LDV missing\nHLT\n")
        self.assertEqual(runner.main([source]), runner.EXIT_ASSEMBLY_ERROR)
        self.assertIn("Line 1: Undefined symbol: missing", self.stderr.getvalue())
        self.assertEqual(self.output_bytes(), b"")

    def test_missing_source(self):
        missing = os.path.join(self.tmp.name, "nope.asm")
        self.assertEqual(runner.main([missing]), runner.EXIT_ASSEMBLY_ERROR)
        self.assertIn("[ERROR] Could not read", self.stderr.getvalue())

    def test_source_not_utf8(self):
        source = self.write("latin1.asm", b"# caf\xe9\nHLT\n", "wb")
        self.assertEqual(runner.main([source, "-i", os.devnull]), runner.EXIT_ASSEMBLY_ERROR)
        self.assertIn("not UTF-8 text (byte 0xE9 at offset 5)", self.stderr.getvalue())
        self.assertEqual(self.output_bytes(), b"")

    def test_step_limit(self):
        source = self.write("loop.asm", "loop: JMP loop\n")
        self.assertEqual(runner.main([source, "-n", "50", "-i", os.devnull]), runner.EXIT_STEP_LIMIT)
        self.assertIn("Step limit of 50 instructions reached", self.stderr.getvalue())

    def test_warnings_printed(self):
        source = self.write("warn.asm", "unused: DAT 1\nHLT\n")
        self.assertEqual(runner.main([source, "-i", os.devnull]), runner.EXIT_HALTED)
        self.assertIn('[WARNING] Line 1: The label "unused" is never referenced', self.stderr.getvalue())

    def test_listing(self):
        self.assertEqual(runner.main([FIBONACCI, "--listing"]), runner.EXIT_HALTED)
        listing = self.output_bytes().decode()
        self.assertIn("; data", listing)
        self.assertIn("LDV stdin.getc", listing)

    def test_trace(self):
        source = self.write("trace.asm", "LDC 4\nHLT\n")
        self.assertEqual(runner.main([source, "--trace", "-i", os.devnull]), runner.EXIT_HALTED)
        log = self.stderr.getvalue()
        self.assertIn("[OK] 0000: LDC 4", log)
        self.assertIn("ACC=4", log)
        self.assertIn("[HALT] 0001: HLT", log)
        self.assertIn("[HALT] Program halted after 2 instructions", log)

    def test_log_format(self):
        stream = io.StringIO()
        runner.log("hello", "SYSTEM", stream)
        self.assertEqual(stream.getvalue(), "[SYSTEM] hello\n")


if __name__ == "__main__":
    unittest.main()
