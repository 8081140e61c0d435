# NeoMiMa - Minimal Machine Simulator
# Copyright (C) 2025 Shahibur Rahaman
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

"""
Headless runner for MiMa assembly programs.

Usage:
    neomima-run program.asm                  # stdin -> stdin.getc, stdout.putc -> stdout
    neomima-run program.asm -i input.bin     # Read program input from a file
    neomima-run program.asm --trace          # Log every executed instruction to stderr
    neomima-run program.asm --listing        # Print the assembled program and exit

Exit status:
    0  program halted
    1  program faulted
    2  assembly error or unreadable file
    3  step budget (--max-steps) exhausted
"""

import argparse
import sys

from assembler import AssemblerMima
from processor import ProcessorMima
from version import version_string

EXIT_HALTED = 0
EXIT_FAULTED = 1
EXIT_ASSEMBLY_ERROR = 2
EXIT_STEP_LIMIT = 3


def log(message, status="SYSTEM", stream=None):
    """Write an execution log entry in the simulator's "[STATUS] message" form"""
    stream = stream if stream is not None else sys.stderr
    print(f"[{status}] {message}", file=stream)


def run_program(processor, max_steps=None, trace=False, log_stream=None):
    """
    Run a loaded processor to completion (or until max_steps instructions ran).

    Returns:
        str: Status of the last step ("OK", "HALT" or "ERROR")
    """
    if not trace:
        return processor.run(max_steps)

    result = "OK"
    executed = 0
    while result == "OK":
        if max_steps is not None and executed >= max_steps:
            break
        pc = processor.pc
        result = processor.step()
        executed += 1
        if processor.last_instruction and result != "ERROR":
            log(f"{pc:04X}: {processor.last_instruction:<20} ACC={processor.acc}", result, log_stream)
    return result


def build_parser():
    parser = argparse.ArgumentParser(
        prog="neomima-run",
        description="Assemble and run a MiMa program",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s examples/fibonacci.asm            Read the count from the keyboard
  echo 5 | %(prog)s examples/fibonacci.asm   Pipe the input
  %(prog)s prog.asm -i input.bin --trace     Input from file, trace to stderr
        """,
    )
    parser.add_argument("source", help="MiMa assembly source file")
    parser.add_argument("-i", "--input", metavar="FILE",
                        help="Read program input from FILE instead of stdin")
    parser.add_argument("-n", "--max-steps", type=int, metavar="N",
                        help="Stop after N instructions (default: no limit)")
    parser.add_argument("-t", "--trace", action="store_true",
                        help="Log every executed instruction to stderr")
    parser.add_argument("-l", "--listing", action="store_true",
                        help="Print the assembled program and exit")
    parser.add_argument("-W", "--no-warnings", action="store_true",
                        help="Do not print assembler warnings")
    parser.add_argument("--version", action="version",
                        version=f"%(prog)s {version_string}")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    try:
        with open(args.source, "r", encoding="utf-8") as f:
            source = f.read()
    except OSError as e:
        log(f"Could not read {args.source}: {e.strerror}", "ERROR")
        return EXIT_ASSEMBLY_ERROR
    except UnicodeDecodeError as e:
        byte = e.object[e.start]
        log(f"Could not read {args.source}: not UTF-8 text (byte 0x{byte:02X} at offset {e.start})", "ERROR")
        return EXIT_ASSEMBLY_ERROR

    try:
        assembly_output = AssemblerMima().assemble(source)
    except SyntaxError as e:
        log(f"Assembly error: {e}", "ERROR")
        return EXIT_ASSEMBLY_ERROR

    if not args.no_warnings:
        for warning in assembly_output.warnings:
            log(warning, "WARNING")

    if args.listing:
        print(assembly_output.listing())
        return EXIT_HALTED

    input_file = None
    if args.input:
        try:
            input_file = open(args.input, "rb")
        except OSError as e:
            log(f"Could not read {args.input}: {e.strerror}", "ERROR")
            return EXIT_ASSEMBLY_ERROR
        input_stream = input_file
    else:
        input_stream = sys.stdin.buffer

    try:
        processor = ProcessorMima(input_stream, sys.stdout.buffer)
        processor.load_program(assembly_output)
        result = run_program(processor, args.max_steps, args.trace)
    finally:
        if input_file is not None:
            input_file.close()

    if result == "HALT":
        if args.trace:
            log(f"Program halted after {processor.steps} instructions", "HALT")
        return EXIT_HALTED

    if result == "ERROR":
        log(f"Fault: {processor.error}", "ERROR")
        return EXIT_FAULTED

    log(f"Step limit of {args.max_steps} instructions reached", "SYSTEM")
    return EXIT_STEP_LIMIT


if __name__ == "__main__":
    sys.exit(main())
