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

from assembler import (
    DEVICE_IO_BASE,
    DEVICE_SYMBOLS,
    STDIN_GETC,
    STDOUT_PUTC,
    WORD_BITS,
    WORD_MASK,
    to_word,
)

# Value yielded by stdin.getc once the input stream is exhausted
EOF = -1

RUNNING = "RUNNING"
HALTED = "HALTED"
FAULTED = "FAULTED"

STDIN_ADDRESS = DEVICE_SYMBOLS[STDIN_GETC]
STDOUT_ADDRESS = DEVICE_SYMBOLS[STDOUT_PUTC]


class MachineFault(Exception):
    """Run-time fault raised inside step() and turned into the FAULTED state"""


class ProcessorMima:
    """
    MiMa accumulator machine simulator.
    Owns the accumulator, program counter and memory cells of one loaded
    program and executes it one instruction at a time.
    """

    def __init__(self, input_stream=None, output_stream=None):
        """
        Args:
            input_stream: File-like object read one byte at a time by
                stdin.getc. Text streams are UTF-8 encoded. None behaves
                like an empty stream.
            output_stream: Binary file-like object receiving the bytes written
                to stdout.putc, in addition to self.output. Optional.
        """
        self.input_stream = input_stream
        self.output_stream = output_stream

        self.instructions = []
        self.initial_memory = []
        self.undefined_cells = set()
        self.symbols = {}
        self.cell_names = {}
        self.line_to_address_map = {}
        self.address_to_line_map = {}

        self.reset()

    def load_program(self, assembly_output):
        """
        Loads an assembled program and initializes processor state.

        Args:
            assembly_output: Output from AssemblerMima.assemble()
        """
        self.instructions = list(assembly_output.instructions)
        self.initial_memory = list(assembly_output.initial_memory)
        self.undefined_cells = set(assembly_output.undefined_cells)
        self.symbols = dict(assembly_output.symbols)
        self.cell_names = dict(assembly_output.cell_names)
        self.line_to_address_map = dict(assembly_output.line_to_address_map)
        self.address_to_line_map = dict(assembly_output.address_to_line_map)

        self.reset()

    def reset(self):
        """Restore the initial machine state of the loaded program"""
        self.acc = 0
        self.pc = 0
        self.memory = list(self.initial_memory)
        # Cells still holding their never-written UNDEFINED sentinel
        self.unwritten_cells = set(self.undefined_cells)
        self.output = bytearray()
        # Remaining UTF-8 bytes of a character read from a text input stream
        self.pending_input = bytearray()
        self.state = RUNNING
        self.halted = False
        self.error = None
        self.last_instruction = None
        self.steps = 0

    @property
    def registers(self):
        return {"ACC": self.acc, "PC": self.pc}

    def step(self):
        """
        Executes a single instruction at current PC.
        Returns execution status: "OK", "HALT", or "ERROR".
        """
        if self.halted:
            return "HALT"

        if self.error:
            return "ERROR"

        pc = self.pc
        if not 0 <= pc < len(self.instructions):
            return self._fault(
                f"program counter out of bounds: {pc} "
                f"(program has {len(self.instructions)} instructions)"
            )

        instruction = self.instructions[pc]
        self.last_instruction = str(instruction)
        self.steps += 1
        opcode = instruction.opcode
        next_pc = pc + 1

        try:
            if opcode == "LDV":
                self.acc = self._read(instruction.value)

            elif opcode == "ADD":
                self.acc = to_word(self.acc + self._read(instruction.value))

            elif opcode == "STV":
                self._write(instruction.value, self.acc)

            elif opcode == "AND":
                self.acc = to_word(self.acc & self._read(instruction.value))

            elif opcode == "OR":
                self.acc = to_word(self.acc | self._read(instruction.value))

            elif opcode == "XOR":
                self.acc = to_word(self.acc ^ self._read(instruction.value))

            elif opcode == "EQL":
                self.acc = -1 if self.acc == self._read(instruction.value) else 0

            elif opcode == "LDC":
                self.acc = to_word(instruction.value)

            elif opcode == "NOT":
                self.acc = to_word(~self.acc)

            elif opcode == "RAR":
                rot = instruction.value % WORD_BITS
                bits = self.acc & WORD_MASK
                self.acc = to_word((bits >> rot) | (bits << (WORD_BITS - rot)))

            elif opcode == "JMP":
                next_pc = instruction.value

            elif opcode == "JMN":
                if self.acc < 0:
                    next_pc = instruction.value

            elif opcode == "HLT":
                self.halted = True
                self.state = HALTED
                return "HALT"

            elif opcode == "NOP":
                pass

            else:
                raise MachineFault(f"Unknown opcode: {opcode}")

        except MachineFault as e:
            return self._fault(f"{e} (at {pc:04X}: {instruction})")

        self.pc = next_pc
        return "OK"

    def run(self, max_steps=None):
        """
        Steps until the program halts or faults.

        Args:
            max_steps (int): Optional budget of instructions; when it runs
                out the processor is left RUNNING and "OK" is returned.

        Returns:
            str: Status of the last step ("OK", "HALT" or "ERROR")
        """
        result = "OK"
        executed = 0
        while result == "OK":
            if max_steps is not None and executed >= max_steps:
                break
            result = self.step()
            executed += 1
        return result

    def is_defined(self, address):
        """Returns True if the cell no longer holds its UNDEFINED sentinel"""
        return address not in self.unwritten_cells

    def _read(self, address):
        if address >= DEVICE_IO_BASE:
            if address == STDIN_ADDRESS:
                return self._getc()
            raise MachineFault(f"Illegal read from write-only device {STDOUT_PUTC}")
        return self.memory[address]

    def _write(self, address, value):
        if address >= DEVICE_IO_BASE:
            if address == STDOUT_ADDRESS:
                self._putc(value)
                return
            raise MachineFault(f"Illegal write to read-only device {STDIN_GETC}")
        self.memory[address] = value
        self.unwritten_cells.discard(address)

    def _getc(self):
        """
        Blocking read of one input byte; EOF once the stream is exhausted.
        Text streams are fed through UTF-8, one byte per read.
        """
        if self.pending_input:
            return self.pending_input.pop(0)
        if self.input_stream is None:
            return EOF
        data = self.input_stream.read(1)
        if not data:
            return EOF
        if isinstance(data, str):
            encoded = data.encode("utf-8")
            self.pending_input.extend(encoded[1:])
            return encoded[0]
        return data[0]

    def _putc(self, value):
        byte = value & 0xFF
        self.output.append(byte)
        if self.output_stream is not None:
            self.output_stream.write(bytes([byte]))
            self.output_stream.flush()

    def _fault(self, reason):
        self.error = reason
        self.state = FAULTED
        return "ERROR"
