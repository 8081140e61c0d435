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

import re
from dataclasses import dataclass
from typing import Optional

# Machine word: 32-bit two's complement
WORD_BITS = 32
WORD_MASK = (1 << WORD_BITS) - 1
WORD_MIN = -(1 << (WORD_BITS - 1))
WORD_MAX = (1 << (WORD_BITS - 1)) - 1

# Initial value of a DAT cell declared without a literal (0xDEADBEEF as a signed word)
UNDEFINED = 0xDEADBEEF - (1 << WORD_BITS)

# Upper quarter of the 28-bit MiMa address space is reserved for device I/O
DEVICE_IO_BASE = 0x0C000000
STDIN_GETC = "stdin.getc"
STDOUT_PUTC = "stdout.putc"
DEVICE_SYMBOLS = {
    STDIN_GETC: DEVICE_IO_BASE,
    STDOUT_PUTC: DEVICE_IO_BASE + 1,
}

# Upper bound on laid-out data cells, far below DEVICE_IO_BASE
MAX_DATA_CELLS = 1 << 20

# Operand kinds per opcode: "data" (memory cell or device), "code" (jump target),
# "literal" (integer constant) or None (no operand)
OPCODES = {
    "LDV": "data",
    "ADD": "data",
    "STV": "data",
    "AND": "data",
    "OR": "data",
    "XOR": "data",
    "EQL": "data",
    "JMP": "code",
    "JMN": "code",
    "LDC": "literal",
    "RAR": "literal",
    "HLT": None,
    "NOT": None,
    "NOP": None,
}

# Opcodes that read their operand cell (everything with a data operand except STV)
READ_OPCODES = {"LDV", "ADD", "AND", "OR", "XOR", "EQL"}

IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
REFERENCE = re.compile(r"^(?:[A-Za-z_][A-Za-z0-9_]*\.)?[A-Za-z_][A-Za-z0-9_]*$")
LITERAL = re.compile(r"^([+-]?)(0[xX][0-9A-Fa-f]+|0[bB][01]+|0[dD][0-9]+|[0-9]+)$")


def to_word(value):
    """Reduce an integer to the signed 32-bit machine word range (wraparound)."""
    value &= WORD_MASK
    if value > WORD_MAX:
        value -= 1 << WORD_BITS
    return value


class AssemblyError(SyntaxError):
    """Load-time error, raised before any instruction executes"""

    def __init__(self, line_num, reason):
        super().__init__(f"Line {line_num}: {reason}")
        self.line_num = line_num
        self.reason = reason


@dataclass(frozen=True)
class Symbol:
    name: str
    kind: str  # "data", "code" or "device"
    address: int
    line_num: int = 0


@dataclass(frozen=True)
class Instruction:
    opcode: str
    operand: Optional[str] = None
    # Resolved cell/jump address, or the literal value for LDC/RAR
    value: Optional[int] = None
    line_num: int = 0

    def __str__(self):
        if self.operand is None:
            return self.opcode
        return f"{self.opcode} {self.operand}"


class AssemblyOutput:
    """Container for the results of assembly process"""

    def __init__(self):
        self.symbols = {}  # name -> Symbol, in definition order
        self.instructions = []
        self.initial_memory = []
        self.undefined_cells = set()  # DAT cells declared without a value
        self.cell_names = {}  # memory address -> list of names
        self.line_to_address_map = {}
        self.address_to_line_map = {}
        self.warnings = []

    @property
    def labels(self):
        """Plain name -> address view of the symbol table"""
        return {name: symbol.address for name, symbol in self.symbols.items()}

    def resolve(self, name):
        """Return the Symbol bound to name, including the built-in device symbols."""
        if name in self.symbols:
            return self.symbols[name]
        if name in DEVICE_SYMBOLS:
            return Symbol(name, "device", DEVICE_SYMBOLS[name])
        return None

    def listing(self):
        """
        Render the assembled program as text: one line per memory cell,
        then one line per instruction with its code address and source line.
        """
        lines = ["; data"]
        for address, value in enumerate(self.initial_memory):
            names = ", ".join(self.cell_names.get(address, []))
            shown = "undefined" if address in self.undefined_cells else str(value)
            lines.append(f"{address:04X}  {shown:>11}  {names}")

        lines.append("; code")
        code_labels = {}
        for symbol in self.symbols.values():
            if symbol.kind == "code":
                code_labels.setdefault(symbol.address, []).append(symbol.name)

        for address, instruction in enumerate(self.instructions):
            label = ", ".join(code_labels.get(address, []))
            if label:
                label += ":"
            lines.append(
                f"{address:04X}  {label:<12} {str(instruction):<20} ; line {instruction.line_num}"
            )

        # Labels that point one past the last instruction
        trailing = code_labels.get(len(self.instructions))
        if trailing:
            lines.append(f"{len(self.instructions):04X}  {', '.join(trailing)}:")

        return "\n".join(lines)


class AssemblerMima:
    """
    MiMa assembly source parser and two-pass symbol resolver.
    Turns labeled source text into a resolved program for ProcessorMima.
    """

    def assemble(self, code):
        """
        Assembles the source code and returns the resolved program.

        Args:
            code (str | list): Source text, or a list of source lines.
                Comments start with '#' and extend to the end of the line.
                Labels end with ':' and may stand alone or precede a statement.

        Returns:
            AssemblyOutput: Object containing:
                - symbols: Ordered mapping of names to Symbol records
                - instructions: Resolved Instruction sequence (index = code address)
                - initial_memory: Initial word of every memory cell
                - undefined_cells: Cells that start with the UNDEFINED sentinel
                - cell_names: Names bound to each memory address
                - line_to_address_map / address_to_line_map: Source line <-> code address
                - warnings: Non-fatal diagnostics

        Raises:
            AssemblyError: If the source contains syntax or resolution errors
        """
        if isinstance(code, str):
            code = code.splitlines()

        output = AssemblyOutput()
        statements = self._tokenize(code)

        # First pass: assign addresses to every label and data cell
        self._first_pass(statements, output)

        # Second pass: resolve operands against the finished symbol table
        self._second_pass(statements, output)

        self._check_unused_labels(statements, output)

        return output

    def _tokenize(self, code):
        """
        Split each line into (line_num, labels, keyword, args).
        keyword is None for label-only lines; empty lines are dropped.
        """
        statements = []
        for line_num, line in enumerate(code, 1):
            line = line.split("#", 1)[0].strip()
            if not line:
                continue

            parts = line.split()
            labels = []
            while parts and ":" in parts[0]:
                head, _, rest = parts[0].partition(":")
                if not head:
                    raise AssemblyError(line_num, f"Invalid label format: {parts[0]}")
                labels.append(head)
                if rest:
                    # Label glued to the statement (e.g. "loop:LDV x")
                    parts[0] = rest
                else:
                    parts.pop(0)

            for label in labels:
                if label in DEVICE_SYMBOLS or "." in label:
                    raise AssemblyError(
                        line_num, f"Cannot define reserved device symbol: {label}"
                    )
                if not IDENTIFIER.match(label):
                    raise AssemblyError(line_num, f"Invalid label name: {label}")

            if not parts:
                statements.append((line_num, labels, None, []))
                continue

            statements.append((line_num, labels, parts[0].upper(), parts[1:]))
        return statements

    def _first_pass(self, statements, output):
        """
        First pass of assembly process - validates syntax, collects labels
        and lays out the data cells

        Args:
            statements (list): Tokenized statements from _tokenize
            output (AssemblyOutput): Output container to store results

        Raises:
            AssemblyError: If there are syntax errors or duplicate symbols
        """
        code_address = 0
        pending_labels = []

        for line_num, labels, keyword, args in statements:
            pending_labels.extend((label, line_num) for label in labels)

            if keyword is None:
                continue  # Bare label, binds to the next statement

            if keyword == "DAT":
                value, times = self._parse_data(line_num, args)
                address = len(output.initial_memory)
                if address + times > MAX_DATA_CELLS:
                    raise AssemblyError(
                        line_num, f"Data segment too large: more than {MAX_DATA_CELLS} cells"
                    )
                for label, label_line in pending_labels:
                    self._define(output, label, "data", address, label_line)
                    output.cell_names.setdefault(address, []).append(label)
                pending_labels = []

                for offset in range(times):
                    if value is None:
                        output.initial_memory.append(UNDEFINED)
                        output.undefined_cells.add(address + offset)
                    else:
                        output.initial_memory.append(value)
                continue

            if keyword not in OPCODES:
                raise AssemblyError(line_num, f"Unknown instruction: {keyword}")

            self._check_arity(line_num, keyword, args)

            for label, label_line in pending_labels:
                self._define(output, label, "code", code_address, label_line)
            pending_labels = []

            output.line_to_address_map[line_num] = code_address
            output.address_to_line_map[code_address] = line_num
            code_address += 1

        # Trailing labels point one past the last instruction
        for label, label_line in pending_labels:
            self._define(output, label, "code", code_address, label_line)

    def _second_pass(self, statements, output):
        """
        Second pass - resolve every operand and build the instruction sequence
        """
        for line_num, labels, keyword, args in statements:
            if keyword is None or keyword == "DAT":
                continue

            kind = OPCODES[keyword]

            if kind is None:
                output.instructions.append(Instruction(keyword, line_num=line_num))
                continue

            operand = args[0]

            if kind == "literal":
                value = self._parse_literal(line_num, operand)
                output.instructions.append(
                    Instruction(keyword, operand, value, line_num)
                )
                continue

            if not REFERENCE.match(operand):
                raise AssemblyError(line_num, f"Invalid symbol name: {operand}")

            symbol = output.resolve(operand)
            if symbol is None:
                raise AssemblyError(line_num, f"Undefined symbol: {operand}")

            if kind == "code" and symbol.kind != "code":
                raise AssemblyError(
                    line_num, f"{keyword} requires a code label, got {symbol.kind} symbol: {operand}"
                )
            if kind == "data" and symbol.kind == "code":
                raise AssemblyError(
                    line_num, f"{keyword} requires a data cell, got code label: {operand}"
                )

            if operand == STDIN_GETC and keyword == "STV":
                output.warnings.append(
                    f"Line {line_num}: {operand} is read-only; this store will fault"
                )
            if operand == STDOUT_PUTC and keyword in READ_OPCODES:
                output.warnings.append(
                    f"Line {line_num}: {operand} is write-only; this read will fault"
                )

            output.instructions.append(
                Instruction(keyword, operand, symbol.address, line_num)
            )

    def _check_unused_labels(self, statements, output):
        """Warn about locally defined labels that no instruction references"""
        referenced = set()
        for line_num, labels, keyword, args in statements:
            if keyword in OPCODES and OPCODES[keyword] in ("data", "code"):
                referenced.add(args[0])

        for name, symbol in output.symbols.items():
            if name not in referenced:
                output.warnings.append(
                    f"Line {symbol.line_num}: The label \"{name}\" is never referenced"
                )

    def _define(self, output, name, kind, address, line_num):
        if name in output.symbols:
            first = output.symbols[name].line_num
            raise AssemblyError(
                line_num, f"Duplicate label: {name} (first defined on line {first})"
            )
        output.symbols[name] = Symbol(name, kind, address, line_num)

    def _check_arity(self, line_num, opcode, args):
        """Raise if the operand count does not match the opcode"""
        if OPCODES[opcode] is None:
            if args:
                raise AssemblyError(
                    line_num, f"{opcode} takes no operand, got: {' '.join(args)}"
                )
        elif not args:
            raise AssemblyError(line_num, f"{opcode} requires an operand")
        elif len(args) > 1:
            raise AssemblyError(
                line_num, f"{opcode} takes one operand, got: {' '.join(args)}"
            )

    def _parse_data(self, line_num, args):
        """
        Parse the arguments of a DAT directive: [value] [TIMES count].

        Returns:
            tuple: (value or None for an undefined cell, repetition count)
        """
        value = None
        times = 1

        if args and args[0].upper() != "TIMES":
            value = self._parse_literal(line_num, args[0])
            args = args[1:]

        if args:
            if args[0].upper() != "TIMES" or len(args) != 2:
                raise AssemblyError(
                    line_num, "Invalid DAT directive: expected DAT [value] [TIMES count]"
                )
            times = self._parse_literal(line_num, args[1])
            if times < 1:
                raise AssemblyError(line_num, f"Invalid DAT repetition count: {args[1]}")

        return value, times

    def _parse_literal(self, line_num, text):
        try:
            return self._parse_number(text)
        except ValueError as e:
            raise AssemblyError(line_num, str(e)) from None

    def _parse_number(self, value_str):
        """
        Parse an integer literal: optional sign, then decimal digits or a
        0x (hex), 0b (binary) or 0d (decimal) prefixed number.

        Values from -2^31 up to 2^32 - 1 are accepted; the result is the
        signed machine word with the same bit pattern.

        Raises:
            ValueError: If the literal is malformed or out of range
        """
        match = LITERAL.match(value_str.strip())
        if not match:
            raise ValueError(f"Invalid integer literal: {value_str}")

        sign, digits = match.groups()
        prefix = digits[:2].lower()
        if prefix == "0x":
            number = int(digits[2:], 16)
        elif prefix == "0b":
            number = int(digits[2:], 2)
        elif prefix == "0d":
            number = int(digits[2:], 10)
        else:
            number = int(digits, 10)

        if sign == "-":
            if number > -WORD_MIN:
                raise ValueError(f"Integer literal out of range: {value_str}")
            return -number

        if number > WORD_MASK:
            raise ValueError(f"Integer literal out of range: {value_str}")
        return to_word(number)
