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

# Main module for NeoMiMa - a simulator for the MiMa accumulator machine
# with integrated editor, assembler, and debugging capabilities

# Standard library imports
import io
import sys

# Third-party imports
from PySide6.QtCore import QDateTime, QElapsedTimer, QRect, QRegularExpression, QSize, QTimer, Qt
from PySide6.QtGui import (
    QAction,
    QColor,
    QFont,
    QKeySequence,
    QPainter,
    QSyntaxHighlighter,
    QTextCharFormat,
    QTextCursor,
    QTextFormat,
)
from PySide6.QtWidgets import (
    QApplication,
    QCheckBox,
    QFileDialog,
    QFrame,
    QGridLayout,
    QHBoxLayout,
    QHeaderView,
    QLabel,
    QLineEdit,
    QMenu,
    QMenuBar,
    QMessageBox,
    QPlainTextEdit,
    QPushButton,
    QSplitter,
    QTableWidget,
    QTableWidgetItem,
    QTextEdit,
    QVBoxLayout,
    QWidget,
)

# Local application imports
from assembler import DEVICE_SYMBOLS, OPCODES, AssemblerMima
from processor import EOF, RUNNING, ProcessorMima
from version import display_version, version_string

# Instructions executed per timer tick in fast mode
FAST_BATCH = 500

BUTTON_COLORS = {
    "Assemble": ("#458ADB", "#3A75C4"),
    "Step": ("#B8A404", "#9E8C03"),
    "Run": ("#0DB000", "#0A9000"),
    "Stop": ("#C42B1C", "#A82318"),
}

LOG_COLORS = {
    "OK": "#00AA00",
    "HALT": "#AAAA00",
    "ERROR": "#AA0000",
    "WARNING": "#D07000",
    "SYSTEM": "#00AAAA",
}

STATUS_COLORS = {
    "normal": "white",
    "success": "#DFF6DD",
    "warning": "#FFF4CE",
    "error": "#FDE7E9",
}

PANEL_STYLE = "background-color: white; color: #1E1E1E; padding: 5px; border: 1px solid #DDDDDD;"


class ZoomMixin:
    """Font zooming shared by the simulator's widgets"""

    def __init__(self, *args, font_point_size=10, **kwargs):
        super().__init__(*args, **kwargs)
        self.font_point_size = font_point_size

    def zoom_in(self):
        self.setFont(QFont(self.font().family(), self.font().pointSize() + 1))

    def zoom_out(self):
        if self.font().pointSize() > 4:
            self.setFont(QFont(self.font().family(), self.font().pointSize() - 1))

    def reset_zoom(self):
        self.setFont(QFont(self.font().family(), self.font_point_size))


class Label(ZoomMixin, QLabel):
    """Label - QLabel wrapper"""

    def __init__(self, text: str, font_family="Consolas", font_point_size=12):
        super().__init__(text, font_point_size=font_point_size)
        self.setFont(QFont(font_family, font_point_size))


class Header(Label):
    """Header for different sections"""

    def __init__(self, header: str):
        super().__init__(header, font_family="Segoe UI", font_point_size=12)
        self.setFixedHeight(30)
        self.setStyleSheet("background-color: #1F6E5A; color: white; border: none;")
        self.setAlignment(Qt.AlignmentFlag.AlignCenter)


class LineEdit(ZoomMixin, QLineEdit):
    """LineEdit - QLineEdit wrapper"""

    def __init__(self, place_holder_text: str):
        super().__init__(font_point_size=10)
        self.setFont(QFont("Consolas", 10))
        self.setPlaceholderText(place_holder_text)
        self.setStyleSheet(PANEL_STYLE)


class TextEdit(ZoomMixin, QTextEdit):
    """Read-only QTextEdit used for the log and the output view"""

    def __init__(self):
        super().__init__(font_point_size=10)
        self.setFont(QFont("Consolas", 10))
        self.setReadOnly(True)
        self.setStyleSheet("QTextEdit { background-color: white; color: #1E1E1E; padding: 5px; border: none; }")


class PushButton(ZoomMixin, QPushButton):
    """QPushButton wrapper with the simulator's color scheme"""

    def __init__(self, text: str):
        super().__init__(text, font_point_size=10)
        self.setFont(QFont("Segoe UI", 10))
        self.setCursor(Qt.CursorShape.PointingHandCursor)

        color, hover = BUTTON_COLORS.get(text, ("white", "#F0F0F0"))
        text_color = "#1E1E1E" if color == "white" else "white"
        border = "2px solid #DDDDDD" if color == "white" else "none"
        self.setStyleSheet(
            f"""
            QPushButton {{ background-color: {color}; color: {text_color}; border: {border}; padding: 6px; }}
            QPushButton:hover {{ background-color: {hover}; }}
            QPushButton:disabled {{ background-color: #BBBBBB; }}
            """
        )


class LineNumberArea(ZoomMixin, QWidget):
    """Gutter showing line numbers, instruction addresses and breakpoints"""

    def __init__(self, editor):
        super().__init__(editor, font_point_size=12)
        self.setFont(QFont("Consolas", 12))
        self.editor = editor
        self.setCursor(Qt.CursorShape.PointingHandCursor)

    def sizeHint(self):
        return QSize(self.editor.lineNumberAreaWidth(), 0)

    def paintEvent(self, event):
        self.editor.lineNumberAreaPaintEvent(event)

    def mousePressEvent(self, event):
        """Toggle a breakpoint on the clicked line"""
        cursor = self.editor.cursorForPosition(event.position().toPoint())
        self.editor.toggleBreakpoint(cursor.blockNumber())


class AssemblyHighlighter(QSyntaxHighlighter):
    """Syntax highlighter for MiMa assembly"""

    def __init__(self, document):
        super().__init__(document)

        def char_format(color, bold=False, italic=False):
            fmt = QTextCharFormat()
            fmt.setForeground(QColor(color))
            if bold:
                fmt.setFontWeight(QFont.Weight.Bold)
            fmt.setFontItalic(italic)
            return fmt

        case_insensitive = QRegularExpression.PatternOption.CaseInsensitiveOption
        opcodes = "|".join(OPCODES)
        devices = "|".join(name.replace(".", "\\.") for name in DEVICE_SYMBOLS)

        # Later rules override earlier ones; comments must stay last
        self.highlighting_rules = [
            (QRegularExpression(f"\\b({opcodes})\\b", case_insensitive), char_format("#8A2BE2", bold=True)),
            (QRegularExpression("\\b(DAT|TIMES)\\b", case_insensitive), char_format("#FF6600", bold=True)),
            (QRegularExpression("[+-]?\\b(0[xX][0-9A-Fa-f]+|0[bB][01]+|0[dD][0-9]+|[0-9]+)\\b"), char_format("#0000FF")),
            (QRegularExpression(f"\\b({devices})\\b"), char_format("#2E8B57", bold=True)),
            (QRegularExpression("\\b[A-Za-z_][A-Za-z0-9_]*:"), char_format("#800020")),
            (QRegularExpression("#.*"), char_format("#808080", italic=True)),
        ]

    def highlightBlock(self, text):
        for pattern, fmt in self.highlighting_rules:
            match = pattern.globalMatch(text)
            while match.hasNext():
                result = match.next()
                self.setFormat(result.capturedStart(), result.capturedLength(), fmt)


class LineNumberedEditor(ZoomMixin, QPlainTextEdit):
    """Code editor with line numbers, syntax highlighting, and breakpoint support"""

    def __init__(self):
        super().__init__(font_point_size=12)
        self.setPlaceholderText("Enter MiMa Assembly Code Here...")
        self.setFont(QFont("Consolas", 12))
        self.setLineWrapMode(QPlainTextEdit.LineWrapMode.NoWrap)
        self.setStyleSheet("QPlainTextEdit { background-color: white; color: #1E1E1E; selection-background-color: #0B91FF; }")

        self.highlighter = AssemblyHighlighter(self.document())
        self.lineNumberArea = LineNumberArea(self)
        self.breakpoints = set()  # 0-indexed block numbers
        self.line_to_address_map = {}  # 1-indexed source line -> code address

        self.status_bar = Label("Ln 1, Col 1", font_family="Segoe UI", font_point_size=9)
        self.status_bar.setStyleSheet("background-color: white; padding: 2px 5px; border: none;")

        self.blockCountChanged.connect(self.updateLineNumberAreaWidth)
        self.updateRequest.connect(self.updateLineNumberArea)
        self.cursorPositionChanged.connect(self.updateCursorPosition)
        self.cursorPositionChanged.connect(self.highlightCurrentLine)

        self.updateLineNumberAreaWidth(0)
        self.highlightCurrentLine()

    def set_address_map(self, line_to_address_map):
        self.line_to_address_map = dict(line_to_address_map)
        self.updateLineNumberAreaWidth(0)
        self.lineNumberArea.update()

    def updateCursorPosition(self):
        cursor = self.textCursor()
        self.status_bar.setText(
            f"Ln {cursor.blockNumber() + 1}, Col {cursor.columnNumber() + 1}, Chars: {len(self.toPlainText())}"
        )

    def lineNumberAreaWidth(self):
        digits = len(str(self.blockCount())) + (5 if self.line_to_address_map else 0)
        return 20 + self.fontMetrics().horizontalAdvance("9") * digits

    def updateLineNumberAreaWidth(self, _):
        self.setViewportMargins(self.lineNumberAreaWidth(), 0, 0, 0)

    def updateLineNumberArea(self, rect, dy):
        if dy:
            self.lineNumberArea.scroll(0, dy)
        else:
            self.lineNumberArea.update(0, rect.y(), self.lineNumberArea.width(), rect.height())
        if rect.contains(self.viewport().rect()):
            self.updateLineNumberAreaWidth(0)

    def resizeEvent(self, event):
        super().resizeEvent(event)
        rect = self.contentsRect()
        self.lineNumberArea.setGeometry(QRect(rect.left(), rect.top(), self.lineNumberAreaWidth(), rect.height()))

    def lineNumberAreaPaintEvent(self, event):
        """Draw "<line> <address>" for each visible block plus breakpoint dots"""
        painter = QPainter(self.lineNumberArea)
        painter.fillRect(event.rect(), QColor("#F0F0F0"))

        block = self.firstVisibleBlock()
        top = self.blockBoundingGeometry(block).translated(self.contentOffset()).top()
        height = self.fontMetrics().height()

        while block.isValid() and top <= event.rect().bottom():
            block_number = block.blockNumber()
            bottom = top + self.blockBoundingRect(block).height()

            if block.isVisible() and bottom >= event.rect().top():
                line = block_number + 1
                text = str(line)
                if line in self.line_to_address_map:
                    text = f"{line} {self.line_to_address_map[line]:04X}"

                if block_number in self.breakpoints:
                    painter.setPen(QColor("#DA0000"))
                    painter.setBrush(QColor("#DA0000"))
                    painter.drawEllipse(3, int(top) + 4, 8, 8)

                painter.setPen(QColor("#6D6D6D"))
                painter.drawText(
                    0, int(top), self.lineNumberArea.width() - 5, height, Qt.AlignmentFlag.AlignRight, text
                )

            block = block.next()
            top = bottom

    def highlightCurrentLine(self):
        self._highlight(self.textCursor(), "#E6F2FF")

    def highlightExecutedLine(self, line):
        """Highlight the instruction about to execute (0-indexed line)"""
        cursor = QTextCursor(self.document().findBlockByNumber(line))

        self.cursorPositionChanged.disconnect(self.highlightCurrentLine)
        self._highlight(cursor, "#D9ECE6")
        self.setTextCursor(cursor)
        self.ensureCursorVisible()
        self.cursorPositionChanged.connect(self.highlightCurrentLine)

    def _highlight(self, cursor, color):
        selection = QTextEdit.ExtraSelection()
        selection.format.setBackground(QColor(color))
        selection.format.setProperty(QTextFormat.Property.FullWidthSelection, True)
        selection.cursor = QTextCursor(cursor)
        selection.cursor.clearSelection()
        self.setExtraSelections([selection])

    def is_code_line(self, line):
        """True if the 0-indexed line holds something other than whitespace or a comment"""
        text = self.document().findBlockByNumber(line).text()
        return bool(text.split("#", 1)[0].strip())

    def toggleBreakpoint(self, line):
        if line in self.breakpoints:
            self.breakpoints.remove(line)
        elif self.is_code_line(line):
            self.breakpoints.add(line)
        else:
            return False
        self.lineNumberArea.update()
        return True

    def zoom_in(self):
        super().zoom_in()
        self.lineNumberArea.zoom_in()

    def zoom_out(self):
        super().zoom_out()
        self.lineNumberArea.zoom_out()

    def reset_zoom(self):
        super().reset_zoom()
        self.lineNumberArea.reset_zoom()


class MemoryTableWidget(ZoomMixin, QTableWidget):
    """Memory cells of the loaded program: address, names and value"""

    HEADERS = ["Addr", "Names", "Value", "Hex"]

    def __init__(self, simulator, parent=None):
        super().__init__(0, len(self.HEADERS), parent, font_point_size=10)
        self.simulator = simulator
        self.setFont(QFont("Consolas", 10))
        self.setHorizontalHeaderLabels(self.HEADERS)
        self.horizontalHeader().setSectionResizeMode(QHeaderView.ResizeMode.ResizeToContents)
        self.horizontalHeader().setStretchLastSection(True)
        self.verticalHeader().setVisible(False)
        self.setEditTriggers(QTableWidget.EditTrigger.NoEditTriggers)
        self.setStyleSheet("QTableWidget { background-color: white; border: 1px solid #DDDDDD; color: #1E1E1E; }")
        self.cellClicked.connect(self.display_value)

    def rebuild(self):
        """Recreate one row per memory cell of the loaded program"""
        processor = self.simulator.processor
        self.setRowCount(len(processor.memory))
        for address in range(len(processor.memory)):
            names = ", ".join(processor.cell_names.get(address, []))
            self.setItem(address, 0, QTableWidgetItem(f"{address:04X}"))
            self.setItem(address, 1, QTableWidgetItem(names))
            self.setItem(address, 2, QTableWidgetItem())
            self.setItem(address, 3, QTableWidgetItem())
        self.update_values()

    def update_values(self):
        processor = self.simulator.processor
        for address, value in enumerate(processor.memory):
            if processor.is_defined(address):
                self.item(address, 2).setText(str(value))
            else:
                self.item(address, 2).setText("undefined")
            self.item(address, 3).setText(f"{value & 0xFFFFFFFF:08X}")

    def display_value(self, row, column):
        processor = self.simulator.processor
        if row < len(processor.memory):
            names = self.item(row, 1).text() or "(unnamed)"
            self.simulator.add_to_log(f"Cell {row:04X} {names} = {processor.memory[row]}", "SYSTEM")

    def focusOutEvent(self, event):
        self.clearSelection()
        super().focusOutEvent(event)


class Simulator(QWidget):
    """Main simulator window for the MiMa accumulator machine"""

    def __init__(self):
        super().__init__()
        self.processor = ProcessorMima()
        self.assembled = False
        self.running = False
        self.use_highlighting = True
        self.execution_log = []
        self.current_file = None
        self.document_modified = False

        self.elapsed_timer = QElapsedTimer()
        self.elapsed_time_ms = 0
        self.timer_running = False

        self.execution_timer = QTimer(self)
        self.execution_timer.timeout.connect(self.execute_timer_tick)

        self.init_ui()

    def init_ui(self):
        """Initialize the user interface"""
        self.update_window_title()
        self.setGeometry(100, 50, 1280, 800)
        self.setStyleSheet("QWidget { background-color: #EDEDED; color: #1E1E1E; }")

        main_layout = QVBoxLayout(self)
        main_layout.setContentsMargins(0, 0, 0, 0)
        main_layout.setSpacing(0)
        main_layout.addWidget(self.create_menu_bar())

        splitter = QSplitter()
        splitter.setContentsMargins(0, 0, 5, 5)
        splitter.addWidget(self.create_editor_panel())
        splitter.addWidget(self.create_machine_panel())
        splitter.setSizes([700, 580])
        main_layout.addWidget(splitter)

        self.update_registers_display()

    def create_menu_bar(self):
        self.menu_bar = QMenuBar(self)
        self.menu_bar.setStyleSheet("QMenuBar { background-color: white; border-bottom: 1px solid #DDDDDD; }")

        def add_actions(menu_name, entries):
            menu = self.menu_bar.addMenu(menu_name)
            for entry in entries:
                if entry is None:
                    menu.addSeparator()
                    continue
                text, shortcut, slot = entry
                action = QAction(text, self)
                if shortcut:
                    action.setShortcut(QKeySequence(shortcut))
                action.triggered.connect(slot)
                menu.addAction(action)

        add_actions("File", [
            ("New File", "Ctrl+N", self.new_file),
            ("Open Program", "Ctrl+O", self.load_program),
            None,
            ("Save", "Ctrl+S", self.save_program),
            ("Save As...", "Ctrl+Shift+S", self.save_program_as),
            None,
            ("Exit", "Alt+F4", self.close),
        ])
        add_actions("Simulator", [
            ("Assemble", "Ctrl+B", self.compile_program),
            ("Step", "F10", self.execute_single_step),
            ("Run", "F5", self.start_continuous_execution),
            ("Run without Highlighting", "Ctrl+Shift+F5", self.start_fast_execution),
            ("Stop", "F8", self.stop_execution),
            ("Reset", "Ctrl+R", self.reset_simulation),
        ])
        add_actions("Debug", [
            ("Toggle Breakpoint", "F9", self.toggle_breakpoint_at_cursor),
            ("Remove All Breakpoints", None, self.remove_all_breakpoints),
            None,
            ("Show Listing", "Ctrl+L", self.show_listing),
        ])
        add_actions("Zoom", [
            ("Zoom In", "Ctrl+=", self.zoom_in),
            ("Zoom Out", "Ctrl+-", self.zoom_out),
            ("Reset Zoom", "Ctrl+0", self.reset_zoom),
        ])
        add_actions("Help", [("About", None, self.show_about)])
        return self.menu_bar

    def create_editor_panel(self):
        """Code editor on top, execution log below"""
        panel = QWidget()
        layout = QVBoxLayout(panel)

        self.code_editor = LineNumberedEditor()
        self.code_editor.textChanged.connect(self.document_was_modified)
        self.code_editor.setContextMenuPolicy(Qt.ContextMenuPolicy.CustomContextMenu)
        self.code_editor.customContextMenuRequested.connect(self.show_editor_context_menu)

        editor_layout = QVBoxLayout()
        editor_layout.setSpacing(0)
        editor_layout.addWidget(self.code_editor)
        editor_layout.addWidget(self.code_editor.status_bar)
        layout.addLayout(editor_layout, 4)

        log_header_layout = QHBoxLayout()
        log_header_layout.setSpacing(0)
        log_header_layout.addWidget(Header("EXECUTION LOG"), 9)
        clear_log_button = PushButton("Clear")
        clear_log_button.clicked.connect(self.clear_execution_log)
        log_header_layout.addWidget(clear_log_button, 1)
        layout.addLayout(log_header_layout)

        self.execution_log_widget = TextEdit()
        layout.addWidget(self.execution_log_widget, 2)
        return panel

    def create_machine_panel(self):
        """Controls, registers, I/O and memory"""
        panel = QWidget()
        layout = QVBoxLayout(panel)
        layout.addWidget(Header("SIMULATOR OPERATIONS"))

        controls = QHBoxLayout()
        self.compile_button = PushButton("Assemble")
        self.step_button = PushButton("Step")
        self.run_button = PushButton("Run")
        self.stop_button = PushButton("Stop")
        self.reset_button = PushButton("Reset")
        self.compile_button.clicked.connect(self.compile_program)
        self.step_button.clicked.connect(self.execute_single_step)
        self.run_button.clicked.connect(self.start_continuous_execution)
        self.stop_button.clicked.connect(self.stop_execution)
        self.reset_button.clicked.connect(self.reset_simulation)
        self.stop_button.setEnabled(False)
        for button in (self.compile_button, self.step_button, self.run_button, self.stop_button, self.reset_button):
            controls.addWidget(button)
        layout.addLayout(controls)

        self.status_label = Label("Ready", font_family="Segoe UI", font_point_size=10)
        self.status_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.set_status("Ready", "normal")
        layout.addWidget(self.status_label)

        stats_layout = QHBoxLayout()
        self.instr_count_label = Label("Instructions: 0", font_family="Segoe UI", font_point_size=10)
        self.exec_time_label = Label("Elapsed Time: 0 ms", font_family="Segoe UI", font_point_size=10)
        stats_layout.addWidget(self.instr_count_label)
        stats_layout.addWidget(self.exec_time_label)
        layout.addLayout(stats_layout)

        separator = QFrame()
        separator.setFrameShape(QFrame.Shape.HLine)
        layout.addWidget(separator)

        # Registers
        self.register_labels = {}
        registers_grid = QGridLayout()
        registers_grid.addWidget(Header("REGISTERS"), 0, 0, 1, 2)
        for name in ("ACC", "PC", "STATE", "IR"):
            label = Label(name)
            label.setStyleSheet(PANEL_STYLE)
            label.setAlignment(Qt.AlignmentFlag.AlignCenter)
            self.register_labels[name] = label
        registers_grid.addWidget(self.register_labels["ACC"], 1, 0, 1, 2)
        registers_grid.addWidget(self.register_labels["PC"], 2, 0)
        registers_grid.addWidget(self.register_labels["STATE"], 2, 1)
        registers_grid.addWidget(self.register_labels["IR"], 3, 0, 1, 2)
        layout.addLayout(registers_grid)

        # Input and output devices
        layout.addWidget(Header("I/O"))
        input_layout = QHBoxLayout()
        input_layout.addWidget(Label("stdin.getc", font_point_size=10))
        self.input_edit = LineEdit("Program input, consumed one byte per read (e.g. 5)")
        input_layout.addWidget(self.input_edit, 4)
        self.newline_checkbox = QCheckBox("+ newline")
        input_layout.addWidget(self.newline_checkbox)
        layout.addLayout(input_layout)

        self.output_widget = TextEdit()
        self.output_widget.setFixedHeight(80)
        layout.addWidget(self.output_widget)

        # Memory
        layout.addWidget(Header("MEMORY"))
        self.memory_table = MemoryTableWidget(self)
        layout.addWidget(self.memory_table, 1)
        return panel

    def input_bytes(self):
        data = self.input_edit.text().encode("utf-8")
        if self.newline_checkbox.isChecked():
            data += b"\n"
        return data

    def start_elapsed_timer(self):
        if not self.timer_running:
            self.elapsed_timer.start()
            self.timer_running = True

    def stop_elapsed_timer(self):
        if self.timer_running:
            self.elapsed_time_ms += self.elapsed_timer.elapsed()
            self.timer_running = False
            self.update_elapsed_time_display()

    def reset_elapsed_timer(self):
        self.elapsed_time_ms = 0
        self.timer_running = False
        self.update_elapsed_time_display()

    def update_elapsed_time_display(self):
        total_ms = self.elapsed_time_ms
        if self.timer_running:
            total_ms += self.elapsed_timer.elapsed()

        if total_ms < 1000:
            time_str = f"{total_ms} ms"
        elif total_ms < 60000:
            time_str = f"{total_ms / 1000:.2f} s"
        else:
            minutes = int(total_ms / 60000)
            seconds = (total_ms % 60000) / 1000
            time_str = f"{minutes}:{seconds:06.3f}"

        self.exec_time_label.setText(f"Elapsed Time: {time_str}")

    def update_registers_display(self):
        """Update register and device panels from processor state"""
        processor = self.processor
        acc = processor.acc
        self.register_labels["ACC"].setText(f"ACC: {acc}  ({acc & 0xFFFFFFFF:08X}H)")
        self.register_labels["PC"].setText(f"PC: {processor.pc:04X}H")
        self.register_labels["STATE"].setText(processor.state)
        self.register_labels["IR"].setText(f"IR: {processor.last_instruction or '-'}")
        self.instr_count_label.setText(f"Instructions: {processor.steps}")
        self.update_output_display()

    def update_output_display(self):
        output = bytes(self.processor.output)
        text = output.decode("latin-1")
        printable = "".join(ch if ch.isprintable() or ch == "\n" else "." for ch in text)
        self.output_widget.setPlainText(
            f"stdout.putc ({len(output)} bytes): {' '.join(str(b) for b in output)}\n{printable}"
        )

    def compile_program(self):
        """Assemble the editor contents and load them into a fresh processor"""
        code = self.code_editor.toPlainText()

        try:
            assembly_output = AssemblerMima().assemble(code)
        except SyntaxError as e:
            self.add_to_log(f"Assembly error: {e}", "ERROR")
            self.set_status("Assembly Failed: Syntax Error", "error")
            QMessageBox.critical(self, "Assembly Error", str(e))
            return False

        self.stop_execution()
        self.processor = ProcessorMima(io.BytesIO(self.input_bytes()))
        self.processor.load_program(assembly_output)
        self.assembled = True

        self.code_editor.set_address_map(assembly_output.line_to_address_map)
        self.memory_table.rebuild()
        self.update_registers_display()
        self.reset_elapsed_timer()

        self.add_to_log(
            f"Program assembled: {len(assembly_output.instructions)} instructions, "
            f"{len(assembly_output.initial_memory)} memory cells",
            "SYSTEM",
        )
        for warning in assembly_output.warnings:
            self.add_to_log(warning, "WARNING")
        self.set_status("Assembled - Ready to Execute", "success")

        self.highlight_current_instruction()
        return True

    def execute_single_step(self):
        """Execute a single instruction"""
        if not self.assembled:
            self.compile_program()
            return None

        if self.processor.state != RUNNING:
            self.stop_execution()
            return "HALT" if self.processor.halted else "ERROR"

        last_pc = self.processor.pc
        line_num = self.processor.address_to_line_map.get(last_pc)

        if self.running and line_num is not None and (line_num - 1) in self.code_editor.breakpoints:
            self.add_to_log(f"Breakpoint hit at line {line_num}", "SYSTEM")
            self.stop_execution()
            self.code_editor.highlightExecutedLine(line_num - 1)
            return None

        self.start_elapsed_timer()
        result = self.processor.step()
        if not self.running:
            self.stop_elapsed_timer()

        if self.use_highlighting or result != "OK":
            if self.processor.last_instruction and result != "ERROR":
                self.add_to_log(f"{last_pc:04X}: {self.processor.last_instruction}", result)
            self.after_step(result)

        return result

    def after_step(self, result):
        """Refresh the views and react to halt/fault"""
        self.highlight_current_instruction()
        self.update_registers_display()
        self.memory_table.update_values()
        self.update_elapsed_time_display()

        if result == "HALT":
            self.set_status("Program halted", "warning")
            self.add_to_log(f"Program halted after {self.processor.steps} instructions", "HALT")
            self.stop_execution()
        elif result == "ERROR":
            self.set_status(f"Fault: {self.processor.error}", "error")
            self.add_to_log(f"Fault: {self.processor.error}", "ERROR")
            self.stop_execution()

    def execute_timer_tick(self):
        if self.use_highlighting:
            self.execute_single_step()
            return

        for _ in range(FAST_BATCH):
            result = self.execute_single_step()
            if result != "OK":
                return
        self.after_step("OK")

    def highlight_current_instruction(self):
        line_num = self.processor.address_to_line_map.get(self.processor.pc)
        if self.use_highlighting and line_num is not None:
            self.code_editor.highlightExecutedLine(line_num - 1)

    def _start_execution(self, interval, highlighting, message):
        if not self.assembled and not self.compile_program():
            return

        if self.processor.state != RUNNING:
            self.add_to_log("Cannot run - program has stopped. Reset or assemble again.", "SYSTEM")
            self.set_status("Program stopped - Reset to run again", "warning")
            return

        self.use_highlighting = highlighting
        self.running = True
        self.start_elapsed_timer()
        self.execution_timer.start(interval)

        self.compile_button.setEnabled(False)
        self.step_button.setEnabled(False)
        self.run_button.setEnabled(False)
        self.stop_button.setEnabled(True)

        self.set_status(message, "success")
        self.add_to_log(message, "SYSTEM")

    def start_continuous_execution(self):
        self._start_execution(50, True, "Running...")

    def start_fast_execution(self):
        self._start_execution(0, False, "Running (fast mode)...")

    def stop_execution(self):
        """Stop continuous execution"""
        was_running = self.running
        self.running = False
        self.execution_timer.stop()
        self.stop_elapsed_timer()
        self.use_highlighting = True

        self.compile_button.setEnabled(True)
        self.step_button.setEnabled(True)
        self.run_button.setEnabled(True)
        self.stop_button.setEnabled(False)

        if was_running and self.processor.state == RUNNING:
            self.after_step("OK")
            self.set_status("Execution Paused", "warning")
            self.add_to_log("Execution paused", "SYSTEM")

    def reset_simulation(self):
        """Restart the loaded program with fresh input"""
        self.stop_execution()
        self.processor.input_stream = io.BytesIO(self.input_bytes())
        self.processor.reset()

        self.memory_table.rebuild()
        self.update_registers_display()
        self.reset_elapsed_timer()
        self.code_editor.highlightCurrentLine()
        self.highlight_current_instruction()

        self.set_status("Reset - Ready to Execute" if self.assembled else "Reset - Ready to Assemble", "normal")
        self.add_to_log("Simulator reset", "SYSTEM")

    def show_listing(self):
        if not self.assembled and not self.compile_program():
            return
        try:
            listing = AssemblerMima().assemble(self.code_editor.toPlainText()).listing()
        except SyntaxError as e:
            self.add_to_log(f"Assembly error: {e}", "ERROR")
            return
        self.add_to_log("<pre>" + listing.replace("&", "&amp;").replace("<", "&lt;") + "</pre>", "SYSTEM")

    def add_to_log(self, message, status="OK"):
        """Add a timestamped, color-coded message to the execution log"""
        timestamp = QDateTime.currentDateTime().toString("hh:mm:ss")
        color = LOG_COLORS.get(status, "#1E1E1E")
        self.execution_log.append(f"<span style='color:{color}'>[{timestamp}] {message}</span>")
        self.execution_log_widget.setHtml("<br>".join(self.execution_log[-100:]))
        scroll_bar = self.execution_log_widget.verticalScrollBar()
        scroll_bar.setValue(scroll_bar.maximum())

    def clear_execution_log(self):
        self.execution_log.clear()
        self.execution_log_widget.clear()

    def set_status(self, text, status_type="normal"):
        """
        Set status text with consistent styling

        Parameters:
        text (str): The status message to display
        status_type (str): One of 'normal', 'success', 'warning', 'error'
        """
        self.status_label.setText(text)
        bg_color = STATUS_COLORS.get(status_type, "white")
        self.status_label.setStyleSheet(
            f"background-color: {bg_color}; color: #1E1E1E; padding: 4px; border: 1px solid #DDDDDD; border-radius: 3px;"
        )

    def toggle_breakpoint_at_cursor(self):
        self.toggle_breakpoint(self.code_editor.textCursor().blockNumber())

    def toggle_breakpoint(self, line_num):
        if not self.code_editor.toggleBreakpoint(line_num):
            self.add_to_log("Cannot add breakpoint on empty line or comment-only line", "ERROR")

    def remove_all_breakpoints(self):
        if self.code_editor.breakpoints:
            self.code_editor.breakpoints.clear()
            self.code_editor.lineNumberArea.update()
            self.add_to_log("All breakpoints removed", "SYSTEM")
        else:
            self.add_to_log("No breakpoints to remove", "SYSTEM")

    def show_editor_context_menu(self, pos):
        line_num = self.code_editor.cursorForPosition(pos).blockNumber()
        menu = QMenu(self)
        text = "Remove Breakpoint" if line_num in self.code_editor.breakpoints else "Add Breakpoint"
        menu.addAction(text).triggered.connect(lambda: self.toggle_breakpoint(line_num))
        menu.exec(self.code_editor.viewport().mapToGlobal(pos))

    def save_program(self):
        """Save to the current file; returns True if the save was cancelled or failed"""
        if self.current_file:
            return self.save_to_file(self.current_file)
        return self.save_program_as()

    def save_program_as(self):
        file_path, _ = QFileDialog.getSaveFileName(
            self, "Save Assembly Program", "", "Assembly Files (*.asm);;All Files (*.*)"
        )
        if file_path:
            return self.save_to_file(file_path)
        return True

    def save_to_file(self, file_path):
        try:
            with open(file_path, "w", encoding="utf-8") as f:
                f.write(self.code_editor.toPlainText())
        except OSError as e:
            self.add_to_log(f"Error saving program: {e}", "ERROR")
            QMessageBox.critical(self, "Save Error", f"Could not save the file:\n{e}")
            return True

        self.current_file = file_path
        self.document_modified = False
        self.update_window_title()
        self.add_to_log(f"Program saved to {file_path}", "SYSTEM")
        return False

    def load_program(self):
        if self.check_save_current():
            return

        file_path, _ = QFileDialog.getOpenFileName(
            self, "Open Assembly Program", "", "Assembly Files (*.asm);;All Files (*.*)"
        )
        if file_path:
            self.open_file(file_path)

    def open_file(self, file_path):
        try:
            with open(file_path, "r", encoding="utf-8") as f:
                content = f.read()
        except (OSError, UnicodeDecodeError) as e:
            self.add_to_log(f"Error loading program: {e}", "ERROR")
            QMessageBox.critical(self, "Load Error", f"Could not load the file:\n{e}")
            return

        self.code_editor.setPlainText(content)
        self.current_file = file_path
        self.document_modified = False
        self.forget_program()
        self.update_window_title()
        self.add_to_log(f"Program loaded from {file_path}", "SYSTEM")

    def new_file(self):
        if self.check_save_current():
            return
        self.code_editor.setPlainText("")
        self.current_file = None
        self.document_modified = False
        self.forget_program()
        self.update_window_title()
        self.add_to_log("New file created", "SYSTEM")

    def forget_program(self):
        """Drop the assembled program after the source was replaced"""
        self.stop_execution()
        self.processor = ProcessorMima()
        self.assembled = False
        self.code_editor.set_address_map({})
        self.memory_table.rebuild()
        self.update_registers_display()
        self.reset_elapsed_timer()
        self.set_status("Ready", "normal")

    def check_save_current(self):
        """Returns True if the caller should abort (user cancelled)"""
        if not self.document_modified or not self.code_editor.toPlainText().strip():
            return False

        reply = QMessageBox.question(
            self,
            "Save Changes?",
            "Do you want to save changes to the current program?",
            QMessageBox.StandardButton.Save | QMessageBox.StandardButton.Discard | QMessageBox.StandardButton.Cancel,
            QMessageBox.StandardButton.Save,
        )
        if reply == QMessageBox.StandardButton.Save:
            return self.save_program()
        return reply == QMessageBox.StandardButton.Cancel

    def document_was_modified(self):
        if not self.document_modified:
            self.document_modified = True
            self.update_window_title()
        if self.assembled and not self.running:
            self.assembled = False
            self.code_editor.set_address_map({})

    def update_window_title(self):
        title = f"NeoMiMa v{display_version} - Minimal Machine Simulator"
        if self.current_file:
            title = f"{self.current_file} - {title}"
        if self.document_modified:
            title = f"*{title}"
        self.setWindowTitle(title)

    def zoom_widgets(self):
        return [self.code_editor, self.execution_log_widget, self.memory_table, self.output_widget] + (
            self.findChildren(PushButton) + self.findChildren(Label) + self.findChildren(LineEdit)
        )

    def zoom_in(self):
        for widget in self.zoom_widgets():
            widget.zoom_in()

    def zoom_out(self):
        for widget in self.zoom_widgets():
            widget.zoom_out()

    def reset_zoom(self):
        for widget in self.zoom_widgets():
            widget.reset_zoom()

    def show_about(self):
        QMessageBox.information(
            self,
            "About NeoMiMa",
            f"NeoMiMa - Minimal Machine Simulator\n\n"
            f"A simulator for the MiMa accumulator machine: 32-bit signed words, "
            f"memory-mapped {', '.join(DEVICE_SYMBOLS)} devices "
            f"(stdin.getc yields {EOF} at end of input).\n"
            f"Version: {version_string}\n\n"
            f"Licensed under the GNU General Public License v3.0",
        )

    def closeEvent(self, event):
        if self.check_save_current():
            event.ignore()
        else:
            event.accept()


def main():
    app = QApplication(sys.argv)
    window = Simulator()
    window.show()
    if len(sys.argv) > 1:
        window.open_file(sys.argv[1])
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
