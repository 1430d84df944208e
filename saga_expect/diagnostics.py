"""Text helpers used to build assertion failure messages."""
import difflib
from pprint import pformat
from typing import Any, Optional

from rich.console import Console
from rich.text import Text


class DiagnosticFormatter:
    """Plain-text formatter; subclasses only change how text is coloured."""

    width = 80

    def dim(self, text: str) -> str:
        return text

    def expected_color(self, text: str) -> str:
        return text

    def received_color(self, text: str) -> str:
        return text

    def format_value(self, value: Any) -> str:
        return pformat(value, width=self.width)

    def print_expected(self, value: Any) -> str:
        return self.expected_color(self.format_value(value))

    def print_received(self, value: Any) -> str:
        return self.received_color(self.format_value(value))

    def diff(self, expected: Any, received: Any) -> str:
        header = f"{self.expected_color('- Expected')}\n{self.received_color('+ Received')}"
        expected_lines = self.format_value(expected).splitlines()
        received_lines = self.format_value(received).splitlines()
        if expected_lines == received_lines:
            return (f"{self.dim('Compared values have no visual difference.')}\n\n"
                    f"Expected: {self.print_expected(expected)}\n"
                    f"Received: {self.print_received(received)}")
        lines = []
        for line in difflib.ndiff(expected_lines, received_lines):
            if line.startswith('? '):
                continue
            if line.startswith('- '):
                lines.append(self.expected_color(line))
            elif line.startswith('+ '):
                lines.append(self.received_color(line))
            else:
                lines.append(line)
        return header + '\n\n' + '\n'.join(lines)


class RichDiagnosticFormatter(DiagnosticFormatter):
    """Same messages as ``DiagnosticFormatter``, styled with ANSI colours by rich."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console(force_terminal=True, color_system='standard', highlight=False)

    def _style(self, text: str, style: str) -> str:
        with self.console.capture() as capture:
            self.console.print(Text(text, style=style), end='', soft_wrap=True)
        return capture.get()

    def dim(self, text: str) -> str:
        return self._style(text, 'dim')

    def expected_color(self, text: str) -> str:
        return self._style(text, 'green')

    def received_color(self, text: str) -> str:
        return self._style(text, 'red')


def formatter_for(color: bool) -> DiagnosticFormatter:
    return RichDiagnosticFormatter() if color else DiagnosticFormatter()
