"""Indented line builder for generated shader text."""

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator


@dataclass
class CodeBlock:
    """Accumulates lines of ShaderLab/HLSL text at the current indentation."""

    indent: str = "    "
    indent_level: int = 0
    lines: list[str] = field(default_factory=list)

    @contextmanager
    def block(self, header: str, closer: str = "}") -> Iterator[None]:
        """Context manager for a brace-delimited scope opened on the header line."""
        self.add_line(f"{header} {{")
        self.indent_level += 1
        try:
            yield
        finally:
            self.indent_level -= 1
            self.add_line(closer)

    @contextmanager
    def indented(self) -> Iterator[None]:
        """Indent without emitting braces."""
        self.indent_level += 1
        try:
            yield
        finally:
            self.indent_level -= 1

    @property
    def prefix(self) -> str:
        return self.indent * self.indent_level

    def add_line(self, line: str = "") -> None:
        """Add a line with proper indentation. Repeated blank lines collapse."""
        if not line:
            if self.lines and self.lines[-1]:
                self.lines.append("")
            return
        self.lines.append(f"{self.prefix}{line}")

    def add_verbatim(self, lines: list[str]) -> None:
        """Add code lines as they are, keeping inner blank lines."""
        for line in lines:
            self.lines.append(f"{self.prefix}{line}" if line else "")

    def get_code(self) -> str:
        """Get generated code, ending in a newline."""
        return "\n".join(self.lines) + "\n"
