"""Text helpers for block code."""

import re
from dataclasses import dataclass

TAB_WIDTH = 4

SIGNATURE_RE = re.compile(
    r"\b(void|half[234]?|float[234]?|int)\s+(\w+)\s*\(([^)]*)\)"
)


@dataclass
class FunctionSignature:
    """Return type, name and raw parameter list of a function definition."""

    return_type: str
    name: str
    parameters: str

    @property
    def parameter_list(self) -> list[str]:
        if not self.parameters.strip():
            return []
        return [p.strip() for p in self.parameters.split(",")]


def split_lines(content: str) -> list[str]:
    """Split text into lines the same way for parsing and splicing."""
    return content.replace("\r\n", "\n").split("\n")


def _indent_width(line: str) -> int:
    width = 0
    for char in line:
        if char == " ":
            width += 1
        elif char == "\t":
            width += TAB_WIDTH
        else:
            break
    return width


def _strip_indent(line: str, amount: int) -> str:
    removed = 0
    index = 0
    while removed < amount and index < len(line):
        if line[index] == " ":
            removed += 1
        elif line[index] == "\t":
            removed += TAB_WIDTH
        else:
            break
        index += 1
    return line[index:]


def dedent_lines(lines: list[str]) -> list[str]:
    """Remove the common leading whitespace. Tabs count as four spaces.

    Blank lines become empty and do not take part in the minimum.
    """
    cleaned = [line.rstrip("\r") for line in lines]
    widths = [_indent_width(line) for line in cleaned if line.strip()]
    if not widths:
        return ["" for _ in cleaned]
    common = min(widths)
    return [_strip_indent(line, common) if line.strip() else "" for line in cleaned]


def dedent_code(code: str) -> str:
    """Dedent code and trim blank lines at both ends."""
    return "\n".join(dedent_lines(code.split("\n"))).strip("\n")


def uncomment_line(line: str) -> str:
    """Strip one leading ``// `` token, keeping the indentation before it."""
    stripped = line.lstrip()
    indent = line[: len(line) - len(stripped)]
    if stripped.startswith("// "):
        return indent + stripped[3:]
    if stripped.rstrip() == "//":
        return ""
    return line


def is_declaration_only(code: str) -> bool:
    """Whether code holds nothing but bare declarations.

    A declaration-only block has no braces, and every non-empty, non-comment
    line ends in ``;`` without a call. Empty code counts as declaration-only.
    """
    if "{" in code:
        return False
    for raw in code.split("\n"):
        line = raw.strip()
        if not line or line.startswith("//"):
            continue
        if not line.endswith(";") or "(" in line:
            return False
    return True


def extract_function_signature(code: str) -> FunctionSignature | None:
    """First function definition found in the code, if any."""
    match = SIGNATURE_RE.search(code)
    if match is None:
        return None
    return FunctionSignature(
        return_type=match.group(1),
        name=match.group(2),
        parameters=match.group(3).strip(),
    )


def brace_delta(line: str) -> int:
    """Opening minus closing braces on a line, ignoring ``//`` comments."""
    code = line.split("//", 1)[0]
    return code.count("{") - code.count("}")
