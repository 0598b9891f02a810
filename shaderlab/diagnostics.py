"""Mapping of shader compiler messages back to document blocks."""

import re
from dataclasses import dataclass
from enum import Enum

from shaderlab.document import ShaderDocument
from shaderlab.models import Block

UNITY_MESSAGE_RE = re.compile(
    r"Shader (error|warning) in '([^']*)': (.+?) at line (\d+)", re.IGNORECASE
)


class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass
class CompileMessage:
    """One compiler message. ``line`` is 1-based, as compilers report it."""

    message: str
    line: int
    severity: Severity = Severity.ERROR


@dataclass
class CompileError:
    """A compile error attributed to the block whose span contains it."""

    shader_name: str
    message: str
    line: int
    block_id: str = ""
    block_title: str = ""


def parse_compile_output(text: str) -> list[CompileMessage]:
    """Read messages from console output such as
    ``Shader error in 'Name': undeclared identifier 'x' at line 42 (on d3d11)``.
    """
    messages: list[CompileMessage] = []
    for match in UNITY_MESSAGE_RE.finditer(text):
        messages.append(
            CompileMessage(
                message=match.group(3).strip(),
                line=int(match.group(4)),
                severity=Severity(match.group(1).lower()),
            )
        )
    return messages


def find_block_at_line(doc: ShaderDocument, line: int) -> Block | None:
    """Block whose recorded span contains a 0-based line, if any."""
    return next((b for b in doc.all_blocks if b.contains_line(line)), None)


def map_compile_messages(
    doc: ShaderDocument, messages: list[CompileMessage]
) -> list[CompileError]:
    """Attribute every error message to a block of the document.

    Warnings are dropped. Errors outside any block keep empty block fields.
    """
    errors: list[CompileError] = []
    for msg in messages:
        if msg.severity != Severity.ERROR:
            continue
        error = CompileError(shader_name=doc.shader_name, message=msg.message, line=msg.line)
        block = find_block_at_line(doc, msg.line - 1)
        if block is not None:
            error.block_id = block.id
            error.block_title = block.title
        errors.append(error)
    return errors


def has_errors(messages: list[CompileMessage]) -> bool:
    return any(m.severity == Severity.ERROR for m in messages)
