"""
Exceptions raised by the shader document core.

Only terminal conditions raise. Recoverable problems found while parsing or
writing (malformed markers, unterminated blocks, stale spans) are reported as
warnings instead, so authoring tools can keep working on imperfect sources.
"""


class ShaderLabError(Exception):
    """Base class for all shaderlab errors."""

    def __init__(self, message: str, context: str | None = None):
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        if self.context:
            return f"{self.message}\nContext: {self.context}"
        return self.message


class SourceNotFoundError(ShaderLabError, FileNotFoundError):
    """The shader source file does not exist."""

    def __init__(self, path: str):
        super().__init__(f"Shader file not found: {path}")
        self.path = path


class EmptySourceError(ShaderLabError):
    """The shader source text is empty."""

    def __init__(self, path: str | None = None):
        message = "Shader source is empty"
        if path:
            message += f": {path}"
        super().__init__(message)
        self.path = path


class UsePassError(ShaderLabError):
    """A mutation would give a use-pass blocks, struct data or pragmas."""

    def __init__(self, pass_name: str, operation: str):
        super().__init__(
            f"Pass '{pass_name}' references an external pass and cannot {operation}"
        )
        self.pass_name = pass_name


class DuplicateFieldError(ShaderLabError):
    """A field name is already declared in the same stage."""

    def __init__(self, name: str, stage: str):
        super().__init__(f"Field '{name}' already exists in stage {stage}")
        self.name = name
        self.stage = stage


class RecordFormatError(ShaderLabError):
    """A persisted document record could not be decoded."""
