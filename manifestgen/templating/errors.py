"""Error types raised by template resolution and rendering."""

from __future__ import annotations


class TemplateError(Exception):
    """Base class for every templating failure."""


class TemplateNotFoundError(TemplateError):
    """Raised when a template reference cannot be resolved to a file."""

    def __init__(self, reference: str) -> None:
        self.reference = reference
        super().__init__(f"Template not found: {reference}")


class TemplateReadError(TemplateError):
    """Raised when a resolved template file cannot be read or decoded."""

    def __init__(self, path: str, cause: OSError | UnicodeDecodeError) -> None:
        self.path = path
        self.cause = cause
        super().__init__(f"Failed to read template {path}: {cause}")


class TemplateRenderError(TemplateError):
    """Raised when a template fails to compile or render."""

    def __init__(self, template: str, message: str) -> None:
        self.template = template
        self.message = message
        super().__init__(f"Failed to render template {template}: {message}")


class TemplateWriteError(TemplateError):
    """Raised when rendered output cannot be written to its destination."""

    def __init__(self, path: str, cause: OSError) -> None:
        self.path = path
        self.cause = cause
        super().__init__(f"Failed to write {path}: {cause}")
