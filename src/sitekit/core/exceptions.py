"""Custom exception hierarchy for the asset pipeline and template cache."""

from __future__ import annotations


class SitekitError(RuntimeError):
    """Base exception for asset pipeline failures."""


class AssetNotFoundError(SitekitError, LookupError):
    """Raised when a virtual path has not been registered."""

    def __init__(self, virtual_path: str) -> None:
        super().__init__(f"File Not Found: {virtual_path}")
        self.virtual_path = virtual_path


class AssetReadError(SitekitError):
    """Raised when the backing content of an asset cannot be read."""


class AssetTraversalError(SitekitError):
    """Raised when a directory cannot be walked during registration."""


class PreprocessingError(SitekitError):
    """Raised when a preprocessor rejects or fails to rewrite content."""


class ReferenceCycleError(PreprocessingError):
    """Raised when assets reference each other while being materialized."""

    def __init__(self, chain: list[str]) -> None:
        super().__init__("Reference cycle detected: " + " -> ".join(chain))
        self.chain = list(chain)


class ConfigError(SitekitError):
    """Raised when a site configuration file is missing or invalid."""


class TemplateError(SitekitError):
    """Base exception for template compilation and rendering failures."""


class TemplateCompileError(TemplateError):
    """Raised when a template source has a syntax or structural defect."""


class TemplateExecutionError(TemplateError):
    """Raised when rendering a compiled template fails."""


class TemplateArgumentError(TemplateError, ValueError):
    """Raised when a template function receives an invalid argument."""


def exception_messages(exc: BaseException) -> list[str]:
    """Return the collected message chain for an exception and its causes."""
    messages: list[str] = []
    visited: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in visited:
        visited.add(id(current))
        text = str(current).strip()
        if text:
            first_line = text.splitlines()[0].strip()
            if first_line:
                messages.append(first_line)
        current = current.__cause__ or current.__context__
    return messages


__all__ = [
    "AssetNotFoundError",
    "AssetReadError",
    "AssetTraversalError",
    "ConfigError",
    "PreprocessingError",
    "ReferenceCycleError",
    "SitekitError",
    "TemplateArgumentError",
    "TemplateCompileError",
    "TemplateError",
    "TemplateExecutionError",
    "exception_messages",
]
