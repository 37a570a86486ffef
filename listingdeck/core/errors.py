"""Exceptions raised by layout planning and document generation."""

from __future__ import annotations

from typing import Any, Optional


class LayoutError(Exception):
    """Base class for layout planning failures."""


class UnsupportedDistributionError(LayoutError, ValueError):
    """Raised when a horizontal/vertical split has no layout combination."""

    def __init__(self, horizontal: int, vertical: int, kind: Optional[str] = None):
        self.horizontal = horizontal
        self.vertical = vertical
        self.kind = kind
        super().__init__(self._format())

    @property
    def total(self) -> int:
        return self.horizontal + self.vertical

    def _format(self) -> str:
        group = f"{self.kind} " if self.kind else ""
        return (
            f"Unsupported image distribution for {group}images: "
            f"{self.horizontal} horizontal, {self.vertical} vertical "
            f"({self.total} total). Each group needs between 2 and 6 images."
        )


class DocumentGenerationError(RuntimeError):
    """Raised when the presentation service rejects or fails a request."""

    def __init__(self, message: str, details: Any = None):
        self.details = details
        super().__init__(message)
