"""Exceptions raised at the recoverable boundaries of a run."""

from __future__ import annotations


class PivotReconcileError(Exception):
    """Base class for every recoverable pivot-reconcile failure."""


class SheetNotFoundError(PivotReconcileError):
    """No sheet name matched the expected label."""

    def __init__(self, label: str, sheet_names: list[str] | None = None) -> None:
        self.label = label
        self.sheet_names = list(sheet_names or [])
        available = ", ".join(repr(n) for n in self.sheet_names) or "none"
        super().__init__(f"Sheet not found: {label!r} (available: {available})")


class EmptyResultError(PivotReconcileError):
    """Both pivot sheets were found but neither yielded a single value."""

    def __init__(self, message: str = "No USUÁRIO x HORA data found in either sheet") -> None:
        super().__init__(message)


class UnreadableFileError(PivotReconcileError, ValueError):
    """The input could not be decoded as a workbook."""
