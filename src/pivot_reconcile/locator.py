"""Sheet locator — find a workbook tab by a loosely-written name."""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence

from pivot_reconcile.errors import SheetNotFoundError

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_sheet_name(name: object) -> str:
    """Collapse whitespace runs, trim and uppercase *name*."""
    return _WHITESPACE_RE.sub(" ", str(name)).strip().upper()


def locate_sheet(sheet_names: Sequence[str], expected_label: str) -> int | None:
    """Return the index of the sheet matching *expected_label*, or ``None``.

    An exact match on the normalised name wins; otherwise the first sheet
    whose normalised name contains the label is returned.
    """
    wanted = normalize_sheet_name(expected_label)
    normalized = [normalize_sheet_name(name) for name in sheet_names]

    for idx, name in enumerate(normalized):
        if name == wanted:
            logger.debug("Sheet %r matched %r exactly", sheet_names[idx], expected_label)
            return idx

    for idx, name in enumerate(normalized):
        if wanted in name:
            logger.debug("Sheet %r contains %r", sheet_names[idx], expected_label)
            return idx

    return None


def require_sheet(sheet_names: Sequence[str], expected_label: str) -> int:
    """Like :func:`locate_sheet` but raise :class:`SheetNotFoundError` on a miss."""
    idx = locate_sheet(sheet_names, expected_label)
    if idx is None:
        raise SheetNotFoundError(expected_label, list(sheet_names))
    return idx
