"""Reconciler — fold units and cases tuples into unified records."""

from __future__ import annotations

import unicodedata
from collections.abc import Iterable
from dataclasses import replace

from pivot_reconcile.models import PivotTuple, RecordKey, UnifiedRecord


def collation_key(user: str) -> tuple[str, str, str]:
    """Sort key ordering names the way a human reads them.

    Accents and case are ignored first (``"Álvaro"`` sorts beside
    ``"alvaro"``). Among names equal on that base, lowercase comes before
    uppercase; the raw string keeps the order total.
    """
    decomposed = unicodedata.normalize("NFKD", user)
    base = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return base.casefold(), user.swapcase(), user


def count_duplicate_keys(tuples: Iterable[PivotTuple]) -> int:
    """Number of tuples whose ``(user, hour)`` key was already seen."""
    seen: set[RecordKey] = set()
    duplicates = 0
    for item in tuples:
        if item.key in seen:
            duplicates += 1
        else:
            seen.add(item.key)
    return duplicates


def merge_pivots(
    units: Iterable[PivotTuple], cases: Iterable[PivotTuple]
) -> list[UnifiedRecord]:
    """Merge units and cases tuples keyed by ``(user, hour)``.

    Units go in first with ``cases=0``; each cases tuple then overwrites the
    ``cases`` field of an existing key or adds a units-free record. When one
    side repeats a key the last value wins.
    """
    merged: dict[RecordKey, UnifiedRecord] = {}

    for item in units:
        merged[item.key] = UnifiedRecord(item.user, item.hour, units=item.value or 0.0)

    for item in cases:
        current = merged.get(item.key)
        if current is None:
            merged[item.key] = UnifiedRecord(item.user, item.hour, cases=item.value or 0.0)
        else:
            merged[item.key] = replace(current, cases=item.value or 0.0)

    return sorted(merged.values(), key=lambda r: (collation_key(r.user), r.hour))
