"""Shared helpers — hashing, timestamps, number/hour rendering."""

from __future__ import annotations

import hashlib
import math
from datetime import datetime, timezone
from pathlib import Path


def sha256_file(path: Path) -> str:
    """Return the hex SHA-256 digest of *path*."""
    h = hashlib.sha256()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(8192), b""):
            h.update(chunk)
    return h.hexdigest()


def utcnow_iso() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def format_number(value: float) -> str:
    """Render *value* without a trailing ``.0`` when it is integral.

    ``10.0`` -> ``"10"``, ``1234.5`` -> ``"1234.5"``, ``-0.0`` -> ``"0"``.
    """
    if math.isfinite(value) and float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def hour_label(hour: int) -> str:
    """``8`` -> ``"08:00"``."""
    return f"{hour:02d}:00"
