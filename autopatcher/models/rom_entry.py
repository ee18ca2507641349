"""Catalogued ROM file model."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class RomEntry:
    """One candidate file under the ROM root and the MD5 of its content."""

    path: Path
    content_hash: str  # lowercase hex MD5
