from __future__ import annotations
import re
from typing import Optional, Tuple

# Columns are lettered ``a``..``j`` along x, rows numbered ``1``..``10`` along
# y, so ``c4`` is the coordinate (2, 3).
COLUMNS = "abcdefghij"

_CELL_RE = re.compile(r"^([a-z])\s*(\d{1,2})$")
_PAIR_RE = re.compile(r"^\(?\s*(\d+)\s*[,;\s]\s*(\d+)\s*\)?$")


def normalize(cell: str) -> str:
    return cell.strip().lower()


def parse_coord(cell: str) -> Optional[Tuple[int, int]]:
    """Parse ``'c4'`` or ``'2,3'`` into ``(x, y)``; ``None`` if invalid."""
    cell = normalize(cell)
    match = _CELL_RE.match(cell)
    if match:
        letter, digits = match.groups()
        if letter not in COLUMNS:
            return None
        row = int(digits)
        if not 1 <= row <= len(COLUMNS):
            return None
        return COLUMNS.index(letter), row - 1
    match = _PAIR_RE.match(cell)
    if match:
        x, y = (int(v) for v in match.groups())
        if x < len(COLUMNS) and y < len(COLUMNS):
            return x, y
    return None


def format_coord(coord: Tuple[int, int]) -> str:
    """Convert internal ``(x, y)`` into the lettered form."""
    x, y = coord
    return f"{COLUMNS[x]}{y + 1}"
