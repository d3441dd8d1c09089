import csv
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterable, List, Optional, Tuple


DEFAULT_TABLE_PATH = os.path.join(os.path.dirname(__file__), '..', '..', 'data', 'user_xp_table.csv')


@dataclass(frozen=True)
class XpLevel:
    level: int
    next_required_xp: int
    cumulative_xp: int


def parse_xp_table(lines: Iterable[str]) -> List[XpLevel]:
    """Parse ``level,<unused>,next_required_xp,cumulative_xp`` rows.

    The header row is skipped, as are blank lines.
    """
    rows = [row for row in csv.reader(line for line in lines if line.strip())]
    table = []
    for row in rows[1:]:
        if len(row) < 4:
            raise ValueError(f"xp table row has {len(row)} columns, expected 4: {row!r}")
        table.append(XpLevel(level=int(row[0]), next_required_xp=int(row[2]), cumulative_xp=int(row[3])))
    return sorted(table, key=lambda item: item.level)


@lru_cache(maxsize=4)
def load_xp_table(path: Optional[str] = None) -> Tuple[XpLevel, ...]:
    with open(path or DEFAULT_TABLE_PATH, newline='') as handle:
        return tuple(parse_xp_table(handle))


def apply_elapsed_xp(xp: int, level: int, elapsed: int, table: Iterable[XpLevel]) -> Tuple[int, int]:
    """Add ``elapsed`` seconds of xp and level up as far as the table allows.

    A level is left once xp reaches its cumulative threshold; the last
    level in the table is the cap.
    """
    by_level = {item.level: item for item in table}
    xp = int(xp or 0) + max(0, int(elapsed))
    level = int(level or 1)
    while level in by_level and level + 1 in by_level and xp >= by_level[level].cumulative_xp:
        level += 1
    return xp, level
