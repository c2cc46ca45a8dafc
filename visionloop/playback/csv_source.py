"""
CSV input for data-driven playback.

Repeated header names are disambiguated by occurrence, so a sheet with
three "Search" columns yields Search_0, Search_1, Search_2. The column
mapper later pairs those with repeated "Search" steps in recorded order.
"""
import csv
import io
import re
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from .recording import ParsedField

_OCCURRENCE_SUFFIX = re.compile(r"_\d+$")


@dataclass
class CsvData:
    headers: List[str] = field(default_factory=list)
    rows: List[List[str]] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.rows)


def dedupe_headers(headers: List[str]) -> List[str]:
    counts = Counter(h.strip() for h in headers)
    taken = {h.strip() for h in headers if counts[h.strip()] == 1}
    seen: Counter = Counter()
    out = []
    for raw in headers:
        name = raw.strip()
        if counts[name] == 1:
            out.append(name)
            continue
        n = seen[name]
        candidate = f"{name}_{n}"
        while candidate in taken:
            n += 1
            candidate = f"{name}_{n}"
        seen[name] = n + 1
        taken.add(candidate)
        out.append(candidate)
    return out


def parse_csv(text: str) -> CsvData:
    reader = csv.reader(io.StringIO(text))
    records = [r for r in reader if any(cell.strip() for cell in r)]
    if not records:
        return CsvData()
    headers = dedupe_headers(records[0])
    return CsvData(headers=headers, rows=records[1:])


def load_csv(path: Path) -> CsvData:
    # utf-8-sig drops the BOM spreadsheet exports prepend to the first header
    with open(path, "r", encoding="utf-8-sig", newline="") as f:
        return parse_csv(f.read())


def fields_from_headers(headers: List[str]) -> List[ParsedField]:
    """Default column -> label assignment: the header minus any occurrence suffix."""
    return [
        ParsedField(column_name=h, column_index=i, target_label=_OCCURRENCE_SUFFIX.sub("", h))
        for i, h in enumerate(headers)
    ]
