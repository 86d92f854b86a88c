from typing import List, Optional

import pandas as pd
from rapidfuzz import fuzz

from bulkadd.config import DUPLICATE_THRESHOLD
from bulkadd.models import BulkEntry, EntryStatus

SUPPORTED_TYPES = {"restaurant"}


def _split_tags(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [t.strip() for t in str(raw).split(",") if t.strip()]


def _make_entry(line_number: int, name: str, type_: str, city: str, tags: List[str]) -> BulkEntry:
    entry = BulkEntry(name=name, line_number=line_number, type=type_ or "restaurant", city=city, tags=tags)
    if not name:
        entry.fail("Invalid format. Expected: name; type; city; tags")
    elif entry.type not in SUPPORTED_TYPES:
        entry.fail(f"Unknown type: {entry.type}. Expected 'restaurant'.")
    return entry


def parse_line(line: str, line_number: int) -> BulkEntry:
    """
    Parse one input line.

    Accepted forms:
        "Katz's Delicatessen; restaurant; New York; deli, pastrami"
        "Katz's Delicatessen | restaurant | New York | deli, pastrami"
        "Katz's Delicatessen, New York"
    """
    if "|" in line or ";" in line:
        separator = "|" if "|" in line else ";"
        parts = [p.strip() for p in line.split(separator)]
        parts += [""] * (4 - len(parts))
        return _make_entry(line_number, parts[0], parts[1].lower(), parts[2], _split_tags(parts[3]))

    name, _, city = line.partition(",")
    return _make_entry(line_number, name.strip(), "restaurant", city.strip(), [])


def parse_raw_input(raw_text: str) -> List[BulkEntry]:
    """Turn pasted text into bulk entries, one per non-blank line, numbered from 1."""
    if not raw_text:
        return []
    lines = [line for line in raw_text.splitlines() if line.strip()]
    return [parse_line(line, i + 1) for i, line in enumerate(lines)]


def load_entries_from_csv(file_path: str, nrows: int = None) -> List[BulkEntry]:
    """Load entries from a CSV with Name, Type, City and Tags columns."""
    df = pd.read_csv(file_path, nrows=nrows)
    entries = []
    for i, (_, row) in enumerate(df.iterrows()):
        # Helper to safely extract values from pandas Series, converting NaN to ""
        def safe_get(col):
            if col not in row.index or pd.isna(row[col]):
                return ""
            return str(row[col]).strip()

        entries.append(
            _make_entry(
                line_number=i + 1,
                name=safe_get("Name"),
                type_=safe_get("Type").lower() or "restaurant",
                city=safe_get("City"),
                tags=_split_tags(safe_get("Tags")),
            )
        )
    return entries


def mark_local_duplicates(entries: List[BulkEntry], threshold: float = DUPLICATE_THRESHOLD) -> List[BulkEntry]:
    """
    Flag entries whose name and city fuzzy-match an earlier entry in the same batch.
    Flagged entries keep their status; `duplicate_of` points at the first occurrence.
    """
    seen: List[BulkEntry] = []
    for entry in entries:
        if entry.status == EntryStatus.ERROR:
            continue
        key = f"{entry.name} {entry.city}".lower()
        for earlier in seen:
            score = fuzz.ratio(key, f"{earlier.name} {earlier.city}".lower())
            if score >= threshold:
                entry.duplicate_of = earlier.line_number
                break
        else:
            seen.append(entry)
    return entries
