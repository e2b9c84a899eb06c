"""CSV feed parsing.

Turns a whole CSV document into a list of ``{field: value}`` records keyed by
the lower-cased header names, so that alias lookups downstream are
case-insensitive. Quoting follows RFC 4180 (commas inside quotes, ``""`` as an
escaped quote). Blank lines are dropped and short rows are padded with "".
"""

import csv
import io
from typing import Dict, Iterator, List

from loguru import logger

FeedRecord = Dict[str, str]

BOM = "\ufeff"

# Free-text columns (notes, broadcast lists) can exceed the 128 KiB default
FIELD_SIZE_LIMIT = 16 * 1024 * 1024
csv.field_size_limit(FIELD_SIZE_LIMIT)


def _rows(text: str) -> Iterator[List[str]]:
    if text.startswith(BOM):
        text = text[len(BOM):]
    reader = csv.reader(io.StringIO(text))
    while True:
        try:
            row = next(reader)
        except StopIteration:
            return
        except csv.Error as e:
            # Rows read so far are kept; the rest of the document is dropped
            logger.warning(f"Stopped reading CSV at line {reader.line_num}: {e}")
            return
        if not any(cell.strip() for cell in row):
            continue
        yield row


def header_names(text: str) -> List[str]:
    """Returns the normalized (trimmed, lower-cased) header row, or [] for empty input."""
    for row in _rows(text):
        return [h.strip().lower() for h in row]
    return []


def parse_csv(text: str) -> List[FeedRecord]:
    """Parses CSV text into records in source order.

    Args:
        text: Full CSV document, optionally prefixed with a UTF-8 BOM.

    Returns:
        One dict per data row. Missing trailing columns map to "" and columns
        beyond the header are ignored. Empty input yields [].
    """
    rows = _rows(text or "")
    header = next(rows, None)
    if header is None:
        return []
    fields = [h.strip().lower() for h in header]

    records: List[FeedRecord] = []
    for row in rows:
        records.append(
            {
                name: (row[i].strip() if i < len(row) else "")
                for i, name in enumerate(fields)
            }
        )
    return records
