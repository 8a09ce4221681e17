"""CSV export of a threat record view."""

import csv
import io
from typing import Iterable, List

from .models import ThreatRecord

CSV_COLUMNS: List[str] = [
    "id",
    "timestamp",
    "type",
    "severity",
    "country",
    "indicator",
    "description",
]


def records_to_csv(records: Iterable[ThreatRecord]) -> str:
    """Render records as CSV text with a header row, in the given order."""
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=CSV_COLUMNS, extrasaction="ignore")
    writer.writeheader()
    for record in records:
        row = record.to_dict()
        row["timestamp"] = row["timestamp"] or ""
        writer.writerow(row)
    return buffer.getvalue()
