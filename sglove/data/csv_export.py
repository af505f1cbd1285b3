from datetime import datetime
from typing import Mapping, Sequence

from sglove.data.registry import SnapshotEntry

TIMESTAMP_FORMAT = "%Y/%m/%d %H:%M:%S"


def format_timestamp(dt: datetime) -> str:
    """Formats a local time as "YYYY/MM/DD HH:MM:SS"."""
    return dt.strftime(TIMESTAMP_FORMAT)


def render_csv(columns: Sequence[SnapshotEntry], rows: Mapping[str, Mapping[str, str]]) -> str:
    """Renders a log as CSV text.

    The first three lines carry the service names, characteristic names and
    units of each column. Each following line is a timestamp and the values
    captured at that time, with an empty field where a characteristic was
    not yet known. Every field is terminated by a comma.

    Args:
        columns: Registry snapshot defining the column order.
        rows: Log rows keyed by timestamp, in chronological order.
    """
    services = "Timestamp," + "".join(f"{c.service_name}," for c in columns)
    names = "," + "".join(f"{c.name}," for c in columns)
    units = "," + "".join(f"{c.unit_label}," for c in columns)

    lines = [services, names, units]
    for timestamp, row in rows.items():
        lines.append(f"{timestamp}," + "".join(f"{row.get(c.id, '')}," for c in columns))
    return "\n".join(lines) + "\n"
