from sglove.data.registry import SnapshotEntry

NO_DATA = "No data"


def format_value_cell(entry: SnapshotEntry):
    if not entry.last_value:
        return NO_DATA
    if entry.unit_label:
        return f"{entry.last_value} {entry.unit_label}"
    return entry.last_value


def format_snapshot_table(snapshot, writable=None):
    """Formats a registry snapshot as console lines grouped by service."""
    lines = []
    current_service = None
    name_width = max((len(e.name) for e in snapshot), default=0) + 1
    for entry in snapshot:
        if entry.service_name != current_service:
            if current_service is not None:
                lines.append("")
            lines.append(entry.service_name)
            current_service = entry.service_name
        lines.append(f"  {entry.name + ':':<{name_width}} {format_value_cell(entry)}")

    if writable:
        if lines:
            lines.append("")
        lines.append("Controls")
        for char_id, name in writable.items():
            lines.append(f"  {name} ({char_id})")
    return lines
