import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import List, NamedTuple, Optional

from sglove.common.logging import get_logger
from sglove.gatt.presentation import PresentationInfo
from sglove.gatt.units import unit_label

L = get_logger(__name__)


@dataclass
class CharacteristicRecord:
    """A decoded, readable characteristic discovered on the glove."""

    id: str
    name: str
    service_name: str
    presentation: PresentationInfo
    unit_label: str
    last_value: str = ""


class SnapshotEntry(NamedTuple):
    id: str
    service_name: str
    name: str
    unit_label: str
    last_value: str


class CharacteristicRegistry:
    """Ordered table of readable characteristics and their latest values.

    Registration order is the display order and the CSV column order.
    """

    def __init__(self):
        self._records: "OrderedDict[str, CharacteristicRecord]" = OrderedDict()
        self._lock = threading.RLock()

    def register(self, char_id, name, service_name, presentation: PresentationInfo) -> CharacteristicRecord:
        """Adds a characteristic with an empty last value.

        Registering a known id again replaces its record in place.
        """
        record = CharacteristicRecord(
            id=char_id,
            name=name,
            service_name=service_name,
            presentation=presentation,
            unit_label=unit_label(presentation.unit),
        )
        with self._lock:
            if char_id in self._records:
                L.warning(f"Characteristic {char_id} registered twice, replacing it")
            self._records[char_id] = record
        L.info(f"Registered characteristic '{name}' ({char_id}) of service '{service_name}'")
        return record

    def record_value(self, char_id, formatted_value) -> bool:
        """Stores the latest formatted value of a characteristic.

        Returns:
            False if the id is not registered, in which case nothing changes.
        """
        with self._lock:
            record = self._records.get(char_id)
            if record is None:
                L.warning(f"Received value for unknown characteristic {char_id}")
                return False
            record.last_value = formatted_value
            return True

    def get(self, char_id) -> Optional[CharacteristicRecord]:
        with self._lock:
            return self._records.get(char_id)

    def clear(self):
        with self._lock:
            self._records.clear()

    def snapshot(self) -> List[SnapshotEntry]:
        """Returns the current value of every characteristic, in registration order."""
        with self._lock:
            return [
                SnapshotEntry(r.id, r.service_name, r.name, r.unit_label, r.last_value)
                for r in self._records.values()
            ]

    def __contains__(self, char_id):
        with self._lock:
            return char_id in self._records

    def __len__(self):
        with self._lock:
            return len(self._records)
