import asyncio
from typing import Callable, Dict, List, Optional

from bleak import BleakClient
from bleak.exc import BleakError

from sglove.bt.ble_utils import discover_glove_devices
from sglove.common.logging import get_logger
from sglove.data.log_accumulator import LogAccumulator
from sglove.data.registry import CharacteristicRegistry, SnapshotEntry
from sglove.gatt.constants import (
    DEVICE_NAME,
    SUPPORTED_SERVICES,
    UUID_PRESENTATION_FORMAT,
    UUID_USER_DESCRIPTION,
)
from sglove.gatt.formatter import format_value
from sglove.gatt.presentation import MalformedDescriptorError, parse_presentation
from sglove.gatt.value_codec import decode_value

L = get_logger(__name__)


class SmartGlove:
    """
    A session with a SmartGlove over Bluetooth LE.

    Discovers the supported services, decodes every readable characteristic
    and keeps the latest values in a registry that the log accumulator
    samples.
    """

    def __init__(
        self,
        address: str,
        on_value_updated: Optional[Callable[[str, str, str], None]] = None,
        on_export: Optional[Callable[[str], None]] = None,
    ):
        """
        Initializes the session with the BLE device address.

        Args:
            address: The BLE address of the glove.
            on_value_updated: Called with (id, formatted value, unit label)
                whenever a characteristic value is decoded.
            on_export: Called with the CSV text when logging stops.
        """
        self._address = address
        self._client = BleakClient(address, disconnected_callback=self._on_disconnect)
        self._is_connected = False
        self._on_value_updated = on_value_updated
        self.registry = CharacteristicRegistry()
        self.log = LogAccumulator(self.registry, on_export=on_export)
        # id -> (name, characteristic) for characteristics that accept writes
        self._writable: Dict[str, tuple] = {}
        self._events: "asyncio.Queue[tuple]" = asyncio.Queue()
        self._event_task: Optional[asyncio.Task] = None

    @property
    def address(self) -> str:
        return self._address

    @property
    def is_connected(self) -> bool:
        return self._is_connected

    @property
    def writable_characteristics(self) -> Dict[str, str]:
        """Maps the id of every writable characteristic to its name."""
        return {char_id: name for char_id, (name, _) in self._writable.items()}

    def snapshot(self) -> List[SnapshotEntry]:
        return self.registry.snapshot()

    def _on_disconnect(self, client):
        if not self._is_connected:
            return
        self._is_connected = False
        L.warning(f"Disconnected from {client.address}.")
        self._end_session()

    def _end_session(self):
        self.log.stop()
        if self._event_task and not self._event_task.done():
            self._event_task.cancel()
        self._event_task = None
        # Notifications from this session must not reach the next one
        while not self._events.empty():
            self._events.get_nowait()
        self.registry.clear()
        self._writable.clear()

    async def connect(self):
        """
        Connects to the glove and initializes every supported service.
        """
        if self._is_connected:
            L.info(f"Already connected to {self._address}.")
            return

        self.registry.clear()
        self._writable.clear()

        L.info(f"Attempting to connect to {self._address}...")
        try:
            await self._client.connect()
            self._is_connected = self._client.is_connected
        except Exception as e:
            L.error(f"Failed to connect to {self._address}: {e}")
            self._is_connected = False
            return

        if not self._is_connected:
            L.warning(f"Failed to connect to {self._address}.")
            return

        L.info(f"Connected to {self._address}.")
        await self._init_services()
        self._event_task = asyncio.get_running_loop().create_task(self._process_events())

    async def disconnect(self):
        """
        Stops logging, exporting any captured rows, and closes the connection.
        """
        if not self._is_connected:
            return
        self._is_connected = False
        self._end_session()
        await self._client.disconnect()
        L.info(f"Disconnected from {self._address}.")

    async def _init_services(self):
        for service in self._client.services:
            service_name = SUPPORTED_SERVICES.get(service.uuid.lower())
            if service_name is None:
                L.info(f"Found unsupported service with UUID {service.uuid}")
                continue

            L.info(f"Found service '{service_name}' with UUID {service.uuid}")
            for characteristic in service.characteristics:
                try:
                    await self._init_characteristic(service_name, characteristic)
                except BleakError as e:
                    L.error(f"Failed to initialize characteristic {characteristic.uuid}: {e}")

    async def _init_characteristic(self, service_name, characteristic):
        raw_name = await self._read_descriptor(characteristic, UUID_USER_DESCRIPTION)
        if raw_name is None:
            L.info(f"Characteristic {characteristic.uuid} has no user description, ignoring it")
            return

        name = bytes(raw_name).decode("utf-8", errors="replace")
        L.info(f"Found characteristic '{name}' with UUID {characteristic.uuid}")

        # Every characteristic must be readable and notify at minimum
        properties = characteristic.properties
        if "read" not in properties or "notify" not in properties:
            L.info(f"Characteristic '{name}' is not readable with notifications, ignoring it")
            return

        if "write" in properties or "write-without-response" in properties:
            await self._init_writable(characteristic, name)
        else:
            await self._init_readable(service_name, characteristic, name)

    async def _init_readable(self, service_name, characteristic, name):
        raw_presentation = await self._read_descriptor(characteristic, UUID_PRESENTATION_FORMAT)
        if raw_presentation is None:
            L.warning(f"Characteristic '{name}' has no presentation format descriptor, ignoring it")
            return

        try:
            presentation = parse_presentation(raw_presentation)
        except MalformedDescriptorError as e:
            L.warning(f"Invalid presentation descriptor for '{name}': {e}")
            return

        char_id = characteristic.uuid
        value = await self._client.read_gatt_char(characteristic)
        self.registry.register(char_id, name, service_name, presentation)
        self.update_value(char_id, value)

        def handle(_sender, data: bytearray):
            self._events.put_nowait((char_id, bytes(data)))

        await self._client.start_notify(characteristic, handle)
        L.info(f"Started notifications for UUID {char_id}")

    async def _init_writable(self, characteristic, name):
        char_id = characteristic.uuid
        self._writable[char_id] = (name, characteristic)

        def handle(_sender, data: bytearray):
            L.debug(f"Notification for writable characteristic {char_id}: {bytes(data).hex()}")

        await self._client.start_notify(characteristic, handle)
        L.info(f"Started notifications for UUID {char_id}")

    async def _read_descriptor(self, characteristic, uuid) -> Optional[bytearray]:
        descriptor = characteristic.get_descriptor(uuid)
        if descriptor is None:
            return None
        return await self._client.read_gatt_descriptor(descriptor.handle)

    def update_value(self, char_id, data) -> Optional[str]:
        """
        Decodes a raw value and stores it as the characteristic's latest value.

        Args:
            char_id: The characteristic UUID.
            data: The raw value bytes.

        Returns:
            The formatted value, or None if the characteristic is unknown.
        """
        record = self.registry.get(char_id)
        if record is None:
            L.warning(f"Received value for unknown UUID {char_id}")
            return None

        value = decode_value(data, record.presentation)
        formatted = format_value(value, record.presentation)
        self.registry.record_value(char_id, formatted)
        if self._on_value_updated:
            self._on_value_updated(char_id, formatted, record.unit_label)
        return formatted

    def drain_notifications(self) -> int:
        """
        Applies every queued notification without waiting.

        Returns:
            The number of notifications applied.
        """
        count = 0
        while True:
            try:
                char_id, data = self._events.get_nowait()
            except asyncio.QueueEmpty:
                return count
            self.update_value(char_id, data)
            count += 1

    async def _process_events(self):
        while True:
            char_id, data = await self._events.get()
            self.update_value(char_id, data)

    async def toggle(self, char_id) -> Optional[bool]:
        """
        Inverts the first byte of a writable characteristic.

        Returns:
            The new state, or None if the characteristic returned no data.
        """
        if not self._is_connected:
            raise ConnectionError("Not connected to the glove.")

        entry = self._writable.get(char_id)
        if entry is None:
            raise KeyError(f"Unknown writable characteristic {char_id}")
        name, characteristic = entry

        value = bytearray(await self._client.read_gatt_char(characteristic))
        if not value:
            L.warning(f"Characteristic '{name}' returned no data, not toggling it")
            return None

        value[0] = 0x00 if value[0] else 0x01
        L.info(f"Setting '{name}' to {value[0]} (writing {value.hex()} to {char_id})...")
        await self._client.write_gatt_char(characteristic, value, response=False)
        return bool(value[0])

    @staticmethod
    async def discover(device_name=DEVICE_NAME, timeout=10.0):
        """
        Discovers gloves advertising the given name.

        Returns:
            A list of discovered devices.
        """
        return await discover_glove_devices(device_name, timeout)
