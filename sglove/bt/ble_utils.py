from bleak import BleakScanner
from sglove.common.logging import get_logger
from sglove.gatt.constants import DEVICE_NAME

L = get_logger(__name__)

async def discover_glove_devices(device_name=DEVICE_NAME, timeout=10.0):
    L.info(f"Scanning for '{device_name}'")
    devices = await BleakScanner.discover(timeout=timeout)
    gloves = [d for d in devices if d.name and d.name == device_name]
    if not gloves:
        L.info(f"No {device_name} devices found.")
        return []
    L.info("Found devices:")
    for idx, d in enumerate(gloves):
        L.info(f"  [{idx}] {d.name} ({d.address})")
    return gloves
