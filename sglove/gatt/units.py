from sglove.common.logging import get_logger

L = get_logger(__name__)

UNIT_UNITLESS = 0x2700

# Bluetooth unit codes reported by the glove firmware
UNITS = {
    UNIT_UNITLESS: "",
    0x2713: "m/s2",  # acceleration
    0x2720: "rad",  # plane angle
    0x2724: "Pa",  # pressure
    0x2728: "V",  # electric potential difference
    0x272D: "uT",  # magnetic flux density (micro tesla)
    0x272F: "°C",  # Celsius temperature
    0x2743: "rad/s",  # angular velocity
    0x27AD: "%",  # percentage
    0x27C4: "ppm",  # concentration, parts per million
    0x27C5: "ppb",  # concentration, parts per billion
}


def unit_label(code):
    """Returns the short label for a unit code, or "" if it is unknown."""
    label = UNITS.get(code)
    if label is None:
        L.warning(f"Unknown BLE unit definition 0x{code:04x}")
        return ""
    return label
