import struct

from sglove.common.logging import get_logger
from sglove.gatt.presentation import Format, GattDecodeError, PresentationInfo

L = get_logger(__name__)


class ValueLengthError(GattDecodeError):
    """Raised when a value is shorter than its declared format requires."""


# Little-endian struct codes for each supported format
_STRUCT_CODES = {
    Format.BOOLEAN: "<B",
    Format.UINT8: "<B",
    Format.UINT16: "<H",
    Format.UINT32: "<I",
    Format.SINT8: "<b",
    Format.SINT16: "<h",
    Format.SINT32: "<i",
    Format.FLOAT32: "<f",
}


def required_length(fmt):
    """Returns the byte length needed for a format, or None if unsupported."""
    code = _STRUCT_CODES.get(fmt)
    if code is None:
        return None
    return struct.calcsize(code)


def unpack_raw(data, fmt):
    """Unpacks the unscaled value of a characteristic.

    Raises:
        ValueLengthError: If data is shorter than the format requires.
    """
    code = _STRUCT_CODES[fmt]
    length = struct.calcsize(code)
    if len(data) < length:
        raise ValueLengthError(
            f"Format 0x{int(fmt):02x} needs {length} bytes, got {len(data)}"
        )
    (raw,) = struct.unpack_from(code, bytes(data))
    if fmt == Format.BOOLEAN:
        return raw != 0
    return raw


def scale(raw, exponent):
    """Returns raw * 10**exponent as a float."""
    if exponent >= 0:
        return raw * 10.0 ** exponent
    # 2345 with exponent -2 must give exactly 23.45
    return raw / 10.0 ** -exponent


def decode_value(data, presentation: PresentationInfo):
    """Decodes a characteristic value according to its presentation format.

    Args:
        data: Raw value bytes from a read or a notification.
        presentation: The characteristic's presentation format.

    Returns:
        A bool for BOOLEAN characteristics, otherwise the scaled float.
        Unsupported formats and short buffers decode to 0.
    """
    if not presentation.is_supported:
        return 0

    fmt = Format(presentation.format)
    try:
        raw = unpack_raw(data, fmt)
    except ValueLengthError as e:
        L.warning(f"Characteristic value length does not match presentation format: {e}")
        return 0

    if fmt == Format.BOOLEAN:
        return raw
    return scale(raw, presentation.exponent)


def encode_value(value, presentation: PresentationInfo) -> bytearray:
    """Encodes a physical value into the characteristic's wire format.

    Integer formats store round(value / 10**exponent).
    """
    fmt = Format(presentation.format)
    if fmt == Format.BOOLEAN:
        return bytearray([0x01 if value else 0x00])
    if fmt == Format.FLOAT32:
        return bytearray(struct.pack("<f", value / 10.0 ** presentation.exponent))
    raw = round(value / 10.0 ** presentation.exponent)
    return bytearray(struct.pack(_STRUCT_CODES[fmt], raw))
