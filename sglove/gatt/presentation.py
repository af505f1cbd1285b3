import enum
import struct
from dataclasses import dataclass

PRESENTATION_DESCRIPTOR_LENGTH = 7

# format (u8), exponent (s8), unit (u16), namespace (u8), description (u16)
_DESCRIPTOR_FORMAT = "<BbHBH"

# Namespace value assigned to the Bluetooth SIG
NAMESPACE_BLUETOOTH_SIG = 0x01


class GattDecodeError(ValueError):
    """Base class for errors raised while decoding GATT payloads."""


class MalformedDescriptorError(GattDecodeError):
    """Raised when a presentation format descriptor is too short to parse."""


class Format(enum.IntEnum):
    """GATT format types from the Bluetooth Assigned Numbers, section 2.4.1."""

    BOOLEAN = 0x01
    UINT8 = 0x04
    UINT16 = 0x06
    UINT32 = 0x08
    SINT8 = 0x0C
    SINT16 = 0x0E
    SINT32 = 0x10
    FLOAT32 = 0x14


_SUPPORTED_CODES = frozenset(f.value for f in Format)


@dataclass(frozen=True)
class PresentationInfo:
    """Decoded Characteristic Presentation Format descriptor (0x2904).

    Attributes:
        format: Raw format code. Codes outside Format are kept as-is and
            treated as unsupported by the codec.
        exponent: Signed decimal exponent applied to the raw value.
        unit: Bluetooth unit code, see sglove.gatt.units.
    """

    format: int
    exponent: int
    unit: int

    @property
    def is_boolean(self) -> bool:
        return self.format == Format.BOOLEAN

    @property
    def is_supported(self) -> bool:
        return self.format in _SUPPORTED_CODES


def parse_presentation(data) -> PresentationInfo:
    """Parses a presentation format descriptor value.

    Args:
        data: Raw descriptor bytes as read from the peripheral.

    Returns:
        The format, exponent and unit of the characteristic.

    Raises:
        MalformedDescriptorError: If fewer than 7 bytes were supplied.
    """
    if len(data) < PRESENTATION_DESCRIPTOR_LENGTH:
        raise MalformedDescriptorError(
            f"Presentation descriptor must be {PRESENTATION_DESCRIPTOR_LENGTH} bytes, got {len(data)}"
        )
    fmt, exponent, unit, _namespace, _description = struct.unpack_from(
        _DESCRIPTOR_FORMAT, bytes(data)
    )
    return PresentationInfo(format=fmt, exponent=exponent, unit=unit)


def encode_presentation(info: PresentationInfo, namespace=NAMESPACE_BLUETOOTH_SIG, description=0) -> bytearray:
    """Encodes a PresentationInfo into the 7-byte descriptor layout."""
    return bytearray(
        struct.pack(
            _DESCRIPTOR_FORMAT,
            info.format,
            info.exponent,
            info.unit,
            namespace,
            description,
        )
    )
