from sglove.gatt.presentation import PresentationInfo

MAX_DECIMALS = 100


def decimal_places(exponent):
    """Number of digits shown after the decimal point for an exponent."""
    return max(0, min(MAX_DECIMALS, -exponent))


def format_value(value, presentation: PresentationInfo) -> str:
    """Formats a decoded value for display and logging.

    Booleans are rendered "true" or "false" regardless of the exponent. A
    boolean characteristic whose value could not be decoded arrives as 0
    and is rendered "0". Numbers are rendered in fixed point with one digit per negative power of
    ten in the exponent, so 1234 scaled by 10**-2 becomes "12.34". Rounding
    follows Python's format(), which is exact on the binary value.
    """
    if presentation.is_boolean:
        if not isinstance(value, bool):
            return str(value)
        return "true" if value else "false"
    return f"{value:.{decimal_places(presentation.exponent)}f}"
