"""Number and text formatting shared by the exporters."""

from __future__ import annotations


def format_mhz(value: float | None) -> str:
    """A frequency to 4 decimal places, or "" when unknown."""
    if value is None:
        return ""
    return f"{value:.4f}"


def format_offset(offset: float | None, signed: bool = False) -> str:
    """An offset to 3 decimal places, or "" when unknown.

    With ``signed`` a non-negative offset gets a leading "+".
    """
    if offset is None:
        return ""
    # round first so -0.0004 prints as 0.000, not -0.000
    offset = round(offset, 3) + 0.0
    if signed and offset >= 0:
        return f"+{offset:.3f}"
    return f"{offset:.3f}"


def format_coordinate(value: float | None) -> str:
    """A latitude or longitude as parsed, or "" when unknown."""
    if value is None:
        return ""
    return str(value)
