"""Parsers for the formatted numbers found in report JSON.

Reports mix plain numbers with display strings such as ``"$12,345.67"``,
``"23.4%"`` or ``"7.5/10"``. Each helper passes numbers through, maps ``None``
to ``None`` and raises ``ValueError`` when the string has no usable number.
"""
import re
from typing import Union

Number = Union[int, float]

_NON_NUMERIC = re.compile(r"[^0-9.\-]")


def _as_float(raw: str, original) -> float:
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"not a number: {original!r}") from None


def parse_currency(value: Union[Number, str, None]) -> float | None:
    """``"$12,345.00"`` -> ``12345.0``. Drops every char except digits, ``.`` and ``-``."""
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    return _as_float(_NON_NUMERIC.sub("", value), value)


def parse_percentage(value: Union[Number, str, None]) -> float | None:
    """``"23.4%"`` -> ``23.4``. The percent sign is optional."""
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    raw = value.strip()
    if raw.endswith("%"):
        raw = raw[:-1].rstrip()
    return _as_float(raw, value)


def parse_fraction_numerator(value: Union[Number, str, None]) -> float | None:
    """``"7.5/10"`` -> ``7.5``. Only the part before ``/`` is kept."""
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    return _as_float(value.split("/")[0].strip(), value)
