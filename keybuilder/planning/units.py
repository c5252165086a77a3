"""IEC size strings as shown to and typed by the user.

Sizes are displayed the way ``numfmt --to=iec-i`` prints them, so a value
that the user did not touch round-trips to the exact same string.
"""

from __future__ import annotations

import math
import re
from fractions import Fraction

from keybuilder.domain.models import MiB

IEC_UNITS = ("Ki", "Mi", "Gi", "Ti", "Pi", "Ei")

_IEC_PATTERN = re.compile(
    r"^\s*(?P<number>\d+(?:\.\d+)?)\s*(?P<unit>[KMGTPE])?(?P<binary>i)?B?\s*$",
    re.IGNORECASE,
)


def format_iec(num_bytes: int) -> str:
    """Render a byte count like ``numfmt --to=iec-i`` (round away from zero).

    >>> format_iec(52428800)
    '50Mi'
    >>> format_iec(1073741824)
    '1.0Gi'
    """
    value = int(num_bytes)
    if value < 1024:
        return str(value)

    power = 0
    scaled = Fraction(value)
    while scaled >= 1024 and power < len(IEC_UNITS):
        scaled /= 1024
        power += 1

    if scaled < 10:
        tenths = math.ceil(scaled * 10)
        if tenths < 100:
            return f"{tenths // 10}.{tenths % 10}{IEC_UNITS[power - 1]}"
        scaled = Fraction(10)

    whole = math.ceil(scaled)
    if whole >= 1024 and power < len(IEC_UNITS):
        return f"1.0{IEC_UNITS[power]}"
    return f"{whole}{IEC_UNITS[power - 1]}"


def parse_iec(text: str) -> int:
    """Parse ``"2Gi"``, ``"500Mi"``, ``"1.5G"`` or a plain byte count.

    Raises:
        ValueError: If the text is not a size
    """
    match = _IEC_PATTERN.match(str(text))
    if not match:
        raise ValueError(f"Invalid size: {text!r}")
    number = Fraction(match.group("number"))
    unit = match.group("unit")
    if unit:
        power = "KMGTPE".index(unit.upper()) + 1
        number *= 1024**power
    return int(number)


def mib_to_iec(size_mib: int) -> str:
    return format_iec(size_mib * MiB)


def iec_to_mib(text: str) -> int:
    return parse_iec(text) // MiB
