"""
Number formatting and parsing in Danish conventions
"""
import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional, Union

_THOUSANDS_DOT = re.compile(r"^-?\d{1,3}(\.\d{3})+$")
_THOUSANDS_COMMA = re.compile(r"^-?\d{1,3}(,\d{3})+$")


def _group(integer_part: str) -> str:
    """Insert '.' as thousands separator"""
    groups = []
    while len(integer_part) > 3:
        groups.insert(0, integer_part[-3:])
        integer_part = integer_part[:-3]
    groups.insert(0, integer_part)
    return ".".join(groups)


def format_dkk(value: Union[Decimal, int, float]) -> str:
    """Format an amount in whole kroner, e.g. '12.345 kr.'"""
    amount = Decimal(str(value)).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    sign = "-" if amount < 0 else ""
    return f"{sign}{_group(str(abs(amount)))} kr."


def format_percent(value: Union[Decimal, int, float]) -> str:
    """Format a ratio as a percentage with at most one decimal, e.g. '37,5 %'"""
    percent = (Decimal(str(value)) * 100).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    text = f"{percent:f}".rstrip("0").rstrip(".").replace(".", ",")
    return f"{text} %"


def parse_number(text: Optional[str], fallback: Decimal = Decimal(0)) -> Decimal:
    """
    Parse a number typed by a user

    Accepts spaces and both Danish and English separators:
    '12 500', '12.500', '12,500', '1.234,56', '12,5', '12.5'.
    A single separator followed by exactly three digits is read as a
    thousands separator. Returns fallback when nothing sensible is found.
    """
    if text is None:
        return fallback
    raw = re.sub(r"\s", "", str(text))
    if not raw:
        return fallback

    has_dot = "." in raw
    has_comma = "," in raw
    normalized = raw

    if has_dot and has_comma:
        normalized = raw.replace(".", "").replace(",", ".")
    elif has_dot:
        if _THOUSANDS_DOT.match(raw):
            normalized = raw.replace(".", "")
    elif has_comma:
        if _THOUSANDS_COMMA.match(raw):
            normalized = raw.replace(",", "")
        else:
            normalized = raw.replace(",", ".", 1)

    try:
        result = Decimal(normalized)
    except InvalidOperation:
        return fallback
    if not result.is_finite():
        return fallback
    return result
