"""
Quantity parsing, scaling and formatting for recipe ingredients.

Recipe quantities are text: integers ("12"), decimals ("1.5"), fractions
("1/4"), mixed numbers ("1 1/2") or free text ("a pinch"). Arithmetic is done
with exact fractions so doubling "1/3" gives "2/3", not 0.6666.
"""

import re
from dataclasses import dataclass
from fractions import Fraction
from typing import Optional

# Denominators shown as fractions; anything else is shown as a decimal
FRACTION_DENOMINATORS = (2, 3, 4, 8)

_UNICODE_FRACTIONS = {
    "½": "1/2", "⅓": "1/3", "⅔": "2/3", "¼": "1/4",
    "¾": "3/4", "⅛": "1/8", "⅜": "3/8", "⅝": "5/8", "⅞": "7/8",
}

_INTEGER_RE = re.compile(r"^\d+$")
_DECIMAL_RE = re.compile(r"^\d*\.\d+$")
_FRACTION_RE = re.compile(r"^(\d+)/(\d+)$")
_MIXED_RE = re.compile(r"^(\d+)\s+(\d+)/(\d+)$")


@dataclass(frozen=True)
class Quantity:
    """An exact numeric quantity plus the notation it was written in."""
    value: Fraction
    decimal: bool = False  # Written as "1.5" rather than "1 1/2"

    def __add__(self, other: "Quantity") -> "Quantity":
        return Quantity(self.value + other.value, self.decimal)

    def scale(self, factor: Fraction) -> "Quantity":
        return Quantity(self.value * factor, self.decimal)

    def __str__(self) -> str:
        return format_quantity(self.value, decimal=self.decimal)


def parse_quantity(text: Optional[str]) -> Optional[Quantity]:
    """
    Parse quantity text.

    Args:
        text: Quantity as written on the recipe

    Returns:
        Quantity, or None when the text is not a plain number, fraction or
        mixed number (e.g. "a pinch", "2-3", "")
    """
    if text is None:
        return None
    s = str(text).strip()
    for symbol, replacement in _UNICODE_FRACTIONS.items():
        if symbol in s:
            # "1½" -> "1 1/2"
            s = re.sub(rf"(\d){symbol}", rf"\1 {replacement}", s).replace(symbol, replacement)
    s = re.sub(r"\s+", " ", s)

    if _INTEGER_RE.match(s):
        return Quantity(Fraction(int(s)))
    if _DECIMAL_RE.match(s):
        return Quantity(Fraction(s), decimal=True)

    match = _FRACTION_RE.match(s)
    if match:
        num, den = int(match.group(1)), int(match.group(2))
        if den == 0:
            return None
        return Quantity(Fraction(num, den))

    match = _MIXED_RE.match(s)
    if match:
        whole, num, den = int(match.group(1)), int(match.group(2)), int(match.group(3))
        if den == 0:
            return None
        return Quantity(whole + Fraction(num, den))

    return None


def format_quantity(value: Fraction, decimal: bool = False) -> str:
    """
    Format an exact quantity for display.

    Whole numbers print as integers. Values with a denominator of 2, 3, 4 or 8
    print as fractions ("1/2", "1 1/2") unless decimal notation is requested;
    everything else prints as a decimal rounded to two places.
    """
    value = Fraction(value)
    if value.denominator == 1:
        return str(value.numerator)

    if not decimal and value.denominator in FRACTION_DENOMINATORS:
        whole, rem = divmod(value.numerator, value.denominator)
        if whole == 0:
            return f"{rem}/{value.denominator}"
        return f"{whole} {rem}/{value.denominator}"

    text = f"{float(value):.2f}".rstrip("0").rstrip(".")
    return text or "0"


def scale_quantity_text(text: str, factor: Fraction) -> str:
    """
    Scale quantity text by a factor.

    Non-numeric text is returned unchanged rather than raising.
    """
    quantity = parse_quantity(text)
    if quantity is None:
        return text
    return str(quantity.scale(factor))


def quantity_as_float(text: Optional[str], default: float = 1.0) -> float:
    """Numeric value of quantity text, or default when it is not numeric."""
    quantity = parse_quantity(text)
    if quantity is None:
        return default
    return float(quantity.value)
