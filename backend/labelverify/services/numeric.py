"""Numeric parsing for alcohol content and net contents strings."""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional


ML_PER_LITER = 1000.0
ML_PER_FLUID_OUNCE = 29.5735

_NUMBER_RE = re.compile(r"(\d+(?:\.\d+)?)")


class Unit(str, Enum):
    """Unit inferred from the text around a number."""
    PERCENT = "percent"
    PROOF = "proof"
    MILLILITER = "ml"
    LITER = "l"
    OUNCE = "oz"
    UNKNOWN = "unknown"

    @property
    def is_volume(self) -> bool:
        return self in (Unit.MILLILITER, Unit.LITER, Unit.OUNCE)


@dataclass(frozen=True)
class ParsedNumericValue:
    """A magnitude and the unit it was written with."""
    value: float
    unit: Unit
    original: str


def _infer_unit(text: str) -> Unit:
    """Infer the unit from lowercased text. Order matters: "alc" and "fl oz" contain an "l"."""
    if "%" in text or "abv" in text or "alc" in text:
        return Unit.PERCENT
    if "proof" in text:
        return Unit.PROOF
    if "ml" in text or "milliliter" in text or "millilitre" in text:
        return Unit.MILLILITER
    # Ounces before liters: "fl oz" must not read as liters
    if "oz" in text or "ounce" in text:
        return Unit.OUNCE
    if "l" in text:
        return Unit.LITER
    return Unit.UNKNOWN


def parse_numeric_value(value: str) -> Optional[ParsedNumericValue]:
    """
    Parse the first number in a free-form string and infer its unit.

    Handles strings such as:
    - "40%", "40% ABV", "40% Alc./Vol."
    - "80 Proof"
    - "750ml", "750 mL", "1L", "1 liter", "25.4 fl oz"

    Returns None if the string holds no number.
    """
    trimmed = value.strip().lower()
    match = _NUMBER_RE.search(trimmed)
    if not match:
        return None
    return ParsedNumericValue(
        value=float(match.group(1)),
        unit=_infer_unit(trimmed),
        original=value,
    )


def proof_to_abv(proof: float) -> float:
    """US proof is twice the alcohol-by-volume percentage."""
    return proof / 2


def to_milliliters(value: float, unit: Unit) -> float:
    """Convert a volume to milliliters. Non-volume units are assumed to already be ml."""
    if unit == Unit.LITER:
        return value * ML_PER_LITER
    if unit == Unit.OUNCE:
        return value * ML_PER_FLUID_OUNCE
    return value
