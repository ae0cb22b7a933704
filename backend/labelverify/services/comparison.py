"""Field comparators: one extracted label value against one expected application value."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .normalization import (
    contains_either,
    is_blank,
    length_ratio,
    normalize_for_comparison,
    remove_accents,
    remove_punctuation,
)
from .numeric import ParsedNumericValue, Unit, parse_numeric_value, proof_to_abv, to_milliliters

logger = logging.getLogger(__name__)

# Text containment tiers
CLOSE_CONTAINMENT_RATIO = 0.8
PARTIAL_CONTAINMENT_RATIO = 0.5
WORD_OVERLAP_RATIO = 0.7

# ABV tolerances in percentage points
ABV_MATCH_TOLERANCE = 0.1
ABV_REVIEW_TOLERANCE = 1.0

# Net contents tolerances
NET_CONTENTS_ML_TOLERANCE = 1.0
NET_CONTENTS_MATCH_RATIO = (0.99, 1.01)
NET_CONTENTS_REVIEW_RATIO = (0.95, 1.05)


class FieldStatus(str, Enum):
    """Status of a single field check."""
    PASS = "pass"
    FAIL = "fail"
    NEEDS_REVIEW = "needs_review"
    MISSING = "missing"
    NOT_PROVIDED = "not_provided"


class NumericFieldType(str, Enum):
    """How a numeric field is converted before comparison."""
    ABV = "abv"
    NET_CONTENTS = "net_contents"


@dataclass(frozen=True)
class ComparisonResult:
    """Outcome of comparing one field."""
    status: FieldStatus
    reason: Optional[str] = None


_NOT_FOUND = ComparisonResult(FieldStatus.MISSING, "Value not found on label")
_NOT_PROVIDED = ComparisonResult(FieldStatus.NOT_PROVIDED, "Application value not provided")


def _check_presence(extracted: Optional[str], expected: Optional[str]) -> Optional[ComparisonResult]:
    """Resolve the cases where one side is blank; None means both are present."""
    if is_blank(expected):
        # Label-only mode: nothing to compare against
        return _NOT_FOUND if is_blank(extracted) else _NOT_PROVIDED
    if is_blank(extracted):
        return _NOT_FOUND
    return None


def compare_text_field(extracted: Optional[str], expected: Optional[str]) -> ComparisonResult:
    """
    Compare free-text fields (brand, class/type, producer, country).

    Tiers, strictest first, each returning on the first match:
    1. Exact equality -> Pass
    2. Equal ignoring case and whitespace -> Pass
    3. ...and punctuation -> Pass
    4. ...and accents ("Bärenjäger" vs "Barenjager") -> Pass
    5. One contains the other -> NeedsReview if the length ratio is >= 0.5
    6. Multi-word values sharing >= 70% of words -> NeedsReview
    7. Otherwise -> Fail
    """
    presence = _check_presence(extracted, expected)
    if presence is not None:
        return presence

    trimmed_extracted = extracted.strip()
    trimmed_expected = expected.strip()

    if trimmed_extracted == trimmed_expected:
        return ComparisonResult(FieldStatus.PASS)

    norm_extracted = normalize_for_comparison(trimmed_extracted)
    norm_expected = normalize_for_comparison(trimmed_expected)
    if norm_extracted == norm_expected:
        return ComparisonResult(FieldStatus.PASS)

    bare_extracted = remove_punctuation(norm_extracted)
    bare_expected = remove_punctuation(norm_expected)
    if bare_extracted == bare_expected:
        return ComparisonResult(FieldStatus.PASS)

    plain_extracted = remove_accents(bare_extracted)
    plain_expected = remove_accents(bare_expected)
    if plain_extracted == plain_expected:
        return ComparisonResult(FieldStatus.PASS)

    if contains_either(plain_extracted, plain_expected):
        ratio = length_ratio(plain_extracted, plain_expected)
        if ratio >= CLOSE_CONTAINMENT_RATIO:
            return ComparisonResult(FieldStatus.NEEDS_REVIEW, "Values are similar but not exact match")
        if ratio >= PARTIAL_CONTAINMENT_RATIO:
            return ComparisonResult(
                FieldStatus.NEEDS_REVIEW, "Extracted value differs significantly from expected"
            )

    extracted_words = plain_extracted.split()
    expected_words = plain_expected.split()
    if len(extracted_words) >= 2 and len(expected_words) >= 2:
        common = [
            word for word in extracted_words
            if any(contains_either(word, other) for other in expected_words)
        ]
        similarity = len(common) / max(len(extracted_words), len(expected_words))
        if similarity >= WORD_OVERLAP_RATIO:
            return ComparisonResult(FieldStatus.NEEDS_REVIEW, "Partial match - please verify")

    return ComparisonResult(
        FieldStatus.FAIL,
        f'Expected "{trimmed_expected}" but found "{trimmed_extracted}"',
    )


def compare_numeric_field(
    extracted: Optional[str],
    expected: Optional[str],
    field_type: NumericFieldType,
) -> ComparisonResult:
    """
    Compare alcohol content or net contents after unit conversion.

    Proof is halved to ABV; volumes are converted to milliliters. Values that
    cannot be parsed fall back to a normalized string comparison.
    """
    presence = _check_presence(extracted, expected)
    if presence is not None:
        return presence

    parsed_extracted = parse_numeric_value(extracted)
    parsed_expected = parse_numeric_value(expected)

    if parsed_extracted is None or parsed_expected is None:
        if normalize_for_comparison(extracted) == normalize_for_comparison(expected):
            return ComparisonResult(FieldStatus.PASS)
        return ComparisonResult(
            FieldStatus.NEEDS_REVIEW, "Unable to parse numeric values - manual review required"
        )

    if field_type == NumericFieldType.ABV:
        return _compare_abv(parsed_extracted, parsed_expected)
    return _compare_net_contents(parsed_extracted, parsed_expected, extracted, expected)


def _as_abv(parsed: ParsedNumericValue) -> float:
    if parsed.unit == Unit.PROOF:
        return proof_to_abv(parsed.value)
    return parsed.value


def _compare_abv(parsed_extracted: ParsedNumericValue, parsed_expected: ParsedNumericValue) -> ComparisonResult:
    extracted_abv = _as_abv(parsed_extracted)
    expected_abv = _as_abv(parsed_expected)
    converted = {parsed_extracted.unit, parsed_expected.unit} == {Unit.PROOF, Unit.PERCENT}
    difference = abs(extracted_abv - expected_abv)

    logger.debug(f"ABV comparison: {extracted_abv}% vs {expected_abv}% (diff={difference:.2f})")

    if difference < ABV_MATCH_TOLERANCE:
        if converted:
            return ComparisonResult(FieldStatus.PASS, "ABV/proof match after conversion")
        return ComparisonResult(FieldStatus.PASS)

    if difference < ABV_REVIEW_TOLERANCE:
        return ComparisonResult(
            FieldStatus.NEEDS_REVIEW,
            f"ABV differs slightly: {extracted_abv:.1f}% vs {expected_abv:.1f}%",
        )

    return ComparisonResult(
        FieldStatus.FAIL,
        f"ABV mismatch: expected {expected_abv:.1f}% but found {extracted_abv:.1f}%",
    )


def _compare_net_contents(
    parsed_extracted: ParsedNumericValue,
    parsed_expected: ParsedNumericValue,
    extracted: str,
    expected: str,
) -> ComparisonResult:
    extracted_ml = to_milliliters(parsed_extracted.value, parsed_extracted.unit)
    expected_ml = to_milliliters(parsed_expected.value, parsed_expected.unit)

    if abs(extracted_ml - expected_ml) <= NET_CONTENTS_ML_TOLERANCE:
        return ComparisonResult(FieldStatus.PASS)

    mismatch = ComparisonResult(
        FieldStatus.FAIL,
        f"Net contents mismatch: expected {expected} but found {extracted}",
    )
    if expected_ml == 0:
        return mismatch

    ratio = extracted_ml / expected_ml
    low, high = NET_CONTENTS_MATCH_RATIO
    if low <= ratio <= high:
        return ComparisonResult(FieldStatus.PASS)

    # Unit confusion takes precedence over the percentage band
    if abs(ratio - 1000) < 10 or abs(ratio - 0.001) < 0.0001:
        return ComparisonResult(
            FieldStatus.NEEDS_REVIEW, "Possible unit confusion (L vs ml) - please verify"
        )

    low, high = NET_CONTENTS_REVIEW_RATIO
    if low <= ratio <= high:
        return ComparisonResult(
            FieldStatus.NEEDS_REVIEW,
            f"Net contents differ slightly: {extracted} vs {expected}",
        )

    return mismatch
