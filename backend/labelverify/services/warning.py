"""Government health warning validation."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from .comparison import FieldStatus
from .extraction import WARNING_PREFIX, FontSize, Observation, Visibility
from .merge import FormattingObservations
from .normalization import is_blank, normalize_for_comparison

logger = logging.getLogger(__name__)

# Required by 27 CFR part 16. Wording must match exactly; the prefix must be uppercase.
CANONICAL_WARNING = (
    "GOVERNMENT WARNING: (1) According to the Surgeon General, women should not drink "
    "alcoholic beverages during pregnancy because of the risk of birth defects. "
    "(2) Consumption of alcoholic beverages impairs your ability to drive a car or "
    "operate machinery, and may cause health problems."
)

_NORMALIZED_CANONICAL = normalize_for_comparison(CANONICAL_WARNING)
_CANONICAL_WORDS = _NORMALIZED_CANONICAL.split()

# Word-overlap tiers. Only the top tier is reviewable; every lower tier fails.
CLOSE_WORDING_OVERLAP = 0.9
DEVIATING_WORDING_OVERLAP = 0.7
PARTIAL_WORDING_OVERLAP = 0.3


class BoldStatus(str, Enum):
    """Whether the warning header was seen in bold."""
    DETECTED = "detected"
    NOT_DETECTED = "not_detected"
    MANUAL_CONFIRM = "manual_confirm"


@dataclass(frozen=True)
class WarningResult:
    """Outcome of the government warning checks."""
    wording_status: FieldStatus
    uppercase_status: FieldStatus
    bold_status: BoldStatus
    overall_status: FieldStatus
    reason: Optional[str] = None
    extracted_warning: Optional[str] = None
    observed_is_uppercase: Optional[Observation] = None
    observed_is_bold: Optional[Observation] = None
    observed_font_size: Optional[FontSize] = None
    observed_visibility: Optional[Visibility] = None
    formatting_reason: Optional[str] = None

    @classmethod
    def missing(cls, reason: str) -> "WarningResult":
        return cls(
            wording_status=FieldStatus.MISSING,
            uppercase_status=FieldStatus.MISSING,
            bold_status=BoldStatus.MANUAL_CONFIRM,
            overall_status=FieldStatus.MISSING,
            reason=reason,
        )


def word_overlap_ratio(normalized_text: str) -> float:
    """Share of canonical word count matched by words of the text (not symmetric)."""
    matching = [word for word in normalized_text.split() if word in _CANONICAL_WORDS]
    return len(matching) / len(_CANONICAL_WORDS)


def _check_uppercase(
    warning: str, observations: Optional[FormattingObservations]
) -> Tuple[FieldStatus, str]:
    observed = observations.is_uppercase if observations else Observation.UNKNOWN

    if observed is Observation.DETECTED:
        return FieldStatus.PASS, ""
    if observed is Observation.NOT_DETECTED:
        return FieldStatus.FAIL, f'"{WARNING_PREFIX}" is not in uppercase on the label'

    # Text alone cannot prove lowercase: extraction may have normalized the case
    if WARNING_PREFIX in warning:
        return FieldStatus.PASS, ""
    if WARNING_PREFIX in warning.upper():
        return (
            FieldStatus.NEEDS_REVIEW,
            f'Unable to confirm if "{WARNING_PREFIX}" is uppercase - manual verification required',
        )
    return FieldStatus.FAIL, f'Missing "{WARNING_PREFIX}" prefix'


def _check_wording(warning: str) -> Tuple[FieldStatus, str]:
    normalized = normalize_for_comparison(warning)
    if normalized == _NORMALIZED_CANONICAL:
        return FieldStatus.PASS, ""

    overlap = word_overlap_ratio(normalized)
    logger.debug(f"Warning wording overlap: {overlap:.2f}")

    if overlap >= CLOSE_WORDING_OVERLAP:
        return FieldStatus.NEEDS_REVIEW, "Warning wording is close but not an exact match"
    if overlap >= DEVIATING_WORDING_OVERLAP:
        return FieldStatus.FAIL, "Warning wording has significant deviations from required text"
    if overlap >= PARTIAL_WORDING_OVERLAP:
        return FieldStatus.FAIL, "Warning wording does not match required government warning"
    return FieldStatus.FAIL, "Extracted text does not appear to be a valid government warning"


def _check_formatting(observations: Optional[FormattingObservations]) -> Tuple[BoldStatus, List[str], bool]:
    """Return (bold status, issue notes, whether size/visibility needs review)."""
    if observations is None:
        return BoldStatus.MANUAL_CONFIRM, [], False

    issues = []
    if observations.is_bold is Observation.DETECTED:
        bold_status = BoldStatus.DETECTED
    elif observations.is_bold is Observation.NOT_DETECTED:
        bold_status = BoldStatus.NOT_DETECTED
        issues.append(f'"{WARNING_PREFIX}" does not appear to be bold')
    else:
        bold_status = BoldStatus.MANUAL_CONFIRM

    if observations.font_size is FontSize.VERY_SMALL:
        issues.append("Warning text appears very small")
    elif observations.font_size is FontSize.SMALL:
        issues.append("Warning text appears smaller than recommended")

    if observations.visibility is Visibility.SUBTLE:
        issues.append("Warning has low visibility/prominence")

    # "small" is noted but on its own does not hold up a passing warning
    concern = observations.font_size is FontSize.VERY_SMALL or observations.visibility is Visibility.SUBTLE
    return bold_status, issues, concern


def validate_government_warning(
    extracted_warning: Optional[str],
    observations: Optional[FormattingObservations] = None,
) -> WarningResult:
    """
    Validate the government warning statement.

    Checks:
    - Wording matches the canonical text (whitespace and case normalized)
    - "GOVERNMENT WARNING:" is uppercase (visual observation preferred, text fallback)
    - Bold header, font size and visibility when observations are available

    Bold is never assumed: without a positive observation the warning needs
    manual confirmation even when wording and case are correct.

    Args:
        extracted_warning: Merged warning text from the label
        observations: Aggregated formatting observations, if any image supplied them

    Returns:
        WarningResult with per-check and overall status
    """
    if is_blank(extracted_warning):
        return WarningResult.missing("Government warning statement not found on label")

    warning = extracted_warning.strip()

    uppercase_status, uppercase_reason = _check_uppercase(warning, observations)
    wording_status, wording_reason = _check_wording(warning)
    bold_status, issues, formatting_concern = _check_formatting(observations)
    formatting_reason = "; ".join(issues) or None

    if wording_status == FieldStatus.PASS and uppercase_status == FieldStatus.PASS:
        if bold_status == BoldStatus.NOT_DETECTED:
            overall_status = FieldStatus.NEEDS_REVIEW
            reason = "AI did not detect bold formatting - manual verification required"
        elif bold_status == BoldStatus.MANUAL_CONFIRM:
            overall_status = FieldStatus.NEEDS_REVIEW
            reason = f'Unable to confirm if "{WARNING_PREFIX}" is bold - manual verification required'
        elif formatting_concern:
            overall_status = FieldStatus.NEEDS_REVIEW
            reason = formatting_reason or "Warning has formatting concerns"
        else:
            overall_status = FieldStatus.PASS
            reason = "Government warning matches all requirements"
    elif wording_status == FieldStatus.FAIL or uppercase_status == FieldStatus.FAIL:
        overall_status = FieldStatus.FAIL
        reasons = [r for r in (wording_reason, uppercase_reason, formatting_reason) if r]
        reason = "; ".join(reasons) or "Government warning validation failed"
    else:
        overall_status = FieldStatus.NEEDS_REVIEW
        reasons = [r for r in (wording_reason, uppercase_reason, formatting_reason) if r]
        reason = "; ".join(reasons) or "Government warning requires manual review"

    return WarningResult(
        extracted_warning=warning,
        wording_status=wording_status,
        uppercase_status=uppercase_status,
        bold_status=bold_status,
        overall_status=overall_status,
        reason=reason,
        observed_is_uppercase=observations.is_uppercase if observations else None,
        observed_is_bold=observations.is_bold if observations else None,
        observed_font_size=observations.font_size if observations else None,
        observed_visibility=observations.visibility if observations else None,
        formatting_reason=formatting_reason,
    )
