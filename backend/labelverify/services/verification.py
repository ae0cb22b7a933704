"""Verification service composing field comparisons into an application result."""

import time
import uuid
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import List, Mapping, Optional, Sequence, Tuple

from .comparison import (
    ComparisonResult,
    FieldStatus,
    NumericFieldType,
    compare_numeric_field,
    compare_text_field,
)
from .normalization import is_blank
from .extraction import ORDINARY_FIELDS, FieldName, IndexedExtraction
from .merge import FieldProvenance, MergedExtraction, merge_extractions
from .warning import WarningResult, validate_government_warning
from ..config import get_settings

logger = logging.getLogger(__name__)

MAX_TOP_REASONS = 3
ALL_MATCH_MESSAGE = "All validated fields match"
PROCESSING_ERROR_REASON = "Processing error - unable to extract"
PROCESSING_ERROR_WARNING_REASON = "Processing error - unable to validate"
PARTIAL_FAILURE_NOTE = "Some images failed to process"


class OverallStatus(str, Enum):
    """Application-level verdict."""
    PASS = "pass"
    FAIL = "fail"
    NEEDS_REVIEW = "needs_review"
    ERROR = "error"


@dataclass(frozen=True)
class ApplicationValues:
    """Expected values from the application. Blank fields mean label-only checking."""
    brand: Optional[str] = None
    class_type: Optional[str] = None
    abv_or_proof: Optional[str] = None
    net_contents: Optional[str] = None
    producer: Optional[str] = None
    country: Optional[str] = None

    def get(self, name: FieldName) -> Optional[str]:
        if name is FieldName.GOVERNMENT_WARNING:
            return None
        return getattr(self, name.value)


@dataclass(frozen=True)
class FieldResult:
    """Result for a single validated field."""
    field_name: str
    status: FieldStatus
    extracted_value: Optional[str] = None
    expected_value: Optional[str] = None
    reason: Optional[str] = None
    source_image_indices: Optional[List[int]] = None
    candidates: Optional[List[str]] = None


@dataclass(frozen=True)
class ApplicationResult:
    """Complete verification result for one application."""
    id: str
    application_id: str
    application_name: str
    overall_status: OverallStatus
    top_reasons: List[str]
    field_results: List[FieldResult]
    warning_result: WarningResult
    processing_time_ms: int = 0
    image_count: int = 1
    error_message: Optional[str] = None

    @property
    def passed_count(self) -> int:
        return sum(1 for f in self.field_results if f.status == FieldStatus.PASS)

    @property
    def review_count(self) -> int:
        return sum(1 for f in self.field_results if f.status == FieldStatus.NEEDS_REVIEW)

    @property
    def failed_count(self) -> int:
        return sum(1 for f in self.field_results if f.status == FieldStatus.FAIL)


def _compare(name: FieldName, extracted: Optional[str], expected: Optional[str]) -> ComparisonResult:
    if name is FieldName.ABV_OR_PROOF:
        return compare_numeric_field(extracted, expected, NumericFieldType.ABV)
    if name is FieldName.NET_CONTENTS:
        return compare_numeric_field(extracted, expected, NumericFieldType.NET_CONTENTS)
    return compare_text_field(extracted, expected)


def validate_field(
    name: FieldName,
    extracted: Optional[str],
    expected: Optional[str],
    provenance: Optional[FieldProvenance] = None,
) -> FieldResult:
    """
    Compare one field and fold in its merge provenance.

    A Pass on a field whose images disagreed is downgraded to NeedsReview
    with the conflict as the reason. Failing statuses are left alone.
    """
    comparison = _compare(name, extracted, expected)
    status = comparison.status
    reason = comparison.reason
    source_indices = None
    candidates = None

    if provenance is not None:
        if provenance.source_index >= 0:
            source_indices = [provenance.source_index]
        if provenance.needs_review:
            if status == FieldStatus.PASS:
                status = FieldStatus.NEEDS_REVIEW
                reason = provenance.review_reason or "Conflicting values found in images"
            if provenance.conflicting_candidates:
                candidates = list(provenance.conflicting_candidates)
            if provenance.conflicting_source_indices:
                source_indices = list(provenance.conflicting_source_indices)

    return FieldResult(
        field_name=name.display_name,
        extracted_value=extracted,
        expected_value=expected,
        status=status,
        reason=reason,
        source_image_indices=source_indices,
        candidates=candidates,
    )


def compute_application_result(
    extracted: Mapping[FieldName, str],
    expected: Optional[ApplicationValues] = None,
    merged: Optional[MergedExtraction] = None,
    application_id: Optional[str] = None,
    application_name: str = "Application",
    processing_time_ms: int = 0,
    image_count: int = 1,
) -> ApplicationResult:
    """
    Validate every field of an application and derive the overall verdict.

    Args:
        extracted: Merged label values by field
        expected: Application values; None for label-only checking
        merged: Merge result supplying provenance and formatting observations
        application_id: Caller's application id (generated if omitted)
        application_name: Display name
        processing_time_ms: Time spent producing the result
        image_count: Number of images in the application

    Returns:
        ApplicationResult whose overall status is fail if anything failed
        (including a field missing when a value was expected), needs_review
        if anything needs review, else pass.
    """
    field_results: List[FieldResult] = []
    fail_reasons: List[str] = []
    review_reasons: List[str] = []

    for name in ORDINARY_FIELDS:
        expected_value = expected.get(name) if expected else None
        provenance = merged.provenance.get(name) if merged else None
        result = validate_field(name, extracted.get(name), expected_value, provenance)
        field_results.append(result)

        if result.status == FieldStatus.FAIL and result.reason:
            fail_reasons.append(f"{result.field_name}: {result.reason}")
        elif result.status == FieldStatus.NEEDS_REVIEW and result.reason:
            review_reasons.append(f"{result.field_name}: {result.reason}")
        elif result.status == FieldStatus.MISSING and not is_blank(expected_value):
            fail_reasons.append(f"{result.field_name}: not found on label")

    warning_result = validate_government_warning(
        extracted.get(FieldName.GOVERNMENT_WARNING),
        merged.formatting_observations if merged else None,
    )
    warning_label = FieldName.GOVERNMENT_WARNING.display_name

    # The warning always leads its group
    if warning_result.overall_status == FieldStatus.FAIL and warning_result.reason:
        fail_reasons.insert(0, f"{warning_label}: {warning_result.reason}")
    elif warning_result.overall_status == FieldStatus.NEEDS_REVIEW and warning_result.reason:
        review_reasons.insert(0, f"{warning_label}: {warning_result.reason}")
    elif warning_result.overall_status == FieldStatus.MISSING:
        fail_reasons.insert(0, f"{warning_label}: not found on label")

    has_failures = (
        bool(fail_reasons)
        or any(r.status == FieldStatus.FAIL for r in field_results)
        or warning_result.overall_status in (FieldStatus.FAIL, FieldStatus.MISSING)
    )
    needs_review = (
        bool(review_reasons)
        or any(r.status == FieldStatus.NEEDS_REVIEW for r in field_results)
        or warning_result.overall_status == FieldStatus.NEEDS_REVIEW
    )

    if has_failures:
        overall_status = OverallStatus.FAIL
    elif needs_review:
        overall_status = OverallStatus.NEEDS_REVIEW
    else:
        overall_status = OverallStatus.PASS

    top_reasons = (fail_reasons + review_reasons)[:MAX_TOP_REASONS]
    if not top_reasons and overall_status == OverallStatus.PASS:
        top_reasons = [ALL_MATCH_MESSAGE]

    return ApplicationResult(
        id=str(uuid.uuid4()),
        application_id=application_id or str(uuid.uuid4()),
        application_name=application_name,
        overall_status=overall_status,
        top_reasons=top_reasons,
        field_results=field_results,
        warning_result=warning_result,
        processing_time_ms=processing_time_ms,
        image_count=image_count,
    )


def compute_error_result(
    application_id: str,
    application_name: str,
    error_message: str,
    image_count: int = 1,
) -> ApplicationResult:
    """Build the result for an application where no image could be extracted."""
    field_results = [
        FieldResult(
            field_name=name.display_name,
            status=FieldStatus.MISSING,
            reason=PROCESSING_ERROR_REASON,
        )
        for name in ORDINARY_FIELDS
    ]

    return ApplicationResult(
        id=str(uuid.uuid4()),
        application_id=application_id,
        application_name=application_name,
        overall_status=OverallStatus.ERROR,
        top_reasons=[error_message],
        field_results=field_results,
        warning_result=WarningResult.missing(PROCESSING_ERROR_WARNING_REASON),
        processing_time_ms=0,
        image_count=image_count,
        error_message=error_message,
    )


def add_partial_failure_note(result: ApplicationResult) -> ApplicationResult:
    """Note that some of the application's images could not be extracted."""
    reasons = list(result.top_reasons)
    if result.overall_status == OverallStatus.PASS and reasons == [ALL_MATCH_MESSAGE]:
        reasons = []
    reasons = reasons[:MAX_TOP_REASONS - 1] + [PARTIAL_FAILURE_NOTE]
    return replace(result, top_reasons=reasons)


class VerificationService:
    """Merges an application's extractions and validates the merged record."""

    def __init__(self):
        self.settings = get_settings()

    def verify(
        self,
        extractions: Sequence[IndexedExtraction],
        expected: Optional[ApplicationValues] = None,
        application_id: Optional[str] = None,
        application_name: str = "Application",
        failed_image_count: int = 0,
    ) -> ApplicationResult:
        """Verify one application from its per-image extractions. See verify_with_merge."""
        result, _ = self.verify_with_merge(
            extractions,
            expected=expected,
            application_id=application_id,
            application_name=application_name,
            failed_image_count=failed_image_count,
        )
        return result

    def verify_with_merge(
        self,
        extractions: Sequence[IndexedExtraction],
        expected: Optional[ApplicationValues] = None,
        application_id: Optional[str] = None,
        application_name: str = "Application",
        failed_image_count: int = 0,
    ) -> Tuple[ApplicationResult, Optional[MergedExtraction]]:
        """
        Verify one application from its per-image extractions.

        Args:
            extractions: Extractions that succeeded, with their image indices
            expected: Application values (None for label-only checking)
            application_id: Caller's application id
            application_name: Display name
            failed_image_count: Images whose extraction failed upstream

        Returns:
            Tuple of (result, merged extraction). The result is an error
            result and the merge is None when every image failed
        """
        start_time = time.time()
        application_id = application_id or str(uuid.uuid4())
        image_count = len(extractions) + failed_image_count
        if image_count > self.settings.max_images_per_application:
            logger.warning(
                f"Application {application_id} has {image_count} images "
                f"(configured maximum is {self.settings.max_images_per_application})"
            )

        if not extractions and failed_image_count > 0:
            logger.warning(f"All {failed_image_count} image(s) failed for application {application_id}")
            return compute_error_result(
                application_id,
                application_name,
                "All images failed to process",
                image_count=image_count,
            ), None

        merged = merge_extractions(extractions)
        if merged.has_conflicts:
            logger.info(f"Application {application_id}: {merged.conflict_count} field(s) disagree across images")

        result = compute_application_result(
            merged.values,
            expected=expected,
            merged=merged,
            application_id=application_id,
            application_name=application_name,
            processing_time_ms=int((time.time() - start_time) * 1000),
            image_count=image_count,
        )

        if failed_image_count > 0:
            result = add_partial_failure_note(result)

        logger.info(f"Application {application_id} verified: {result.overall_status.value}")
        return result, merged

