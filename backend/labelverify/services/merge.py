"""Merging of per-image extractions into one application-level record."""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from rapidfuzz import fuzz

from .comparison import FieldStatus
from .extraction import (
    FieldName,
    FontSize,
    IndexedExtraction,
    Observation,
    RawExtraction,
    Visibility,
)
from .normalization import contains_either, length_ratio, normalize_for_comparison

logger = logging.getLogger(__name__)

# Shorter/longer length ratio above which a containment counts as the same value
EQUIVALENCE_LENGTH_RATIO = 0.8

# token_set_ratio below which two brand candidates suggest images from different products
GROUPING_MISMATCH_THRESHOLD = 50


@dataclass(frozen=True)
class FieldProvenance:
    """Where a merged field's value came from and whether the images disagreed."""
    source_index: int = -1
    needs_review: bool = False
    conflicting_candidates: Optional[List[str]] = None
    conflicting_source_indices: Optional[List[int]] = None
    review_reason: Optional[str] = None


@dataclass(frozen=True)
class FormattingObservations:
    """Worst-case summary of the warning header's visual formatting across images."""
    is_uppercase: Observation = Observation.UNKNOWN
    is_bold: Observation = Observation.UNKNOWN
    font_size: FontSize = FontSize.UNKNOWN
    visibility: Visibility = Visibility.UNKNOWN
    source_image_indices: List[int] = field(default_factory=list)


@dataclass(frozen=True)
class MergedExtraction:
    """One application's merged field values with per-field provenance."""
    values: Dict[FieldName, str]
    provenance: Dict[FieldName, FieldProvenance]
    conflict_count: int = 0
    contributing_image_indices: List[int] = field(default_factory=list)
    formatting_observations: Optional[FormattingObservations] = None

    @property
    def has_conflicts(self) -> bool:
        return self.conflict_count > 0

    def value(self, name: FieldName) -> Optional[str]:
        return self.values.get(name)


@dataclass(frozen=True)
class _Candidate:
    value: str
    source_index: int
    confidence: float


@dataclass
class _Cluster:
    value: str
    best_confidence: float
    source_indices: List[int]


def values_equivalent(a: str, b: str) -> bool:
    """
    Decide whether two extracted values name the same thing.

    Equal after whitespace/case normalization, or one contains the other and
    the shorter is at least 80% the length of the longer. The length guard
    keeps "Jack" from absorbing "Jack Daniel's Tennessee Whiskey".
    """
    norm_a = normalize_for_comparison(a)
    norm_b = normalize_for_comparison(b)
    if norm_a == norm_b:
        return True
    return contains_either(norm_a, norm_b) and length_ratio(norm_a, norm_b) >= EQUIVALENCE_LENGTH_RATIO


def _collect_candidates(name: FieldName, extractions: Sequence[IndexedExtraction]) -> List[_Candidate]:
    candidates = []
    for item in extractions:
        value = item.extraction.value_for(name)
        if value is not None:
            candidates.append(_Candidate(
                value=value,
                source_index=item.image_index,
                confidence=item.extraction.effective_confidence,
            ))
    return candidates


def _cluster(candidates: List[_Candidate]) -> List[_Cluster]:
    """Group equivalent candidates, best confidence first, lower image index on ties."""
    ordered = sorted(candidates, key=lambda c: (-c.confidence, c.source_index))
    clusters: List[_Cluster] = []
    for candidate in ordered:
        home = next((c for c in clusters if values_equivalent(c.value, candidate.value)), None)
        if home is None:
            clusters.append(_Cluster(
                value=candidate.value,
                best_confidence=candidate.confidence,
                source_indices=[candidate.source_index],
            ))
        else:
            home.source_indices.append(candidate.source_index)
    # Stable: equal-confidence clusters keep image-index order
    clusters.sort(key=lambda c: -c.best_confidence)
    return clusters


def merge_field(
    name: FieldName, extractions: Sequence[IndexedExtraction]
) -> Tuple[Optional[str], FieldProvenance]:
    """
    Merge one logical field across images.

    Returns:
        (value or None, FieldProvenance)
    """
    candidates = _collect_candidates(name, extractions)

    if not candidates:
        return None, FieldProvenance()

    if len(candidates) == 1:
        only = candidates[0]
        return only.value, FieldProvenance(source_index=only.source_index)

    clusters = _cluster(candidates)
    top = clusters[0]

    if len(clusters) == 1:
        return top.value, FieldProvenance(source_index=top.source_indices[0])

    runner_up = clusters[1]
    conflicting_indices: List[int] = []
    for index in top.source_indices + runner_up.source_indices:
        if index not in conflicting_indices:
            conflicting_indices.append(index)

    reason = f'Conflicting values found: "{top.value}" vs "{runner_up.value}"'
    logger.debug(f"{name.display_name}: {reason} (images {conflicting_indices})")

    return top.value, FieldProvenance(
        source_index=top.source_indices[0],
        needs_review=True,
        conflicting_candidates=[top.value, runner_up.value],
        conflicting_source_indices=conflicting_indices,
        review_reason=reason,
    )


def aggregate_formatting_observations(
    extractions: Sequence[IndexedExtraction],
) -> Optional[FormattingObservations]:
    """
    Combine warning-header observations conservatively.

    - is_uppercase: any NOT_DETECTED wins (lowercase seen anywhere is a finding)
    - is_bold: any DETECTED wins (benefit of the doubt)
    - font_size / visibility: the worst observation wins

    Returns None when no image reported any observation.
    """
    source_indices: List[int] = []
    is_uppercase = Observation.UNKNOWN
    is_bold = Observation.UNKNOWN
    font_size = FontSize.UNKNOWN
    visibility = Visibility.UNKNOWN

    for item in extractions:
        extraction = item.extraction
        if not extraction.has_formatting_observation:
            continue
        source_indices.append(item.image_index)

        uppercase = extraction.government_warning_is_uppercase
        if uppercase is Observation.NOT_DETECTED:
            is_uppercase = Observation.NOT_DETECTED
        elif uppercase is Observation.DETECTED and is_uppercase is not Observation.NOT_DETECTED:
            is_uppercase = Observation.DETECTED

        bold = extraction.government_warning_is_bold
        if bold is Observation.DETECTED:
            is_bold = Observation.DETECTED
        elif bold is Observation.NOT_DETECTED and is_bold is not Observation.DETECTED:
            is_bold = Observation.NOT_DETECTED

        if extraction.government_warning_font_size.severity < font_size.severity:
            font_size = extraction.government_warning_font_size
        if extraction.government_warning_visibility.severity < visibility.severity:
            visibility = extraction.government_warning_visibility

    if not source_indices:
        return None

    return FormattingObservations(
        is_uppercase=is_uppercase,
        is_bold=is_bold,
        font_size=font_size,
        visibility=visibility,
        source_image_indices=source_indices,
    )


def merge_extractions(extractions: Sequence[IndexedExtraction]) -> MergedExtraction:
    """
    Merge the extractions of every image in one application.

    Each field takes the value of its highest-confidence cluster of equivalent
    values. Fields whose images disagree are flagged for review with their
    top two candidates. An empty input yields an empty record with no
    conflicts.
    """
    values: Dict[FieldName, str] = {}
    provenance: Dict[FieldName, FieldProvenance] = {}
    conflict_count = 0

    for name in FieldName:
        value, field_provenance = merge_field(name, extractions)
        if value is not None:
            values[name] = value
        provenance[name] = field_provenance
        if field_provenance.needs_review:
            conflict_count += 1

    contributing = sorted({item.image_index for item in extractions})

    if conflict_count:
        logger.info(f"Merged {len(extractions)} extractions with {conflict_count} conflicting field(s)")

    return MergedExtraction(
        values=values,
        provenance=provenance,
        conflict_count=conflict_count,
        contributing_image_indices=contributing,
        formatting_observations=aggregate_formatting_observations(extractions),
    )


def merge_raw_extractions(extractions: Iterable[RawExtraction]) -> MergedExtraction:
    """Merge extractions, assigning image indices in input order."""
    return merge_extractions([
        IndexedExtraction(extraction=extraction, image_index=index)
        for index, extraction in enumerate(extractions)
    ])


@dataclass(frozen=True)
class ProvenanceStatus:
    """Preliminary status of a merged field before any comparison."""
    status: FieldStatus
    source_image_indices: List[int]
    candidates: Optional[List[str]] = None
    reason: Optional[str] = None


def provenance_to_field_status(value: Optional[str], provenance: FieldProvenance) -> ProvenanceStatus:
    """Translate provenance into a status for display before validation runs."""
    if value is None:
        return ProvenanceStatus(status=FieldStatus.MISSING, source_image_indices=[])

    if provenance.needs_review:
        return ProvenanceStatus(
            status=FieldStatus.NEEDS_REVIEW,
            source_image_indices=provenance.conflicting_source_indices or [provenance.source_index],
            candidates=provenance.conflicting_candidates,
            reason=provenance.review_reason,
        )

    return ProvenanceStatus(status=FieldStatus.PASS, source_image_indices=[provenance.source_index])


def detect_grouping_mismatch(
    merged: MergedExtraction,
    fields: Sequence[FieldName] = (FieldName.BRAND,),
    threshold: int = GROUPING_MISMATCH_THRESHOLD,
) -> List[str]:
    """
    Flag conflicts so dissimilar that the images probably belong to different products.

    Uses token-set similarity so reordered or abbreviated names ("Old Tom" vs
    "Tom Old Distillery") are not reported.
    """
    warnings = []
    for name in fields:
        field_provenance = merged.provenance.get(name)
        if field_provenance is None or not field_provenance.needs_review:
            continue
        first, second = field_provenance.conflicting_candidates[:2]
        score = fuzz.token_set_ratio(normalize_for_comparison(first), normalize_for_comparison(second))
        if score < threshold:
            warnings.append(
                f"{name.display_name} differs strongly between images "
                f'("{first}" vs "{second}") - check that these images belong to the same application'
            )
    return warnings
