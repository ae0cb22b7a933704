"""Pydantic schemas for API requests and responses."""

from pydantic import BaseModel, Field
from typing import Dict, List, Optional

from ..services.comparison import FieldStatus
from ..services.extraction import FontSize, Observation, RawExtraction, Visibility
from ..services.verification import ApplicationValues, OverallStatus
from ..services.warning import BoldStatus


class ExpectedValues(BaseModel):
    """Application values to verify against. Omitted fields are checked label-only."""
    brand: Optional[str] = Field(None, description="Expected brand name")
    class_type: Optional[str] = Field(None, description="Expected class/type (e.g., Kentucky Straight Bourbon Whiskey)")
    abv_or_proof: Optional[str] = Field(None, description="Expected alcohol content, with unit (e.g., 45% or 90 Proof)")
    net_contents: Optional[str] = Field(None, description="Expected net contents, with unit (e.g., 750 mL)")
    producer: Optional[str] = Field(None, description="Expected producer/bottler")
    country: Optional[str] = Field(None, description="Expected country of origin")

    class Config:
        json_schema_extra = {
            "example": {
                "brand": "OLD TOM DISTILLERY",
                "class_type": "Kentucky Straight Bourbon Whiskey",
                "abv_or_proof": "45%",
                "net_contents": "750 mL",
                "producer": "Old Tom Distillery, Bardstown, KY",
                "country": "USA"
            }
        }

    def to_values(self) -> ApplicationValues:
        return ApplicationValues(**self.model_dump())


class ApplicationRequest(BaseModel):
    """One application: the extractions of its images plus expected values."""
    application_id: Optional[str] = Field(None, description="Caller's application id (generated if omitted)")
    application_name: str = Field("Application", description="Display name")
    extractions: List[RawExtraction] = Field(default_factory=list, description="Per-image extractions, in image order")
    failed_image_count: int = Field(0, ge=0, description="Images whose extraction failed upstream")
    expected: Optional[ExpectedValues] = None


class MergeRequest(BaseModel):
    """Extractions to merge, in image order."""
    extractions: List[RawExtraction]


class FieldProvenanceModel(BaseModel):
    """Where a merged value came from."""
    source_index: int
    needs_review: bool
    conflicting_candidates: Optional[List[str]] = None
    conflicting_source_indices: Optional[List[int]] = None
    review_reason: Optional[str] = None


class FormattingObservationsModel(BaseModel):
    """Aggregated warning-header formatting observations."""
    is_uppercase: Observation
    is_bold: Observation
    font_size: FontSize
    visibility: Visibility
    source_image_indices: List[int]


class MergeResponse(BaseModel):
    """Merged application record."""
    values: Dict[str, str]
    provenance: Dict[str, FieldProvenanceModel]
    conflict_count: int
    contributing_image_indices: List[int]
    formatting_observations: Optional[FormattingObservationsModel] = None
    grouping_warnings: List[str] = []


class FieldResultModel(BaseModel):
    """Result for a single validated field."""
    field_name: str
    status: FieldStatus
    extracted_value: Optional[str] = None
    expected_value: Optional[str] = None
    reason: Optional[str] = None
    source_image_indices: Optional[List[int]] = None
    candidates: Optional[List[str]] = None

    class Config:
        json_schema_extra = {
            "example": {
                "field_name": "Brand Name",
                "status": "needs_review",
                "extracted_value": "Old Tom Distillery",
                "expected_value": "Old Tom Distillery",
                "reason": 'Conflicting values found: "Old Tom Distillery" vs "Old Tim Distillery"',
                "source_image_indices": [0, 1],
                "candidates": ["Old Tom Distillery", "Old Tim Distillery"]
            }
        }


class WarningResultModel(BaseModel):
    """Government warning validation result."""
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


class ApplicationResultModel(BaseModel):
    """Overall verification result for an application."""
    id: str
    application_id: str
    application_name: str
    overall_status: OverallStatus
    top_reasons: List[str]
    field_results: List[FieldResultModel]
    warning_result: WarningResultModel
    processing_time_ms: int
    image_count: int
    error_message: Optional[str] = None


class VerificationResponse(BaseModel):
    """Response for single application verification."""
    success: bool
    result: Optional[ApplicationResultModel] = None
    grouping_warnings: List[str] = []
    error: Optional[str] = None


class BatchVerificationRequest(BaseModel):
    """Applications to verify in one batch."""
    applications: List[ApplicationRequest]


class CSVErrorModel(BaseModel):
    """A problem found in an uploaded CSV."""
    row_number: int
    field: str
    message: str


class BatchVerificationResponse(BaseModel):
    """Response for batch verification."""
    success: bool
    total: int
    passed: int
    needs_review: int
    failed: int
    errors: int
    results: List[ApplicationResultModel]
    csv_errors: List[CSVErrorModel] = []
    processing_time_ms: int


class ParseExtractionRequest(BaseModel):
    """Raw vision-model answer to parse."""
    content: str = Field(..., min_length=1, description="Model response, optionally in a ```json block")
    fix_prefix: Optional[bool] = Field(None, description="Restore a dropped warning prefix (defaults to server setting)")


class ParseExtractionResponse(BaseModel):
    """Parsed extraction record."""
    success: bool
    extraction: Optional[RawExtraction] = None
    error: Optional[str] = None


class CanonicalWarningResponse(BaseModel):
    """The statutory warning text."""
    text: str
    prefix: str


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    detail: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "success": False,
                "error": "Too many images",
                "detail": "Maximum images per application is 10"
            }
        }


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
