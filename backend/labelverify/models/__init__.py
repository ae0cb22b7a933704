"""Pydantic models for request/response schemas."""

from .schemas import (
    ExpectedValues,
    ApplicationRequest,
    MergeRequest,
    FieldProvenanceModel,
    FormattingObservationsModel,
    MergeResponse,
    FieldResultModel,
    WarningResultModel,
    ApplicationResultModel,
    VerificationResponse,
    BatchVerificationRequest,
    CSVErrorModel,
    BatchVerificationResponse,
    ParseExtractionRequest,
    ParseExtractionResponse,
    CanonicalWarningResponse,
    ErrorResponse,
    HealthResponse,
)

__all__ = [
    "ExpectedValues",
    "ApplicationRequest",
    "MergeRequest",
    "FieldProvenanceModel",
    "FormattingObservationsModel",
    "MergeResponse",
    "FieldResultModel",
    "WarningResultModel",
    "ApplicationResultModel",
    "VerificationResponse",
    "BatchVerificationRequest",
    "CSVErrorModel",
    "BatchVerificationResponse",
    "ParseExtractionRequest",
    "ParseExtractionResponse",
    "CanonicalWarningResponse",
    "ErrorResponse",
    "HealthResponse",
]
