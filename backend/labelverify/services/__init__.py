"""Services for extraction parsing, merging, comparison, warning validation, and batch verification."""

from .extraction import (
    RawExtraction,
    IndexedExtraction,
    FieldName,
    Observation,
    FontSize,
    Visibility,
    ExtractionParseError,
    parse_extraction_response,
    fix_government_warning_prefix,
)
from .merge import (
    MergedExtraction,
    FieldProvenance,
    FormattingObservations,
    merge_extractions,
    merge_raw_extractions,
    provenance_to_field_status,
    detect_grouping_mismatch,
)
from .comparison import FieldStatus, NumericFieldType, ComparisonResult, compare_text_field, compare_numeric_field
from .warning import CANONICAL_WARNING, BoldStatus, WarningResult, validate_government_warning
from .verification import (
    VerificationService,
    ApplicationResult,
    ApplicationValues,
    FieldResult,
    OverallStatus,
    compute_application_result,
    compute_error_result,
)
from .batch import CSVParser, CSVRow, CSVValidationError, BatchApplication, SequentialBatchProcessor, summarize_results

__all__ = [
    "RawExtraction",
    "IndexedExtraction",
    "FieldName",
    "Observation",
    "FontSize",
    "Visibility",
    "ExtractionParseError",
    "parse_extraction_response",
    "fix_government_warning_prefix",
    "MergedExtraction",
    "FieldProvenance",
    "FormattingObservations",
    "merge_extractions",
    "merge_raw_extractions",
    "provenance_to_field_status",
    "detect_grouping_mismatch",
    "FieldStatus",
    "NumericFieldType",
    "ComparisonResult",
    "compare_text_field",
    "compare_numeric_field",
    "CANONICAL_WARNING",
    "BoldStatus",
    "WarningResult",
    "validate_government_warning",
    "VerificationService",
    "ApplicationResult",
    "ApplicationValues",
    "FieldResult",
    "OverallStatus",
    "compute_application_result",
    "compute_error_result",
    "CSVParser",
    "CSVRow",
    "CSVValidationError",
    "BatchApplication",
    "SequentialBatchProcessor",
    "summarize_results",
]
