"""Batch verification of multiple applications."""

import csv
import io
import logging
from typing import Dict, List, Tuple, Optional, Sequence
from dataclasses import dataclass, field

from .extraction import IndexedExtraction
from .verification import (
    ApplicationResult,
    ApplicationValues,
    VerificationService,
    compute_error_result,
)
from ..config import get_settings

logger = logging.getLogger(__name__)


@dataclass
class CSVRow:
    """Parsed and validated CSV row."""
    application_id: str
    application_name: Optional[str] = None
    brand: Optional[str] = None
    class_type: Optional[str] = None
    abv_or_proof: Optional[str] = None
    net_contents: Optional[str] = None
    producer: Optional[str] = None
    country: Optional[str] = None
    row_number: int = 0

    def to_values(self) -> ApplicationValues:
        """Expected values for the composer."""
        return ApplicationValues(
            brand=self.brand,
            class_type=self.class_type,
            abv_or_proof=self.abv_or_proof,
            net_contents=self.net_contents,
            producer=self.producer,
            country=self.country,
        )


@dataclass
class CSVValidationError:
    """Error from CSV validation."""
    row_number: int
    field: str
    message: str


@dataclass
class BatchApplication:
    """One application's extractions and expected values."""
    application_id: str
    extractions: List[IndexedExtraction] = field(default_factory=list)
    expected: Optional[ApplicationValues] = None
    application_name: str = "Application"
    failed_image_count: int = 0


class CSVParser:
    """Parse and validate expected application values from CSV."""

    # Required columns
    REQUIRED_COLUMNS = {"application_id"}

    # Optional columns, all free text; numeric ones keep their units
    OPTIONAL_COLUMNS = {
        "application_name",
        "brand",
        "class_type",
        "abv_or_proof",
        "net_contents",
        "producer",
        "country",
    }

    # All valid columns
    VALID_COLUMNS = REQUIRED_COLUMNS | OPTIONAL_COLUMNS

    def parse(self, csv_content: str) -> Tuple[List[CSVRow], List[CSVValidationError]]:
        """
        Parse CSV content and return validated rows.

        Args:
            csv_content: CSV file content as string

        Returns:
            Tuple of (valid_rows, errors)
        """
        rows: List[CSVRow] = []
        errors: List[CSVValidationError] = []
        seen_ids: Dict[str, int] = {}

        try:
            reader = csv.DictReader(io.StringIO(csv_content))

            if reader.fieldnames is None:
                errors.append(CSVValidationError(
                    row_number=0,
                    field="header",
                    message="CSV file is empty or has no header"
                ))
                return rows, errors

            # Normalize column names (lowercase, strip whitespace)
            fieldnames = [f.lower().strip() for f in reader.fieldnames]

            missing_required = self.REQUIRED_COLUMNS - set(fieldnames)
            if missing_required:
                errors.append(CSVValidationError(
                    row_number=0,
                    field="header",
                    message=f"Missing required columns: {', '.join(sorted(missing_required))}"
                ))
                return rows, errors

            unknown_columns = set(fieldnames) - self.VALID_COLUMNS
            if unknown_columns:
                logger.warning(f"Unknown CSV columns will be ignored: {sorted(unknown_columns)}")

            for row_num, row in enumerate(reader, start=2):  # Start at 2 (1-indexed + header)
                normalized_row = {
                    k.lower().strip(): (v or "").strip()
                    for k, v in row.items()
                    if k is not None
                }

                application_id = normalized_row.get("application_id", "")
                if not application_id:
                    errors.append(CSVValidationError(
                        row_number=row_num,
                        field="application_id",
                        message="Application ID is required"
                    ))
                    continue

                if application_id in seen_ids:
                    errors.append(CSVValidationError(
                        row_number=row_num,
                        field="application_id",
                        message=f"Duplicate application ID '{application_id}' (first seen on row {seen_ids[application_id]})"
                    ))
                    continue
                seen_ids[application_id] = row_num

                optional = {
                    column: normalized_row.get(column) or None
                    for column in self.OPTIONAL_COLUMNS
                }
                rows.append(CSVRow(application_id=application_id, row_number=row_num, **optional))

        except csv.Error as e:
            errors.append(CSVValidationError(
                row_number=0,
                field="csv",
                message=f"CSV parsing error: {str(e)}"
            ))

        return rows, errors

    def match_extractions(
        self,
        csv_rows: List[CSVRow],
        extraction_ids: Sequence[str],
    ) -> Tuple[List[CSVRow], List[CSVValidationError]]:
        """
        Check that CSV rows and supplied extractions refer to the same applications.

        Returns:
            Tuple of (matched_rows, errors for unmatched)
        """
        supplied = set(extraction_ids)
        matched_rows = []
        errors = []

        for row in csv_rows:
            if row.application_id in supplied:
                matched_rows.append(row)
            else:
                errors.append(CSVValidationError(
                    row_number=row.row_number,
                    field="application_id",
                    message=f"No extractions supplied for application '{row.application_id}'"
                ))

        csv_ids = {row.application_id for row in csv_rows}
        for application_id in sorted(supplied - csv_ids):
            errors.append(CSVValidationError(
                row_number=0,
                field="application_id",
                message=f"Extractions supplied for application with no CSV entry: '{application_id}'"
            ))

        return matched_rows, errors


class SequentialBatchProcessor:
    """Verify applications one after another with a shared verification service."""

    def __init__(self, verification_service: Optional[VerificationService] = None):
        self.settings = get_settings()
        self.verification_service = verification_service or VerificationService()

    def process_batch(self, applications: Sequence[BatchApplication]) -> List[ApplicationResult]:
        """
        Verify each application in input order.

        Applications whose every image failed get an error result. An
        unexpected failure while verifying one application is reported as
        that application's error result and does not stop the batch.

        Args:
            applications: Applications to verify

        Returns:
            One ApplicationResult per application, in input order
        """
        if len(applications) > self.settings.max_batch_size:
            logger.warning(f"Batch of {len(applications)} exceeds configured maximum of {self.settings.max_batch_size}")

        results = []

        for application in applications:
            try:
                results.append(self.verification_service.verify(
                    application.extractions,
                    expected=application.expected,
                    application_id=application.application_id,
                    application_name=application.application_name,
                    failed_image_count=application.failed_image_count,
                ))
            except Exception as e:
                logger.exception(f"Error processing application {application.application_id}: {e}")
                results.append(compute_error_result(
                    application.application_id,
                    application.application_name,
                    f"Processing error: {str(e)}",
                    image_count=len(application.extractions) + application.failed_image_count,
                ))

        summary = summarize_results(results)
        logger.info(
            f"Batch complete: {summary['total']} applications, {summary['pass']} pass, "
            f"{summary['fail']} fail, {summary['needs_review']} need review, {summary['error']} error"
        )
        return results


def summarize_results(results: Sequence[ApplicationResult]) -> Dict[str, int]:
    """Count applications by overall status."""
    summary = {"total": len(results), "pass": 0, "fail": 0, "needs_review": 0, "error": 0}
    for result in results:
        summary[result.overall_status.value] += 1
    return summary
