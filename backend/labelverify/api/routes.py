"""API route definitions."""

import json
import time
import uuid
from dataclasses import asdict
from fastapi import APIRouter, UploadFile, File, Form, HTTPException
from pydantic import ValidationError
from typing import List
import logging

from ..models import (
    ApplicationRequest,
    ApplicationResultModel,
    BatchVerificationRequest,
    BatchVerificationResponse,
    CanonicalWarningResponse,
    CSVErrorModel,
    ErrorResponse,
    FieldProvenanceModel,
    FormattingObservationsModel,
    HealthResponse,
    MergeRequest,
    MergeResponse,
    ParseExtractionRequest,
    ParseExtractionResponse,
    VerificationResponse,
)
from ..services import (
    CANONICAL_WARNING,
    ApplicationResult,
    BatchApplication,
    CSVParser,
    ExtractionParseError,
    IndexedExtraction,
    MergedExtraction,
    RawExtraction,
    SequentialBatchProcessor,
    VerificationService,
    detect_grouping_mismatch,
    merge_raw_extractions,
    parse_extraction_response,
    summarize_results,
)
from ..services.extraction import WARNING_PREFIX
from ..config import get_settings
from .. import __version__

logger = logging.getLogger(__name__)
router = APIRouter()

# Initialize services
verification_service = VerificationService()
csv_parser = CSVParser()
batch_processor = SequentialBatchProcessor(verification_service)


def _to_result_model(result: ApplicationResult) -> ApplicationResultModel:
    return ApplicationResultModel.model_validate(asdict(result))


def _to_merge_response(merged: MergedExtraction) -> MergeResponse:
    observations = merged.formatting_observations
    return MergeResponse(
        values={name.value: value for name, value in merged.values.items()},
        provenance={
            name.value: FieldProvenanceModel.model_validate(asdict(provenance))
            for name, provenance in merged.provenance.items()
        },
        conflict_count=merged.conflict_count,
        contributing_image_indices=merged.contributing_image_indices,
        formatting_observations=(
            FormattingObservationsModel.model_validate(asdict(observations)) if observations else None
        ),
        grouping_warnings=detect_grouping_mismatch(merged),
    )


def _index_extractions(extractions: List[RawExtraction]) -> List[IndexedExtraction]:
    return [
        IndexedExtraction(extraction=extraction, image_index=index)
        for index, extraction in enumerate(extractions)
    ]


def _check_image_limit(application: ApplicationRequest) -> None:
    settings = get_settings()
    image_count = len(application.extractions) + application.failed_image_count
    if image_count > settings.max_images_per_application:
        raise HTTPException(
            status_code=400,
            detail=f"Too many images. Maximum images per application is {settings.max_images_per_application}."
        )


def _to_batch_application(application: ApplicationRequest) -> BatchApplication:
    return BatchApplication(
        application_id=application.application_id or str(uuid.uuid4()),
        application_name=application.application_name,
        extractions=_index_extractions(application.extractions),
        expected=application.expected.to_values() if application.expected else None,
        failed_image_count=application.failed_image_count,
    )


def _batch_response(results: List[ApplicationResult], start_time: float, csv_errors=None) -> BatchVerificationResponse:
    summary = summarize_results(results)
    return BatchVerificationResponse(
        success=True,
        total=summary["total"],
        passed=summary["pass"],
        needs_review=summary["needs_review"],
        failed=summary["fail"],
        errors=summary["error"],
        results=[_to_result_model(r) for r in results],
        csv_errors=[CSVErrorModel.model_validate(asdict(e)) for e in csv_errors or []],
        processing_time_ms=int((time.time() - start_time) * 1000),
    )


@router.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check():
    """Check API health."""
    return HealthResponse(
        status="healthy",
        version=__version__,
    )


@router.get("/warning/canonical", response_model=CanonicalWarningResponse, tags=["System"])
async def canonical_warning():
    """Return the statutory government warning the validator checks against."""
    return CanonicalWarningResponse(text=CANONICAL_WARNING, prefix=WARNING_PREFIX)


@router.post(
    "/extractions/parse",
    response_model=ParseExtractionResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Unparseable model response"},
    },
    tags=["Extraction"]
)
async def parse_extraction(request: ParseExtractionRequest):
    """
    Parse a vision model's raw answer into an extraction record.

    Accepts plain JSON or JSON wrapped in a markdown code block.
    """
    settings = get_settings()
    fix_prefix = settings.fix_warning_prefix if request.fix_prefix is None else request.fix_prefix

    try:
        extraction = parse_extraction_response(request.content, fix_prefix=fix_prefix)
    except ExtractionParseError as e:
        logger.warning(f"Failed to parse extraction: {e}")
        raise HTTPException(status_code=400, detail=str(e))

    return ParseExtractionResponse(success=True, extraction=extraction)


@router.post(
    "/merge",
    response_model=MergeResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid input"},
    },
    tags=["Verification"]
)
async def merge(request: MergeRequest):
    """
    Merge the extractions of one application's images.

    Image indices follow the order of the submitted extractions.
    """
    settings = get_settings()
    if len(request.extractions) > settings.max_images_per_application:
        raise HTTPException(
            status_code=400,
            detail=f"Too many images. Maximum images per application is {settings.max_images_per_application}."
        )

    merged = merge_raw_extractions(request.extractions)
    return _to_merge_response(merged)


@router.post(
    "/verify",
    response_model=VerificationResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid input"},
        500: {"model": ErrorResponse, "description": "Processing error"}
    },
    tags=["Verification"]
)
async def verify_application(application: ApplicationRequest):
    """
    Verify one application against the extractions of its label images.

    Fields missing from `expected` are checked label-only. When every image
    failed upstream the result has status `error`.
    """
    _check_image_limit(application)
    indexed = _index_extractions(application.extractions)

    try:
        result, merged = verification_service.verify_with_merge(
            indexed,
            expected=application.expected.to_values() if application.expected else None,
            application_id=application.application_id,
            application_name=application.application_name,
            failed_image_count=application.failed_image_count,
        )
    except Exception as e:
        logger.exception(f"Error verifying application: {e}")
        return VerificationResponse(
            success=False,
            error=f"Error verifying application: {str(e)}"
        )

    grouping_warnings = []
    if merged is not None and len(indexed) > 1:
        grouping_warnings = detect_grouping_mismatch(merged)
        for warning in grouping_warnings:
            logger.warning(f"Application {result.application_id}: {warning}")

    return VerificationResponse(
        success=True,
        result=_to_result_model(result),
        grouping_warnings=grouping_warnings,
    )


@router.post(
    "/verify/batch",
    response_model=BatchVerificationResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid input"},
    },
    tags=["Verification"]
)
async def verify_batch(request: BatchVerificationRequest):
    """
    Verify multiple applications.

    Results are returned in request order with counts by overall status.
    """
    start_time = time.time()
    settings = get_settings()

    if len(request.applications) > settings.max_batch_size:
        raise HTTPException(
            status_code=400,
            detail=f"Too many applications. Maximum batch size is {settings.max_batch_size}."
        )
    for application in request.applications:
        _check_image_limit(application)

    results = batch_processor.process_batch([_to_batch_application(a) for a in request.applications])
    return _batch_response(results, start_time)


@router.post(
    "/verify/batch/csv",
    response_model=BatchVerificationResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid input"},
    },
    tags=["Verification"]
)
async def verify_batch_csv(
    csv_file: UploadFile = File(..., description="CSV file with expected application values"),
    extractions: str = Form(..., description="JSON object mapping application_id to a list of extractions"),
):
    """
    Verify multiple applications with expected values from CSV.

    CSV format:
    - Required columns: application_id
    - Optional columns: application_name, brand, class_type, abv_or_proof, net_contents, producer, country

    Example CSV:
    ```
    application_id,brand,class_type,abv_or_proof,net_contents
    APP-001,OLD TOM DISTILLERY,Kentucky Straight Bourbon Whiskey,45%,750 mL
    APP-002,Stone's Throw,Gin,80 Proof,1 L
    ```

    The `extractions` form field holds the per-image extraction records for
    each application, e.g. `{"APP-001": [{"brandName": "OLD TOM DISTILLERY", ...}]}`.
    """
    start_time = time.time()
    settings = get_settings()

    try:
        csv_content = (await csv_file.read()).decode("utf-8-sig")
    except UnicodeDecodeError:
        raise HTTPException(
            status_code=400,
            detail="CSV file must be UTF-8 encoded"
        )

    try:
        payload = json.loads(extractions)
    except json.JSONDecodeError:
        raise HTTPException(status_code=400, detail="Extractions must be a JSON object")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Extractions must be a JSON object")

    csv_rows, csv_errors = csv_parser.parse(csv_content)

    if csv_errors and not csv_rows:
        error_messages = [f"Row {e.row_number}: {e.field} - {e.message}" for e in csv_errors[:5]]
        raise HTTPException(
            status_code=400,
            detail=f"CSV validation failed: {'; '.join(error_messages)}"
        )

    if len(csv_rows) > settings.max_batch_size:
        raise HTTPException(
            status_code=400,
            detail=f"Too many applications. Maximum batch size is {settings.max_batch_size}."
        )

    matched_rows, match_errors = csv_parser.match_extractions(csv_rows, list(payload.keys()))
    if not matched_rows:
        error_messages = [f"Row {e.row_number}: {e.field} - {e.message}" for e in match_errors[:5]]
        raise HTTPException(
            status_code=400,
            detail=f"No CSV rows match the supplied extractions: {'; '.join(error_messages)}"
        )

    applications = []
    for row in matched_rows:
        records = payload[row.application_id]
        if not isinstance(records, list):
            raise HTTPException(
                status_code=400,
                detail=f"Extractions for '{row.application_id}' must be a list"
            )
        try:
            request = ApplicationRequest.model_validate({
                "application_id": row.application_id,
                "application_name": row.application_name or "Application",
                "extractions": records,
            })
        except ValidationError as e:
            raise HTTPException(
                status_code=400,
                detail=f"Invalid extractions for '{row.application_id}': {e.errors()[0]['msg']}"
            )
        _check_image_limit(request)
        applications.append(BatchApplication(
            application_id=row.application_id,
            application_name=request.application_name,
            extractions=_index_extractions(request.extractions),
            expected=row.to_values(),
        ))

    logger.info(f"CSV batch: {len(applications)} applications, {len(csv_errors) + len(match_errors)} CSV issue(s)")
    results = batch_processor.process_batch(applications)
    return _batch_response(results, start_time, csv_errors + match_errors)
