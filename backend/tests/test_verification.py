"""Tests for verification service."""

import pytest
from labelverify.services.comparison import FieldStatus
from labelverify.services.extraction import FieldName, IndexedExtraction, Observation, RawExtraction
from labelverify.services.merge import FieldProvenance
from labelverify.services.verification import (
    ALL_MATCH_MESSAGE,
    ApplicationValues,
    OverallStatus,
    VerificationService,
    add_partial_failure_note,
    compute_application_result,
    compute_error_result,
    validate_field,
)
from labelverify.services.warning import CANONICAL_WARNING


@pytest.fixture
def service():
    """Create verification service instance."""
    return VerificationService()


LABEL = {
    "brand_name": "Jack Daniel's",
    "class_type": "Tennessee Whiskey",
    "alcohol_content": "40%",
    "net_contents": "750ml",
    "bottler_producer": "Jack Daniel Distillery",
    "country_of_origin": "USA",
    "government_warning": CANONICAL_WARNING,
}

EXPECTED = ApplicationValues(
    brand="Jack Daniel's",
    class_type="Tennessee Whiskey",
    abv_or_proof="40%",
    net_contents="750ml",
    producer="Jack Daniel Distillery",
    country="USA",
)


def make_extraction(
    index: int = 0,
    confidence: float = 0.9,
    bold: bool = True,
    **overrides,
) -> IndexedExtraction:
    """Helper to create a label extraction; defaults describe a compliant label."""
    fields = dict(LABEL)
    fields.update(overrides)
    return IndexedExtraction(
        extraction=RawExtraction(
            confidence=confidence,
            government_warning_is_uppercase=Observation.DETECTED,
            government_warning_is_bold=Observation.from_bool(bold),
            **fields,
        ),
        image_index=index,
    )


def field_result(result, name: FieldName):
    return next(f for f in result.field_results if f.field_name == name.display_name)


class TestFullPass:
    """Test applications that match on every field."""

    def test_all_fields_match(self, service):
        """Test all fields match."""
        result = service.verify([make_extraction()], expected=EXPECTED)

        assert result.overall_status == OverallStatus.PASS
        assert result.top_reasons == [ALL_MATCH_MESSAGE]
        assert all(f.status == FieldStatus.PASS for f in result.field_results)
        assert result.warning_result.overall_status == FieldStatus.PASS

    def test_field_order(self, service):
        """Test field order."""
        result = service.verify([make_extraction()], expected=EXPECTED)
        assert [f.field_name for f in result.field_results] == [
            "Brand Name", "Class/Type", "ABV/Proof", "Net Contents", "Producer/Bottler", "Country of Origin",
        ]

    def test_unconfirmed_bold_needs_review(self, service):
        """Without a positive bold observation the warning needs manual confirmation."""
        extraction = IndexedExtraction(RawExtraction(**LABEL), 0)
        result = service.verify([extraction], expected=EXPECTED)

        assert result.overall_status == OverallStatus.NEEDS_REVIEW
        assert result.top_reasons[0].startswith("Government Warning: Unable to confirm")

    def test_ids_and_counts(self, service):
        """Test IDs and counts."""
        result = service.verify([make_extraction(0), make_extraction(1)], expected=EXPECTED, application_id="APP-1")

        assert result.application_id == "APP-1"
        assert result.id
        assert result.id != result.application_id
        assert result.image_count == 2
        assert result.application_name == "Application"
        assert result.error_message is None
        assert result.passed_count == 6


class TestFailures:
    """Test failing applications."""

    def test_missing_warning_fails(self, service):
        """Test missing warning fails."""
        result = service.verify([make_extraction(government_warning=None)], expected=EXPECTED)

        assert result.overall_status == OverallStatus.FAIL
        assert result.warning_result.overall_status == FieldStatus.MISSING
        assert result.top_reasons[0] == "Government Warning: not found on label"

    def test_mismatched_field_fails(self, service):
        """Test mismatched field fails."""
        result = service.verify([make_extraction(brand_name="Old Tom Distillery")], expected=EXPECTED)

        assert result.overall_status == OverallStatus.FAIL
        assert field_result(result, FieldName.BRAND).status == FieldStatus.FAIL
        assert result.top_reasons == ['Brand Name: Expected "Jack Daniel\'s" but found "Old Tom Distillery"']
        assert result.failed_count == 1

    def test_missing_expected_field_fails(self, service):
        """Test missing expected field fails."""
        result = service.verify([make_extraction(country_of_origin=None)], expected=EXPECTED)

        assert result.overall_status == OverallStatus.FAIL
        assert field_result(result, FieldName.COUNTRY).status == FieldStatus.MISSING
        assert "Country of Origin: not found on label" in result.top_reasons

    def test_warning_failure_leads_reasons(self, service):
        """Test warning failure leads reasons."""
        result = service.verify(
            [make_extraction(brand_name="Old Tom Distillery", government_warning="Drink responsibly")],
            expected=EXPECTED,
        )

        assert result.overall_status == OverallStatus.FAIL
        assert result.top_reasons[0].startswith("Government Warning: ")
        assert result.top_reasons[1].startswith("Brand Name: ")

    def test_top_reasons_capped(self, service):
        """Test top reasons capped."""
        result = service.verify(
            [make_extraction(
                brand_name="Old Tom",
                class_type="Vodka",
                alcohol_content="50%",
                net_contents="1 L",
                country_of_origin="Mexico",
            )],
            expected=EXPECTED,
        )

        assert result.overall_status == OverallStatus.FAIL
        assert len(result.top_reasons) == 3
        assert result.failed_count == 5

    def test_failures_listed_before_reviews(self, service):
        """Test failures listed before reviews."""
        result = service.verify(
            [make_extraction(alcohol_content="40.5%", net_contents="1 L")],
            expected=EXPECTED,
        )

        assert result.overall_status == OverallStatus.FAIL
        assert result.top_reasons[0].startswith("Net Contents: ")
        assert result.top_reasons[1].startswith("ABV/Proof: ")


class TestNeedsReview:
    """Test applications needing review."""

    def test_slight_abv_difference(self, service):
        """Test slight ABV difference."""
        result = service.verify([make_extraction(alcohol_content="40.5%")], expected=EXPECTED)

        assert result.overall_status == OverallStatus.NEEDS_REVIEW
        assert result.top_reasons == ["ABV/Proof: ABV differs slightly: 40.5% vs 40.0%"]

    def test_proof_conversion_passes(self, service):
        """Test proof conversion passes."""
        result = service.verify([make_extraction(alcohol_content="80 Proof")], expected=EXPECTED)

        abv = field_result(result, FieldName.ABV_OR_PROOF)
        assert abv.status == FieldStatus.PASS
        assert abv.reason == "ABV/proof match after conversion"
        assert result.overall_status == OverallStatus.PASS


class TestCrossImageConflicts:
    """Test provenance folded into field results."""

    def test_conflict_upgrades_pass_to_review(self, service):
        """Test conflict upgrades pass to review."""
        result = service.verify(
            [
                make_extraction(0, 0.9),
                make_extraction(1, 0.6, brand_name="Jack Daniels Old No 7"),
            ],
            expected=EXPECTED,
        )
        brand = field_result(result, FieldName.BRAND)

        assert brand.status == FieldStatus.NEEDS_REVIEW
        assert brand.reason == 'Conflicting values found: "Jack Daniel\'s" vs "Jack Daniels Old No 7"'
        assert brand.candidates == ["Jack Daniel's", "Jack Daniels Old No 7"]
        assert brand.source_image_indices == [0, 1]
        assert result.overall_status == OverallStatus.NEEDS_REVIEW

    def test_conflict_does_not_soften_failure(self, service):
        """Test conflict does not soften failure."""
        result = service.verify(
            [
                make_extraction(0, 0.9, brand_name="Brand A Whiskey"),
                make_extraction(1, 0.6, brand_name="Brand B Bourbon"),
            ],
            expected=EXPECTED,
        )
        brand = field_result(result, FieldName.BRAND)

        assert brand.status == FieldStatus.FAIL
        assert brand.candidates == ["Brand A Whiskey", "Brand B Bourbon"]
        assert result.overall_status == OverallStatus.FAIL

    def test_agreed_field_reports_source(self, service):
        """Test agreed field reports source."""
        result = service.verify([make_extraction(0, brand_name=None), make_extraction(1)], expected=EXPECTED)
        assert field_result(result, FieldName.BRAND).source_image_indices == [1]

    def test_validate_field_without_provenance(self):
        """Test validate field without provenance."""
        result = validate_field(FieldName.BRAND, "Old Tom", "Old Tom")
        assert result.status == FieldStatus.PASS
        assert result.source_image_indices is None
        assert result.candidates is None

    def test_validate_field_keeps_review_reason(self):
        """Test validate field keeps review reason."""
        provenance = FieldProvenance(
            source_index=0,
            needs_review=True,
            conflicting_candidates=["40.5%", "45%"],
            conflicting_source_indices=[0, 1],
            review_reason='Conflicting values found: "40.5%" vs "45%"',
        )
        result = validate_field(FieldName.ABV_OR_PROOF, "40.5%", "40%", provenance)

        assert result.status == FieldStatus.NEEDS_REVIEW
        assert result.reason == "ABV differs slightly: 40.5% vs 40.0%"


class TestLabelOnly:
    """Test verification without application values."""

    def test_every_field_not_provided(self, service):
        """Test every field not provided."""
        result = service.verify([make_extraction()])

        assert all(f.status == FieldStatus.NOT_PROVIDED for f in result.field_results)
        assert result.overall_status == OverallStatus.PASS
        assert result.top_reasons == [ALL_MATCH_MESSAGE]

    def test_absent_fields_missing_but_not_failing(self, service):
        """Test absent fields missing but not failing."""
        result = service.verify([make_extraction(bottler_producer=None)])

        assert field_result(result, FieldName.PRODUCER).status == FieldStatus.MISSING
        assert result.overall_status == OverallStatus.PASS

    def test_partial_expected_values(self, service):
        """Test partial expected values."""
        result = service.verify([make_extraction()], expected=ApplicationValues(brand="Jack Daniel's"))

        assert field_result(result, FieldName.BRAND).status == FieldStatus.PASS
        assert field_result(result, FieldName.COUNTRY).status == FieldStatus.NOT_PROVIDED
        assert result.overall_status == OverallStatus.PASS

    def test_warning_still_validated(self, service):
        """Test warning still validated."""
        result = service.verify([make_extraction(government_warning=None)])
        assert result.overall_status == OverallStatus.FAIL


class TestComposeFromValues:
    """Test composing a result from values without a merge."""

    def test_values_only(self):
        """Test values only."""
        result = compute_application_result(
            {FieldName.BRAND: "Old Tom", FieldName.GOVERNMENT_WARNING: CANONICAL_WARNING},
            expected=ApplicationValues(brand="Old Tom"),
            application_name="Old Tom Bourbon",
            processing_time_ms=12,
        )

        assert result.application_name == "Old Tom Bourbon"
        assert result.processing_time_ms == 12
        assert result.image_count == 1
        assert result.application_id
        # No formatting observations, so bold must be confirmed by hand
        assert result.overall_status == OverallStatus.NEEDS_REVIEW

    def test_blank_expected_value_is_not_required(self):
        """Test whitespace-only expected value is treated as absent."""
        result = compute_application_result(
            {FieldName.GOVERNMENT_WARNING: CANONICAL_WARNING},
            expected=ApplicationValues(brand="   "),
        )

        assert field_result(result, FieldName.BRAND).status == FieldStatus.MISSING
        assert "Brand Name: not found on label" not in result.top_reasons
        assert result.overall_status == OverallStatus.NEEDS_REVIEW


class TestErrorResults:
    """Test total and partial extraction failure."""

    def test_compute_error_result(self):
        """Test compute error result."""
        result = compute_error_result("APP-9", "Broken", "Vision service unavailable", image_count=3)

        assert result.overall_status == OverallStatus.ERROR
        assert result.top_reasons == ["Vision service unavailable"]
        assert result.error_message == "Vision service unavailable"
        assert result.processing_time_ms == 0
        assert result.image_count == 3
        assert len(result.field_results) == 6
        assert all(f.status == FieldStatus.MISSING for f in result.field_results)
        assert all(f.reason == "Processing error - unable to extract" for f in result.field_results)
        assert result.warning_result.overall_status == FieldStatus.MISSING
        assert result.warning_result.reason == "Processing error - unable to validate"

    def test_all_images_failed(self, service):
        """Test all images failed."""
        result = service.verify([], expected=EXPECTED, application_id="APP-2", failed_image_count=2)

        assert result.overall_status == OverallStatus.ERROR
        assert result.application_id == "APP-2"
        assert result.image_count == 2

    def test_some_images_failed(self, service):
        """Test some images failed."""
        result = service.verify([make_extraction()], expected=EXPECTED, failed_image_count=1)

        assert result.overall_status == OverallStatus.PASS
        assert result.top_reasons == ["Some images failed to process"]
        assert result.image_count == 2

    def test_note_keeps_three_reasons(self, service):
        """Test note keeps three reasons."""
        result = service.verify(
            [make_extraction(
                brand_name="Old Tom",
                class_type="Vodka",
                alcohol_content="50%",
                net_contents="1 L",
            )],
            expected=EXPECTED,
            failed_image_count=1,
        )

        assert len(result.top_reasons) == 3
        assert result.top_reasons[-1] == "Some images failed to process"

    def test_note_appended_after_existing_reasons(self, service):
        """Test note appended after existing reasons."""
        result = service.verify([make_extraction(alcohol_content="40.5%")], expected=EXPECTED)
        noted = add_partial_failure_note(result)

        assert noted.top_reasons == [
            "ABV/Proof: ABV differs slightly: 40.5% vs 40.0%",
            "Some images failed to process",
        ]
        assert result.top_reasons == ["ABV/Proof: ABV differs slightly: 40.5% vs 40.0%"]


class TestVerifyWithMerge:
    """Test verification that also returns the merged extraction."""

    def test_returns_merge(self, service):
        """Test merged extraction is returned alongside the result."""
        result, merged = service.verify_with_merge(
            [make_extraction(0), make_extraction(1, brand_name="Old Tom", confidence=0.5)],
            expected=EXPECTED,
        )

        assert merged.values[FieldName.BRAND] == "Jack Daniel's"
        assert merged.conflict_count == 1
        assert result.overall_status == OverallStatus.NEEDS_REVIEW

    def test_no_merge_when_all_images_failed(self, service):
        """Test merge is None when every image failed."""
        result, merged = service.verify_with_merge([], failed_image_count=2)

        assert merged is None
        assert result.overall_status == OverallStatus.ERROR
