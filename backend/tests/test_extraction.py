"""Tests for extraction records and model-response parsing."""

import pytest
from pydantic import ValidationError

from labelverify.services.extraction import (
    ExtractionParseError,
    FieldName,
    FontSize,
    Observation,
    RawExtraction,
    Visibility,
    fix_government_warning_prefix,
    parse_extraction_response,
)


MODEL_RESPONSE = """```json
{
  "brandName": "OLD TOM DISTILLERY",
  "classType": "Kentucky Straight Bourbon Whiskey",
  "alcoholContent": "45% Alc./Vol.",
  "netContents": "750 mL",
  "bottlerProducer": null,
  "countryOfOrigin": "USA",
  "governmentWarning": "(1) According to the Surgeon General, women should not drink alcoholic beverages during pregnancy.",
  "governmentWarningIsUppercase": null,
  "governmentWarningIsBold": true,
  "governmentWarningFontSize": "small",
  "governmentWarningVisibility": null,
  "confidence": 0.92,
  "notes": "Back label partially obscured"
}
```"""


class TestFieldName:
    """Test field identifiers."""

    def test_every_field_has_display_name(self):
        """Test every field has display name."""
        for name in FieldName:
            assert name.display_name

    def test_every_field_maps_to_extraction(self):
        """Test every field maps to extraction."""
        extraction = RawExtraction()
        for name in FieldName:
            assert hasattr(extraction, name.extraction_key)

    def test_display_names(self):
        """Test display names."""
        assert FieldName.BRAND.display_name == "Brand Name"
        assert FieldName.ABV_OR_PROOF.display_name == "ABV/Proof"
        assert FieldName.GOVERNMENT_WARNING.display_name == "Government Warning"


class TestRawExtraction:
    """Test the extraction schema."""

    def test_accepts_snake_and_camel_case(self):
        """Test accepts snake and camel case."""
        assert RawExtraction(brand_name="A").brand_name == "A"
        assert RawExtraction.model_validate({"brandName": "A"}).brand_name == "A"

    def test_confidence_bounds(self):
        """Test confidence bounds."""
        with pytest.raises(ValidationError):
            RawExtraction(confidence=1.5)
        with pytest.raises(ValidationError):
            RawExtraction(confidence=-0.1)

    def test_effective_confidence_default(self):
        """Test effective confidence default."""
        assert RawExtraction().effective_confidence == 0.5
        assert RawExtraction(confidence=0.0).effective_confidence == 0.0

    def test_bool_observations(self):
        """Test bool observations."""
        extraction = RawExtraction.model_validate({
            "governmentWarningIsUppercase": True,
            "governmentWarningIsBold": False,
        })
        assert extraction.government_warning_is_uppercase is Observation.DETECTED
        assert extraction.government_warning_is_bold is Observation.NOT_DETECTED

    def test_rejects_unknown_font_size(self):
        """Test rejects unknown font size."""
        with pytest.raises(ValidationError):
            RawExtraction.model_validate({"governmentWarningFontSize": "tiny"})

    def test_value_for_skips_placeholders(self):
        """Test value for skips placeholders."""
        extraction = RawExtraction(brand_name="null", class_type=" Gin ")
        assert extraction.value_for(FieldName.BRAND) is None
        assert extraction.value_for(FieldName.CLASS_TYPE) == " Gin "

    def test_frozen(self):
        """Test extraction records are immutable."""
        extraction = RawExtraction(brand_name="A")
        with pytest.raises(ValidationError):
            extraction.brand_name = "B"


class TestWarningPrefixFix:
    """Test restoring a dropped "GOVERNMENT WARNING:" prefix."""

    def test_numbered_body(self):
        """Test numbered body."""
        assert fix_government_warning_prefix("(1) According to...") == "GOVERNMENT WARNING: (1) According to..."

    def test_body_markers(self):
        """Test body markers."""
        fixed = fix_government_warning_prefix("According to the Surgeon General, women...")
        assert fixed.startswith("GOVERNMENT WARNING: ")

    def test_existing_prefix_case_preserved(self):
        """Test existing prefix case preserved."""
        assert fix_government_warning_prefix("Government Warning: (1) ...") == "Government Warning: (1) ..."

    def test_unrelated_text_untouched(self):
        """Test unrelated text untouched."""
        assert fix_government_warning_prefix("  Drink responsibly ") == "Drink responsibly"

    def test_blank(self):
        """Test blank warning text is left alone."""
        assert fix_government_warning_prefix(None) is None
        assert fix_government_warning_prefix("  ") is None


class TestParseExtractionResponse:
    """Test parsing of vision-model answers."""

    def test_fenced_json(self):
        """Test fenced JSON."""
        extraction = parse_extraction_response(MODEL_RESPONSE)

        assert extraction.brand_name == "OLD TOM DISTILLERY"
        assert extraction.alcohol_content == "45% Alc./Vol."
        assert extraction.bottler_producer is None
        assert extraction.confidence == 0.92
        assert extraction.government_warning_is_uppercase is Observation.UNKNOWN
        assert extraction.government_warning_is_bold is Observation.DETECTED
        assert extraction.government_warning_font_size is FontSize.SMALL
        assert extraction.government_warning_visibility is Visibility.UNKNOWN

    def test_prefix_restored(self):
        """Test prefix restored."""
        extraction = parse_extraction_response(MODEL_RESPONSE)
        assert extraction.government_warning.startswith("GOVERNMENT WARNING: (1)")

    def test_prefix_fix_disabled(self):
        """Test prefix fix disabled."""
        extraction = parse_extraction_response(MODEL_RESPONSE, fix_prefix=False)
        assert extraction.government_warning.startswith("(1)")

    def test_plain_json(self):
        """Test plain JSON."""
        extraction = parse_extraction_response('{"brandName": "Old Tom"}')
        assert extraction.brand_name == "Old Tom"
        assert extraction.confidence is None

    def test_invalid_json(self):
        """Test invalid JSON."""
        with pytest.raises(ExtractionParseError, match="Invalid JSON"):
            parse_extraction_response("I could not read this label.")

    def test_non_object(self):
        """Test non object."""
        with pytest.raises(ExtractionParseError, match="JSON object"):
            parse_extraction_response("[1, 2, 3]")

    def test_schema_violation(self):
        """Test schema violation."""
        with pytest.raises(ExtractionParseError, match="confidence"):
            parse_extraction_response('{"confidence": 2}')

    def test_parse_error_is_value_error(self):
        """Test parse error is value error."""
        with pytest.raises(ValueError):
            parse_extraction_response("")
