"""Per-image extraction records and parsing of vision-model responses."""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from .normalization import is_empty_value

logger = logging.getLogger(__name__)

# Confidence assumed for an extraction that did not report one
DEFAULT_CONFIDENCE = 0.5

WARNING_PREFIX = "GOVERNMENT WARNING:"

# Phrases that only appear in the health warning body
_WARNING_BODY_MARKERS = ("SURGEON GENERAL", "ALCOHOLIC BEVERAGES", "BIRTH DEFECTS")


class ExtractionParseError(ValueError):
    """Raised when a vision-model response cannot be turned into an extraction."""


class Observation(str, Enum):
    """Tri-state visual observation. UNKNOWN must never be read as a negative."""
    DETECTED = "detected"
    NOT_DETECTED = "not_detected"
    UNKNOWN = "unknown"

    @classmethod
    def from_bool(cls, value: Optional[bool]) -> "Observation":
        if value is None:
            return cls.UNKNOWN
        return cls.DETECTED if value else cls.NOT_DETECTED

    @property
    def is_known(self) -> bool:
        return self is not Observation.UNKNOWN


class FontSize(str, Enum):
    """Warning text size relative to the rest of the label."""
    NORMAL = "normal"
    SMALL = "small"
    VERY_SMALL = "very_small"
    UNKNOWN = "unknown"

    @property
    def severity(self) -> int:
        """Lower is worse. UNKNOWN ranks above every real observation."""
        return {"very_small": 1, "small": 2, "normal": 3}.get(self.value, 99)


class Visibility(str, Enum):
    """Overall prominence of the warning on the label."""
    PROMINENT = "prominent"
    MODERATE = "moderate"
    SUBTLE = "subtle"
    UNKNOWN = "unknown"

    @property
    def severity(self) -> int:
        """Lower is worse. UNKNOWN ranks above every real observation."""
        return {"subtle": 1, "moderate": 2, "prominent": 3}.get(self.value, 99)


class FieldName(str, Enum):
    """Logical label fields tracked across images."""
    BRAND = "brand"
    CLASS_TYPE = "class_type"
    ABV_OR_PROOF = "abv_or_proof"
    NET_CONTENTS = "net_contents"
    PRODUCER = "producer"
    COUNTRY = "country"
    GOVERNMENT_WARNING = "government_warning"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def extraction_key(self) -> str:
        """Attribute on RawExtraction holding this field."""
        return _EXTRACTION_KEYS[self]


_DISPLAY_NAMES = {
    FieldName.BRAND: "Brand Name",
    FieldName.CLASS_TYPE: "Class/Type",
    FieldName.ABV_OR_PROOF: "ABV/Proof",
    FieldName.NET_CONTENTS: "Net Contents",
    FieldName.PRODUCER: "Producer/Bottler",
    FieldName.COUNTRY: "Country of Origin",
    FieldName.GOVERNMENT_WARNING: "Government Warning",
}

_EXTRACTION_KEYS = {
    FieldName.BRAND: "brand_name",
    FieldName.CLASS_TYPE: "class_type",
    FieldName.ABV_OR_PROOF: "alcohol_content",
    FieldName.NET_CONTENTS: "net_contents",
    FieldName.PRODUCER: "bottler_producer",
    FieldName.COUNTRY: "country_of_origin",
    FieldName.GOVERNMENT_WARNING: "government_warning",
}

# Fields compared against application values; the warning is validated separately
ORDINARY_FIELDS = (
    FieldName.BRAND,
    FieldName.CLASS_TYPE,
    FieldName.ABV_OR_PROOF,
    FieldName.NET_CONTENTS,
    FieldName.PRODUCER,
    FieldName.COUNTRY,
)


class RawExtraction(BaseModel):
    """
    Structured fields a vision model extracted from one label image.

    Accepts the model's camelCase JSON keys ("brandName",
    "governmentWarningIsBold", ...) as well as snake_case names. Nullable
    booleans for the warning header are stored as Observation values.
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    brand_name: Optional[str] = None
    class_type: Optional[str] = None
    alcohol_content: Optional[str] = None
    net_contents: Optional[str] = None
    bottler_producer: Optional[str] = None
    country_of_origin: Optional[str] = None
    government_warning: Optional[str] = None
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0)
    notes: Optional[str] = None

    government_warning_is_uppercase: Observation = Observation.UNKNOWN
    government_warning_is_bold: Observation = Observation.UNKNOWN
    government_warning_font_size: FontSize = FontSize.UNKNOWN
    government_warning_visibility: Visibility = Visibility.UNKNOWN

    @field_validator("government_warning_is_uppercase", "government_warning_is_bold", mode="before")
    @classmethod
    def _coerce_observation(cls, value: Any) -> Any:
        if value is None or isinstance(value, bool):
            return Observation.from_bool(value)
        return value

    @field_validator("government_warning_font_size", "government_warning_visibility", mode="before")
    @classmethod
    def _coerce_unknown(cls, value: Any) -> Any:
        return "unknown" if value is None else value

    @property
    def effective_confidence(self) -> float:
        return DEFAULT_CONFIDENCE if self.confidence is None else self.confidence

    def value_for(self, field: FieldName) -> Optional[str]:
        """Return the field's value, or None if it is empty or a placeholder."""
        value = getattr(self, field.extraction_key)
        return None if is_empty_value(value) else value

    @property
    def has_formatting_observation(self) -> bool:
        return (
            self.government_warning_is_uppercase.is_known
            or self.government_warning_is_bold.is_known
            or self.government_warning_font_size is not FontSize.UNKNOWN
            or self.government_warning_visibility is not Visibility.UNKNOWN
        )


@dataclass(frozen=True)
class IndexedExtraction:
    """An extraction paired with its image's 0-based position in the application."""
    extraction: RawExtraction
    image_index: int


def fix_government_warning_prefix(warning: Optional[str]) -> Optional[str]:
    """
    Restore a "GOVERNMENT WARNING:" prefix the model dropped.

    Vision models sometimes start the transcription at "(1)". The prefix is
    only restored when the text is recognisably the warning body; the case of
    an existing prefix is left untouched so the uppercase check still sees it.
    """
    if warning is None or not warning.strip():
        return None

    trimmed = warning.strip()
    upper = trimmed.upper()

    if upper.startswith(WARNING_PREFIX):
        return trimmed
    if trimmed.startswith("(1)"):
        return f"{WARNING_PREFIX} {trimmed}"
    if any(marker in upper for marker in _WARNING_BODY_MARKERS):
        return f"{WARNING_PREFIX} {trimmed}"
    return trimmed


def _strip_code_fences(content: str) -> str:
    text = content.strip()
    if text.startswith("```json"):
        text = text[7:]
    elif text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


def parse_extraction_response(content: str, fix_prefix: bool = True) -> RawExtraction:
    """
    Parse a vision model's free-text JSON answer into a RawExtraction.

    Args:
        content: Model output, optionally wrapped in a markdown code block
        fix_prefix: Restore a dropped "GOVERNMENT WARNING:" prefix

    Returns:
        Validated RawExtraction

    Raises:
        ExtractionParseError: If the content is not JSON or fails validation
    """
    text = _strip_code_fences(content)
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise ExtractionParseError(f"Invalid JSON in model response: {content[:200]}") from e

    if not isinstance(payload, dict):
        raise ExtractionParseError("Model response must be a JSON object")

    try:
        extraction = RawExtraction.model_validate(payload)
    except ValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ExtractionParseError(f"Schema validation failed: {details}") from e

    if fix_prefix and extraction.government_warning:
        fixed = fix_government_warning_prefix(extraction.government_warning)
        if fixed != extraction.government_warning:
            logger.debug("Restored missing government warning prefix")
            extraction = extraction.model_copy(update={"government_warning": fixed})

    return extraction
