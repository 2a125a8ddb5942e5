"""
Extraction contract for the classifier.

The set of extractable fields comes from the admin-configured sheet_fields table and
is turned into a pydantic model at call time. A classifier call yields either a
validated Classification or a RawFallback sentinel; callers never see exceptions for
bad model output.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Collection, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, create_model

SENTIMENT_LABELS = (
    "Interested",
    "Highly Interested",
    "Not Interested",
    "Confused",
    "Frustrated",
    "Neutral",
    "Exploring Options",
    "Price Sensitive",
    "Urgent Request",
)
NEUTRAL_SENTIMENT = "Neutral"

INTENTS = ("high_interest", "medium_interest", "low_interest", "lost_interest")
DEFAULT_INTENT = "medium_interest"

FIELD_TYPES = ("text", "number", "date", "boolean", "enum", "array")

# Keys that describe the conversation rather than the property
SIGNAL_KEYS = frozenset(
    {
        "client_sentiment",
        "client_intent",
        "follow_up_status",
        "is_new_property_thread",
        "is_from_group",
        "propertyId",
        "parentId",
        "message_date",
        "note",
        "error",
        "raw",
    }
)


class FieldDescriptor(BaseModel):
    """One configured extraction field."""

    model_config = ConfigDict(populate_by_name=True)

    field_name: str = Field(..., alias="fieldName")
    field_type: str = Field("text", alias="fieldType")
    is_required: bool = Field(False, alias="isRequired")
    order: int = 0
    description: Optional[str] = None
    enum_values: Optional[str] = Field(None, alias="enumValues", description="JSON array string")

    def parsed_enum_values(self) -> list[str]:
        """Return the enum choices, or [] when missing or not a JSON array of strings."""
        if not self.enum_values:
            return []
        try:
            values = json.loads(self.enum_values)
        except ValueError:
            return []
        if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
            return []
        return values


DEFAULT_FIELDS: list[FieldDescriptor] = [
    FieldDescriptor(field_name="property_name", field_type="text", order=0,
                    description="Name of the building, project or listing"),
    FieldDescriptor(field_name="property_type", field_type="text", order=1,
                    description='The property description (e.g. "apartment", "villa")'),
    FieldDescriptor(field_name="location", field_type="text", order=2,
                    description="City, area, or address where the property is located"),
    FieldDescriptor(field_name="price", field_type="number", order=3,
                    description="Price amount (numbers only, no currency symbols)"),
    FieldDescriptor(field_name="bedrooms", field_type="number", order=4,
                    description="Number of bedrooms"),
    FieldDescriptor(field_name="bathrooms", field_type="number", order=5,
                    description="Number of bathrooms"),
    FieldDescriptor(field_name="size_sqft", field_type="number", order=6,
                    description="Property size in square feet"),
    FieldDescriptor(field_name="message_date", field_type="date", order=7,
                    description="Date mentioned in the message, if any"),
    FieldDescriptor(field_name="note", field_type="text", order=8,
                    description="Anything else worth recording"),
]
DEFAULT_FIELD_NAMES = frozenset(f.field_name for f in DEFAULT_FIELDS)


def _python_type(descriptor: FieldDescriptor) -> Any:
    if descriptor.field_type == "number":
        return Optional[float]
    if descriptor.field_type == "boolean":
        return Optional[bool]
    if descriptor.field_type == "array":
        return Optional[list[str]]
    if descriptor.field_type == "enum":
        choices = descriptor.parsed_enum_values()
        if choices:
            return Optional[Literal[tuple(choices)]]  # type: ignore[misc]
    # text, date, unknown types and enums without usable choices
    return Optional[str]


class _RecordBase(BaseModel):
    model_config = ConfigDict(extra="allow")

    client_sentiment: Optional[Literal[SENTIMENT_LABELS]] = None  # type: ignore[valid-type]
    client_intent: Optional[Literal[INTENTS]] = None  # type: ignore[valid-type]
    follow_up_status: Optional[str] = None
    is_new_property_thread: Optional[bool] = None
    is_from_group: Optional[bool] = None


def build_record_model(fields: list[FieldDescriptor]) -> type[BaseModel]:
    """
    Build a pydantic model validating one classifier record.

    Every configured field is optional: absence means "not mentioned in this
    message". Falls back to DEFAULT_FIELDS when no fields are configured.

    Args:
        fields: Field descriptors from the schema provider

    Returns:
        type[BaseModel]: model class with one attribute per field plus the
            conversation signals
    """
    descriptors = sorted(fields or DEFAULT_FIELDS, key=lambda f: f.order)
    definitions: dict[str, Any] = {
        d.field_name: (_python_type(d), None)
        for d in descriptors
        if d.field_name not in _RecordBase.model_fields
    }
    return create_model("ClassifiedRecord", __base__=_RecordBase, **definitions)


def unwrap_record(record: Any) -> Any:
    """
    Flatten a record the model nested under a "raw" key.

    Example:
        >>> unwrap_record({"raw": {"location": "Marina"}})
        {'location': 'Marina'}
    """
    if isinstance(record, dict) and isinstance(record.get("raw"), dict):
        return record["raw"]
    return record


def property_fields(
    record: dict[str, Any], field_names: Optional[Collection[str]] = None
) -> dict[str, Any]:
    """
    Return the non-empty configured fields of a record.

    Conversation signals and keys outside the configured field list (e.g. a "reason"
    the model volunteers) never count, so they cannot open a thread on their own.
    """
    names = DEFAULT_FIELD_NAMES if field_names is None else field_names
    return {
        key: value
        for key, value in record.items()
        if key in names
        and key not in SIGNAL_KEYS
        and value is not None
        and value != ""
        and value != []
    }


@dataclass(frozen=True)
class Classification:
    """A validated classifier answer: one or more property records plus conversation signals."""

    records: list[dict[str, Any]]
    client_sentiment: Optional[str] = None
    client_intent: Optional[str] = None
    follow_up_status: Optional[str] = None
    is_new_property_thread: bool = False
    field_names: frozenset[str] = DEFAULT_FIELD_NAMES

    @property
    def sentiment(self) -> str:
        return self.client_sentiment or NEUTRAL_SENTIMENT

    @property
    def status(self) -> str:
        return self.follow_up_status or self.client_intent or DEFAULT_INTENT

    @property
    def is_new_thread(self) -> bool:
        return self.is_new_property_thread

    @property
    def has_property_fields(self) -> bool:
        return any(property_fields(r, self.field_names) for r in self.records)


@dataclass(frozen=True)
class RawFallback:
    """
    Sentinel for classifier output that could not be parsed or validated.

    Downstream treats it as a record with no extractable fields and neutral sentiment.
    """

    raw: Any
    error: str
    records: list[dict[str, Any]] = field(default_factory=list)
    client_intent: Optional[str] = None

    @property
    def sentiment(self) -> str:
        return NEUTRAL_SENTIMENT

    @property
    def status(self) -> str:
        return DEFAULT_INTENT

    @property
    def is_new_thread(self) -> bool:
        return False

    @property
    def has_property_fields(self) -> bool:
        return False


ClassificationResult = Union[Classification, RawFallback]
