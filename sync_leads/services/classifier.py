"""
Classifier gateway: turns one chat message plus its recent history into structured
real-estate records and conversation signals.

The extraction contract is rebuilt from the schema provider on every call. Model
output that is not JSON, or does not validate, becomes a RawFallback instead of an
exception. Only ConfigurationError (no API key) escapes.
"""

from __future__ import annotations

import json
import re
from typing import Any, Optional, Protocol

import requests
import structlog
from pydantic import ValidationError

from sync_leads.metrics import classifier_fallbacks
from sync_leads.schemas.classification import (
    DEFAULT_FIELDS,
    INTENTS,
    SENTIMENT_LABELS,
    Classification,
    ClassificationResult,
    FieldDescriptor,
    RawFallback,
    build_record_model,
    unwrap_record,
)
from sync_leads.services.schema_provider import SchemaProvider

logger = structlog.get_logger(__name__)

SYSTEM_PROMPT = "You analyze real estate WhatsApp messages. Return structured JSON only."

_JSON_SPAN = re.compile(r"(\{.*\}|\[.*\])", re.DOTALL)


class CompletionBackend(Protocol):
    def complete(self, messages: list[dict[str, str]]) -> str: ...


def _describe_field(descriptor: FieldDescriptor) -> str:
    line = f"- {descriptor.field_name} ({descriptor.field_type}"
    choices = descriptor.parsed_enum_values()
    if descriptor.field_type == "enum" and choices:
        line += ": one of " + ", ".join(choices)
    line += ", required)" if descriptor.is_required else ")"
    if descriptor.description:
        line += f": {descriptor.description}"
    return line


def build_prompt(
    message: str, is_group: bool, history: list[str], fields: list[FieldDescriptor]
) -> str:
    """
    Build the user prompt.

    Args:
        message: The new message text
        is_group: Whether the message came from a group chat
        history: Prior messages, oldest first, each prefixed "Client:" or "Agent:"
        fields: Extraction fields (already defaulted when none are configured)

    Returns:
        str: prompt text
    """
    history_block = "\n".join(history) if history else "(No conversation history available)"
    field_block = "\n".join(_describe_field(f) for f in sorted(fields, key=lambda f: f.order))

    return f"""Analyze the client's latest message and conversation context.

--- Conversation History (oldest first) ---
{history_block}

--- New Message ---
{message}

--- Additional Context ---
is_from_group = {str(is_group).lower()}

--- Property Fields ---
{field_block}

If the message mentions several properties, return a JSON array with one object per
property. Otherwise return a single JSON object. Use null for anything not mentioned.

--- Thread Rules ---
Determine if this message introduces a NEW PROPERTY THREAD.

CRITICAL RULE:
If the new message contains ZERO property-related fields:
-> is_new_property_thread = false

A message IS a new property thread ONLY IF:
1. The message contains at least one property-related field
AND
2. Those fields describe a *different* property than the one in conversation history.

--- Sentiment Rules ---
Classify client_sentiment strictly using these rules:

"Not Interested": rejection or no further interest.
"Highly Interested": strong buying signals.
"Interested": positive tone, wants details.
"Neutral": generic replies ("ok", "tell me", etc).
"Confused": doesn't understand.
"Frustrated": annoyance visible.
"Exploring Options": comparing or undecided.
"Price Sensitive": comments about high price / discount request.
"Urgent Request": urgent need / immediate action.

client_intent must be one of: {", ".join(INTENTS)}.
client_sentiment must be one of: {", ".join(SENTIMENT_LABELS)}.
Optionally include follow_up_status: a short next-step note for the agent.

Return ONLY valid JSON with the property fields above plus
client_sentiment, client_intent, follow_up_status, is_from_group, is_new_property_thread.
"""


def _first_signal(records: list[dict[str, Any]], key: str) -> Any:
    for record in records:
        if record.get(key) is not None:
            return record[key]
    return None


class ClassifierGateway:
    """Wraps the completion backend behind `classify(text, is_group, history)`."""

    def __init__(self, backend: CompletionBackend, schema_provider: SchemaProvider):
        self.backend = backend
        self.schema_provider = schema_provider

    def _fields(self) -> list[FieldDescriptor]:
        fields = self.schema_provider.get_fields()
        if not fields:
            logger.debug("no_sheet_fields_configured_using_defaults")
            return list(DEFAULT_FIELDS)
        return fields

    def classify(
        self, message: str, is_group: bool = False, history: Optional[list[str]] = None
    ) -> ClassificationResult:
        """
        Classify a message.

        Args:
            message: Raw message text
            is_group: Whether the message came from a group chat
            history: Up to N prior messages, oldest first, prefixed "Client:"/"Agent:"

        Returns:
            Classification on success, RawFallback when the reply is unusable
        """
        fields = self._fields()
        prompt = build_prompt(message, is_group, history or [], fields)

        try:
            reply = self.backend.complete(
                [
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ]
            )
        except requests.RequestException as e:
            logger.error("classifier_request_failed", error=str(e))
            classifier_fallbacks.labels(reason="llm_request_failed").inc()
            return RawFallback(raw=None, error="llm_request_failed")

        return self.parse_reply(reply, fields)

    def parse_reply(self, reply: str, fields: list[FieldDescriptor]) -> ClassificationResult:
        """Parse and validate a raw model reply against the field list."""
        match = _JSON_SPAN.search(reply or "")
        if not match:
            return self._fallback(reply, "invalid_json")

        try:
            parsed = json.loads(match.group(1))
        except ValueError:
            return self._fallback(reply, "invalid_json")

        items = parsed if isinstance(parsed, list) else [parsed]
        items = [unwrap_record(item) for item in items]
        if not all(isinstance(item, dict) for item in items):
            return self._fallback(parsed, "schema_mismatch")

        model = build_record_model(fields)
        records: list[dict[str, Any]] = []
        for item in items:
            try:
                records.append(model.model_validate(item).model_dump(exclude_none=True))
            except ValidationError as e:
                logger.warning("classifier_record_invalid", errors=e.error_count())
                return self._fallback(parsed, "schema_mismatch")

        return Classification(
            records=records,
            client_sentiment=_first_signal(records, "client_sentiment"),
            client_intent=_first_signal(records, "client_intent"),
            follow_up_status=_first_signal(records, "follow_up_status"),
            is_new_property_thread=bool(_first_signal(records, "is_new_property_thread")),
            field_names=frozenset(f.field_name for f in fields),
        )

    @staticmethod
    def _fallback(raw: Any, reason: str) -> RawFallback:
        logger.warning("classifier_fallback", reason=reason, raw=str(raw)[:500])
        classifier_fallbacks.labels(reason=reason).inc()
        return RawFallback(raw=raw, error=reason)
