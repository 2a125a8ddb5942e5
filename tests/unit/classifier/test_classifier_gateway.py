"""
Unit tests for the classifier gateway: prompt assembly, reply parsing and fallbacks.
"""

from __future__ import annotations

import json
from unittest.mock import Mock

import pytest
import requests

from sync_leads.errors import ConfigurationError
from sync_leads.schemas.classification import Classification, FieldDescriptor, RawFallback
from sync_leads.services.classifier import ClassifierGateway, build_prompt
from sync_leads.services.schema_provider import StaticSchemaProvider


def make_gateway(reply: str | Exception, fields: list[FieldDescriptor] | None = None):
    backend = Mock()
    if isinstance(reply, Exception):
        backend.complete.side_effect = reply
    else:
        backend.complete.return_value = reply
    return ClassifierGateway(backend, StaticSchemaProvider(fields)), backend


@pytest.mark.unit
def test_classify_single_object() -> None:
    reply = json.dumps(
        {
            "property_type": "apartment",
            "location": "Marina",
            "price": 1500000,
            "bedrooms": 2,
            "client_sentiment": "Interested",
            "client_intent": "high_interest",
            "is_new_property_thread": False,
        }
    )
    gateway, _ = make_gateway(reply)

    result = gateway.classify("Looking for 2BR apartment in Marina around 1.5M")

    assert isinstance(result, Classification)
    assert len(result.records) == 1
    assert result.records[0]["location"] == "Marina"
    assert result.records[0]["price"] == 1500000.0
    assert result.sentiment == "Interested"
    assert result.status == "high_interest"
    assert result.has_property_fields is True


@pytest.mark.unit
def test_classify_array_reply_yields_one_record_per_property() -> None:
    reply = json.dumps(
        [
            {"location": "Downtown", "bedrooms": 3, "client_sentiment": "Exploring Options"},
            {"location": "Business Bay", "bedrooms": 1},
        ]
    )
    gateway, _ = make_gateway(reply)

    result = gateway.classify("Downtown 3BR or Business Bay 1BR?")

    assert isinstance(result, Classification)
    assert [r["location"] for r in result.records] == ["Downtown", "Business Bay"]
    assert result.sentiment == "Exploring Options"


@pytest.mark.unit
def test_classify_extracts_json_from_fenced_reply() -> None:
    reply = 'Sure!\n```json\n{"location": "JLT", "client_sentiment": "Neutral"}\n```'
    gateway, _ = make_gateway(reply)

    result = gateway.classify("JLT?")

    assert isinstance(result, Classification)
    assert result.records[0]["location"] == "JLT"


@pytest.mark.unit
def test_classify_unwraps_raw_records() -> None:
    gateway, _ = make_gateway(json.dumps({"raw": {"location": "Arjan"}}))

    result = gateway.classify("Arjan")

    assert isinstance(result, Classification)
    assert result.records == [{"location": "Arjan"}]


@pytest.mark.unit
@pytest.mark.parametrize("reply", ["I cannot help with that", "{not valid json}", ""])
def test_unparseable_reply_becomes_raw_fallback(reply: str) -> None:
    gateway, _ = make_gateway(reply)

    result = gateway.classify("ok")

    assert isinstance(result, RawFallback)
    assert result.error == "invalid_json"
    assert result.sentiment == "Neutral"
    assert result.records == []


@pytest.mark.unit
def test_schema_mismatch_becomes_raw_fallback() -> None:
    gateway, _ = make_gateway(json.dumps({"price": "a lot", "client_sentiment": "Neutral"}))

    result = gateway.classify("cheap please")

    assert isinstance(result, RawFallback)
    assert result.error == "schema_mismatch"


@pytest.mark.unit
def test_non_object_items_become_raw_fallback() -> None:
    gateway, _ = make_gateway("[1, 2, 3]")

    result = gateway.classify("1 2 3")

    assert isinstance(result, RawFallback)
    assert result.error == "schema_mismatch"


@pytest.mark.unit
def test_request_failure_becomes_raw_fallback() -> None:
    gateway, _ = make_gateway(requests.ConnectionError("boom"))

    result = gateway.classify("hello")

    assert isinstance(result, RawFallback)
    assert result.error == "llm_request_failed"


@pytest.mark.unit
def test_extra_reply_keys_do_not_make_a_record_substantive() -> None:
    gateway, _ = make_gateway(
        json.dumps(
            {
                "client_sentiment": "Neutral",
                "is_new_property_thread": True,
                "reason": "client acknowledged",
            }
        )
    )

    result = gateway.classify("ok thanks")

    assert isinstance(result, Classification)
    assert result.records[0]["reason"] == "client acknowledged"
    assert result.is_new_thread is True
    assert result.has_property_fields is False


@pytest.mark.unit
def test_configuration_error_propagates() -> None:
    gateway, _ = make_gateway(ConfigurationError("OpenAI API key is not configured"))

    with pytest.raises(ConfigurationError):
        gateway.classify("hello")


@pytest.mark.unit
def test_configured_fields_drive_validation() -> None:
    fields = [
        FieldDescriptor(field_name="community", field_type="text"),
        FieldDescriptor(field_name="parking", field_type="boolean"),
    ]
    gateway, backend = make_gateway(json.dumps({"community": "Meadows", "parking": True}), fields)

    result = gateway.classify("Meadows villa with parking")

    assert isinstance(result, Classification)
    assert result.records == [{"community": "Meadows", "parking": True}]
    prompt = backend.complete.call_args[0][0][-1]["content"]
    assert "- community (text)" in prompt
    assert "- parking (boolean)" in prompt


@pytest.mark.unit
def test_prompt_lists_history_oldest_first_and_group_flag() -> None:
    prompt = build_prompt(
        "what about parking?",
        True,
        ["Client: 2BR in Marina?", "Agent: We have one at 1.5M"],
        [FieldDescriptor(field_name="location", is_required=True, description="Area")],
    )

    assert prompt.index("Client: 2BR in Marina?") < prompt.index("Agent: We have one at 1.5M")
    assert "is_from_group = true" in prompt
    assert "- location (text, required): Area" in prompt
    assert "what about parking?" in prompt


@pytest.mark.unit
def test_prompt_without_history() -> None:
    prompt = build_prompt("hi", False, [], [FieldDescriptor(field_name="location")])
    assert "(No conversation history available)" in prompt
