"""
Unit tests for the daily sentiment map and its Day N rendering.
"""

from __future__ import annotations

import pytest

from sync_leads.services.sentiment import day_responses, merge_daily_sentiment, parse_daily_sentiment


@pytest.mark.unit
def test_day_merge_is_non_destructive() -> None:
    existing = {"2025.05.30": "Interested", "2025.05.31": "Confused"}

    merged = merge_daily_sentiment(existing, "2025.06.01", "Neutral")

    assert merged == {
        "2025.05.30": "Interested",
        "2025.05.31": "Confused",
        "2025.06.01": "Neutral",
    }
    assert existing == {"2025.05.30": "Interested", "2025.05.31": "Confused"}


@pytest.mark.unit
def test_same_day_last_write_wins() -> None:
    merged = merge_daily_sentiment({"2025.06.01": "Interested"}, "2025.06.01", "Not Interested")
    assert merged == {"2025.06.01": "Not Interested"}


@pytest.mark.unit
def test_day_columns_are_chronological() -> None:
    daily: dict[str, str] = {}
    daily = merge_daily_sentiment(daily, "2025.06.03", "Urgent Request")
    daily = merge_daily_sentiment(daily, "2025.06.01", "Interested")
    daily = merge_daily_sentiment(daily, "2025.06.02", "Price Sensitive")

    cells = day_responses(daily)

    assert cells[:3] == [
        "2025.06.01:Interested",
        "2025.06.02:Price Sensitive",
        "2025.06.03:Urgent Request",
    ]
    assert cells[3:] == [""] * 7


@pytest.mark.unit
def test_day_columns_are_capped_at_ten() -> None:
    daily = {f"2025.06.{day:02d}": "Neutral" for day in range(1, 13)}

    cells = day_responses(daily)

    assert len(cells) == 10
    assert cells[0] == "2025.06.01:Neutral"
    assert cells[-1] == "2025.06.10:Neutral"


@pytest.mark.unit
@pytest.mark.parametrize("stored", [None, "", "{broken", "[1, 2]", 42])
def test_malformed_stored_map_reads_as_empty(stored: object) -> None:
    assert parse_daily_sentiment(stored) == {}
    assert day_responses(stored) == [""] * 10


@pytest.mark.unit
def test_stored_json_string_is_parsed() -> None:
    assert parse_daily_sentiment('{"2025.06.01": "Interested"}') == {"2025.06.01": "Interested"}
