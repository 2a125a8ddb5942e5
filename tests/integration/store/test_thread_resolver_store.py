"""
Integration tests for thread assignment against the message store.
"""

from __future__ import annotations

from typing import Callable

import pytest
from sqlalchemy.engine import Engine

from conftest import fetch_message, utc
from sync_leads.db.writers.messages import mark_processed
from sync_leads.errors import ThreadInvariantError
from sync_leads.models.messages import ROOT_PARENT_ID
from sync_leads.schemas.classification import Classification, RawFallback
from sync_leads.services.thread_resolver import ThreadResolver

PROPERTY = Classification(records=[{"location": "Marina", "bedrooms": 2}])
NEW_PROPERTY = Classification(records=[{"location": "Downtown"}], is_new_property_thread=True)
CONTENT_FREE_BOUNDARY = Classification(
    records=[{"client_sentiment": "Neutral"}], is_new_property_thread=True
)


def ids() -> Callable[[], str]:
    counter = iter(range(1, 100))
    return lambda: f"prop-{next(counter)}"


def seed_thread(engine: Engine, add_message: Callable[..., int], property_id: str) -> int:
    root = add_message("2BR in Marina?", utc(2025, 6, 1, 9))
    with engine.begin() as conn:
        mark_processed(conn, root, [], property_id, ROOT_PARENT_ID, "Interested", None, None)
    return root


def resolve(engine: Engine, resolver: ThreadResolver, pk: int, result):  # type: ignore[no-untyped-def]
    with engine.connect() as conn:
        return resolver.resolve(conn, fetch_message(engine, pk), result)


@pytest.mark.integration
def test_first_message_with_fields_opens_a_thread(
    engine: Engine, add_message: Callable[..., int]
) -> None:
    pk = add_message("Looking for 2BR apartment in Marina", utc(2025, 6, 1))

    assignment = resolve(engine, ThreadResolver(ids()), pk, PROPERTY)

    assert assignment.property_id == "prop-1"
    assert assignment.parent_id == ROOT_PARENT_ID
    assert assignment.is_root is True
    assert assignment.decision == "new"


@pytest.mark.integration
def test_follow_up_attaches_to_active_thread(
    engine: Engine, add_message: Callable[..., int]
) -> None:
    root = seed_thread(engine, add_message, "prop-existing")
    pk = add_message("with 2 parking spots", utc(2025, 6, 1, 10))

    assignment = resolve(engine, ThreadResolver(ids()), pk, PROPERTY)

    assert assignment.property_id == "prop-existing"
    assert assignment.parent_id == fetch_message(engine, root).message_id
    assert assignment.root_pk == root
    assert assignment.decision == "attached"


@pytest.mark.integration
def test_boundary_signal_with_fields_opens_second_thread(
    engine: Engine, add_message: Callable[..., int]
) -> None:
    seed_thread(engine, add_message, "prop-existing")
    pk = add_message("also Downtown 3BR", utc(2025, 6, 3))

    assignment = resolve(engine, ThreadResolver(ids()), pk, NEW_PROPERTY)

    assert assignment.property_id == "prop-1"
    assert assignment.parent_id == ROOT_PARENT_ID


@pytest.mark.integration
def test_content_free_message_never_opens_a_thread(
    engine: Engine, add_message: Callable[..., int]
) -> None:
    seed_thread(engine, add_message, "prop-existing")
    pk = add_message("ok thanks", utc(2025, 6, 1, 10))

    assignment = resolve(engine, ThreadResolver(ids()), pk, CONTENT_FREE_BOUNDARY)

    assert assignment.property_id == "prop-existing"
    assert assignment.decision == "attached"


@pytest.mark.integration
def test_content_free_message_without_thread_stays_threadless(
    engine: Engine, add_message: Callable[..., int]
) -> None:
    pk = add_message("ok thanks", utc(2025, 6, 1))

    for result in (CONTENT_FREE_BOUNDARY, RawFallback(raw="??", error="invalid_json")):
        assignment = resolve(engine, ThreadResolver(ids()), pk, result)
        assert assignment.property_id is None
        assert assignment.parent_id is None
        assert assignment.decision == "threadless"


@pytest.mark.integration
def test_missing_root_is_an_invariant_error(
    engine: Engine, add_message: Callable[..., int]
) -> None:
    orphan = add_message("2BR in Marina?", utc(2025, 6, 1, 9))
    with engine.begin() as conn:
        mark_processed(conn, orphan, [], "prop-orphan", "some-root-id", "Neutral", None, None)
    pk = add_message("more details", utc(2025, 6, 1, 10))

    with pytest.raises(ThreadInvariantError) as exc_info:
        resolve(engine, ThreadResolver(ids()), pk, PROPERTY)
    assert exc_info.value.property_id == "prop-orphan"
