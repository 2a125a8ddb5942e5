"""
Shared fixtures: an in-memory message store and helpers to seed it.
"""

from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from typing import Any, Callable, Generator, Optional

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from sync_leads.db.writers.messages import insert_messages
from sync_leads.models.api_keys import ApiKeys  # noqa: F401
from sync_leads.models.base import Base
from sync_leads.models.messages import DIRECTION_INCOMING, ClientMessage
from sync_leads.models.sheet_fields import SheetField  # noqa: F401

_NEW_MESSAGE = re.compile(r"--- New Message ---\n(.*?)\n\n--- Additional Context", re.DOTALL)


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """Fresh in-memory SQLite store shared across threads."""
    eng = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


def utc(year: int, month: int, day: int, hour: int = 12, minute: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


@pytest.fixture
def add_message(engine: Engine) -> Callable[..., int]:
    """Insert one unprocessed message and return its storage id."""
    counter = {"n": 0}

    def _add(
        text: str,
        timestamp: datetime,
        counterparty: str = "971501234567@c.us",
        direction: str = DIRECTION_INCOMING,
        client_name: Optional[str] = "Ravi Kumar RESL CLT0042",
        message_id: Optional[str] = None,
    ) -> int:
        counter["n"] += 1
        message_id = message_id or f"false_{counterparty}_MSG{counter['n']:04d}"
        insert_messages(
            engine,
            [
                {
                    "message_id": message_id,
                    "counterparty": counterparty,
                    "client_name": client_name,
                    "direction": direction,
                    "message": text,
                    "is_group": False,
                    "timestamp": timestamp,
                }
            ],
        )
        with engine.connect() as conn:
            return int(
                conn.execute(
                    select(ClientMessage.id).where(ClientMessage.message_id == message_id)
                ).scalar_one()
            )

    return _add


def fetch_message(engine: Engine, message_pk: int) -> Any:
    with engine.connect() as conn:
        return conn.execute(select(ClientMessage).where(ClientMessage.id == message_pk)).fetchone()


class ScriptedBackend:
    """
    Completion backend double: answers by the text of the new message in the prompt.

    Unknown messages get a content-free neutral reply.
    """

    def __init__(self, replies: Optional[dict[str, Any]] = None):
        self.replies = replies or {}
        self.prompts: list[str] = []

    def complete(self, messages: list[dict[str, str]]) -> str:
        prompt = messages[-1]["content"]
        self.prompts.append(prompt)
        match = _NEW_MESSAGE.search(prompt)
        text = match.group(1) if match else ""
        reply = self.replies.get(text, {"client_sentiment": "Neutral"})
        return reply if isinstance(reply, str) else json.dumps(reply)


class FakeSink:
    """In-memory stand-in for GoogleSheetsSink."""

    def __init__(self, next_row: int = 2):
        self.rows: dict[int, list[str]] = {}
        self.next_row = next_row
        self.append_calls: list[list[list[str]]] = []
        self.update_calls: list[list[tuple[int, list[str]]]] = []
        self.header_checks = 0
        self.fail_with: Optional[Exception] = None

    def ensure_headers(self, force: bool = False) -> None:
        self.header_checks += 1

    def append_rows(self, rows: list[list[str]]) -> list[int]:
        if self.fail_with is not None:
            raise self.fail_with
        self.append_calls.append(rows)
        indices = list(range(self.next_row, self.next_row + len(rows)))
        for index, values in zip(indices, rows):
            self.rows[index] = values
        self.next_row += len(rows)
        return indices

    def update_rows(self, rows: list[tuple[int, list[str]]]) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.update_calls.append(rows)
        for index, values in rows:
            self.rows[index] = values
