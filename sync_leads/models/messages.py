from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, Text, text
from sqlalchemy.sql import func

from sync_leads.config import SCHEMA
from sync_leads.models.base import Base, JSONType

DIRECTION_INCOMING = "incoming"
DIRECTION_OUTGOING = "outgoing"
ROOT_PARENT_ID = "0"


class ClientMessage(Base):
    """
    ORM model for one inbound or outbound WhatsApp chat message.

    Rows are appended by the transport layer and mutated exactly once by the master
    loop when processed. A thread is the set of messages sharing a property_id; its
    root (parent_id = "0") carries the thread-level aggregate state: daily sentiment,
    latest status and the sheet sync bookkeeping.

    extraction holds this message's own classifier records; property holds the
    thread's merged record array as of this message.
    """

    __tablename__ = "client_messages"
    __table_args__ = (
        Index("ix_client_messages_counterparty_timestamp", "counterparty", "timestamp"),
        Index("ix_client_messages_property_parent", "property_id", "parent_id"),
        {"schema": SCHEMA},
    )

    id = Column(Integer, primary_key=True, autoincrement=True)  # storage order
    message_id = Column(String, nullable=False, unique=True)  # transport id
    counterparty = Column(String, nullable=False, index=True)
    client_name = Column(String, nullable=True)
    direction = Column(String, nullable=False)
    message = Column(Text, nullable=False, server_default="")
    is_group = Column(Boolean, nullable=False, server_default=text("false"))
    timestamp = Column(DateTime(timezone=True), nullable=False)

    processed = Column(Boolean, nullable=False, server_default=text("false"), index=True)
    extraction = Column(JSONType, nullable=True)
    property = Column(JSONType, nullable=True)
    property_id = Column(String, nullable=True)
    parent_id = Column(String, nullable=True)
    sentiment = Column(String, nullable=True)
    intent = Column(String, nullable=True)
    status = Column(String, nullable=True)

    # Root-only aggregate state
    daily_sentiment = Column(JSONType, nullable=True)
    latest_sentiment = Column(String, nullable=True)
    latest_status = Column(String, nullable=True)
    sheet_synced = Column(Boolean, nullable=False, server_default=text("false"))
    needs_sheet_sync = Column(Boolean, nullable=False, server_default=text("false"))
    last_sheet_synced_at = Column(DateTime(timezone=True), nullable=True)
    sheet_row_index = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
