from typing import Any

from pydantic import BaseModel, Field


class MessagesPayload(BaseModel):
    """
    Batch of raw WhatsApp messages forwarded by the transport.

    Each item keeps the transport's own shape (id, chatId, fromMe, body, timestamp...);
    normalization happens server side.
    """

    messages: list[dict[str, Any]] = Field(..., description="Raw transport messages")


class MessagesAccepted(BaseModel):
    received: int = Field(..., description="Messages in the request")
    valid: int = Field(..., description="Messages that normalized into rows")
    inserted: int = Field(..., description="New rows stored (duplicates are ignored)")
