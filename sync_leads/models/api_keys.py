from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from sync_leads.config import SCHEMA
from sync_leads.models.base import Base


class ApiKeys(Base):
    """
    ORM model for admin-managed service credentials.

    The most recently updated row wins. Any column left empty falls back to the
    matching environment variable.
    """

    __tablename__ = "api_keys"
    __table_args__ = {"schema": SCHEMA}

    id = Column(Integer, primary_key=True, autoincrement=True)
    openai_key = Column(String, nullable=True)
    google_client_email = Column(String, nullable=True)
    google_private_key = Column(Text, nullable=True)
    google_sheet_id = Column(String, nullable=True)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
