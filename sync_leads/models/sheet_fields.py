from sqlalchemy import Boolean, Column, Integer, String, Text, text

from sync_leads.config import SCHEMA
from sync_leads.models.base import Base


class SheetField(Base):
    """
    ORM model for admin-configured extraction fields.

    Managed by the admin dashboard; this service only reads it to build the
    classifier's extraction contract. enum_values is a JSON array string.
    """

    __tablename__ = "sheet_fields"
    __table_args__ = {"schema": SCHEMA}

    id = Column(Integer, primary_key=True, autoincrement=True)
    field_name = Column(String, nullable=False, unique=True)
    field_type = Column(String, nullable=False)
    is_required = Column(Boolean, nullable=False, server_default=text("false"))
    order = Column(Integer, nullable=False, server_default=text("0"))
    description = Column(Text, nullable=True)
    enum_values = Column(Text, nullable=True)
