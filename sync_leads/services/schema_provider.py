"""Read-only sources for the extraction field list."""

from __future__ import annotations

from typing import Optional, Protocol

import structlog
from pydantic import ValidationError
from sqlalchemy.engine import Engine

from sync_leads.db.readers.sheet_fields import get_sheet_fields
from sync_leads.schemas.classification import FieldDescriptor

logger = structlog.get_logger(__name__)


class SchemaProvider(Protocol):
    def get_fields(self) -> list[FieldDescriptor]: ...


class StaticSchemaProvider:
    """Fixed field list; an empty list makes the classifier use its defaults."""

    def __init__(self, fields: Optional[list[FieldDescriptor]] = None):
        self._fields = list(fields or [])

    def get_fields(self) -> list[FieldDescriptor]:
        return list(self._fields)


class SqlSchemaProvider:
    """
    Fields configured through the admin dashboard (sheet_fields table).

    Read on every call so edits apply to the next classified message. Any failure
    degrades to an empty list, which selects the default field set.
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    def get_fields(self) -> list[FieldDescriptor]:
        try:
            with self.engine.connect() as conn:
                rows = get_sheet_fields(conn)
        except Exception as e:
            logger.warning("sheet_fields_lookup_failed", error=str(e))
            return []

        fields = []
        for row in rows:
            try:
                fields.append(
                    FieldDescriptor(
                        field_name=row.field_name,
                        field_type=row.field_type,
                        is_required=bool(row.is_required),
                        order=row.order or 0,
                        description=row.description,
                        enum_values=row.enum_values,
                    )
                )
            except ValidationError as e:
                logger.warning("sheet_field_invalid", field_name=row.field_name, error=str(e))
        return fields
