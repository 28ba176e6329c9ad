"""
Persistence helpers for stored processor schema definitions.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.models.processor_schema_config import ProcessorSchemaConfig
from residuals.domain.processor_schema import ProcessorSchema
from residuals.registry.loader import schema_from_mapping, schema_to_mapping


class ProcessorSchemaRepository:
    """
    Repository for processor schema configs keyed by processor name.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def list_active(self) -> list[ProcessorSchema]:
        """
        Return every active stored schema, parsed and validated.
        """

        stmt = (
            select(ProcessorSchemaConfig)
            .where(ProcessorSchemaConfig.is_active.is_(True))
            .order_by(ProcessorSchemaConfig.processor_name.asc())
        )
        return [
            schema_from_mapping(row.definition_json, label=row.processor_name)
            for row in self._session.scalars(stmt).all()
        ]

    def save(
        self,
        schema: ProcessorSchema,
        *,
        notes: str | None = None,
        is_active: bool = True,
    ) -> ProcessorSchemaConfig:
        """
        Insert or update the stored definition for ``schema.processor_name``.
        """

        stmt = select(ProcessorSchemaConfig).where(
            ProcessorSchemaConfig.processor_name == schema.processor_name
        )
        existing = self._session.execute(stmt).scalars().first()
        definition = schema_to_mapping(schema)

        if existing is None:
            existing = ProcessorSchemaConfig(
                processor_name=schema.processor_name,
                definition_json=definition,
                notes=notes,
                is_active=is_active,
            )
            self._session.add(existing)
        else:
            existing.definition_json = definition
            existing.notes = notes
            existing.is_active = is_active

        self._session.flush()
        return existing
