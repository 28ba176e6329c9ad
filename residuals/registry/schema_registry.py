"""
residuals/registry/schema_registry.py

In-memory registry of processor schemas, keyed by processor name.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Sequence

from residuals.domain.errors import UnknownProcessorError
from residuals.domain.processor_schema import ProcessorSchema
from residuals.domain.records import normalize_column_name

logger = logging.getLogger(__name__)

DEFAULT_DETECTION_THRESHOLD = 0.6


def _registry_key(processor_name: str) -> str:
    return " ".join(processor_name.strip().lower().split())


@dataclass(frozen=True)
class ProcessorDetection:
    """
    Result of fingerprinting a statement header row against registered schemas.
    """

    processor_name: str | None
    match_ratio: float
    matched_by: str | None = None


class SchemaRegistry:
    """
    Holds one ProcessorSchema per processor.

    Schemas are registered at startup; lookups are read-only afterwards.
    Processor names are matched case- and whitespace-insensitively.
    """

    def __init__(
        self,
        schemas: Iterable[ProcessorSchema] | None = None,
        *,
        detection_threshold: float = DEFAULT_DETECTION_THRESHOLD,
    ) -> None:
        self._schemas: dict[str, ProcessorSchema] = {}
        self._detection_threshold = max(0.0, min(1.0, detection_threshold))
        for schema in schemas or ():
            self.register_schema(schema)

    def register_schema(self, schema: ProcessorSchema) -> None:
        """
        Register a schema; an existing schema with the same name is replaced.
        """

        key = _registry_key(schema.processor_name)
        if key in self._schemas:
            logger.info("Replacing processor schema processor=%r", schema.processor_name)
            # Re-registration counts as the newest entry for file-hint precedence.
            del self._schemas[key]
        self._schemas[key] = schema

    def lookup(self, processor_name: str) -> ProcessorSchema:
        """
        Return the schema for ``processor_name`` or raise UnknownProcessorError.
        """

        schema = self._schemas.get(_registry_key(processor_name or ""))
        if schema is None:
            raise UnknownProcessorError(processor_name, self.processor_names())
        return schema

    def processor_names(self) -> list[str]:
        return sorted(schema.processor_name for schema in self._schemas.values())

    def __contains__(self, processor_name: object) -> bool:
        if not isinstance(processor_name, str):
            return False
        return _registry_key(processor_name) in self._schemas

    def __len__(self) -> int:
        return len(self._schemas)

    def detect_processor(
        self,
        headers: Sequence[str],
        *,
        file_name: str | None = None,
    ) -> ProcessorDetection:
        """
        Guess the processor from a header row, with file-name hints taking precedence.

        When several schemas' hints appear in the file name, the most recently
        registered schema wins, so configured schemas override built-ins.
        """

        normalized_headers = [normalize_column_name(header) for header in headers if header]
        normalized_headers = [header for header in normalized_headers if header]

        best_name: str | None = None
        best_ratio = 0.0
        for schema in self._schemas.values():
            ratio = self._signature_ratio(schema, normalized_headers)
            if ratio > best_ratio and ratio > self._detection_threshold:
                best_ratio = ratio
                best_name = schema.processor_name

        if file_name:
            lowered = file_name.lower()
            for schema in reversed(self._schemas.values()):
                if any(hint in lowered for hint in schema.file_hints):
                    ratio = self._signature_ratio(schema, normalized_headers)
                    return ProcessorDetection(
                        processor_name=schema.processor_name,
                        match_ratio=ratio,
                        matched_by="file_name",
                    )

        if best_name is None:
            return ProcessorDetection(processor_name=None, match_ratio=best_ratio)
        return ProcessorDetection(
            processor_name=best_name,
            match_ratio=best_ratio,
            matched_by="headers",
        )

    @staticmethod
    def _signature_ratio(schema: ProcessorSchema, normalized_headers: Sequence[str]) -> float:
        signature = [normalize_column_name(item) for item in schema.signature]
        signature = [item for item in signature if item]
        if not signature:
            return 0.0
        hits = sum(
            1
            for item in signature
            if any(item in header for header in normalized_headers)
        )
        return hits / len(signature)
