"""
residuals/domain/errors.py

Exception taxonomy for the residual ingestion pipeline.

Per-row failures (``RowParseError``, ``MappingError``) are caught by the
orchestrator and recorded on the batch. ``UnknownProcessorError`` and
``AuditWriteError`` abort the whole batch.
"""

from __future__ import annotations

from typing import Any, Sequence


class IngestionError(RuntimeError):
    """
    Base exception for all residual ingestion failures.
    """

    def to_dict(self) -> dict[str, Any]:
        return {"error": type(self).__name__, "message": str(self)}


class SchemaConfigurationError(IngestionError, ValueError):
    """
    Raised when a processor schema definition or schema config file is invalid.
    """


class UnknownProcessorError(IngestionError, LookupError):
    """
    Raised when no schema is registered for the requested processor.
    """

    def __init__(self, processor_name: str, registered: Sequence[str] = ()) -> None:
        self.processor_name = processor_name
        self.registered = tuple(sorted(registered))
        allowed = ", ".join(self.registered) or "none"
        super().__init__(
            f"No schema registered for processor '{processor_name}'. Registered: {allowed}."
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": type(self).__name__,
            "message": str(self),
            "processor_name": self.processor_name,
            "registered": list(self.registered),
        }


class RowParseError(IngestionError, ValueError):
    """
    Raised when one raw line cannot be split into the expected columns.
    """

    def __init__(self, *, line_number: int, reason: str) -> None:
        super().__init__(f"Line {line_number}: {reason}")
        self.line_number = line_number
        self.reason = reason

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": type(self).__name__,
            "line_number": self.line_number,
            "reason": self.reason,
        }


class MappingErrorKind:
    MISSING_IDENTIFIER = "missing_identifier"


class MappingError(IngestionError, ValueError):
    """
    Raised when a parsed row cannot become a candidate record.
    """

    def __init__(
        self,
        *,
        kind: str,
        line_number: int,
        message: str,
        field_name: str | None = None,
    ) -> None:
        super().__init__(f"Line {line_number}: {message}")
        self.kind = kind
        self.line_number = line_number
        self.message = message
        self.field_name = field_name

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": type(self).__name__,
            "kind": self.kind,
            "line_number": self.line_number,
            "field_name": self.field_name,
            "message": self.message,
        }


class AuditWriteError(IngestionError):
    """
    Raised when an audit entry cannot be written to the audit sink.
    """

    def __init__(self, message: str, *, action: str | None = None, source_line: int | None = None) -> None:
        super().__init__(message)
        self.action = action
        self.source_line = source_line

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": type(self).__name__,
            "message": str(self),
            "action": self.action,
            "source_line": self.source_line,
        }
