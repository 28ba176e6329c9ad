"""
residuals/domain package marker.
"""

from residuals.domain.audit import AuditAction, AuditEntry
from residuals.domain.errors import (
    AuditWriteError,
    IngestionError,
    MappingError,
    MappingErrorKind,
    RowParseError,
    SchemaConfigurationError,
    UnknownProcessorError,
)
from residuals.domain.issues import (
    BatchResult,
    IssueKind,
    IssueSeverity,
    RejectedRecord,
    RowError,
    ValidationIssue,
)
from residuals.domain.processor_schema import ProcessorSchema, RevenueRange, RevenueUnit
from residuals.domain.records import CandidateRecord, RawRow, ValidatedRecord, normalize_column_name

__all__ = [
    "AuditAction",
    "AuditEntry",
    "AuditWriteError",
    "BatchResult",
    "CandidateRecord",
    "IngestionError",
    "IssueKind",
    "IssueSeverity",
    "MappingError",
    "MappingErrorKind",
    "ProcessorSchema",
    "RawRow",
    "RejectedRecord",
    "RevenueRange",
    "RevenueUnit",
    "RowError",
    "RowParseError",
    "SchemaConfigurationError",
    "UnknownProcessorError",
    "ValidatedRecord",
    "ValidationIssue",
    "normalize_column_name",
]
