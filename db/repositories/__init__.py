"""
Repository layer exports.
"""

from db.repositories.audit_entry_repository import AuditEntryRepository
from db.repositories.errors import (
    InvalidReportingMonthError,
    RepositoryError,
    RevenuePersistenceError,
)
from db.repositories.merchant_revenue_repository import MerchantRevenueRepository
from db.repositories.processor_schema_repository import ProcessorSchemaRepository

__all__ = [
    "AuditEntryRepository",
    "MerchantRevenueRepository",
    "ProcessorSchemaRepository",
    "RepositoryError",
    "RevenuePersistenceError",
    "InvalidReportingMonthError",
]
