"""
Model package exports.

Import all SQLAlchemy models here so metadata registration works without
extra imports.
"""

from db.models.audit_entry import AuditEntryRecord
from db.models.merchant_revenue import MerchantRevenueRecord
from db.models.processor_schema_config import ProcessorSchemaConfig

__all__ = [
    "AuditEntryRecord",
    "MerchantRevenueRecord",
    "ProcessorSchemaConfig",
]
