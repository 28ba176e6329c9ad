"""
residuals/registry package marker.
"""

from residuals.registry.builtin_schemas import BUILTIN_SCHEMAS
from residuals.registry.loader import (
    build_schema_registry,
    get_schema_registry,
    load_processor_schemas,
    schema_from_mapping,
    schema_to_mapping,
)
from residuals.registry.schema_registry import ProcessorDetection, SchemaRegistry

__all__ = [
    "BUILTIN_SCHEMAS",
    "ProcessorDetection",
    "SchemaRegistry",
    "build_schema_registry",
    "get_schema_registry",
    "load_processor_schemas",
    "schema_from_mapping",
    "schema_to_mapping",
]
