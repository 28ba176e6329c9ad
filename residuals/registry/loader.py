"""
residuals/registry/loader.py

JSON config loader for processor schemas and registry factory.
"""

from __future__ import annotations

import json
import logging
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterable, Mapping

from residuals.config import SchemaRegistrySettings, get_schema_registry_settings, resolve_project_path
from residuals.domain.errors import SchemaConfigurationError
from residuals.domain.processor_schema import (
    DEFAULT_CONFIDENCE_THRESHOLD,
    ProcessorSchema,
    RevenueRange,
    RevenueUnit,
)
from residuals.registry.builtin_schemas import BUILTIN_SCHEMAS
from residuals.registry.schema_registry import SchemaRegistry

logger = logging.getLogger(__name__)

_REQUIRED_KEYS: tuple[str, ...] = (
    "processor_name",
    "revenue_field",
    "volume_field",
    "transaction_count_field",
    "merchant_id_field",
    "merchant_name_field",
    "revenue_range",
)


def load_processor_schemas(*, config_path: str | Path) -> list[ProcessorSchema]:
    """
    Load processor schemas from a JSON file.

    Expected shape::

        {"processors": [{"processor_name": "...", "revenue_field": "...", ...}]}
    """

    path = resolve_project_path(str(config_path))
    if not path.exists():
        raise SchemaConfigurationError(f"Processor schema config file not found: {path}")

    try:
        raw_data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise SchemaConfigurationError(f"Processor schema config is not valid JSON: {exc}") from exc

    if not isinstance(raw_data, dict):
        raise SchemaConfigurationError("Invalid processor schema config: top level must be an object.")
    processors = raw_data.get("processors", [])
    if not isinstance(processors, list):
        raise SchemaConfigurationError("Invalid processor schema config: 'processors' must be a list.")

    parsed: list[ProcessorSchema] = []
    for index, entry in enumerate(processors):
        if not isinstance(entry, dict):
            raise SchemaConfigurationError(
                f"Invalid processor schema config: entry {index} must be an object."
            )
        parsed.append(schema_from_mapping(entry, label=f"entry {index}"))

    logger.info("Loaded processor schemas path=%s count=%s", path, len(parsed))
    return parsed


def schema_from_mapping(entry: Mapping[str, Any], *, label: str = "schema") -> ProcessorSchema:
    """
    Build one ProcessorSchema from a plain mapping (config file entry or stored row).
    """

    missing = [key for key in _REQUIRED_KEYS if entry.get(key) in (None, "")]
    if missing:
        raise SchemaConfigurationError(
            f"Invalid processor schema {label}: missing {', '.join(missing)}."
        )

    name = str(entry["processor_name"]).strip()
    return ProcessorSchema(
        processor_name=name,
        revenue_field=_required_str(entry, "revenue_field", name),
        volume_field=_required_str(entry, "volume_field", name),
        transaction_count_field=_required_str(entry, "transaction_count_field", name),
        merchant_id_field=_required_str(entry, "merchant_id_field", name),
        merchant_name_field=_required_str(entry, "merchant_name_field", name),
        revenue_range=_parse_range(entry["revenue_range"], name),
        confidence_threshold=_parse_threshold(entry.get("confidence_threshold"), name),
        revenue_unit=str(entry.get("revenue_unit") or RevenueUnit.CURRENCY).strip().lower(),
        decimal_separator=str(entry.get("decimal_separator") or "."),
        delimiter=str(entry.get("delimiter") or ","),
        signature=_string_tuple(entry.get("signature")),
        file_hints=_string_tuple(entry.get("file_hints")),
    )


def schema_to_mapping(schema: ProcessorSchema) -> dict[str, Any]:
    """
    Inverse of schema_from_mapping; Decimals are rendered as strings.
    """

    return {
        "processor_name": schema.processor_name,
        "revenue_field": schema.revenue_field,
        "volume_field": schema.volume_field,
        "transaction_count_field": schema.transaction_count_field,
        "merchant_id_field": schema.merchant_id_field,
        "merchant_name_field": schema.merchant_name_field,
        "revenue_range": [str(schema.revenue_range.minimum), str(schema.revenue_range.maximum)],
        "confidence_threshold": schema.confidence_threshold,
        "revenue_unit": schema.revenue_unit,
        "decimal_separator": schema.decimal_separator,
        "delimiter": schema.delimiter,
        "signature": list(schema.signature),
        "file_hints": list(schema.file_hints),
    }


def build_schema_registry(
    settings: SchemaRegistrySettings | None = None,
    *,
    extra_schemas: Iterable[ProcessorSchema] = (),
) -> SchemaRegistry:
    """
    Build a registry from built-ins, the configured JSON file, then ``extra_schemas``.

    Later sources overwrite earlier ones for the same processor name.
    """

    resolved = settings or get_schema_registry_settings()
    registry = SchemaRegistry(detection_threshold=resolved.detection_threshold)
    if resolved.include_builtin_schemas:
        for schema in BUILTIN_SCHEMAS:
            registry.register_schema(schema)
    if resolved.config_path:
        for schema in load_processor_schemas(config_path=resolved.config_path):
            registry.register_schema(schema)
    for schema in extra_schemas:
        registry.register_schema(schema)
    return registry


@lru_cache(maxsize=1)
def get_schema_registry() -> SchemaRegistry:
    """
    Build and cache the process-wide registry from environment settings.
    """

    return build_schema_registry(get_schema_registry_settings())


def _required_str(entry: Mapping[str, Any], key: str, name: str) -> str:
    value = entry.get(key)
    if not isinstance(value, str) or not value.strip():
        raise SchemaConfigurationError(f"{name}: {key} must be a non-empty string.")
    return value.strip()


def _parse_range(value: object, name: str) -> RevenueRange:
    if isinstance(value, Mapping):
        bounds: list[object] = [value.get("min"), value.get("max")]
    elif isinstance(value, (list, tuple)) and len(value) == 2:
        bounds = list(value)
    else:
        raise SchemaConfigurationError(
            f"{name}: revenue_range must be [min, max] or {{\"min\": ..., \"max\": ...}}."
        )

    parsed: list[Decimal] = []
    for bound in bounds:
        if bound is None or isinstance(bound, bool):
            raise SchemaConfigurationError(f"{name}: revenue_range bounds must be numbers.")
        try:
            decimal_bound = Decimal(str(bound).strip())
        except InvalidOperation as exc:
            raise SchemaConfigurationError(
                f"{name}: revenue_range bound {bound!r} is not a number."
            ) from exc
        if not decimal_bound.is_finite():
            raise SchemaConfigurationError(f"{name}: revenue_range bounds must be finite.")
        parsed.append(decimal_bound)
    return RevenueRange(parsed[0], parsed[1])


def _parse_threshold(value: object, name: str) -> int:
    if value is None:
        return DEFAULT_CONFIDENCE_THRESHOLD
    if isinstance(value, bool):
        raise SchemaConfigurationError(f"{name}: confidence_threshold must be an integer.")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise SchemaConfigurationError(
            f"{name}: confidence_threshold must be an integer."
        ) from exc


def _string_tuple(value: object) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value.strip(),) if value.strip() else ()
    if isinstance(value, (list, tuple)):
        return tuple(item.strip() for item in value if isinstance(item, str) and item.strip())
    return ()
