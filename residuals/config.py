"""
residuals/config.py

Runtime settings for the residual ingestion pipeline.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from pathlib import Path

from db.config import PROJECT_ROOT, load_env_files


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_decimal_env(name: str, default: str) -> Decimal:
    """
    Read a Decimal threshold from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return Decimal(default)
    try:
        parsed = Decimal(raw_value.strip())
    except InvalidOperation:
        return Decimal(default)
    if not parsed.is_finite():
        return Decimal(default)
    return parsed


def _get_optional_str_env(name: str) -> str | None:
    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None


def resolve_project_path(raw_path: str) -> Path:
    """
    Resolve a configured path; relative paths are taken from the project root.
    """

    candidate = Path(raw_path).expanduser()
    if candidate.is_absolute():
        return candidate
    return (PROJECT_ROOT / candidate).resolve()


@dataclass(frozen=True)
class IngestionSettings:
    """
    Runtime settings for the ingestion orchestrator.
    """

    max_workers: int = 1
    header_search_limit: int = 25
    log_validation_issues: bool = True


@dataclass(frozen=True)
class ValidationSettings:
    """
    Thresholds for the validator's warning rules.
    """

    max_revenue_per_transaction: Decimal = Decimal("100")
    outlier_multiplier: Decimal = Decimal("10")
    max_month_over_month_change: Decimal = Decimal("5.0")
    min_merchant_id_length: int = 5


@dataclass(frozen=True)
class SchemaRegistrySettings:
    """
    Where processor schemas come from at startup.
    """

    config_path: str | None = None
    include_builtin_schemas: bool = True
    detection_threshold: float = 0.6


@lru_cache(maxsize=1)
def get_ingestion_settings() -> IngestionSettings:
    """
    Return cached ingestion settings from environment variables.
    """

    return IngestionSettings(
        max_workers=max(1, _get_int_env("RESIDUALS_INGEST_MAX_WORKERS", 1)),
        header_search_limit=max(1, _get_int_env("RESIDUALS_HEADER_SEARCH_LIMIT", 25)),
        log_validation_issues=_get_bool_env("RESIDUALS_LOG_VALIDATION_ISSUES", True),
    )


@lru_cache(maxsize=1)
def get_validation_settings() -> ValidationSettings:
    """
    Return cached validation thresholds from environment variables.
    """

    return ValidationSettings(
        max_revenue_per_transaction=max(
            Decimal("0"),
            _get_decimal_env("RESIDUALS_MAX_REVENUE_PER_TRANSACTION", "100"),
        ),
        outlier_multiplier=max(
            Decimal("1"),
            _get_decimal_env("RESIDUALS_OUTLIER_MULTIPLIER", "10"),
        ),
        max_month_over_month_change=max(
            Decimal("0"),
            _get_decimal_env("RESIDUALS_MAX_MONTH_OVER_MONTH_CHANGE", "5.0"),
        ),
        min_merchant_id_length=max(0, _get_int_env("RESIDUALS_MIN_MERCHANT_ID_LENGTH", 5)),
    )


@lru_cache(maxsize=1)
def get_schema_registry_settings() -> SchemaRegistrySettings:
    """
    Return cached schema registry settings from environment variables.
    """

    config_path = _get_optional_str_env("RESIDUALS_PROCESSOR_SCHEMA_PATH")
    return SchemaRegistrySettings(
        config_path=str(resolve_project_path(config_path)) if config_path else None,
        include_builtin_schemas=_get_bool_env("RESIDUALS_INCLUDE_BUILTIN_SCHEMAS", True),
        detection_threshold=min(
            1.0,
            max(0.0, _get_float_env("RESIDUALS_DETECTION_THRESHOLD", 0.6)),
        ),
    )
