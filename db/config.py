"""
Shared environment-driven configuration helpers for the residual ingestion store.
"""

from __future__ import annotations

import os
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]


def load_env_files(project_root: Path | None = None) -> None:
    """
    Load simple KEY=VALUE pairs from `.env` and `.env.local` (if present).
    Existing process environment variables are not overwritten.
    """

    root = project_root or PROJECT_ROOT
    for filename in (".env", ".env.local"):
        env_path = root / filename
        if not env_path.exists():
            continue

        for raw_line in env_path.read_text(encoding="utf-8").splitlines():
            line = raw_line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue

            key, value = line.split("=", 1)
            key = key.strip()
            value = value.strip().strip('"').strip("'")
            if key and key not in os.environ:
                os.environ[key] = value


def normalize_postgres_url(url: str) -> str:
    """
    Normalize postgres URLs to SQLAlchemy's psycopg driver form.
    """

    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg://", 1)
    return url


def resolve_database_url() -> str:
    """
    Resolve the residuals store URL from the environment.

    Priority:
    1) RESIDUALS_DATABASE_URL
    2) DATABASE_URL
    3) LOCAL_DATABASE_URL
    """

    load_env_files()

    for name in ("RESIDUALS_DATABASE_URL", "DATABASE_URL", "LOCAL_DATABASE_URL"):
        value = os.getenv(name)
        if value and value.strip():
            return normalize_postgres_url(value.strip())

    raise RuntimeError(
        "No database URL configured. Set RESIDUALS_DATABASE_URL, DATABASE_URL, "
        "or LOCAL_DATABASE_URL."
    )
