"""
Repository-layer exceptions for the residual store.
"""

from __future__ import annotations


class RepositoryError(Exception):
    """Base exception for residual store repository failures."""


class RevenuePersistenceError(RepositoryError):
    """Raised when validated merchant revenue cannot be written."""


class InvalidReportingMonthError(RepositoryError, ValueError):
    """Raised when a reporting month is not formatted as YYYY-MM."""
