"""
residuals/services package marker.
"""

from residuals.services.ingestion_orchestrator import IngestionOrchestrator, build_ingestion_orchestrator

__all__ = ["IngestionOrchestrator", "build_ingestion_orchestrator"]
