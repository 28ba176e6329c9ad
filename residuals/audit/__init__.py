"""
residuals/audit package marker.
"""

from residuals.audit.recorder import AuditRecorder, AuditSink, InMemoryAuditSink

__all__ = ["AuditRecorder", "AuditSink", "InMemoryAuditSink"]
