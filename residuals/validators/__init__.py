"""
residuals/validators package marker.
"""

from residuals.validators.revenue_validator import OUT_OF_RANGE_ACTION, RevenueValidator

__all__ = ["OUT_OF_RANGE_ACTION", "RevenueValidator"]
