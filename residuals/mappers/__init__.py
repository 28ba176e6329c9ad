"""
residuals/mappers package marker.
"""

from residuals.mappers.field_mapper import CONFIDENCE_PENALTY, FieldMapper, MappingResult

__all__ = ["CONFIDENCE_PENALTY", "FieldMapper", "MappingResult"]
