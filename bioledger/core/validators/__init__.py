"""
Field validators used at ingestion time and by completeness scoring.
"""

from .base_validator import BaseValidator, ValidationError
from .range_validator import RangeValidator
from .required_field_validator import RequiredFieldValidator, is_present

__all__ = [
    "BaseValidator",
    "ValidationError",
    "RangeValidator",
    "RequiredFieldValidator",
    "is_present",
]
