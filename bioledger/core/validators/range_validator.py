"""
RangeValidator - checks a sampled value against parameter spec limits.
"""

from typing import Any

from bioledger.core.models import ParameterDef

from .base_validator import BaseValidator, ValidationError


class RangeValidator(BaseValidator):
    """
    Validates that a numeric field lies within [min, max] (both inclusive).

    Parameters:
    - min: Lower limit
    - max: Upper limit
    """

    def __init__(self, field_name: str, parameters: dict[str, Any] | None = None):
        super().__init__(field_name, parameters)

        self.min_value = self.parameters.get("min")
        self.max_value = self.parameters.get("max")

        if self.min_value is None and self.max_value is None:
            raise ValueError("RangeValidator requires at least one of: min, max")

    @classmethod
    def for_parameter(cls, parameter: ParameterDef) -> "RangeValidator":
        """Build a validator from a catalog parameter's spec limits."""
        return cls(
            parameter.parameter_code,
            {"min": parameter.min_value, "max": parameter.max_value},
        )

    def validate(self, value: Any, record: dict[str, Any]) -> None:
        """
        Validate that the value is within the specified range.

        Raises:
            ValidationError: If value is outside the range or not numeric
        """
        # Missing values are the required_field validator's concern
        if value is None:
            return

        if isinstance(value, bool) or not isinstance(value, int | float):
            raise ValidationError(
                rule_name="range",
                field_name=self.field_name,
                message=f"Value must be numeric, got {type(value).__name__}"
            )

        if self.min_value is not None and value < self.min_value:
            raise ValidationError(
                rule_name="range",
                field_name=self.field_name,
                message=f"Value {value} is less than minimum {self.min_value}"
            )

        if self.max_value is not None and value > self.max_value:
            raise ValidationError(
                rule_name="range",
                field_name=self.field_name,
                message=f"Value {value} exceeds maximum {self.max_value}"
            )

    @property
    def rule_type(self) -> str:
        return "range"
