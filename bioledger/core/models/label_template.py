"""
LabelTemplate model describing required and optional metadata per
(interface pattern, data type) combination.
"""

from pydantic import BaseModel, Field


class TemplateScope(BaseModel):
    """
    Match rule for a template.

    interface_id supports an exact id, "*" for everything, or a
    prefix wildcard such as "BR-*". data_type is exact or "*".
    """

    interface_id: str = Field(..., min_length=1)
    data_type: str = Field(..., min_length=1)

    class Config:
        frozen = True


class LabelTemplate(BaseModel):
    """Declarative metadata schema applied to matching ledger records."""

    template_id: str = Field(..., min_length=1)
    name: str
    applies_to: TemplateScope
    required_fields: list[str] = Field(default_factory=list)
    optional_fields: list[str] = Field(default_factory=list)

    class Config:
        json_schema_extra = {
            "example": {
                "template_id": "TPL-BR-TS",
                "name": "Bioreactor Timeseries",
                "applies_to": {"interface_id": "BR-*", "data_type": "timeseries"},
                "required_fields": ["run", "parameter", "reactor", "priority"],
                "optional_fields": ["batch", "phase", "operator"],
            }
        }


class CompletenessResult(BaseModel):
    """Outcome of scoring a record's labels against its template (ephemeral)."""

    score: int = Field(..., ge=0, le=100)
    present: list[str] = Field(default_factory=list)
    missing: list[str] = Field(default_factory=list)
    optional_present: list[str] = Field(default_factory=list)
    optional_missing: list[str] = Field(default_factory=list)
    template: LabelTemplate | None = None

    @property
    def has_required_fields(self) -> bool:
        return self.template is not None and len(self.template.required_fields) > 0
