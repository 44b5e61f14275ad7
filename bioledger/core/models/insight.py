"""
Recipe and insight models for the insight engine.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

InsightSeverity = Literal["critical", "warning", "info", "success"]
RecipeCategory = Literal["quality", "completeness", "trend", "anomaly"]

INSIGHT_SEVERITY_ORDER: dict[str, int] = {"critical": 0, "warning": 1, "info": 2, "success": 3}


class AiRecipe(BaseModel):
    """
    A named, toggleable insight rule.

    Attributes:
        id: Recipe identifier ("RCP-OOR-TREND")
        name: Display name
        description: What the recipe looks for
        category: "quality", "completeness", "trend" or "anomaly"
        applies_to: Interface id patterns ("*", "BR-*", exact ids)
        enabled: Whether the recipe runs during generation
    """

    id: str = Field(..., min_length=1)
    name: str
    description: str = ""
    category: RecipeCategory
    applies_to: list[str] = Field(default_factory=lambda: ["*"])
    enabled: bool = True


class AiInsight(BaseModel):
    """A human readable finding produced by a recipe."""

    id: str
    recipe_id: str | None = None
    title: str
    explanation: str
    severity: InsightSeverity
    evidence_record_ids: list[str] = Field(default_factory=list)
    interface_id: str | None = None
    linked_run_id: str | None = None
    created_at: datetime

    class Config:
        frozen = True
