"""
Core data models for the bioprocess data ledger.

All models use Pydantic for runtime validation and type safety.
"""

from .alert import SEVERITY_ORDER, Alert, AlertSeverity, AlertType, CompanionAlert
from .catalog import InstrumentInterface, ParameterDef, ProcessEvent, RunDefinition
from .data_record import DataRecord, DataType, EntryMode, QualityFlag
from .insight import INSIGHT_SEVERITY_ORDER, AiInsight, AiRecipe, InsightSeverity
from .label_template import CompletenessResult, LabelTemplate, TemplateScope

__all__ = [
    "DataRecord",
    "DataType",
    "EntryMode",
    "QualityFlag",
    "ParameterDef",
    "RunDefinition",
    "InstrumentInterface",
    "ProcessEvent",
    "LabelTemplate",
    "TemplateScope",
    "CompletenessResult",
    "Alert",
    "AlertSeverity",
    "AlertType",
    "CompanionAlert",
    "SEVERITY_ORDER",
    "AiRecipe",
    "AiInsight",
    "InsightSeverity",
    "INSIGHT_SEVERITY_ORDER",
]
