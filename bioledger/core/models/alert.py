"""
Alert models: derived data-quality findings over a ledger snapshot, and
companion-timeout alerts raised by instrument connectors.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

AlertSeverity = Literal["critical", "warning", "info"]
AlertType = Literal[
    "out_of_range",
    "missing_metadata",
    "timestamp_gap",
    "duplicate_record",
    "missing_companion",
]

SEVERITY_ORDER: dict[str, int] = {"critical": 0, "warning": 1, "info": 2}


class Alert(BaseModel):
    """
    A data-quality alert (derived, regenerable, never persisted).

    Attributes:
        alert_id: Deterministic identifier for the finding
        severity: "critical", "warning" or "info"
        type: Which rule produced the alert
        message: Human readable description
        interface_id: Source interface the finding is about
        linked_run_id: Run the finding is about, if any
        created_at: Timestamp derived from the affected records
        affected_record_ids: Bounded evidence sample
        record_count: Full number of records behind the finding
    """

    alert_id: str
    severity: AlertSeverity
    type: AlertType
    message: str
    interface_id: str
    linked_run_id: str | None = None
    created_at: datetime
    affected_record_ids: list[str] = Field(default_factory=list)
    record_count: int = Field(0, ge=0)

    class Config:
        frozen = True


class CompanionAlert(BaseModel):
    """
    Raised by a connector when a report artifact outlives the companion
    timeout without its summary. Resolution is one-way.
    """

    id: str
    timestamp: datetime
    message: str
    report_record_id: str
    sequence: str
    resolved: bool = False
    resolved_at: datetime | None = None

    def resolve(self, at: datetime) -> bool:
        """Mark resolved. Returns False if it already was."""
        if self.resolved:
            return False
        self.resolved = True
        self.resolved_at = at
        return True
