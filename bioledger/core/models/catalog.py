"""
Static reference data models: process parameters, runs, instrument
interfaces and parsed process events.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, model_validator


class ParameterDef(BaseModel):
    """
    A monitored process parameter with its acceptable range.

    Attributes:
        parameter_code: Short code used in timeseries rows ("PH", "TEMP")
        display_name: Human readable name
        unit: Engineering unit
        min_value: Lower spec limit (inclusive)
        max_value: Upper spec limit (inclusive)
        type_priority: "Critical", "Important" or "Monitored"
        is_critical: Whether the parameter is subject to gap detection
    """

    parameter_code: str = Field(..., min_length=1)
    display_name: str
    unit: str
    min_value: float
    max_value: float
    type_priority: Literal["Critical", "Important", "Monitored"]
    is_critical: bool = False

    @model_validator(mode="after")
    def check_range(self):
        if self.min_value > self.max_value:
            raise ValueError(
                f"min_value ({self.min_value}) exceeds max_value ({self.max_value}) "
                f"for parameter {self.parameter_code}"
            )
        return self

    class Config:
        frozen = True


class RunDefinition(BaseModel):
    """A cultivation run on one bioreactor."""

    run_id: str = Field(..., min_length=1)
    batch_id: str
    reactor_id: str
    bioreactor_run: str
    operator_id: str
    cell_line: str = ""
    target_protein: str = ""
    process_strategy: str = ""
    basal_medium: str = ""
    feed_medium: str = ""
    start_time: datetime
    end_time: datetime
    sampling_interval_sec: int = 60
    timeline_version: str = ""
    timezone: str = "UTC"
    seed: int

    @model_validator(mode="after")
    def check_window(self):
        if self.end_time <= self.start_time:
            raise ValueError(f"Run {self.run_id} ends before it starts")
        return self

    @property
    def duration_hours(self) -> int:
        return int((self.end_time - self.start_time).total_seconds() // 3600)

    class Config:
        frozen = True


class InstrumentInterface(BaseModel):
    """A data source the ledger can attribute records to."""

    id: str = Field(..., min_length=1)
    display_name: str
    category: Literal["Production", "Analytical", "System"]
    poll_frequency_sec: int = 60
    data_types: list[Literal["timeseries", "events", "files"]] = Field(default_factory=list)
    description: str = ""
    linked_reactor_id: str | None = None

    class Config:
        frozen = True


class ProcessEvent(BaseModel):
    """
    A discrete process event parsed from the event log.

    Attributes:
        id: Sequential id in file order ("EVT-0001")
        run_id: Run the event belongs to
        timestamp: When the event happened
        event_type: FEED, BASE_ADDITION, ANTIFOAM, INDUCER, ADDITIVE, HARVEST...
        subtype: Material or sub-category
        amount: Dosed amount, None when the field was blank
        amount_unit: Unit of amount
        actor: Who performed the event
        entry_mode: How the event was captured ("manual", "system", ...)
        notes: Free text
    """

    id: str
    run_id: str
    timestamp: datetime
    event_type: str
    subtype: str = ""
    amount: float | None = None
    amount_unit: str = ""
    actor: str = ""
    entry_mode: str = ""
    notes: str = ""

    class Config:
        frozen = True
