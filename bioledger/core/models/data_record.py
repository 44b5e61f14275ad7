"""
DataRecord model, the atomic unit of the ALCOA data ledger.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

DataType = Literal["timeseries", "event", "file", "correction"]
EntryMode = Literal["auto", "manual", "derived"]
QualityFlag = Literal[
    "in_spec",
    "out_of_range",
    "missing_field",
    "late_ingestion",
    "manually_entered",
    "corrected",
    "flagged_for_review",
]


class DataRecord(BaseModel):
    """
    A single attributed observation, event or file held by the ledger.

    Identity fields are frozen: assigning to them raises a pydantic
    ValidationError. Only labels, completeness_score and quality_flags
    may change after creation.

    Attributes:
        record_id: Deterministic identifier derived from source + key
        measured_at: When the observation was made
        ingested_at: When the ledger received it (never before measured_at)
        interface_id: Source interface (bioreactor feed, analyzer, pump...)
        data_type: "timeseries", "event", "file" or "correction"
        summary: One-line human readable description
        raw_ref: Opaque reference to the original payload; the dedup key
        hash: Display-only fingerprint of raw_ref
        attributable_to: Device or actor that produced the record
        entry_mode: "auto", "manual" or "derived"
        labels: Open metadata key/values
        completeness_score: 0-100, recomputed whenever labels change
        quality_flags: Ordered, duplicate-free set of quality flags
        linked_run_id: Optional back-reference to a run
        corrects_record_id: Original record id, only on corrections
    """

    record_id: str = Field(..., min_length=1, frozen=True)
    measured_at: datetime = Field(..., frozen=True)
    ingested_at: datetime = Field(..., frozen=True)
    interface_id: str = Field(..., min_length=1, frozen=True)
    data_type: DataType = Field(..., frozen=True)
    summary: str = Field(..., frozen=True)
    raw_ref: str = Field(..., min_length=1, frozen=True)
    hash: str = Field(..., frozen=True)
    attributable_to: str = Field(..., frozen=True)
    entry_mode: EntryMode = Field("auto", frozen=True)
    labels: dict[str, str] = Field(default_factory=dict)
    completeness_score: int = Field(100, ge=0, le=100)
    quality_flags: list[QualityFlag] = Field(default_factory=list)
    linked_run_id: str | None = Field(None, frozen=True)
    corrects_record_id: str | None = Field(None, frozen=True)

    @field_validator("quality_flags")
    @classmethod
    def dedupe_flags(cls, v):
        """Flags form a set; keep first occurrence order."""
        return list(dict.fromkeys(v))

    @model_validator(mode="after")
    def check_record_consistency(self):
        """Validate ingestion lag and correction linkage."""
        if self.ingested_at < self.measured_at:
            raise ValueError("ingested_at must not precede measured_at")
        if self.data_type == "correction" and not self.corrects_record_id:
            raise ValueError("correction records must set corrects_record_id")
        if self.data_type != "correction" and self.corrects_record_id:
            raise ValueError("corrects_record_id is only allowed on correction records")
        return self

    def has_flag(self, flag: QualityFlag) -> bool:
        return flag in self.quality_flags

    def add_flag(self, flag: QualityFlag) -> bool:
        """
        Add a quality flag in place.

        Returns:
            True if the flag was newly added
        """
        if flag in self.quality_flags:
            return False
        self.quality_flags.append(flag)
        return True

    @property
    def ingestion_lag_seconds(self) -> float:
        return (self.ingested_at - self.measured_at).total_seconds()

    class Config:
        validate_assignment = True
        json_schema_extra = {
            "example": {
                "record_id": "DR-TS-BR-003-p-CHO-r-hFSG-456-250308-2-PH-h12",
                "measured_at": "2026-02-14T20:00:00",
                "ingested_at": "2026-02-14T20:00:02",
                "interface_id": "BR-003-p",
                "data_type": "timeseries",
                "summary": "pH = 7.03 pH @ h12",
                "raw_ref": "raw://BR-003-p/CHO-r-hFSG-456-250308-2/PH/h12",
                "hash": "5f0c6a1d9e2b7c44",
                "attributable_to": "BR-003-p",
                "entry_mode": "auto",
                "labels": {"run": "R-456", "parameter": "PH", "reactor": "003-p", "priority": "Critical"},
                "completeness_score": 100,
                "quality_flags": ["in_spec"],
                "linked_run_id": "CHO-r-hFSG-456-250308-2",
            }
        }
