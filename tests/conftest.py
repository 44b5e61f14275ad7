"""
Pytest configuration and fixtures for bioledger tests

This module provides shared fixtures for unit and integration tests.
"""
import os

os.environ.setdefault("BIOLEDGER_LOG_LEVEL", "WARNING")

from datetime import datetime, timedelta  # noqa: E402

import pytest  # noqa: E402

from bioledger.catalog import get_default_catalog  # noqa: E402
from bioledger.config import Settings  # noqa: E402
from bioledger.core.labels import LabelEngine  # noqa: E402
from bioledger.core.models import DataRecord  # noqa: E402
from bioledger.ledger import Ledger, fingerprint  # noqa: E402


# =======================
# PYTEST CONFIGURATION
# =======================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests with no external collaborators"
    )
    config.addinivalue_line(
        "markers", "integration: Tests that run the full ingestion, alert and insight stack"
    )


# =======================
# CLOCK & REFERENCE DATA
# =======================

BASE_TIME = datetime(2026, 2, 14, 8, 0, 0)
RUN_456 = "CHO-r-hFSG-456-250308-2"
RUN_457 = "CHO-r-hFSG-457-250308-2"


class FixedClock:
    """Callable clock that only moves when told to"""

    def __init__(self, start: datetime = BASE_TIME + timedelta(days=20)):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture(scope="session")
def catalog():
    """The packaged parameter/run/interface catalog"""
    return get_default_catalog()


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def ledger(clock) -> Ledger:
    return Ledger(name="test", clock=clock)


@pytest.fixture
def label_engine() -> LabelEngine:
    return LabelEngine()


# =======================
# RECORD FACTORY
# =======================

def build_record(
    record_id: str,
    *,
    interface_id: str = "BR-003-p",
    data_type: str = "timeseries",
    measured_at: datetime = BASE_TIME,
    lag_seconds: float = 2,
    raw_ref: str | None = None,
    labels: dict | None = None,
    flags: list | None = None,
    run_id: str | None = RUN_456,
    summary: str = "test record",
) -> DataRecord:
    """Build a DataRecord with sensible defaults for tests"""
    raw_ref = raw_ref or f"raw://test/{record_id}"
    return DataRecord(
        record_id=record_id,
        measured_at=measured_at,
        ingested_at=measured_at + timedelta(seconds=lag_seconds),
        interface_id=interface_id,
        data_type=data_type,
        summary=summary,
        raw_ref=raw_ref,
        hash=fingerprint(raw_ref),
        attributable_to=interface_id,
        labels=dict(labels) if labels is not None else {},
        quality_flags=list(flags) if flags is not None else ["in_spec"],
        linked_run_id=run_id,
    )


def build_ts_record(
    parameter: str,
    hour: int,
    *,
    interface_id: str = "BR-003-p",
    run_id: str = RUN_456,
    out_of_range: bool = False,
) -> DataRecord:
    """Bioreactor timeseries record with complete labels"""
    return build_record(
        f"DR-TS-{interface_id}-{run_id}-{parameter}-h{hour}",
        interface_id=interface_id,
        measured_at=BASE_TIME + timedelta(hours=hour),
        raw_ref=f"raw://{interface_id}/{run_id}/{parameter}/h{hour}",
        labels={"run": "R-456", "parameter": parameter, "reactor": "003-p", "priority": "Critical"},
        flags=["out_of_range"] if out_of_range else ["in_spec"],
        run_id=run_id,
    )


@pytest.fixture
def make_record():
    """Factory fixture for ad-hoc records"""
    return build_record


@pytest.fixture
def make_ts_record():
    """Factory fixture for bioreactor timeseries records"""
    return build_ts_record
