"""
Integration tests for the BioLedger facade over the packaged resources.
"""

from datetime import datetime, timedelta

import pytest

from bioledger import BioLedger
from bioledger.config import Settings
from bioledger.connectors import SimulatedScheduler
from bioledger.core.models import SEVERITY_ORDER
from bioledger.ledger import fingerprint
from bioledger.observability.metrics import generate_metrics

NOW = datetime(2026, 3, 6, 8, 0, 0)


@pytest.fixture
def bioledger():
    instance = BioLedger(settings=Settings(), clock=lambda: NOW)
    instance.refresh()
    return instance


@pytest.mark.integration
def test_alerts_sorted_by_severity_then_recency(bioledger):
    alerts = bioledger.get_alerts()

    assert alerts
    keys = [(SEVERITY_ORDER[a.severity], -a.created_at.timestamp()) for a in alerts]
    assert keys == sorted(keys)


@pytest.mark.integration
def test_packaged_data_alerts(bioledger):
    alerts = bioledger.get_alerts()
    by_type = {a.type for a in alerts}

    assert "out_of_range" in by_type
    assert "duplicate_record" not in by_type
    assert "missing_companion" not in by_type
    for interface_id in ("BR-003-p", "BR-004-p", "BR-005-p"):
        assert any(a.type == "out_of_range" for a in bioledger.alerts.get_alerts_for_interface(interface_id))


@pytest.mark.integration
def test_insights_follow_alerts(bioledger):
    insights = bioledger.get_insights()
    ids = [i.id for i in insights]

    assert "INS-CLEAR" not in ids
    assert any(i.startswith("INS-OOR-BR-") for i in ids)
    assert not any(i.startswith("INS-SKEW-") for i in ids)


@pytest.mark.integration
def test_correction_regenerates_derived_views(bioledger):
    original = bioledger.ledger.filter_out_of_range()[0]
    version = bioledger.ledger.version
    before = bioledger.get_alerts()

    correction = bioledger.create_correction(original.record_id, "VCD re-read after dilution", "operator_20-456")

    assert correction.ingested_at == NOW
    assert bioledger.ledger.version > version
    assert original.has_flag("corrected")
    assert bioledger.ledger.get_corrections_for(original.record_id) == [correction]
    assert [a.alert_id for a in bioledger.get_alerts()] == [a.alert_id for a in before]


@pytest.mark.integration
def test_new_incomplete_record_raises_metadata_alert(bioledger):
    template = bioledger.ledger.filter_by_interface("CELL-COUNTER")[0]
    assert not any(a.type == "missing_metadata" for a in bioledger.get_alerts())

    incomplete = template.model_copy(
        update={
            "record_id": "DR-TS-CELL-manual-1",
            "raw_ref": "raw://CELL-COUNTER/manual/1",
            "hash": fingerprint("raw://CELL-COUNTER/manual/1"),
            "labels": {"run": "R-456"},
            "quality_flags": ["in_spec"],
        },
        deep=True,
    )
    bioledger.ledger.ingest([incomplete])

    metadata = [a for a in bioledger.get_alerts() if a.type == "missing_metadata"]
    assert [a.alert_id for a in metadata] == ["ALR-META-CELL-COUNTER"]


@pytest.mark.integration
def test_labeling_by_id(bioledger):
    record_id = bioledger.ledger.filter_by_interface("HPLC-01")[0].record_id

    result = bioledger.apply_labels(record_id, {"assay_id": "  TITER-01 "})

    assert result.score == 100
    assert "assay_id" in result.optional_present
    assert bioledger.ledger.get_record(record_id).labels["assay_id"] == "TITER-01"
    assert bioledger.apply_labels("DR-NOPE", {"assay_id": "x"}) is None
    assert bioledger.compute_completeness("DR-NOPE") is None


@pytest.mark.integration
def test_bulk_labeling_skips_unknown_ids(bioledger):
    ids = [r.record_id for r in bioledger.ledger.filter_by_interface("METAB-ANALYZER")[:3]]

    count = bioledger.bulk_apply_labels(ids + ["DR-NOPE"], {"panel_version": "v2"})

    assert count == 3
    assert all(bioledger.ledger.get_record(i).labels["panel_version"] == "v2" for i in ids)


@pytest.mark.integration
def test_toggle_recipe_through_facade(bioledger):
    assert bioledger.toggle_recipe("RCP-OOR-TREND") is False
    assert not any(i.id.startswith("INS-OOR-") for i in bioledger.get_insights())
    assert bioledger.toggle_recipe("RCP-UNKNOWN") is False


@pytest.mark.integration
def test_summary(bioledger):
    summary = bioledger.summary()

    assert summary["records"] == len(bioledger.ledger)
    assert summary["records_by_type"]["event"] == 123
    assert summary["records_by_interface"]["HPLC-01"] == 12
    assert set(summary["alerts_by_severity"]) == {"critical", "warning", "info"}


@pytest.mark.integration
def test_metrics_exposed(bioledger):
    bioledger.get_insights()
    output = generate_metrics().decode("utf-8")

    for name in (
        "ledger_records_ingested_total",
        "ingestion_quality_flags_total",
        "quality_alerts_active",
        "quality_insights_active",
        "ingestion_duration_seconds",
    ):
        assert name in output


@pytest.mark.integration
def test_hplc_poller_shares_catalog(bioledger):
    scheduler = SimulatedScheduler(start=NOW)
    poller = bioledger.create_hplc_poller(scheduler)
    poller.start()

    scheduler.advance(600)
    poller.stop()

    assert poller.catalog is bioledger.catalog
    records = poller.get_records()
    assert records
    assert all(r.linked_run_id == "CHO-r-hFSG-456-250308-2" for r in records)
    assert all(r.ingested_at <= NOW + timedelta(seconds=600) for r in records)
    assert len(bioledger.ledger.filter_by_interface("HPLC-01")) == 12
