"""
Unit tests for the append-only ledger: dedup, ordering, corrections.
"""

from datetime import datetime, timedelta

import pytest
from hypothesis import given, settings as hypothesis_settings
from hypothesis import strategies as st

from bioledger.core.models import DataRecord
from bioledger.ledger import Ledger, fingerprint

T0 = datetime(2026, 2, 14, 8, 0, 0)


def _rec(record_id: str, raw_ref: str, hour: int = 0, interface_id: str = "BR-003-p") -> DataRecord:
    measured = T0 + timedelta(hours=hour)
    return DataRecord(
        record_id=record_id,
        measured_at=measured,
        ingested_at=measured + timedelta(seconds=2),
        interface_id=interface_id,
        data_type="timeseries",
        summary=f"sample {record_id}",
        raw_ref=raw_ref,
        hash=fingerprint(raw_ref),
        attributable_to=interface_id,
        labels={"run": "R-456"},
        quality_flags=["in_spec"],
        linked_run_id="CHO-r-hFSG-456-250308-2",
    )


class TestFingerprint:
    """Tests for display fingerprints"""

    def test_deterministic(self):
        """Test same raw_ref gives the same fingerprint"""
        assert fingerprint("raw://a") == fingerprint("raw://a")
        assert fingerprint("raw://a") != fingerprint("raw://b")

    def test_length(self):
        """Test fingerprints are 16 hex digits"""
        value = fingerprint("raw://BR-003-p/RUN/PH/h0")
        assert len(value) == 16
        int(value, 16)


class TestIngest:
    """Tests for Ledger.ingest"""

    def test_ingest_new_records(self, ledger):
        """Test new records are appended and counted"""
        result = ledger.ingest([_rec("A", "raw://a"), _rec("B", "raw://b")])

        assert result.total == 2
        assert result.newly_added == 2
        assert result.duplicates == 0
        assert len(ledger) == 2

    def test_reingest_is_noop(self, ledger):
        """Test re-offering the same raw_ref adds nothing"""
        ledger.ingest([_rec("A", "raw://a")])
        result = ledger.ingest([_rec("A", "raw://a")])

        assert result.total == 1
        assert result.newly_added == 0
        assert result.duplicates == 1

    def test_duplicates_within_batch(self, ledger):
        """Test a raw_ref repeated inside one batch is kept once"""
        result = ledger.ingest([_rec("A", "raw://a"), _rec("A2", "raw://a")])

        assert result.newly_added == 1
        assert [r.record_id for r in ledger.get_all()] == ["A"]

    def test_sorted_by_measured_at(self, ledger):
        """Test records are kept in measurement order regardless of arrival"""
        ledger.ingest([_rec("late", "raw://late", hour=5)])
        ledger.ingest([_rec("early", "raw://early", hour=1), _rec("mid", "raw://mid", hour=3)])

        assert [r.record_id for r in ledger.get_all()] == ["early", "mid", "late"]

    def test_get_all_is_snapshot(self, ledger):
        """Test callers cannot change ledger membership through get_all"""
        ledger.ingest([_rec("A", "raw://a")])
        snapshot = ledger.get_all()
        snapshot.clear()

        assert len(ledger) == 1

    def test_version_moves_on_mutation_only(self, ledger):
        """Test version increases on new data and not on no-op merges"""
        assert ledger.version == 0
        ledger.ingest([_rec("A", "raw://a")])
        after_first = ledger.version
        ledger.ingest([_rec("A", "raw://a")])

        assert after_first > 0
        assert ledger.version == after_first

        ledger.mark_changed()
        assert ledger.version == after_first + 1

    def test_queries(self, ledger):
        """Test read projections"""
        oor = _rec("C", "raw://c", interface_id="BR-004-p")
        oor.quality_flags = ["out_of_range"]
        ledger.ingest([_rec("A", "raw://a"), _rec("B", "raw://b"), oor])

        assert ledger.get_record("A").raw_ref == "raw://a"
        assert ledger.get_record("missing") is None
        assert [r.record_id for r in ledger.filter_by_interface("BR-004-p")] == ["C"]
        assert len(ledger.filter_by_run("CHO-r-hFSG-456-250308-2")) == 3
        assert [r.record_id for r in ledger.filter_out_of_range()] == ["C"]
        assert ledger.counts_by_interface() == {"BR-003-p": 2, "BR-004-p": 1}
        assert ledger.counts_by_type() == {"timeseries": 3}


class TestCorrections:
    """Tests for Ledger.create_correction"""

    def test_unknown_original_returns_none(self, ledger):
        """Test correcting an unknown record is not an error"""
        assert ledger.create_correction("nope", "text", "operator") is None
        assert len(ledger) == 0

    def test_correction_record(self, ledger, clock):
        """Test the correction carries the original's identity context"""
        original = _rec("A", "raw://a")
        ledger.ingest([original])

        correction = ledger.create_correction("A", "pH re-read: 7.01", "operator_20-456")

        assert correction.record_id == "DR-COR-A-1"
        assert correction.raw_ref == "correction://A/1"
        assert correction.data_type == "correction"
        assert correction.corrects_record_id == "A"
        assert correction.interface_id == original.interface_id
        assert correction.measured_at == original.measured_at
        assert correction.linked_run_id == original.linked_run_id
        assert correction.completeness_score == original.completeness_score
        assert correction.entry_mode == "manual"
        assert correction.attributable_to == "operator_20-456"
        assert correction.quality_flags == ["corrected"]
        assert correction.labels == {"run": "R-456", "correction_of": "A"}
        assert correction.ingested_at == clock()
        assert ledger.get_record(correction.record_id) is correction

    def test_original_only_gains_flag(self, ledger):
        """Test the original's identity is untouched by a correction"""
        original = _rec("A", "raw://a")
        ledger.ingest([original])
        before = original.model_dump()

        ledger.create_correction("A", "corrected", "operator")

        after = original.model_dump()
        assert after["quality_flags"] == ["in_spec", "corrected"]
        for field in ("record_id", "measured_at", "ingested_at", "interface_id", "raw_ref",
                      "hash", "attributable_to", "summary", "labels", "linked_run_id"):
            assert after[field] == before[field]

    def test_multiple_corrections_linked(self, ledger):
        """Test every correction is returned for its original"""
        ledger.ingest([_rec("A", "raw://a"), _rec("B", "raw://b")])

        first = ledger.create_correction("A", "one", "op")
        second = ledger.create_correction("A", "two", "op")
        ledger.create_correction("B", "other", "op")

        corrections = ledger.get_corrections_for("A")
        assert [c.record_id for c in corrections] == [first.record_id, second.record_id]
        assert all(c.corrects_record_id == "A" for c in corrections)
        assert second.record_id == "DR-COR-A-2"

    def test_correction_never_precedes_original_ingestion(self):
        """Test a clock behind the original still yields a valid correction"""
        ledger = Ledger(clock=lambda: T0 - timedelta(days=1))
        original = _rec("A", "raw://a")
        ledger.ingest([original])

        correction = ledger.create_correction("A", "text", "op")

        assert correction.ingested_at == original.ingested_at

    def test_correction_bumps_version(self, ledger):
        """Test corrections invalidate downstream caches"""
        ledger.ingest([_rec("A", "raw://a")])
        version = ledger.version

        ledger.create_correction("A", "text", "op")

        assert ledger.version > version


class TestLedgerProperties:
    """Property-based tests for ledger invariants"""

    @given(st.lists(st.sampled_from([f"raw://{c}" for c in "abcdefgh"]), max_size=30))
    @hypothesis_settings(max_examples=50, deadline=None)
    def test_property_raw_ref_unique(self, raw_refs):
        """Property test: no two held records share a raw_ref"""
        ledger = Ledger()
        for i, ref in enumerate(raw_refs):
            ledger.ingest([_rec(f"R{i}", ref, hour=i % 7)])

        held = [r.raw_ref for r in ledger.get_all()]
        assert len(held) == len(set(held))
        assert set(held) == set(raw_refs)

    @given(st.lists(st.integers(min_value=0, max_value=20), max_size=25))
    @hypothesis_settings(max_examples=50, deadline=None)
    def test_property_ingest_idempotent(self, hours):
        """Property test: ingesting a batch twice equals ingesting it once"""
        batch = [_rec(f"R{i}", f"raw://{i}", hour=h) for i, h in enumerate(hours)]
        ledger = Ledger()

        first = ledger.ingest(batch)
        refs = {r.raw_ref for r in ledger.get_all()}
        second = ledger.ingest(batch)

        assert second.total == first.total
        assert second.newly_added == 0
        assert {r.raw_ref for r in ledger.get_all()} == refs

        measured = [r.measured_at for r in ledger.get_all()]
        assert measured == sorted(measured)


@pytest.mark.parametrize("count", [1, 3])
def test_corrections_for_uncorrected_record_empty(ledger, count):
    """Test lookups for ids without corrections return an empty list"""
    ledger.ingest([_rec(f"R{i}", f"raw://{i}") for i in range(count)])
    assert ledger.get_corrections_for("R0") == []
