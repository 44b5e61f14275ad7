"""
Unit tests for the simulated scheduler and the HPLC polling connector.
"""

from datetime import datetime, timedelta

import pytest

from bioledger.connectors import HplcPoller, SimulatedScheduler
from bioledger.core.rules import AlertEngine, RuleConfigBuilder

START = datetime(2026, 2, 28, 8, 0, 0)


class ScriptedRandom:
    """Returns scripted values, then 0.0 forever"""

    def __init__(self, values):
        self.values = list(values)

    def random(self) -> float:
        return self.values.pop(0) if self.values else 0.0


@pytest.fixture
def scheduler():
    return SimulatedScheduler(start=START)


class TestSimulatedScheduler:
    """Tests for SimulatedScheduler"""

    def test_fires_in_due_order(self, scheduler):
        """Test callbacks fire by due time, ties in scheduling order"""
        fired = []
        scheduler.call_later(20, fired.append, "b")
        scheduler.call_later(10, fired.append, "a")
        scheduler.call_later(20, fired.append, "c")

        assert scheduler.advance(30) == 3
        assert fired == ["a", "b", "c"]
        assert scheduler.now() == START + timedelta(seconds=30)

    def test_clock_set_to_due_time(self, scheduler):
        """Test callbacks observe their own due time"""
        seen = []
        scheduler.call_later(7, lambda: seen.append(scheduler.now()))

        scheduler.advance(60)

        assert seen == [START + timedelta(seconds=7)]

    def test_nested_calls_fire_in_same_window(self, scheduler):
        """Test a callback's follow-up inside the window fires in the same advance"""
        fired = []

        def first():
            fired.append("first")
            scheduler.call_later(5, fired.append, "second")

        scheduler.call_later(5, first)

        assert scheduler.advance(10) == 2
        assert fired == ["first", "second"]

    def test_not_yet_due(self, scheduler):
        """Test calls past the window stay pending"""
        scheduler.call_later(60, lambda: None)

        assert scheduler.advance(59) == 0
        assert scheduler.pending() == 1
        assert scheduler.advance(1) == 1
        assert scheduler.pending() == 0

    def test_cancel(self, scheduler):
        """Test cancelled calls never fire"""
        fired = []
        handle = scheduler.call_later(5, fired.append, "x")

        assert scheduler.cancel(handle) is True
        assert scheduler.cancel(handle) is False
        assert scheduler.advance(10) == 0
        assert fired == []

    def test_negative_values_rejected(self, scheduler):
        """Test negative delays and backward advances are errors"""
        with pytest.raises(ValueError):
            scheduler.call_later(-1, lambda: None)
        with pytest.raises(ValueError):
            scheduler.advance(-1)


class TestHplcPoller:
    """Tests for HplcPoller"""

    def test_first_tick_produces_report(self, scheduler):
        """Test start() polls immediately and attributes to the most recent run"""
        poller = HplcPoller(scheduler, rng=ScriptedRandom([0.5, 0.5]))

        poller.start()

        records = poller.get_records()
        assert len(records) == 1
        report = records[0]
        assert report.record_id == "DR-FILE-HPLC-POLL-PDF-1000"
        assert report.raw_ref == "file://HPLC-01/poll/CHO-r-hFSG-456-250308-2/pdf_1000"
        assert report.labels == {"format": "PDF", "run": "R-456", "poll_seq": "1000"}
        assert report.ingested_at == START
        assert poller.is_running()

    def test_on_time_summary_pairs_report(self, scheduler):
        """Test an on-time summary shares the report's sequence and measured_at"""
        poller = HplcPoller(scheduler, rng=ScriptedRandom([0.5, 0.5]))
        poller.start()

        scheduler.advance(30)

        summary = next(r for r in poller.get_records() if r.record_id == "DR-FILE-HPLC-POLL-CSV-1000")
        assert summary.labels["poll_seq"] == "1000"
        assert summary.measured_at == START
        assert summary.ingested_at == START + timedelta(seconds=30)

    def test_recent_artifact_skips_poll(self, scheduler):
        """Test a tick within one interval of the last artifact produces nothing"""
        poller = HplcPoller(scheduler, rng=ScriptedRandom([0.5, 0.5]))
        poller.start()
        scheduler.advance(29)

        assert poller.tick() is None
        assert len(poller.get_records()) == 1

    def test_late_summary_raises_then_resolves(self, scheduler):
        """Test one alert per overdue report, resolved by its late summary"""
        poller = HplcPoller(scheduler, rng=ScriptedRandom([0.9, 0.5]))
        poller.start()
        assert poller.companion_delay() == 0.0

        scheduler.advance(119)
        assert poller.get_alerts() == []

        scheduler.advance(1)
        active = poller.get_active_alerts()
        assert len(active) == 1
        alert = active[0]
        assert alert.id == "HPLC-ALERT-1000"
        assert alert.sequence == "1000"
        assert alert.report_record_id == "DR-FILE-HPLC-POLL-PDF-1000"
        assert alert.message == "Missing companion summary CSV for HPLC Report PDF (seq 1000)"

        scheduler.advance(30)
        assert poller.get_active_alerts() == []
        assert alert.resolved
        assert alert.resolved_at == START + timedelta(seconds=145)

        scheduler.advance(300)
        assert len(poller.get_alerts()) == 1
        assert poller.get_alerts()[0].resolved

    def test_stop_cancels_pending_work(self, scheduler):
        """Test stop() cancels the next tick and undelivered summaries"""
        poller = HplcPoller(scheduler, rng=ScriptedRandom([0.5, 0.5]))
        poller.start()
        assert scheduler.pending() == 2

        poller.stop()

        assert scheduler.pending() == 0
        assert scheduler.advance(300) == 0
        assert len(poller.get_records()) == 1
        assert not poller.is_running()

    def test_tick_after_stop_is_noop(self, scheduler):
        """Test a manual tick on a stopped poller schedules nothing"""
        poller = HplcPoller(scheduler, rng=ScriptedRandom([0.5, 0.5]))
        poller.start()
        poller.stop()
        scheduler.advance(60)

        assert poller.tick() is None
        assert scheduler.pending() == 0
        assert scheduler.advance(600) == 0
        assert len(poller.get_records()) == 1

    def test_start_is_idempotent(self, scheduler):
        """Test a second start() neither ticks nor schedules again"""
        poller = HplcPoller(scheduler, rng=ScriptedRandom([0.5, 0.5]))
        poller.start()
        poller.start()

        assert len(poller.get_records()) == 1
        assert scheduler.pending() == 2

    def test_poller_records_feed_companion_rule(self, scheduler, catalog, label_engine, settings):
        """Test the connector's files are understood by the missing-companion rule"""
        poller = HplcPoller(scheduler, rng=ScriptedRandom([0.9, 0.5]))
        poller.start()
        scheduler.advance(120)

        engine = AlertEngine(
            rules=RuleConfigBuilder().add_missing_companion().build(),
            catalog=catalog, label_engine=label_engine, settings=settings,
        )
        alerts = engine.evaluate(poller.get_records())

        assert [a.alert_id for a in alerts] == ["ALR-COMP-HPLC-01-1000"]
