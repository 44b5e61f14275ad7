"""
Library facade wiring catalog, ledger, ingestion, labels, alerts and
insights into one object.
"""

import random
from datetime import datetime
from typing import Callable, Iterable, Mapping

from bioledger.catalog import Catalog
from bioledger.config import Settings, load_settings
from bioledger.connectors import HplcPoller, SimulatedScheduler
from bioledger.core.labels import LabelEngine, load_label_templates
from bioledger.core.models import AiInsight, Alert, CompletenessResult, DataRecord
from bioledger.core.rules import AlertEngine, RuleConfigLoader
from bioledger.ingestion import IngestionPipeline, RefreshResult
from bioledger.insights import InsightEngine, load_recipes
from bioledger.ledger import Ledger
from bioledger.observability.logger import get_logger

logger = get_logger(__name__)


class BioLedger:
    """
    In-process API over one ledger.

    Usage:
        bl = BioLedger()
        bl.refresh()
        bl.create_correction("DR-TS-...", "pH re-read: 7.01", actor="operator_20-456")
        bl.get_alerts()
    """

    def __init__(self, settings: Settings | None = None, clock: Callable[[], datetime] | None = None):
        """
        Args:
            settings: Configuration (defaults to load_settings())
            clock: Source of "now" for corrections and empty-ledger insights
        """
        self.settings = settings or load_settings()
        self.catalog = Catalog.from_yaml(self.settings.catalog_path)
        self.ledger = Ledger(clock=clock)
        self.labels = LabelEngine(load_label_templates(self.settings.templates_path), ledger=self.ledger)
        self.pipeline = IngestionPipeline(
            self.ledger,
            catalog=self.catalog,
            settings=self.settings,
            label_engine=self.labels,
        )
        self.alerts = AlertEngine(
            self.ledger,
            rules=RuleConfigLoader(self.settings.rules_path).load_rules(),
            catalog=self.catalog,
            label_engine=self.labels,
            settings=self.settings,
        )
        self.insights = InsightEngine(self.alerts, recipes=load_recipes(self.settings.recipes_path), clock=clock)

    # Ingestion and amendments

    def refresh(self) -> RefreshResult:
        return self.pipeline.refresh()

    def create_correction(self, original_record_id: str, corrected_summary: str, actor: str) -> DataRecord | None:
        return self.ledger.create_correction(original_record_id, corrected_summary, actor)

    def apply_labels(self, record_id: str, labels: Mapping[str, str]) -> CompletenessResult | None:
        """Label one record by id. Returns None for an unknown id."""
        record = self.ledger.get_record(record_id)
        if record is None:
            return None
        return self.labels.apply_labels(record, labels)

    def bulk_apply_labels(self, record_ids: Iterable[str], labels: Mapping[str, str]) -> int:
        """Label many records by id; unknown ids are skipped and not counted."""
        records = [r for r in (self.ledger.get_record(rid) for rid in record_ids) if r is not None]
        return self.labels.bulk_apply_labels(records, labels)

    def compute_completeness(self, record_id: str) -> CompletenessResult | None:
        record = self.ledger.get_record(record_id)
        return self.labels.compute_completeness(record) if record else None

    # Derived views

    def get_alerts(self) -> list[Alert]:
        return self.alerts.get_alerts()

    def get_insights(self) -> list[AiInsight]:
        return self.insights.get_insights()

    def toggle_recipe(self, recipe_id: str) -> bool:
        return self.insights.toggle_recipe(recipe_id)

    def summary(self) -> dict:
        """Counts for dashboards: records by interface/type, alerts by severity."""
        return {
            "records": len(self.ledger),
            "records_by_interface": self.ledger.counts_by_interface(),
            "records_by_type": self.ledger.counts_by_type(),
            "alerts_by_severity": self.alerts.counts_by_severity(),
            "insights": len(self.get_insights()),
        }

    # Connectors

    def create_hplc_poller(
        self,
        scheduler: SimulatedScheduler | None = None,
        rng: random.Random | None = None,
    ) -> HplcPoller:
        """A poller sharing this instance's catalog and settings, with its own ledger."""
        return HplcPoller(scheduler or SimulatedScheduler(), catalog=self.catalog, settings=self.settings, rng=rng)
