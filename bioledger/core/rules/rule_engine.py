"""
Alert engine orchestrating the data-quality rules over a ledger.

The engine builds rule instances from configuration, evaluates them in
declaration order over a ledger snapshot, and caches the sorted result
until the ledger's version changes or `invalidate()` is called.
"""

from collections import Counter
from typing import Any

from bioledger.catalog import Catalog, get_default_catalog
from bioledger.config import Settings
from bioledger.core.labels import LabelEngine
from bioledger.core.models import SEVERITY_ORDER, Alert, DataRecord
from bioledger.observability import metrics
from bioledger.observability.logger import get_logger

from .alert_rules import (
    BaseAlertRule,
    DuplicateRecordRule,
    MissingCompanionRule,
    MissingMetadataRule,
    OutOfRangeRule,
    RuleContext,
    TimestampGapRule,
)
from .rule_config import RuleConfigBuilder, RuleConfigLoader

logger = get_logger(__name__)


def sort_alerts(alerts: list[Alert]) -> list[Alert]:
    """Severity (critical first), then most recent first."""
    by_recency = sorted(alerts, key=lambda a: a.created_at, reverse=True)
    return sorted(by_recency, key=lambda a: SEVERITY_ORDER[a.severity])


class AlertEngine:
    """
    Evaluates alert rules over the ledger and serves the cached result.

    Usage:
        engine = AlertEngine(ledger, catalog=catalog, label_engine=labels)
        for alert in engine.get_alerts():
            ...
    """

    RULE_REGISTRY = {
        "out_of_range": OutOfRangeRule,
        "missing_metadata": MissingMetadataRule,
        "timestamp_gap": TimestampGapRule,
        "duplicate_record": DuplicateRecordRule,
        "missing_companion": MissingCompanionRule,
    }

    def __init__(
        self,
        ledger=None,
        rules: list[dict[str, Any]] | None = None,
        catalog: Catalog | None = None,
        label_engine: LabelEngine | None = None,
        settings: Settings | None = None,
    ):
        """
        Initialize the alert engine.

        Args:
            ledger: Ledger to evaluate; optional when only `evaluate` is used
            rules: Rule configurations, each containing:
                   - rule_name: str
                   - rule_type: str (out_of_range, missing_metadata, timestamp_gap,
                     duplicate_record, missing_companion)
                   - parameters: Dict[str, Any] (optional)
                   - enabled: bool (default True)
                   Defaults to the rules file named by settings.
            catalog: Parameter/run catalog (defaults to the packaged one)
            label_engine: Completeness scorer (defaults to packaged templates)
            settings: Thresholds and paths (defaults to Settings())
        """
        self.ledger = ledger
        self.settings = settings or Settings()
        if rules is None:
            rules = RuleConfigLoader(self.settings.rules_path).load_rules()
        self.rules = rules
        if label_engine is None:
            label_engine = LabelEngine(ledger=ledger)
        elif label_engine.ledger is None:
            label_engine.ledger = ledger
        self.context = RuleContext(
            catalog=catalog or get_default_catalog(),
            label_engine=label_engine,
            settings=self.settings,
        )
        self.evaluators: list[BaseAlertRule] = []
        self._build_rules()

        self._cache: list[Alert] | None = None
        self._cache_version: int | None = None

    @classmethod
    def with_all_rules(cls, ledger=None, **kwargs) -> "AlertEngine":
        """Engine running all five rules with default parameters."""
        return cls(ledger, rules=RuleConfigBuilder().add_all().build(), **kwargs)

    def _build_rules(self) -> None:
        """Build rule instances from rule configurations."""
        for rule in self.rules:
            if not rule.get("enabled", True):
                continue

            rule_name = rule["rule_name"]
            rule_type = rule["rule_type"]

            rule_class = self.RULE_REGISTRY.get(rule_type)
            if not rule_class:
                raise ValueError(f"Unknown rule type: {rule_type}")

            self.evaluators.append(rule_class(rule_name, rule.get("parameters", {})))

    def evaluate(self, records: list[DataRecord]) -> list[Alert]:
        """
        Run every enabled rule over a record snapshot.

        Args:
            records: Records to evaluate (need not come from a ledger)

        Returns:
            Alerts sorted by severity then recency
        """
        alerts: list[Alert] = []
        with metrics.track_duration(metrics.rule_evaluation_duration_seconds, engine="alerts"):
            for rule in self.evaluators:
                found = rule.evaluate(records, self.context)
                logger.debug(f"Rule {rule.rule_name} produced {len(found)} alert(s)")
                alerts.extend(found)
        return sort_alerts(alerts)

    def invalidate(self) -> None:
        """Drop the cached alert set."""
        self._cache = None
        self._cache_version = None

    def _require_ledger(self) -> None:
        if self.ledger is None:
            raise ValueError("AlertEngine has no ledger bound; use evaluate(records)")

    def generate_alerts(self) -> list[Alert]:
        """Re-derive alerts from the bound ledger, bypassing the cache."""
        self._require_ledger()

        alerts = self.evaluate(self.ledger.get_all())
        self._cache = alerts
        self._cache_version = self.ledger.version

        counts = self._severity_counts(alerts)
        metrics.record_severity_counts(metrics.alerts_active, counts)
        logger.info(
            f"Generated {len(alerts)} alert(s) over {len(self.ledger)} record(s)",
            extra={"ledger_version": self.ledger.version, **counts}
        )
        return alerts

    def get_alerts(self) -> list[Alert]:
        """Cached alerts, regenerated when the ledger has changed."""
        self._require_ledger()
        if self._cache is None or self._cache_version != self.ledger.version:
            self.generate_alerts()
        return list(self._cache)

    def get_alerts_for_interface(self, interface_id: str) -> list[Alert]:
        return [a for a in self.get_alerts() if a.interface_id == interface_id]

    def get_alerts_for_run(self, run_id: str) -> list[Alert]:
        return [a for a in self.get_alerts() if a.linked_run_id == run_id]

    def counts_by_severity(self) -> dict[str, int]:
        return self._severity_counts(self.get_alerts())

    def counts_by_interface(self) -> dict[str, int]:
        return dict(Counter(a.interface_id for a in self.get_alerts()))

    @staticmethod
    def _severity_counts(alerts: list[Alert]) -> dict[str, int]:
        counts = {severity: 0 for severity in SEVERITY_ORDER}
        for alert in alerts:
            counts[alert.severity] += 1
        return counts

    def get_rule_summary(self) -> dict[str, Any]:
        """
        Get summary of loaded rules.

        Returns:
            Dictionary with the enabled rule count and their types
        """
        return {
            "total_rules": len(self.evaluators),
            "rules_by_type": dict(Counter(r.rule_type for r in self.evaluators)),
        }
