"""
Recipe-driven insight engine.

Insights are re-derived from the alert set and the ledger snapshot. The
result is cached until a recipe is toggled or the ledger version moves.
"""

from datetime import datetime
from typing import Callable

from bioledger.core.labels import matches_any
from bioledger.core.models import INSIGHT_SEVERITY_ORDER, AiInsight, AiRecipe
from bioledger.core.rules import AlertEngine
from bioledger.observability import metrics
from bioledger.observability.logger import get_logger

from .recipes import (
    InsightContext,
    all_clear,
    companion_check,
    critical_gaps,
    event_density,
    ingestion_skew,
    load_recipes,
    metadata_gap,
    out_of_range_trend,
)

logger = get_logger(__name__)


class InsightEngine:
    """
    Runs enabled recipes over alerts and ledger state.

    An "all clear" success insight is appended whenever the alert set is
    empty, independent of which recipes are enabled.

    Usage:
        insights = InsightEngine(alert_engine)
        insights.toggle_recipe("RCP-EVENT-DENSITY")
        for insight in insights.get_insights():
            ...
    """

    GENERATOR_REGISTRY: dict[str, Callable] = {
        "RCP-OOR-TREND": out_of_range_trend,
        "RCP-METADATA-GAP": metadata_gap,
        "RCP-INGESTION-SKEW": ingestion_skew,
        "RCP-COMPANION-CHECK": companion_check,
        "RCP-CRITICAL-GAP": critical_gaps,
        "RCP-EVENT-DENSITY": event_density,
    }

    def __init__(
        self,
        alert_engine: AlertEngine,
        recipes: list[AiRecipe] | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        """
        Args:
            alert_engine: Alert engine bound to the ledger to analyse
            recipes: Recipe definitions (defaults to the configured recipe file)
            clock: "now" used for time-less insights on an empty ledger

        Raises:
            ValueError: If a recipe has no registered generator
        """
        self.alert_engine = alert_engine
        self.ledger = alert_engine.ledger
        self._clock = clock or datetime.utcnow
        if recipes is None:
            recipes = load_recipes(alert_engine.settings.recipes_path)
        self.recipes = [recipe.model_copy() for recipe in recipes]

        for recipe in self.recipes:
            if recipe.id not in self.GENERATOR_REGISTRY:
                raise ValueError(f"No insight generator registered for recipe: {recipe.id}")

        self._cache: list[AiInsight] | None = None
        self._cache_version: int | None = None

    # Recipes

    def get_recipe(self, recipe_id: str) -> AiRecipe | None:
        for recipe in self.recipes:
            if recipe.id == recipe_id:
                return recipe
        return None

    def get_enabled_recipes(self) -> list[AiRecipe]:
        return [r for r in self.recipes if r.enabled]

    def toggle_recipe(self, recipe_id: str) -> bool:
        """
        Flip a recipe's enablement.

        Returns:
            The new enabled state, or False if the id is unknown
        """
        recipe = self.get_recipe(recipe_id)
        if recipe is None:
            logger.info(f"Toggle requested for unknown recipe {recipe_id}")
            return False

        recipe.enabled = not recipe.enabled
        self.invalidate()
        logger.info(f"Recipe {recipe_id} {'enabled' if recipe.enabled else 'disabled'}")
        return recipe.enabled

    # Generation

    def invalidate(self) -> None:
        self._cache = None
        self._cache_version = None

    def _context(self) -> InsightContext:
        alerts = self.alert_engine.get_alerts()
        records = self.ledger.get_all()
        now = max((r.ingested_at for r in records), default=None) or self._clock()
        return InsightContext(
            alerts=alerts,
            records=records,
            catalog=self.alert_engine.context.catalog,
            label_engine=self.alert_engine.context.label_engine,
            now=now,
        )

    def generate_insights(self) -> list[AiInsight]:
        """Re-evaluate every enabled recipe from scratch."""
        context = self._context()
        insights: list[AiInsight] = []

        with metrics.track_duration(metrics.rule_evaluation_duration_seconds, engine="insights"):
            for recipe in self.get_enabled_recipes():
                generator = self.GENERATOR_REGISTRY[recipe.id]
                produced = [
                    insight for insight in generator(recipe, context)
                    if insight.interface_id is None or matches_any(recipe.applies_to, insight.interface_id)
                ]
                logger.debug(f"Recipe {recipe.id} produced {len(produced)} insight(s)")
                insights.extend(produced)

            if not context.alerts:
                insights.append(all_clear(context))

        insights.sort(key=lambda i: INSIGHT_SEVERITY_ORDER[i.severity])

        self._cache = insights
        self._cache_version = self.ledger.version

        counts = {severity: 0 for severity in INSIGHT_SEVERITY_ORDER}
        for insight in insights:
            counts[insight.severity] += 1
        metrics.record_severity_counts(metrics.insights_active, counts)
        logger.info(f"Generated {len(insights)} insight(s) from {len(context.alerts)} alert(s)")
        return insights

    def get_insights(self) -> list[AiInsight]:
        """Cached insights, regenerated after a toggle or ledger change."""
        if self.ledger is None:
            raise ValueError("InsightEngine has no ledger bound; use generate_insights on a bound engine")
        if self._cache is None or self._cache_version != self.ledger.version:
            self.generate_insights()
        return list(self._cache)
