"""
Insight generators, one per recipe.

Each generator reads the current alerts and ledger snapshot and returns
human readable findings. Generators never mutate records or alerts.
"""

from collections import Counter, defaultdict
from datetime import datetime
from pathlib import Path

from bioledger.catalog import Catalog
from bioledger.config import DEFAULT_RECIPES_PATH, load_yaml_section
from bioledger.core.labels import LabelEngine
from bioledger.core.models import AiInsight, AiRecipe, Alert, DataRecord

MAX_EVIDENCE = 10


def load_recipes(path: str | Path = DEFAULT_RECIPES_PATH) -> list[AiRecipe]:
    """
    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the 'recipes' section is missing or ids repeat
    """
    recipes = [AiRecipe(**r) for r in load_yaml_section(path, "recipes")]
    ids = [r.id for r in recipes]
    if len(set(ids)) != len(ids):
        raise ValueError("Duplicate recipe id in recipe configuration")
    return recipes


class InsightContext:
    """Snapshot a generator works from."""

    def __init__(
        self,
        alerts: list[Alert],
        records: list[DataRecord],
        catalog: Catalog,
        label_engine: LabelEngine,
        now: datetime,
    ):
        self.alerts = alerts
        self.records = records
        self.catalog = catalog
        self.label_engine = label_engine
        self.now = now

    def alerts_of_type(self, alert_type: str) -> list[Alert]:
        return [a for a in self.alerts if a.type == alert_type]


def out_of_range_trend(recipe: AiRecipe, ctx: InsightContext) -> list[AiInsight]:
    """One insight per out-of-range alert, naming the worst parameter."""
    insights = []
    for alert in ctx.alerts_of_type("out_of_range"):
        count = alert.record_count or len(alert.affected_record_ids)
        run_label = ctx.catalog.run_label(alert.linked_run_id)

        per_parameter = Counter(
            r.labels.get("parameter")
            for r in ctx.records
            if r.interface_id == alert.interface_id
            and r.linked_run_id == alert.linked_run_id
            and r.data_type == "timeseries"
            and r.has_flag("out_of_range")
            and r.labels.get("parameter")
        )

        explanation = f"{count} out-of-range readings detected"
        if run_label:
            explanation += f" during {run_label}"
        explanation += "."
        if per_parameter:
            code, violations = per_parameter.most_common(1)[0]
            parameter = ctx.catalog.get_parameter(code)
            if parameter:
                explanation += (
                    f" The worst contributor is {parameter.display_name} with {violations} violations "
                    f"(spec: {parameter.min_value:g}-{parameter.max_value:g} {parameter.unit})."
                )
        explanation += " Review parameter trends and consider adjusting process controls."

        insights.append(
            AiInsight(
                id=f"INS-OOR-{alert.interface_id}-{alert.linked_run_id or 'x'}",
                recipe_id=recipe.id,
                title=f"High deviation rate on {ctx.catalog.display_name(alert.interface_id)}",
                explanation=explanation,
                severity="critical" if count > 20 else "warning",
                evidence_record_ids=alert.affected_record_ids[:MAX_EVIDENCE],
                interface_id=alert.interface_id,
                linked_run_id=alert.linked_run_id,
                created_at=alert.created_at,
            )
        )
    return insights


def metadata_gap(recipe: AiRecipe, ctx: InsightContext) -> list[AiInsight]:
    """Interfaces where more than 20% of records lack required labels."""
    totals: Counter = Counter()
    incomplete: dict[str, list[DataRecord]] = defaultdict(list)

    for record in ctx.records:
        totals[record.interface_id] += 1
        if ctx.label_engine.is_incomplete(record):
            incomplete[record.interface_id].append(record)

    insights = []
    for interface_id, missing in incomplete.items():
        pct = 100 * len(missing) / totals[interface_id]
        if pct <= 20:
            continue
        insights.append(
            AiInsight(
                id=f"INS-META-{interface_id}",
                recipe_id=recipe.id,
                title=f"{round(pct)}% of {ctx.catalog.display_name(interface_id)} records lack required labels",
                explanation=(
                    f"{len(missing)} of {totals[interface_id]} records have incomplete metadata. "
                    "Missing labels reduce traceability and may impact ALCOA compliance. "
                    "Bulk-apply labels to the affected records."
                ),
                severity="warning" if pct > 50 else "info",
                evidence_record_ids=[r.record_id for r in missing[:5]],
                interface_id=interface_id,
                created_at=max(r.measured_at for r in missing),
            )
        )
    return insights


def ingestion_skew(recipe: AiRecipe, ctx: InsightContext) -> list[AiInsight]:
    """Bioreactor interfaces ingesting less than half the bioreactor average."""
    reactors = [i for i in ctx.catalog.interfaces if i.linked_reactor_id]
    if len(reactors) < 2:
        return []

    counts = Counter(r.interface_id for r in ctx.records)
    average = sum(counts[i.id] for i in reactors) / len(reactors)
    if average <= 0:
        return []

    insights = []
    for interface in reactors:
        count = counts[interface.id]
        if count >= average * 0.5:
            continue
        insights.append(
            AiInsight(
                id=f"INS-SKEW-{interface.id}",
                recipe_id=recipe.id,
                title=f"Low ingestion volume from {interface.display_name}",
                explanation=(
                    f"Only {count} records ingested vs. average of {round(average)} across bioreactors. "
                    "This may indicate a polling issue, sensor failure, or late-starting run."
                ),
                severity="warning",
                interface_id=interface.id,
                created_at=ctx.now,
            )
        )
    return insights


def companion_check(recipe: AiRecipe, ctx: InsightContext) -> list[AiInsight]:
    """A single insight summarising all missing-companion alerts."""
    companions = ctx.alerts_of_type("missing_companion")
    if not companions:
        return []

    first = companions[0]
    return [
        AiInsight(
            id="INS-COMP-HPLC",
            recipe_id=recipe.id,
            title=f"{len(companions)} HPLC file(s) missing companion CSV",
            explanation=(
                "PDF chromatogram reports without matching CSV summaries were detected. "
                "This may delay downstream titer/purity analysis. "
                "Check HPLC system output configuration."
            ),
            severity="warning",
            evidence_record_ids=[rid for a in companions for rid in a.affected_record_ids][:MAX_EVIDENCE],
            interface_id=first.interface_id,
            linked_run_id=first.linked_run_id,
            created_at=first.created_at,
        )
    ]


def critical_gaps(recipe: AiRecipe, ctx: InsightContext) -> list[AiInsight]:
    """One insight per run with timestamp gaps; critical beyond three gaps."""
    by_run: dict[str | None, list[Alert]] = defaultdict(list)
    for alert in ctx.alerts_of_type("timestamp_gap"):
        by_run[alert.linked_run_id].append(alert)

    insights = []
    for run_id, gaps in by_run.items():
        run_label = ctx.catalog.run_label(run_id)
        title = f"{len(gaps)} data gap(s) in critical parameters"
        if run_label:
            title += f" ({run_label})"
        insights.append(
            AiInsight(
                id=f"INS-GAP-{run_id or 'none'}",
                recipe_id=recipe.id,
                title=title,
                explanation=(
                    "Unexpected time gaps detected in critical parameter streams. "
                    "Gaps may indicate sensor disconnection, system downtime, or data loss. "
                    "Review affected time windows."
                ),
                severity="critical" if len(gaps) > 3 else "warning",
                evidence_record_ids=[rid for g in gaps for rid in g.affected_record_ids][:MAX_EVIDENCE],
                interface_id=gaps[0].interface_id,
                linked_run_id=run_id,
                created_at=gaps[0].created_at,
            )
        )
    return insights


def event_density(recipe: AiRecipe, ctx: InsightContext) -> list[AiInsight]:
    """Runs whose event count deviates more than 30% from the peer mean."""
    events: dict[str, list[DataRecord]] = {run.run_id: [] for run in ctx.catalog.runs}
    for record in ctx.records:
        if record.data_type == "event" and record.linked_run_id in events:
            events[record.linked_run_id].append(record)

    if len(events) < 2:
        return []
    mean = sum(len(v) for v in events.values()) / len(events)
    if mean <= 0:
        return []

    insights = []
    for run_id, run_events in events.items():
        deviation = (len(run_events) - mean) / mean
        if abs(deviation) <= 0.3:
            continue
        direction = "high" if deviation > 0 else "low"
        run_label = ctx.catalog.run_label(run_id) or run_id
        insights.append(
            AiInsight(
                id=f"INS-DENS-{run_id}",
                recipe_id=recipe.id,
                title=f"Unusually {direction} event frequency in {run_label}",
                explanation=(
                    f"{len(run_events)} events recorded vs. a peer average of {mean:.1f} "
                    f"({deviation:+.0%}). Check whether dosing or sampling deviated from the process plan."
                ),
                severity="info",
                evidence_record_ids=[r.record_id for r in run_events[:MAX_EVIDENCE]],
                linked_run_id=run_id,
                created_at=run_events[-1].measured_at if run_events else ctx.now,
            )
        )
    return insights


def all_clear(ctx: InsightContext) -> AiInsight:
    return AiInsight(
        id="INS-CLEAR",
        recipe_id=None,
        title="All systems nominal",
        explanation=(
            "No quality alerts, data gaps, or missing companions detected across all interfaces. "
            "Data integrity checks passed."
        ),
        severity="success",
        created_at=ctx.now,
    )
