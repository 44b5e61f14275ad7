"""
Label templates and completeness scoring.

Each record is matched against templates in declaration order by
(interface pattern, data type); the first match decides which metadata
fields are required. Completeness is the rounded percentage of required
fields that carry a non-blank value. A record with no matching template,
or whose template requires nothing, is complete by definition.
"""

from pathlib import Path
from typing import Iterable, Mapping

from bioledger.config import DEFAULT_TEMPLATES_PATH, load_yaml_section
from bioledger.core.models import CompletenessResult, DataRecord, LabelTemplate
from bioledger.core.validators import is_present
from bioledger.observability.logger import get_logger

logger = get_logger(__name__)


def matches_interface(pattern: str, interface_id: str) -> bool:
    """
    Match an interface id against a template pattern.

    "*" matches everything, "BR-*" matches by prefix, anything else must
    be equal.
    """
    if pattern == "*":
        return True
    if pattern.endswith("*"):
        return interface_id.startswith(pattern[:-1])
    return pattern == interface_id


def matches_any(patterns: Iterable[str], interface_id: str) -> bool:
    return any(matches_interface(p, interface_id) for p in patterns)


def load_label_templates(path: str | Path = DEFAULT_TEMPLATES_PATH) -> list[LabelTemplate]:
    """
    Load templates from YAML, preserving declaration order.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the 'templates' section is missing or malformed
    """
    section = load_yaml_section(path, "templates")
    if not isinstance(section, list):
        raise ValueError("'templates' must be a list")
    return [LabelTemplate(**t) for t in section]


class LabelEngine:
    """
    Resolves templates, scores completeness and applies label edits.

    When bound to a ledger, every label edit marks the ledger changed so
    cached alerts and insights are recomputed.
    """

    def __init__(self, templates: list[LabelTemplate] | None = None, ledger=None):
        """
        Args:
            templates: Ordered templates (defaults to the packaged set)
            ledger: Optional Ledger to notify on label edits
        """
        self.templates = list(templates) if templates is not None else load_label_templates()
        self.ledger = ledger

    def get_template_for_record(self, record: DataRecord) -> LabelTemplate | None:
        for template in self.templates:
            scope = template.applies_to
            if not matches_interface(scope.interface_id, record.interface_id):
                continue
            if scope.data_type == "*" or scope.data_type == record.data_type:
                return template
        return None

    def compute_completeness(self, record: DataRecord) -> CompletenessResult:
        """
        Score a record's labels against its template.

        A field counts as present only when the label exists and is
        non-empty after trimming.
        """
        template = self.get_template_for_record(record)
        if template is None or not template.required_fields:
            return CompletenessResult(score=100, template=template)

        labels = record.labels
        present = [f for f in template.required_fields if is_present(labels, f)]
        missing = [f for f in template.required_fields if not is_present(labels, f)]
        optional_present = [f for f in template.optional_fields if is_present(labels, f)]
        optional_missing = [f for f in template.optional_fields if not is_present(labels, f)]

        score = round(100 * len(present) / len(template.required_fields))

        return CompletenessResult(
            score=score,
            present=present,
            missing=missing,
            optional_present=optional_present,
            optional_missing=optional_missing,
            template=template,
        )

    def is_incomplete(self, record: DataRecord) -> bool:
        """Below 100 against a template that requires at least one field."""
        result = self.compute_completeness(record)
        return result.score < 100 and result.has_required_fields

    def score(self, record: DataRecord) -> int:
        """Recompute and store a record's completeness score."""
        result = self.compute_completeness(record)
        record.completeness_score = result.score
        return result.score

    def apply_labels(self, record: DataRecord, new_labels: Mapping[str, str]) -> CompletenessResult:
        """
        Write trimmed label values onto a record in place.

        Values that are empty after trimming are ignored rather than
        written. The completeness score is recomputed and stored.

        Returns:
            The updated completeness
        """
        for key, value in new_labels.items():
            if value is None:
                continue
            trimmed = str(value).strip()
            if trimmed:
                record.labels[key] = trimmed

        result = self.compute_completeness(record)
        record.completeness_score = result.score

        if self.ledger is not None:
            self.ledger.mark_changed()
        return result

    def bulk_apply_labels(self, records: Iterable[DataRecord], new_labels: Mapping[str, str]) -> int:
        """
        Apply the same labels to many records.

        Returns:
            Number of records the labels were applied to (attempted, not changed)
        """
        count = 0
        for record in records:
            self.apply_labels(record, new_labels)
            count += 1

        logger.info(f"Applied {len(new_labels)} label(s) to {count} record(s)")
        return count
