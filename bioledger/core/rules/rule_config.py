"""
Alert rule configuration management.

Loads alert rules from YAML files and provides a builder for assembling
rule sets in code.
"""

from pathlib import Path
from typing import Any

import yaml


class RuleConfigLoader:
    """
    Loads alert rules from YAML configuration files.

    Expected YAML format:
    ```yaml
    rules:
      - name: out_of_range_cluster
        type: out_of_range
        params:
          critical_above: 10
      - name: critical_timestamp_gap
        type: timestamp_gap
        enabled: false
    ```
    """

    def __init__(self, config_path: str | Path):
        """
        Initialize the rule config loader.

        Args:
            config_path: Path to the YAML configuration file
        """
        self.config_path = Path(config_path)
        if not self.config_path.exists():
            raise FileNotFoundError(f"Rule configuration file not found: {config_path}")

    def load_rules(self) -> list[dict[str, Any]]:
        """
        Load and parse alert rules from YAML file.

        Returns:
            List of rule dictionaries suitable for AlertEngine

        Raises:
            ValueError: If YAML is invalid or missing required fields
        """
        with open(self.config_path, encoding="utf-8") as f:
            config = yaml.safe_load(f)

        if not config or "rules" not in config:
            raise ValueError("Configuration file must contain 'rules' section")

        rule_defs = config["rules"]
        if not isinstance(rule_defs, list):
            raise ValueError("'rules' must be a list")

        return [self._parse_rule(rule_def, idx) for idx, rule_def in enumerate(rule_defs)]

    def _parse_rule(self, rule_def: dict[str, Any], idx: int) -> dict[str, Any]:
        """
        Parse a single rule definition.

        Raises:
            ValueError: If rule definition is invalid
        """
        if not isinstance(rule_def, dict) or "type" not in rule_def:
            raise ValueError(f"Rule #{idx} is missing 'type'")

        rule_type = rule_def["type"]
        rule_name = rule_def.get("name", f"{rule_type}_{idx}")

        parameters = rule_def.get("params", rule_def.get("parameters")) or {}
        if not isinstance(parameters, dict):
            raise ValueError(f"Parameters of rule '{rule_name}' must be a mapping")

        return {
            "rule_name": rule_name,
            "rule_type": rule_type,
            "parameters": parameters,
            "enabled": bool(rule_def.get("enabled", True)),
        }


class RuleConfigBuilder:
    """
    Programmatically build rule configurations (for testing or dynamic rules).
    """

    def __init__(self):
        self.rules: list[dict[str, Any]] = []

    def _add(self, rule_type: str, parameters: dict[str, Any], enabled: bool = True) -> "RuleConfigBuilder":
        self.rules.append({
            "rule_name": rule_type,
            "rule_type": rule_type,
            "parameters": parameters,
            "enabled": enabled,
        })
        return self

    def add_out_of_range(self, critical_above: int = 10, max_evidence: int = 50) -> "RuleConfigBuilder":
        return self._add("out_of_range", {"critical_above": critical_above, "max_evidence": max_evidence})

    def add_missing_metadata(self, max_evidence: int = 20) -> "RuleConfigBuilder":
        return self._add("missing_metadata", {"max_evidence": max_evidence})

    def add_timestamp_gap(self, threshold_hours: float | None = None) -> "RuleConfigBuilder":
        params = {}
        if threshold_hours is not None:
            params["threshold_hours"] = threshold_hours
        return self._add("timestamp_gap", params)

    def add_duplicate_record(self, max_evidence: int = 20) -> "RuleConfigBuilder":
        return self._add("duplicate_record", {"max_evidence": max_evidence})

    def add_missing_companion(self, interface_id: str | None = None) -> "RuleConfigBuilder":
        params = {}
        if interface_id is not None:
            params["interface_id"] = interface_id
        return self._add("missing_companion", params)

    def add_all(self) -> "RuleConfigBuilder":
        """All five rules with default parameters, in evaluation order."""
        return (
            self.add_out_of_range()
            .add_missing_metadata()
            .add_timestamp_gap()
            .add_duplicate_record()
            .add_missing_companion()
        )

    def build(self) -> list[dict[str, Any]]:
        """Build and return the rule configuration."""
        return self.rules
