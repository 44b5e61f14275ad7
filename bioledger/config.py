"""
Runtime configuration for bioledger.

Settings come from environment variables (optionally seeded from a .env
file). Declarative reference data (catalog, label templates, recipes,
alert rules, auxiliary instrument schedules) lives in YAML resources that
ship with the package and can be overridden by path.
"""

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

RESOURCES_DIR = Path(__file__).parent / "resources"

DEFAULT_CATALOG_PATH = RESOURCES_DIR / "catalog.yaml"
DEFAULT_TEMPLATES_PATH = RESOURCES_DIR / "label_templates.yaml"
DEFAULT_RECIPES_PATH = RESOURCES_DIR / "recipes.yaml"
DEFAULT_RULES_PATH = RESOURCES_DIR / "alert_rules.yaml"
DEFAULT_AUXILIARY_PATH = RESOURCES_DIR / "auxiliary.yaml"
DEFAULT_EVENTS_PATH = RESOURCES_DIR / "events.csv"


class Settings(BaseModel):
    """
    Tunables for ingestion, rule evaluation and the connector simulation.

    Attributes:
        sampling_hours: Timeseries sampling granularity in elapsed hours
        gap_factor: Gap threshold as a multiple of the expected interval
        poll_interval_sec: HPLC connector poll cadence
        companion_timeout_sec: Max wait for a report's summary companion
        chromatography_interface: Interface whose files are paired
        catalog_path: Parameter/run/interface catalog YAML
        templates_path: Label template YAML
        recipes_path: Insight recipe YAML
        rules_path: Alert rule YAML
        auxiliary_path: Auxiliary instrument schedule YAML
        events_path: Delimited process event log
    """

    sampling_hours: int = Field(1, ge=1)
    gap_factor: float = Field(3.0, gt=0)
    poll_interval_sec: float = Field(30.0, gt=0)
    companion_timeout_sec: float = Field(120.0, gt=0)
    chromatography_interface: str = "HPLC-01"
    catalog_path: Path = DEFAULT_CATALOG_PATH
    templates_path: Path = DEFAULT_TEMPLATES_PATH
    recipes_path: Path = DEFAULT_RECIPES_PATH
    rules_path: Path = DEFAULT_RULES_PATH
    auxiliary_path: Path = DEFAULT_AUXILIARY_PATH
    events_path: Path = DEFAULT_EVENTS_PATH

    @property
    def gap_threshold_hours(self) -> float:
        return self.gap_factor * self.sampling_hours


# Environment variable -> Settings field
ENV_VARS = {
    "BIOLEDGER_SAMPLING_HOURS": "sampling_hours",
    "BIOLEDGER_GAP_FACTOR": "gap_factor",
    "BIOLEDGER_POLL_INTERVAL_SEC": "poll_interval_sec",
    "BIOLEDGER_COMPANION_TIMEOUT_SEC": "companion_timeout_sec",
    "BIOLEDGER_CHROMATOGRAPHY_INTERFACE": "chromatography_interface",
    "BIOLEDGER_CATALOG_PATH": "catalog_path",
    "BIOLEDGER_TEMPLATES_PATH": "templates_path",
    "BIOLEDGER_RECIPES_PATH": "recipes_path",
    "BIOLEDGER_RULES_PATH": "rules_path",
    "BIOLEDGER_AUXILIARY_PATH": "auxiliary_path",
    "BIOLEDGER_EVENTS_PATH": "events_path",
}


def load_settings(env_file: str | Path | None = None, **overrides: Any) -> Settings:
    """
    Build Settings from the environment.

    Args:
        env_file: Optional .env file loaded before reading the environment
        **overrides: Explicit values that win over the environment

    Returns:
        Validated Settings
    """
    if env_file is not None and Path(env_file).exists():
        load_dotenv(env_file, override=False)

    values: dict[str, Any] = {}
    for env_name, field_name in ENV_VARS.items():
        raw = os.getenv(env_name)
        if raw is not None and raw != "":
            values[field_name] = raw

    values.update(overrides)
    return Settings(**values)


def load_yaml_section(path: str | Path, section: str) -> Any:
    """
    Load one top-level section of a YAML resource.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the document lacks the section
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(config_path, encoding="utf-8") as f:
        document = yaml.safe_load(f)

    if not document or section not in document:
        raise ValueError(f"Configuration file {config_path.name} must contain '{section}' section")

    return document[section]
