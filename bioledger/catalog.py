"""
Parameter & run catalog.

Read-only reference data loaded from a versioned YAML document: process
parameters with their spec limits, run definitions and the instrument
interfaces records are attributed to. Lookups return None for unknown ids.
"""

from functools import lru_cache
from pathlib import Path

from bioledger.config import DEFAULT_CATALOG_PATH, load_yaml_section
from bioledger.core.models import InstrumentInterface, ParameterDef, RunDefinition
from bioledger.observability.logger import get_logger

logger = get_logger(__name__)


class Catalog:
    """
    Lookup surface over parameters, runs and interfaces.

    Usage:
        catalog = Catalog.from_yaml("resources/catalog.yaml")
        ph = catalog.get_parameter("PH")
    """

    def __init__(
        self,
        parameters: list[ParameterDef],
        runs: list[RunDefinition],
        interfaces: list[InstrumentInterface],
        version: int = 1,
    ):
        self.version = version
        self.parameters = list(parameters)
        self.runs = list(runs)
        self.interfaces = list(interfaces)

        self._parameters = {p.parameter_code: p for p in self.parameters}
        self._runs = {r.run_id: r for r in self.runs}
        self._interfaces = {i.id: i for i in self.interfaces}

        if len(self._parameters) != len(self.parameters):
            raise ValueError("Duplicate parameter_code in catalog")
        if len(self._runs) != len(self.runs):
            raise ValueError("Duplicate run_id in catalog")
        if len(self._interfaces) != len(self.interfaces):
            raise ValueError("Duplicate interface id in catalog")

    @classmethod
    def from_yaml(cls, path: str | Path = DEFAULT_CATALOG_PATH) -> "Catalog":
        """
        Load a catalog document.

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If a section is missing or an entry is invalid
        """
        parameters = [ParameterDef(**p) for p in load_yaml_section(path, "parameters")]
        runs = [RunDefinition(**r) for r in load_yaml_section(path, "runs")]
        interfaces = [InstrumentInterface(**i) for i in load_yaml_section(path, "interfaces")]
        version = load_yaml_section(path, "version")

        logger.debug(
            f"Loaded catalog v{version}: {len(parameters)} parameters, "
            f"{len(runs)} runs, {len(interfaces)} interfaces"
        )
        return cls(parameters, runs, interfaces, version=int(version))

    def get_parameter(self, code: str) -> ParameterDef | None:
        return self._parameters.get(code)

    def get_run(self, run_id: str | None) -> RunDefinition | None:
        if run_id is None:
            return None
        return self._runs.get(run_id)

    def get_interface(self, interface_id: str) -> InstrumentInterface | None:
        return self._interfaces.get(interface_id)

    def interface_for_reactor(self, reactor_id: str) -> InstrumentInterface | None:
        for interface in self.interfaces:
            if interface.linked_reactor_id == reactor_id:
                return interface
        return None

    def critical_parameters(self) -> list[ParameterDef]:
        return [p for p in self.parameters if p.is_critical]

    def most_recent_run(self) -> RunDefinition | None:
        """Run with the latest start_time (first declared wins ties)."""
        if not self.runs:
            return None
        return max(self.runs, key=lambda r: r.start_time)

    def display_name(self, interface_id: str) -> str:
        """Interface display name, falling back to the raw id."""
        interface = self.get_interface(interface_id)
        return interface.display_name if interface else interface_id

    def run_label(self, run_id: str | None) -> str | None:
        """Short bioreactor run label ("R-456") for a run id."""
        run = self.get_run(run_id)
        return run.bioreactor_run if run else None


@lru_cache(maxsize=1)
def get_default_catalog() -> Catalog:
    """The catalog shipped with the package."""
    return Catalog.from_yaml(DEFAULT_CATALOG_PATH)
