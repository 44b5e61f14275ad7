"""
Unit tests for settings loading and the reference catalog.
"""

import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from bioledger.catalog import Catalog
from bioledger.config import DEFAULT_CATALOG_PATH, Settings, load_settings, load_yaml_section


class TestSettings:
    """Tests for Settings and load_settings"""

    def test_defaults(self):
        """Test default tunables"""
        settings = Settings()

        assert settings.sampling_hours == 1
        assert settings.gap_threshold_hours == 3.0
        assert settings.poll_interval_sec == 30.0
        assert settings.companion_timeout_sec == 120.0
        assert settings.chromatography_interface == "HPLC-01"

    def test_gap_threshold_scales_with_sampling(self):
        """Test the gap threshold is a multiple of the sampling interval"""
        assert Settings(sampling_hours=2, gap_factor=2.5).gap_threshold_hours == 5.0

    def test_environment_override(self, monkeypatch):
        """Test BIOLEDGER_* variables populate settings"""
        monkeypatch.setenv("BIOLEDGER_SAMPLING_HOURS", "4")
        monkeypatch.setenv("BIOLEDGER_COMPANION_TIMEOUT_SEC", "90")

        settings = load_settings()

        assert settings.sampling_hours == 4
        assert settings.companion_timeout_sec == 90.0

    def test_explicit_override_wins(self, monkeypatch):
        """Test keyword overrides beat the environment"""
        monkeypatch.setenv("BIOLEDGER_GAP_FACTOR", "5")
        assert load_settings(gap_factor=2).gap_factor == 2

    def test_env_file(self, tmp_path, monkeypatch):
        """Test a .env file seeds unset variables"""
        monkeypatch.delenv("BIOLEDGER_POLL_INTERVAL_SEC", raising=False)
        env_file = tmp_path / ".env"
        env_file.write_text("BIOLEDGER_POLL_INTERVAL_SEC=15\n")

        try:
            assert load_settings(env_file=env_file).poll_interval_sec == 15.0
        finally:
            os.environ.pop("BIOLEDGER_POLL_INTERVAL_SEC", None)

    def test_invalid_value_rejected(self, monkeypatch):
        """Test out-of-range values fail validation"""
        monkeypatch.setenv("BIOLEDGER_SAMPLING_HOURS", "0")
        with pytest.raises(ValidationError):
            load_settings()

    def test_paths_from_environment(self, monkeypatch, tmp_path):
        """Test resource paths can be redirected"""
        monkeypatch.setenv("BIOLEDGER_RULES_PATH", str(tmp_path / "rules.yaml"))
        assert load_settings().rules_path == Path(tmp_path / "rules.yaml")


class TestLoadYamlSection:
    """Tests for load_yaml_section"""

    def test_missing_file(self, tmp_path):
        """Test missing files raise FileNotFoundError"""
        with pytest.raises(FileNotFoundError):
            load_yaml_section(tmp_path / "absent.yaml", "rules")

    def test_missing_section(self, tmp_path):
        """Test documents without the section raise ValueError"""
        path = tmp_path / "doc.yaml"
        path.write_text("other: 1\n")

        with pytest.raises(ValueError, match="'rules'"):
            load_yaml_section(path, "rules")

    def test_empty_document(self, tmp_path):
        """Test empty documents raise ValueError"""
        path = tmp_path / "doc.yaml"
        path.write_text("")

        with pytest.raises(ValueError):
            load_yaml_section(path, "rules")


class TestCatalog:
    """Tests for catalog lookups"""

    def test_packaged_catalog(self, catalog):
        """Test the packaged catalog contents"""
        assert catalog.version == 2
        assert len(catalog.runs) == 3
        assert len(catalog.parameters) == 14
        assert {p.parameter_code for p in catalog.critical_parameters()} == {"TEMP", "PH", "VOLUME"}

    def test_run_lookups(self, catalog):
        """Test run labels and the most recent run"""
        assert catalog.run_label("CHO-r-hFSG-456-250308-2") == "R-456"
        assert catalog.run_label(None) is None
        assert catalog.run_label("unknown") is None
        assert catalog.most_recent_run().run_id == "CHO-r-hFSG-456-250308-2"

    def test_interface_lookups(self, catalog):
        """Test interface resolution by id and reactor"""
        assert catalog.interface_for_reactor("004-p").id == "BR-004-p"
        assert catalog.interface_for_reactor("999-x") is None
        assert catalog.display_name("HPLC-01") == "HPLC-01"
        assert catalog.display_name("BR-003-p") == "Bioreactor 003-p"
        assert catalog.display_name("UNKNOWN") == "UNKNOWN"
        assert catalog.get_interface("UNKNOWN") is None

    def test_parameter_lookup(self, catalog):
        """Test parameter limits are exposed"""
        ph = catalog.get_parameter("PH")

        assert (ph.min_value, ph.max_value) == (6.8, 7.2)
        assert catalog.get_parameter("NOPE") is None

    def test_duplicate_ids_rejected(self, catalog):
        """Test a catalog with repeated run ids cannot be built"""
        with pytest.raises(ValueError, match="run_id"):
            Catalog(catalog.parameters, catalog.runs + catalog.runs[:1], catalog.interfaces)

    def test_from_yaml(self):
        """Test loading the packaged document explicitly"""
        assert Catalog.from_yaml(DEFAULT_CATALOG_PATH).get_run("CHO-r-hFSG-458-250308-2").seed == 458
