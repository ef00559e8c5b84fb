"""
Tests for configuration loading.

Tests cover:
- AccessControlConfig from environment and YAML
- Flattening into the implementation's config map
- Site config resolution and validation
- Boolean flag parsing
"""

from pathlib import Path

import pytest

from sqlwarden.core.config import (
    CONFIG_KEYTAB,
    CONFIG_PRINCIPAL,
    CONFIG_SITE_CONFIG,
    CONFIG_USE_GROUP_LOOKUP,
    DEFAULT_SITE_CONFIG,
    AccessControlConfig,
    SiteConfig,
    load_access_control_config,
    load_site_config,
    parse_flag,
)
from sqlwarden.errors import ConfigurationError


class TestAccessControlConfig:
    """Tests for AccessControlConfig."""

    def test_defaults(self) -> None:
        config = AccessControlConfig()
        assert config.implementation == "policy"
        assert config.use_group_lookup is False
        assert config.keytab is None

    def test_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SQLWARDEN_PRINCIPAL", "presto@EXAMPLE.COM")
        monkeypatch.setenv("SQLWARDEN_USE_GROUP_LOOKUP", "true")
        config = AccessControlConfig()
        assert config.principal == "presto@EXAMPLE.COM"
        assert config.use_group_lookup is True

    def test_config_map_minimal(self) -> None:
        assert AccessControlConfig().to_config_map() == {CONFIG_USE_GROUP_LOOKUP: "false"}

    def test_config_map_full(self) -> None:
        config = AccessControlConfig(
            keytab="/etc/presto.keytab",
            principal="presto@EXAMPLE.COM",
            use_group_lookup=True,
            site_config="/etc/sqlwarden-site.yaml",
        )
        assert config.to_config_map() == {
            CONFIG_KEYTAB: "/etc/presto.keytab",
            CONFIG_PRINCIPAL: "presto@EXAMPLE.COM",
            CONFIG_USE_GROUP_LOOKUP: "true",
            CONFIG_SITE_CONFIG: "/etc/sqlwarden-site.yaml",
        }

    @pytest.mark.parametrize(
        "keytab,principal",
        [("/etc/presto.keytab", None), (None, "presto@EXAMPLE.COM")],
    )
    def test_keytab_and_principal_only_together(self, keytab, principal) -> None:
        config_map = AccessControlConfig(keytab=keytab, principal=principal).to_config_map()
        assert CONFIG_KEYTAB not in config_map
        assert CONFIG_PRINCIPAL not in config_map

    def test_load_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "sqlwarden.yaml"
        path.write_text("implementation: policy\nuse_group_lookup: true\nlog_level: DEBUG\n")
        config = load_access_control_config(path)
        assert config.use_group_lookup is True
        assert config.log_level == "DEBUG"

    def test_load_yaml_missing(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="Cannot read"):
            load_access_control_config(tmp_path / "missing.yaml")

    def test_load_yaml_not_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "sqlwarden.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError, match="must be a mapping"):
            load_access_control_config(path)

    def test_load_yaml_invalid_field(self, tmp_path: Path) -> None:
        path = tmp_path / "sqlwarden.yaml"
        path.write_text("use_group_lookup: [1, 2]\n")
        with pytest.raises(ConfigurationError, match="Invalid access control config"):
            load_access_control_config(path)


class TestSiteConfig:
    """Tests for site config loading."""

    def test_defaults_without_file(self) -> None:
        config = load_site_config()
        assert config == SiteConfig()
        assert config.service_type == "presto"
        assert config.app_id == "presto"

    def test_explicit_path(self, tmp_path: Path, site_config_yaml: str) -> None:
        path = tmp_path / "site.yaml"
        path.write_text(site_config_yaml)
        config = load_site_config(str(path))
        assert config.evaluator_url == "http://pdp.example:6080"
        assert config.timeout_seconds == 5
        assert config.service_type == "trino"
        assert config.app_id == "warehouse"
        assert config.headers == {"X-Cluster": "test"}

    def test_missing_explicit_path_warns(self, tmp_path: Path, caplog) -> None:
        with caplog.at_level("WARNING", logger="sqlwarden.core.config"):
            config = load_site_config(str(tmp_path / "missing.yaml"))
        assert config == SiteConfig()
        assert "not found" in caplog.text

    def test_default_file_in_working_directory(self, isolated_cwd: Path) -> None:
        (isolated_cwd / DEFAULT_SITE_CONFIG).write_text("service_type: hive\n")
        assert load_site_config().service_type == "hive"

    def test_malformed_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "site.yaml"
        path.write_text("evaluator_url: [unclosed\n")
        with pytest.raises(ConfigurationError, match="Invalid site config"):
            load_site_config(str(path))

    def test_unknown_field(self, tmp_path: Path) -> None:
        path = tmp_path / "site.yaml"
        path.write_text("evaluator: http://x\n")
        with pytest.raises(ConfigurationError):
            load_site_config(str(path))

    def test_timeout_must_be_positive(self, tmp_path: Path) -> None:
        path = tmp_path / "site.yaml"
        path.write_text("timeout_seconds: 0\n")
        with pytest.raises(ConfigurationError):
            load_site_config(str(path))


class TestParseFlag:
    """Map-style booleans."""

    @pytest.mark.parametrize("value", ["true", "TRUE", "True", " true "])
    def test_true(self, value: str) -> None:
        assert parse_flag(value)

    @pytest.mark.parametrize("value", [None, "", "false", "yes", "1", "on"])
    def test_not_true(self, value) -> None:
        assert not parse_flag(value)
