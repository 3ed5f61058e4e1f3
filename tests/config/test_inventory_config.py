"""Configuration loading and validation (inventory_config)."""

from __future__ import annotations

import pytest
import yaml

from inventory_config import DEFAULT_CONFIG_PATH, get_active_config
from inventory_config.loader import (
    compute_checksum,
    load_yaml_file,
    parse_role,
    parse_settings,
)
from inventory_config.schema import DatabaseSettings, TransactionSettings
from inventory_kernel.domain.authority import Capability


def _minimal(**overrides) -> dict:
    data = {"config_id": "test-set", "version": 3}
    data.update(overrides)
    return data


class TestDefaultSet:
    def test_loads_and_traces(self, captured_logs):
        settings = get_active_config()

        assert settings.config_id == "inventory-default"
        assert settings.version == 1
        assert settings.transactions.max_attempts == 5
        assert settings.requests.default_urgency == "NORMAL"
        assert set(settings.role_names) == {
            "super_admin", "group_admin", "company_admin",
            "maintenance_chief", "warehouse_keeper", "technician",
        }

        (trace,) = [r for r in captured_logs() if r["message"] == "INVENTORY_CONFIG_TRACE"]
        assert trace["config_set_id"] == "inventory-default"
        assert trace["checksum"] == settings.checksum

    def test_checksum_is_deterministic(self):
        assert get_active_config().checksum == get_active_config().checksum
        assert get_active_config().checksum == compute_checksum(load_yaml_file(DEFAULT_CONFIG_PATH))

    def test_custom_path(self, tmp_path):
        path = tmp_path / "site.yaml"
        path.write_text(yaml.safe_dump(_minimal(requests={"default_urgency": "high"})))
        settings = get_active_config(path)
        assert settings.config_id == "test-set"
        assert settings.requests.default_urgency == "HIGH"
        assert settings.roles == ()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml")


class TestChecksum:
    def test_key_order_does_not_matter(self):
        assert compute_checksum({"a": 1, "b": [1, 2]}) == compute_checksum({"b": [1, 2], "a": 1})

    def test_content_changes_checksum(self):
        assert compute_checksum(_minimal()) != compute_checksum(_minimal(version=4))


class TestParseSettings:
    @pytest.mark.parametrize("missing", ["config_id", "version"])
    def test_required_keys(self, missing):
        data = _minimal()
        del data[missing]
        with pytest.raises(KeyError):
            parse_settings(data)

    def test_defaults_when_sections_absent(self):
        settings = parse_settings(_minimal())
        assert settings.database == DatabaseSettings()
        assert settings.transactions == TransactionSettings()

    def test_bad_urgency(self):
        with pytest.raises(ValueError):
            parse_settings(_minimal(requests={"default_urgency": "whenever"}))

    def test_roles_must_be_a_mapping(self):
        with pytest.raises(ValueError):
            parse_settings(_minimal(roles=["technician"]))

    def test_capabilities_for(self):
        settings = parse_settings(_minimal(roles={"auditor": ["view_movements"]}))
        assert settings.capabilities_for("auditor") == frozenset({"view_movements"})
        assert settings.capabilities_for("nobody") == frozenset()


class TestParseRole:
    def test_wildcard_expands_to_every_capability(self):
        grant = parse_role("root", ["*"])
        assert grant.capabilities == frozenset(c.value for c in Capability)

    def test_unknown_capability(self):
        with pytest.raises(ValueError) as exc_info:
            parse_role("technician", ["create_request", "fly"])
        assert "fly" in str(exc_info.value)

    def test_empty_role(self):
        assert parse_role("observer", None).capabilities == frozenset()


class TestSettingsValidation:
    def test_engine_options(self):
        options = DatabaseSettings(pool_size=5, sqlite_busy_timeout_seconds=2.5).engine_options()
        assert options == {
            "echo": False,
            "pool_size": 5,
            "max_overflow": 10,
            "sqlite_busy_timeout": 2.5,
        }

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"url": ""},
            {"pool_size": 0},
            {"max_overflow": -1},
            {"sqlite_busy_timeout_seconds": 0},
        ],
    )
    def test_invalid_database(self, kwargs):
        with pytest.raises(ValueError):
            DatabaseSettings(**kwargs)

    @pytest.mark.parametrize("kwargs", [{"max_attempts": 0}, {"backoff_seconds": -0.1}])
    def test_invalid_transactions(self, kwargs):
        with pytest.raises(ValueError):
            TransactionSettings(**kwargs)

    def test_invalid_section_in_yaml(self):
        with pytest.raises(ValueError):
            parse_settings(_minimal(transactions={"max_attempts": 0}))
