"""
Tests for configuration loading and validation.
"""

from pathlib import Path

import pytest
import yaml

from supply_config import get_active_config
from supply_config.loader import parse_config
from supply_config.validator import validate_configuration
from supply_kernel.exceptions import ConfigurationError


def _write(tmp_path, data) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(data))
    return path


MINIMAL = {
    "config_id": "test",
    "version": 2,
    "rbac": {"roles": {"admin": {"all_units": True, "capabilities": ["*"]}}},
}


class TestDefaultConfiguration:
    def test_default_set_loads(self, supply_config):
        assert supply_config.config_id == "default"
        assert supply_config.budget_policy.income_period_days == 365
        assert supply_config.request_policy.default_send_resolution == "abort"
        assert len(supply_config.checksum) == 64

    def test_default_roles_declared(self, supply_config):
        roles = {grant.role for grant in supply_config.rbac.roles}
        assert roles == {
            "admin", "gestor", "operador-financeiro", "operador-administrativo", "operador-almoxarife",
        }


class TestLoading:
    def test_minimal_file_uses_defaults(self, tmp_path):
        config = get_active_config(_write(tmp_path, MINIMAL))

        assert config.version == 2
        assert config.database.url == "sqlite:///supply.db"
        assert config.request_policy.default_send_resolution == "abort"

    def test_checksum_tracks_content(self, tmp_path):
        first = get_active_config(_write(tmp_path, MINIMAL))
        second = get_active_config(_write(tmp_path, {**MINIMAL, "version": 3}))
        assert first.checksum != second.checksum

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml")

    def test_missing_config_id_raises(self):
        with pytest.raises(KeyError):
            parse_config({"version": 1})


class TestValidation:
    def test_unknown_capability_rejected(self, tmp_path):
        data = {
            **MINIMAL,
            "rbac": {"roles": {"clerk": {"capabilities": ["purchase.create", "purchase.teleport"]}}},
        }
        with pytest.raises(ConfigurationError) as exc_info:
            get_active_config(_write(tmp_path, data))
        assert any("purchase.teleport" in e for e in exc_info.value.errors)

    def test_unknown_send_resolution_rejected(self):
        config = parse_config({**MINIMAL, "request_policy": {"default_send_resolution": "wait"}})
        result = validate_configuration(config)
        assert not result.is_valid

    def test_non_positive_income_period_rejected(self):
        config = parse_config({**MINIMAL, "budget_policy": {"income_period_days": 0}})
        assert not validate_configuration(config).is_valid

    def test_role_without_capability_is_a_warning(self):
        data = {**MINIMAL, "rbac": {"roles": {**MINIMAL["rbac"]["roles"], "idle": {}}}}
        result = validate_configuration(parse_config(data))
        assert result.is_valid
        assert result.warnings

    def test_no_roles_rejected(self):
        result = validate_configuration(parse_config({"config_id": "x", "version": 1}))
        assert not result.is_valid
