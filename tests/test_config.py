"""Tests for configuration loading and the entity type registry.

Tests cover:
    - YAML loading with ${VAR} expansion
    - Environment-only configuration
    - Validation of accounts, overrides and entity lists
    - Registry ordering and aliases
"""

import pytest
import yaml
from pydantic import ValidationError

from profile_bridge.config import AccountConfig, PerformanceConfig, SyncConfig, load_config_from_yaml
from profile_bridge.resources import (
    EXPORT_ORDER,
    RESTORE_ORDER,
    EntityType,
    get_info,
    normalize_entity_type,
)

# ============================================
# Loading Tests
# ============================================


class TestLoadConfig:
    def test_yaml_with_env_expansion(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TARGET_TOKEN", "secret-target")
        path = tmp_path / "config.yaml"
        path.write_text(
            yaml.safe_dump(
                {
                    "target": {"url": "https://api.eu.example/", "token": "${TARGET_TOKEN}"},
                    "entities": ["device", "access_management", "devices"],
                    "performance": {"concurrency": {"dashboard": 2}},
                }
            )
        )

        config = load_config_from_yaml(path)

        assert config.target.token == "secret-target"
        assert config.target.url == "https://api.eu.example"
        assert config.entities == [EntityType.DEVICES, EntityType.ACCESS]
        assert config.performance.concurrency_for(EntityType.DASHBOARDS) == 2
        assert config.source is None

    def test_missing_env_var(self, tmp_path, monkeypatch):
        monkeypatch.delenv("UNSET_TOKEN", raising=False)
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"target": {"token": "${UNSET_TOKEN}"}}))

        with pytest.raises(ValueError, match="UNSET_TOKEN"):
            load_config_from_yaml(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config_from_yaml(tmp_path / "nope.yaml")

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")

        with pytest.raises(ValueError):
            load_config_from_yaml(path)

    def test_environment_only(self, monkeypatch):
        monkeypatch.setenv("PROFILE_BRIDGE_TARGET__TOKEN", "env-token")
        monkeypatch.setenv("PROFILE_BRIDGE_EXPORT_TAG", "copy_id")

        config = SyncConfig()

        assert config.target.token == "env-token"
        assert config.export_tag == "copy_id"


# ============================================
# Validation Tests
# ============================================


class TestValidation:
    def test_blank_token_rejected(self):
        with pytest.raises(ValidationError):
            AccountConfig(token="  ")

    def test_url_scheme_required(self):
        with pytest.raises(ValidationError):
            AccountConfig(token="t", url="api.example")

    def test_unknown_entity_rejected(self):
        with pytest.raises(ValidationError):
            SyncConfig(target=AccountConfig(token="t"), entities=["gadgets"])

    def test_negative_override_rejected(self):
        with pytest.raises(ValidationError):
            PerformanceConfig(delay_ms={"devices": -1})

    def test_defaults_come_from_registry(self):
        performance = PerformanceConfig(delay_ms={"secret": 50})

        assert performance.delay_for(EntityType.SECRETS) == 0.05
        assert performance.delay_for(EntityType.DASHBOARDS) == 0.5
        assert performance.concurrency_for(EntityType.ACTIONS) == 10


# ============================================
# Registry Tests
# ============================================


class TestRegistry:
    def test_export_order(self):
        assert EXPORT_ORDER == [
            EntityType.DEVICES,
            EntityType.ANALYSIS,
            EntityType.DASHBOARDS,
            EntityType.ACCESS,
            EntityType.RUN,
            EntityType.ACTIONS,
            EntityType.DICTIONARIES,
        ]

    def test_restore_order_puts_dependencies_first(self):
        position = {entity_type: i for i, entity_type in enumerate(RESTORE_ORDER)}

        assert len(RESTORE_ORDER) == len(EntityType)
        for entity_type in EntityType:
            for dependency in get_info(entity_type).dependencies("restore"):
                assert position[dependency] < position[entity_type]

    def test_export_dependencies_are_exportable(self):
        for entity_type in EXPORT_ORDER:
            for dependency in get_info(entity_type).dependencies("export"):
                assert get_info(dependency).exportable

    def test_aliases(self):
        assert normalize_entity_type(" Access_Management ") == EntityType.ACCESS
        assert normalize_entity_type("run-users") == EntityType.RUN_USERS
        with pytest.raises(ValueError, match="Valid types"):
            normalize_entity_type("gadgets")
