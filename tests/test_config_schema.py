"""Tests for config_schema.py -- UnifiedConfig and adapters."""

import pytest
from pydantic import ValidationError

from taskmaster_sync.config import DEFAULT_STATE_PATH, DEFAULT_TASKS_PATH
from taskmaster_sync.config_schema import (
    StatusFieldMapping,
    UnifiedConfig,
    build_config,
    to_legacy_config,
    yaml_fallbacks,
)


class TestUnifiedConfig:
    """Tests for UnifiedConfig defaults and validation."""

    def test_zero_config(self):
        config = UnifiedConfig()
        assert config.github.token is None
        assert config.sync.tasks_path == DEFAULT_TASKS_PATH
        assert config.sync.state_path == DEFAULT_STATE_PATH
        assert config.sync.use_locking is True
        assert config.sync.save_after_each_task is True
        assert config.matching.min_score == 0.3
        assert config.matching.ambiguity_threshold == 0.1
        assert config.matching.near_certainty == 0.9
        assert config.status_field_mapping == StatusFieldMapping()
        assert config.labels.priority_prefix == "priority:"
        assert config.logging.level == "INFO"

    def test_build_from_empty(self):
        assert build_config({}) == UnifiedConfig()

    def test_build_sections(self):
        config = build_config(
            {
                "github": {"owner": "acme", "repo": "roadmap"},
                "sync": {"cleanup_stale": True, "initial_status": "Todo"},
                "matching": {"status_aliases": {"shipped": "done"}},
                "status_field_mapping": {"ready": "Todo"},
            }
        )
        assert config.github.owner == "acme"
        assert config.sync.cleanup_stale is True
        assert config.sync.initial_status == "Todo"
        assert config.matching.status_aliases == {"shipped": "done"}
        assert config.status_field_mapping.ready == "Todo"
        assert config.status_field_mapping.backlog == "Backlog"

    def test_null_sections_use_defaults(self):
        config = build_config({"sync": None, "github": None})
        assert config.sync.use_locking is True

    def test_score_out_of_range(self):
        with pytest.raises(ValidationError):
            build_config({"matching": {"min_score": 1.5}})

    def test_frozen(self):
        config = UnifiedConfig()
        with pytest.raises(ValidationError):
            config.sync.use_locking = False


class TestYamlFallbacks:
    def test_drops_unset_github_values(self):
        fb = yaml_fallbacks(build_config({"github": {"owner": "acme"}}))
        assert fb == {
            "owner": "acme",
            "tasks_path": DEFAULT_TASKS_PATH,
            "state_path": DEFAULT_STATE_PATH,
        }


class TestToLegacyConfig:
    """Tests for to_legacy_config()."""

    def test_from_unified(self):
        unified = build_config(
            {
                "github": {"token": "t", "owner": "acme", "repo": "roadmap", "project_id": "PVT_1"},
                "sync": {"state_path": "s.json"},
            }
        )
        config = to_legacy_config(unified)
        assert config.token == "t"
        assert config.owner == "acme"
        assert config.project_id == "PVT_1"
        assert config.state_path == "s.json"
        assert config.dry_run is False

    def test_overrides_win(self):
        unified = build_config({"github": {"owner": "acme", "repo": "roadmap"}})
        config = to_legacy_config(
            unified, {"owner": "other", "dry_run": True, "tasks_path": "t.json"}
        )
        assert config.owner == "other"
        assert config.repo == "roadmap"
        assert config.dry_run is True
        assert config.tasks_path == "t.json"

    def test_missing_values_become_empty_strings(self):
        config = to_legacy_config(UnifiedConfig())
        assert config.token == ""
        assert config.owner == ""
