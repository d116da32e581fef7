"""Tests for config.py — .specshard.yml parsing and validation."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from specshard.config import (
    DiscoveryConfig,
    OrchestrationConfig,
    ProjectConfig,
    SpecShardConfig,
    _resolve_dict,
    _resolve_env_vars,
    load_config,
    validate_config,
)

if TYPE_CHECKING:
    import pytest


def _write_config(root: Path, data: Any) -> None:
    (root / ".specshard.yml").write_text(yaml.dump(data), encoding="utf-8")


class TestResolveEnvVars:
    def test_resolves_existing_var(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MY_VAR", "hello")
        assert _resolve_env_vars("${MY_VAR}") == "hello"

    def test_missing_var_returns_empty(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("MISSING_VAR", raising=False)
        assert _resolve_env_vars("${MISSING_VAR}") == ""

    def test_resolves_nested_and_list_values(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TAG", "@wip")
        result = _resolve_dict({"discovery": {"skip_tags": ["${TAG}", 3]}})
        assert result == {"discovery": {"skip_tags": ["@wip", 3]}}


class TestLoadConfig:
    def test_defaults_without_file(self, tmp_path: Path) -> None:
        config = load_config(tmp_path)

        assert config.project.root == str(tmp_path.resolve())
        assert config.project.test_patterns == ["tests/**/*.spec.ts"]
        assert config.discovery == DiscoveryConfig()
        assert config.orchestration.default_duration == 60_000
        assert config.orchestration.max_group_duration == 300_000

    def test_reads_all_sections(self, tmp_path: Path) -> None:
        _write_config(
            tmp_path,
            {
                "project": {"test_patterns": ["e2e/**/*.spec.ts"]},
                "discovery": {"skip_tags": ["@wip"], "capability_prefix": "@needs:"},
                "orchestration": {"default_duration": 30_000, "max_group_duration": 120_000},
            },
        )

        config = load_config(tmp_path)

        assert config.project.test_patterns == ["e2e/**/*.spec.ts"]
        assert config.discovery.skip_tags == ["@wip"]
        assert config.discovery.capability_prefix == "@needs:"
        assert config.orchestration.default_duration == 30_000
        assert config.orchestration.max_group_duration == 120_000

    def test_env_var_in_skip_tags(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("EXTRA_SKIP", "@flaky")
        _write_config(tmp_path, {"discovery": {"skip_tags": ["${EXTRA_SKIP}"]}})

        assert load_config(tmp_path).discovery.skip_tags == ["@flaky"]

    def test_non_mapping_file_falls_back(self, tmp_path: Path) -> None:
        _write_config(tmp_path, ["not", "a", "mapping"])
        config = load_config(tmp_path)
        assert config.raw == {}
        assert config.discovery == DiscoveryConfig()

    def test_malformed_sections_fall_back(self, tmp_path: Path) -> None:
        _write_config(
            tmp_path,
            {
                "discovery": "oops",
                "orchestration": {"default_duration": "fast", "max_group_duration": True},
            },
        )
        config = load_config(tmp_path)

        assert config.discovery == DiscoveryConfig()
        assert config.orchestration == OrchestrationConfig()


class TestValidateConfig:
    def _config(self, **kwargs: Any) -> SpecShardConfig:
        return SpecShardConfig(project=ProjectConfig(root="/proj"), **kwargs)

    def test_defaults_are_valid(self) -> None:
        assert validate_config(self._config()) == []

    def test_non_positive_durations(self) -> None:
        orchestration = OrchestrationConfig(default_duration=0, max_group_duration=-1)
        errors = validate_config(self._config(orchestration=orchestration))
        assert len(errors) == 2
        assert any("default_duration" in e for e in errors)
        assert any("max_group_duration" in e for e in errors)

    def test_skip_tag_without_at_sign(self) -> None:
        errors = validate_config(self._config(discovery=DiscoveryConfig(skip_tags=["wip"])))
        assert errors == ["discovery.skip_tags entries must start with '@' (got: wip)"]

    def test_empty_prefix_and_patterns(self) -> None:
        config = SpecShardConfig(
            project=ProjectConfig(root="/proj", test_patterns=[]),
            discovery=DiscoveryConfig(capability_prefix=""),
        )
        errors = validate_config(config)
        assert "discovery.capability_prefix must not be empty" in errors
        assert "project.test_patterns must list at least one glob pattern" in errors
