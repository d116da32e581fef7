"""Configuration parsing from ``.specshard.yml``."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".specshard.yml"

DEFAULT_TEST_PATTERNS = ["tests/**/*.spec.ts"]
DEFAULT_CAPABILITY_PREFIX = "@capability:"
DEFAULT_DURATION_MS = 60_000
DEFAULT_MAX_GROUP_DURATION_MS = 300_000

_ENV_VAR_RE = re.compile(r"\$\{(\w+)\}")


def _resolve_env_vars(value: str) -> str:
    """Replace ``${VAR_NAME}`` placeholders with environment variable values."""

    def _replace(match: re.Match[str]) -> str:
        var = match.group(1)
        resolved = os.environ.get(var)
        if resolved is None:
            logger.warning("Environment variable %s is not set (referenced in config)", var)
            return ""
        return resolved

    return _ENV_VAR_RE.sub(_replace, value)


def _resolve_dict(data: dict[str, Any]) -> dict[str, Any]:
    """Recursively resolve environment variables in a dictionary."""
    result: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, str):
            result[key] = _resolve_env_vars(value)
        elif isinstance(value, dict):
            result[key] = _resolve_dict(value)
        elif isinstance(value, list):
            result[key] = [
                _resolve_env_vars(item) if isinstance(item, str) else item for item in value
            ]
        else:
            result[key] = value
    return result


@dataclass
class ProjectConfig:
    """Project-level configuration."""

    root: str
    """Project root directory; spec paths are reported relative to it."""

    test_patterns: list[str] = field(default_factory=lambda: list(DEFAULT_TEST_PATTERNS))
    """Glob patterns (relative to root) selecting spec files."""


@dataclass
class DiscoveryConfig:
    """Static spec discovery settings."""

    skip_tags: list[str] = field(default_factory=list)
    """Title tags (e.g. ``@wip``) that mark a test as skipped."""

    capability_prefix: str = DEFAULT_CAPABILITY_PREFIX
    """Tag prefix identifying capability tags."""


@dataclass
class OrchestrationConfig:
    """Shard planning settings."""

    default_duration: float = DEFAULT_DURATION_MS
    """Duration (ms) assumed for specs missing from the metrics map."""

    max_group_duration: float = DEFAULT_MAX_GROUP_DURATION_MS
    """Capability groups above this total duration (ms) are split."""


@dataclass
class SpecShardConfig:
    """Top-level configuration."""

    project: ProjectConfig
    discovery: DiscoveryConfig = field(default_factory=DiscoveryConfig)
    orchestration: OrchestrationConfig = field(default_factory=OrchestrationConfig)
    raw: dict[str, Any] = field(default_factory=dict)
    """The resolved YAML mapping as loaded."""


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    value = raw.get(name, {})
    return value if isinstance(value, dict) else {}


def _str_list(value: Any, default: list[str]) -> list[str]:
    if not isinstance(value, list):
        return list(default)
    return [str(item) for item in value]


def _number(value: Any, default: float) -> float:
    """Return *value* if it is an int or float (not bool), else *default*."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return value


def _parse_discovery_config(raw: dict[str, Any]) -> DiscoveryConfig:
    section = _section(raw, "discovery")
    return DiscoveryConfig(
        skip_tags=_str_list(section.get("skip_tags"), []),
        capability_prefix=str(section.get("capability_prefix", DEFAULT_CAPABILITY_PREFIX)),
    )


def _parse_orchestration_config(raw: dict[str, Any]) -> OrchestrationConfig:
    section = _section(raw, "orchestration")
    return OrchestrationConfig(
        default_duration=_number(section.get("default_duration"), DEFAULT_DURATION_MS),
        max_group_duration=_number(
            section.get("max_group_duration"), DEFAULT_MAX_GROUP_DURATION_MS
        ),
    )


def load_config(root: str | Path) -> SpecShardConfig:
    """Load and parse ``.specshard.yml`` from *root*.

    Falls back to defaults when the file is missing, is not a mapping,
    or has missing/malformed sections.
    """
    root_path = Path(root).resolve()
    config_file = root_path / CONFIG_FILENAME

    raw: dict[str, Any] = {}
    if config_file.is_file():
        parsed = yaml.safe_load(config_file.read_text(encoding="utf-8"))
        if isinstance(parsed, dict):
            raw = _resolve_dict(parsed)
        else:
            logger.warning("Ignoring %s: top-level value is not a mapping", config_file)

    project_raw = _section(raw, "project")
    project = ProjectConfig(
        root=str(project_raw.get("root", root_path)),
        test_patterns=_str_list(project_raw.get("test_patterns"), DEFAULT_TEST_PATTERNS),
    )

    return SpecShardConfig(
        project=project,
        discovery=_parse_discovery_config(raw),
        orchestration=_parse_orchestration_config(raw),
        raw=raw,
    )


def _validate_discovery_config(discovery: DiscoveryConfig) -> list[str]:
    errors: list[str] = []

    if not discovery.capability_prefix:
        errors.append("discovery.capability_prefix must not be empty")

    errors.extend(
        f"discovery.skip_tags entries must start with '@' (got: {tag})"
        for tag in discovery.skip_tags
        if not tag.startswith("@")
    )

    return errors


def _validate_orchestration_config(orchestration: OrchestrationConfig) -> list[str]:
    errors: list[str] = []

    if orchestration.default_duration <= 0:
        errors.append(
            f"orchestration.default_duration must be positive "
            f"(got: {orchestration.default_duration})"
        )

    if orchestration.max_group_duration <= 0:
        errors.append(
            f"orchestration.max_group_duration must be positive "
            f"(got: {orchestration.max_group_duration})"
        )

    return errors


def validate_config(config: SpecShardConfig) -> list[str]:
    """Validate the configuration and return a list of error messages.

    Returns an empty list if the configuration is valid.
    """
    errors: list[str] = []

    if not config.project.root:
        errors.append("project.root is required")

    if not config.project.test_patterns:
        errors.append("project.test_patterns must list at least one glob pattern")

    errors.extend(_validate_discovery_config(config.discovery))
    errors.extend(_validate_orchestration_config(config.orchestration))

    return errors
