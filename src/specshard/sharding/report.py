"""Report serialization for exchange between CI jobs."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from specshard.sharding.discovery import DiscoveredSpec, DiscoveryReport
from specshard.sharding.orchestrator import OrchestrationResult, ShardAssignment

if TYPE_CHECKING:
    from pathlib import Path


def write_report(report: DiscoveryReport | OrchestrationResult, output_path: Path) -> None:
    """Serialize *report* and write it to a JSON file."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(json.dumps(report.to_dict(), indent=2), encoding="utf-8")


def read_report(path: Path) -> dict[str, Any]:
    """Read a JSON report file written by ``write_report``."""
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        msg = f"Expected a JSON object in {path}"
        raise ValueError(msg)
    return data


def discovery_report_from_dict(data: dict[str, Any]) -> DiscoveryReport:
    """Rebuild a DiscoveryReport from its serialized form."""
    return DiscoveryReport(
        specs=[
            DiscoveredSpec(path=spec["path"], capabilities=list(spec.get("capabilities", [])))
            for spec in data.get("specs", [])
        ],
        skip_tags=list(data.get("skipTags", [])),
    )


def orchestration_result_from_dict(data: dict[str, Any]) -> OrchestrationResult:
    """Rebuild an OrchestrationResult from its serialized form."""
    return OrchestrationResult(
        shards=[
            ShardAssignment(
                shard=shard["shard"],
                specs=list(shard.get("specs", [])),
                test_time=shard.get("testTime", 0),
                capabilities=list(shard.get("capabilities", [])),
                fixture_count=shard.get("fixtureCount", 0),
            )
            for shard in data.get("shards", [])
        ],
        total_test_time=data.get("totalTestTime", 0),
    )


def shard_specs(result: OrchestrationResult, shard_index: int) -> list[str]:
    """Return the specs for one shard, addressed by zero-based index.

    A CI matrix may start more jobs than there are non-empty shards; the
    surplus indexes get an empty list.

    Raises:
        ValueError: If *shard_index* is negative.
    """
    if shard_index < 0:
        msg = f"shard_index must be >= 0, got {shard_index}"
        raise ValueError(msg)
    if shard_index >= len(result.shards):
        return []
    return list(result.shards[shard_index].specs)
