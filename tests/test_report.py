"""Tests for specshard.sharding.report."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from specshard.sharding.discovery import DiscoveredSpec, DiscoveryReport
from specshard.sharding.orchestrator import OrchestrationResult, ShardAssignment, orchestrate
from specshard.sharding.report import (
    discovery_report_from_dict,
    orchestration_result_from_dict,
    read_report,
    shard_specs,
    write_report,
)


def _result() -> OrchestrationResult:
    return OrchestrationResult(
        shards=[
            ShardAssignment(
                shard=1,
                specs=["tests/mail.spec.ts"],
                test_time=120_000,
                capabilities=["email"],
                fixture_count=1,
            ),
            ShardAssignment(
                shard=2,
                specs=["tests/a.spec.ts", "tests/b.spec.ts"],
                test_time=90_000,
                capabilities=[],
                fixture_count=1,
            ),
        ],
        total_test_time=210_000,
    )


class TestSerializedShape:
    def test_discovery_report_keys(self) -> None:
        report = DiscoveryReport(
            specs=[DiscoveredSpec(path="tests/mail.spec.ts", capabilities=["email"])],
            skip_tags=["@wip"],
        )
        assert report.to_dict() == {
            "specs": [{"path": "tests/mail.spec.ts", "capabilities": ["email"]}],
            "skipTags": ["@wip"],
        }

    def test_orchestration_result_keys(self) -> None:
        data = _result().to_dict()

        assert set(data) == {"shards", "totalTestTime"}
        assert data["shards"][0] == {
            "shard": 1,
            "specs": ["tests/mail.spec.ts"],
            "testTime": 120_000,
            "capabilities": ["email"],
            "fixtureCount": 1,
        }


class TestWriteAndRead:
    def test_discovery_report_file(self, tmp_path: Path) -> None:
        report = DiscoveryReport(
            specs=[DiscoveredSpec(path="tests/a.spec.ts", capabilities=["proxy"])],
            skip_tags=[],
        )
        out = tmp_path / "nested" / "discovery.json"

        write_report(report, out)

        assert discovery_report_from_dict(read_report(out)) == report

    def test_orchestration_result_file(self, tmp_path: Path) -> None:
        out = tmp_path / "plan.json"
        write_report(_result(), out)

        assert json.loads(out.read_text(encoding="utf-8"))["totalTestTime"] == 210_000
        assert orchestration_result_from_dict(read_report(out)) == _result()

    def test_read_rejects_non_object(self, tmp_path: Path) -> None:
        out = tmp_path / "list.json"
        out.write_text("[]", encoding="utf-8")
        with pytest.raises(ValueError, match="Expected a JSON object"):
            read_report(out)

    def test_orchestrate_from_saved_discovery(self, tmp_path: Path) -> None:
        report = DiscoveryReport(
            specs=[
                DiscoveredSpec(path="a", capabilities=[]),
                DiscoveredSpec(path="b", capabilities=["email"]),
            ],
        )
        out = tmp_path / "discovery.json"
        write_report(report, out)

        loaded = discovery_report_from_dict(read_report(out))
        result = orchestrate(loaded.specs, 2)

        assert sorted(p for s in result.shards for p in s.specs) == ["a", "b"]


class TestShardSpecs:
    def test_zero_based_lookup(self) -> None:
        assert shard_specs(_result(), 0) == ["tests/mail.spec.ts"]
        assert shard_specs(_result(), 1) == ["tests/a.spec.ts", "tests/b.spec.ts"]

    def test_index_past_last_shard_is_empty(self) -> None:
        assert shard_specs(_result(), 5) == []

    def test_negative_index(self) -> None:
        with pytest.raises(ValueError, match="shard_index must be >= 0"):
            shard_specs(_result(), -1)
