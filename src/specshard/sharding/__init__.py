"""Spec discovery and capability-aware shard planning."""

from specshard.sharding.discovery import (
    DiscoveredSpec,
    DiscoveryReport,
    TestCallInfo,
    TestDiscoveryAnalyzer,
    discover,
)
from specshard.sharding.loader import (
    SourceUnit,
    discover_test_files,
    load_source_units,
    source_unit_from_code,
)
from specshard.sharding.orchestrator import (
    OrchestrationResult,
    ShardAssignment,
    orchestrate,
)
from specshard.sharding.report import (
    discovery_report_from_dict,
    orchestration_result_from_dict,
    read_report,
    shard_specs,
    write_report,
)

__all__ = [
    "DiscoveredSpec",
    "DiscoveryReport",
    "OrchestrationResult",
    "ShardAssignment",
    "SourceUnit",
    "TestCallInfo",
    "TestDiscoveryAnalyzer",
    "discover",
    "discover_test_files",
    "discovery_report_from_dict",
    "load_source_units",
    "orchestrate",
    "orchestration_result_from_dict",
    "read_report",
    "shard_specs",
    "source_unit_from_code",
    "write_report",
]
