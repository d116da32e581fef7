"""Capability-aware shard planning.

Algorithm:

1. Enrich specs with a duration from the metrics map (or the default).
2. Group specs by their first capability; capability-less specs stay apart.
3. Split capability groups whose total exceeds ``max_group_duration``.
4. Greedy bin-packing: heaviest item first, always onto the lightest shard.

Packing works on items rather than specs, so a capability group lands on a
single shard (or a bounded number after splitting) and its one-time setup
cost is paid once per shard instead of once per spec.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from specshard.config import OrchestrationConfig

if TYPE_CHECKING:
    from collections.abc import Mapping

    from specshard.sharding.discovery import DiscoveredSpec

logger = logging.getLogger(__name__)


# ── Data models ───────────────────────────────────────────────────


@dataclass
class SpecWithDuration:
    """A discovered spec with its expected duration."""

    path: str
    capabilities: list[str]
    duration: float


@dataclass
class PackingItem:
    """Unit placed by the bin-packer: a capability (sub)group or one standalone spec."""

    capability: str | None
    specs: list[str]
    duration: float


@dataclass
class Bucket:
    """A shard under construction."""

    specs: list[str] = field(default_factory=list)
    test_time: float = 0
    capabilities: set[str] = field(default_factory=set)
    has_standard_specs: bool = False


@dataclass
class ShardAssignment:
    """Final spec list for one shard."""

    shard: int
    """1-indexed shard number."""

    specs: list[str] = field(default_factory=list)
    """Spec paths assigned to this shard, in packing order."""

    test_time: float = 0
    """Sum of the assigned specs' durations (ms)."""

    capabilities: list[str] = field(default_factory=list)
    """Capabilities needed by this shard, sorted."""

    fixture_count: int = 0
    """Distinct capabilities, plus one if any capability-less spec is present."""

    def to_dict(self) -> dict[str, object]:
        """Serialize to JSON-compatible dict."""
        return {
            "shard": self.shard,
            "specs": list(self.specs),
            "testTime": self.test_time,
            "capabilities": list(self.capabilities),
            "fixtureCount": self.fixture_count,
        }


@dataclass
class OrchestrationResult:
    """Shard plan for a set of specs."""

    shards: list[ShardAssignment] = field(default_factory=list)
    """Non-empty shards, numbered 1..K."""

    total_test_time: float = 0
    """Sum of all spec durations, independent of the shard count."""

    def to_dict(self) -> dict[str, object]:
        """Serialize to JSON-compatible dict."""
        return {
            "shards": [s.to_dict() for s in self.shards],
            "totalTestTime": self.total_test_time,
        }


# ── Steps ─────────────────────────────────────────────────────────


def enrich_with_duration(
    specs: list[DiscoveredSpec],
    metrics: Mapping[str, float],
    default_duration: float,
) -> list[SpecWithDuration]:
    """Attach a duration to every spec; missing metrics fall back to the default."""
    enriched: list[SpecWithDuration] = []
    for spec in specs:
        duration = metrics.get(spec.path)
        enriched.append(
            SpecWithDuration(
                path=spec.path,
                capabilities=list(spec.capabilities),
                duration=default_duration if duration is None else duration,
            )
        )
    return enriched


def group_by_capability(
    specs: list[SpecWithDuration],
) -> tuple[dict[str, list[SpecWithDuration]], list[SpecWithDuration]]:
    """Split specs into per-capability groups and capability-less standard specs.

    A spec with several capabilities is filed under its first one only.
    """
    groups: dict[str, list[SpecWithDuration]] = {}
    standard: list[SpecWithDuration] = []

    for spec in specs:
        if spec.capabilities:
            groups.setdefault(spec.capabilities[0], []).append(spec)
        else:
            standard.append(spec)

    return groups, standard


def _split_group(specs: list[SpecWithDuration], target: float) -> list[list[SpecWithDuration]]:
    sub_groups: list[list[SpecWithDuration]] = [[]]
    current_total: float = 0

    for spec in specs:
        # An empty sub-group always takes the next spec, even one above target
        if current_total + spec.duration > target and sub_groups[-1]:
            sub_groups.append([])
            current_total = 0
        sub_groups[-1].append(spec)
        current_total += spec.duration

    return sub_groups


def split_large_groups(
    groups: dict[str, list[SpecWithDuration]],
    max_group_duration: float,
) -> list[PackingItem]:
    """Turn capability groups into packing items, splitting oversized ones.

    Each group is sorted by duration (descending).  A group whose total
    exceeds *max_group_duration* and holds more than one spec is cut into
    ``ceil(total / max_group_duration)`` target-sized sub-groups by greedy
    accumulation; every sub-group keeps the capability name.
    """
    items: list[PackingItem] = []

    for capability, members in groups.items():
        ordered = sorted(members, key=lambda s: s.duration, reverse=True)
        total = sum(s.duration for s in ordered)

        if total > max_group_duration and len(ordered) > 1:
            num_sub_groups = math.ceil(total / max_group_duration)
            target = total / num_sub_groups
            sub_groups = _split_group(ordered, target)
            logger.debug(
                "Split capability %s (%s ms) into %d groups", capability, total, len(sub_groups)
            )
            items.extend(
                PackingItem(
                    capability=capability,
                    specs=[s.path for s in sub_group],
                    duration=sum(s.duration for s in sub_group),
                )
                for sub_group in sub_groups
            )
        else:
            items.append(
                PackingItem(
                    capability=capability,
                    specs=[s.path for s in ordered],
                    duration=total,
                )
            )

    return items


def assign_to_shards(items: list[PackingItem], num_shards: int) -> list[Bucket]:
    """Longest-processing-time-first packing of *items* into *num_shards* buckets.

    Items are placed heaviest first onto the bucket with the lowest
    accumulated time; ties go to the earliest bucket.
    """
    buckets = [Bucket() for _ in range(num_shards)]

    for item in sorted(items, key=lambda i: i.duration, reverse=True):
        lightest = min(buckets, key=lambda b: b.test_time)

        lightest.specs.extend(item.specs)
        lightest.test_time += item.duration

        if item.capability:
            lightest.capabilities.add(item.capability)
        else:
            lightest.has_standard_specs = True

    return buckets


# ── Public API ────────────────────────────────────────────────────


def orchestrate(
    specs: list[DiscoveredSpec],
    num_shards: int,
    metrics: Mapping[str, float] | None = None,
    config: OrchestrationConfig | None = None,
) -> OrchestrationResult:
    """Distribute *specs* across at most *num_shards* balanced shards.

    Args:
        specs: Discovered specs (see ``discover``).
        num_shards: Number of shards requested.
        metrics: Historical duration (ms) per spec path.
        config: Default duration and group-split threshold.

    Returns:
        OrchestrationResult with empty shards dropped and the rest
        renumbered from 1.

    Raises:
        ValueError: If *num_shards* is less than 1.
    """
    if num_shards < 1:
        msg = f"num_shards must be >= 1, got {num_shards}"
        raise ValueError(msg)

    settings = config or OrchestrationConfig()
    enriched = enrich_with_duration(specs, metrics or {}, settings.default_duration)
    groups, standard = group_by_capability(enriched)

    capability_items = split_large_groups(groups, settings.max_group_duration)
    standard_items = [
        PackingItem(capability=None, specs=[s.path], duration=s.duration) for s in standard
    ]

    buckets = assign_to_shards(capability_items + standard_items, num_shards)
    total_test_time = sum(s.duration for s in enriched)

    shards = [
        ShardAssignment(
            shard=index,
            specs=bucket.specs,
            test_time=bucket.test_time,
            capabilities=sorted(bucket.capabilities),
            fixture_count=len(bucket.capabilities) + (1 if bucket.has_standard_specs else 0),
        )
        for index, bucket in enumerate((b for b in buckets if b.specs), start=1)
    ]

    logger.info(
        "Planned %d specs into %d shards (%d requested), total %s ms",
        len(enriched),
        len(shards),
        num_shards,
        total_test_time,
    )
    return OrchestrationResult(shards=shards, total_test_time=total_test_time)
