"""specshard: static spec discovery and capability-aware shard planning."""

__version__ = "0.1.0"
