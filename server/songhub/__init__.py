"""Cross-platform song search: aggregation, dedup, ranking and caching."""

__version__ = "0.1.0"
