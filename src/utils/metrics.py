"""Prometheus metrics for the preview pipeline.

All metric objects are defined at import time and shared process-wide.
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

preview_requests_total = Counter(
    "dwg_preview_requests_total",
    "Preview requests by outcome",
    ["outcome"],  # cache_hit|rendered|placeholder|error
)
preview_duration_seconds = Histogram(
    "dwg_preview_duration_seconds",
    "End-to-end preview conversion duration",
    buckets=[0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0],
)
external_tool_runs_total = Counter(
    "dwg_external_tool_runs_total",
    "External DWG converter invocations",
    ["tool", "status"],
)
entities_skipped_total = Counter(
    "dwg_entities_skipped_total",
    "DXF entities dropped because their type is not rendered",
    ["entity_type"],
)
cache_write_failures_total = Counter(
    "dwg_cache_write_failures_total",
    "Rendered SVGs that could not be persisted to the cache",
)
cache_evicted_total = Counter(
    "dwg_cache_evicted_total",
    "Cache entries removed by age-based cleanup",
)
