"""
Metrics definitions for SkyBrief.

This module defines Prometheus metrics for monitoring
upstream access, caching and the briefing pipeline.
"""

from prometheus_client import Counter, Histogram, Gauge

# 카운터 메트릭
upstream_requests = Counter(
    "upstream_requests_total",
    "Number of HTTP requests sent to the weather data provider",
    ["endpoint", "status"]
)

upstream_retries = Counter(
    "upstream_retries_total",
    "Generic transport retries after network errors or 5xx responses",
    ["endpoint"]
)

upstream_dedup_hits = Counter(
    "upstream_dedup_hits_total",
    "Requests served from an identical in-flight or recent request"
)

rate_limit_retries = Counter(
    "rate_limit_retries_total",
    "Domain-level retries after HTTP 429",
    ["kind"]
)

cache_lookups = Counter(
    "cache_lookups_total",
    "Domain TTL cache lookups",
    ["result"]
)

corridor_fallbacks = Counter(
    "corridor_fallbacks_total",
    "Briefings where corridor filtering was discarded as too aggressive"
)

validation_drops = Counter(
    "validation_drops_total",
    "Records dropped by structural validation",
    ["kind"]
)

source_failures = Counter(
    "source_failures_total",
    "Data sources that were unavailable during a briefing",
    ["source"]
)

# 히스토그램 메트릭
upstream_request_seconds = Histogram(
    "upstream_request_duration_seconds",
    "Latency of a single upstream HTTP request",
    ["endpoint"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 15.0]
)

briefing_seconds = Histogram(
    "briefing_duration_seconds",
    "Total time to assemble a briefing",
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0]
)

# 게이지 메트릭
cache_entries = Gauge(
    "cache_entries",
    "Current number of entries in the domain TTL cache"
)
