"""Prometheus metrics definitions for hub-engine.

Exposes metrics for:
1. HTTP API metrics (requests, latency, errors)
2. Friction inputs gateway client metrics (calls, latency, errors)
3. Engine outcomes (friction scoring, debouncer, broadcasts, sync, open door)
4. Background job metrics (runs, duration, errors)
5. Realtime client metrics (connection state, reconnects, polling, drops)
"""
from prometheus_client import Counter, Histogram, Gauge, Info

# =============================================================================
# HTTP API METRICS
# =============================================================================

HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total number of HTTP requests",
    ["method", "endpoint", "status_code"],
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

HTTP_REQUESTS_IN_PROGRESS = Gauge(
    "http_requests_in_progress",
    "Number of HTTP requests currently being processed",
    ["method", "endpoint"],
)

# =============================================================================
# FRICTION INPUTS GATEWAY CLIENT METRICS
# =============================================================================

FRICTION_INPUTS_API_CALLS_TOTAL = Counter(
    "friction_inputs_api_calls_total",
    "Total number of friction inputs gateway calls",
    ["endpoint", "status"],  # status: success, error
)

FRICTION_INPUTS_API_CALL_DURATION_SECONDS = Histogram(
    "friction_inputs_api_call_duration_seconds",
    "Friction inputs gateway call latency in seconds",
    ["endpoint"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

FRICTION_INPUTS_API_ERRORS_TOTAL = Counter(
    "friction_inputs_api_errors_total",
    "Total number of friction inputs gateway errors",
    ["endpoint", "error_type"],  # error_type: http_error, timeout, connection_error
)

# =============================================================================
# ENGINE METRICS
# =============================================================================

FRICTION_SCORING_RESULTS = Counter(
    "friction_scoring_results_total",
    "Results of friction scoring per venue",
    ["result"],  # result: scored, degraded, unavailable, error
)

FRICTION_INPUTS_FALLBACKS = Counter(
    "friction_inputs_fallbacks_total",
    "Friction refreshes served from last-known-good inputs",
    ["result"],  # result: last_known_good, none
)

DEBOUNCER_CONFIRMATIONS_TOTAL = Counter(
    "debouncer_confirmations_total",
    "Occupancy bucket transitions confirmed by the debouncer",
)

BROADCASTS_PUBLISHED_TOTAL = Counter(
    "broadcasts_published_total",
    "State deltas appended to the hub event log",
    ["status"],  # status: success, error
)

SYNC_REQUESTS_TOTAL = Counter(
    "sync_requests_total",
    "Delta sync requests served",
    ["result"],  # result: served, expired
)

OPEN_DOOR_RESULTS_TOTAL = Counter(
    "open_door_results_total",
    "Open Door predicate evaluations by outcome",
    ["result"],  # result: open or the fail reason
)

CONFIDENCE_TIER_CHANGES_TOTAL = Counter(
    "confidence_tier_changes_total",
    "Venue confidence tiers updated by the refresh job",
    ["tier"],
)

# =============================================================================
# BACKGROUND JOB METRICS
# =============================================================================

BACKGROUND_JOB_RUNS_TOTAL = Counter(
    "background_job_runs_total",
    "Total number of background job runs",
    ["job_name", "status"],  # status: success, error
)

BACKGROUND_JOB_DURATION_SECONDS = Histogram(
    "background_job_duration_seconds",
    "Background job execution duration in seconds",
    ["job_name"],
    buckets=(0.1, 0.5, 1.0, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0),
)

BACKGROUND_JOB_LAST_RUN_TIMESTAMP = Gauge(
    "background_job_last_run_timestamp_seconds",
    "Unix timestamp of the last successful job run",
    ["job_name"],
)

# =============================================================================
# REALTIME CLIENT METRICS
# =============================================================================

REALTIME_CONNECTION_STATE = Gauge(
    "realtime_connection_state",
    "1 for the current connection state of a hub session, 0 otherwise",
    ["hub_id", "state"],
)

REALTIME_RECONNECT_ATTEMPTS_TOTAL = Counter(
    "realtime_reconnect_attempts_total",
    "Reconnect attempts scheduled by the connection manager",
    ["hub_id"],
)

REALTIME_POLLING_FALLBACKS_TOTAL = Counter(
    "realtime_polling_fallbacks_total",
    "Times the connection manager fell back to polling",
    ["hub_id"],
)

REALTIME_DROPPED_MESSAGES_TOTAL = Counter(
    "realtime_dropped_messages_total",
    "Realtime messages dropped at the protocol boundary",
    ["reason"],  # reason: malformed, unknown_venue, out_of_order, queue_full
)

# =============================================================================
# APPLICATION INFO
# =============================================================================

APP_INFO = Info(
    "hub_engine",
    "hub-engine application information",
)

APP_INFO.info({
    "version": "1.0.0",
    "description": "Venue state engine for nightlife hubs",
})
