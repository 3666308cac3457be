"""Application constants."""

USER_AGENT = "enhanced-metrics/2.0 (+batch export)"
ARTIFACT_FILENAME = "enhanced_metrics_detailed.json.gz"
ARTIFACT_VERSION = "2.0"
SENTINEL_CODE = -1
DATASETS = (
    "provider_alerts",
    "legislative_updates",
    "service_categories",
    "master_data",
    "recent_rate_changes",
)
MASTER_DATASET = "master_data"
RATE_CHANGES_DATASET = "recent_rate_changes"
EXIT_SUCCESS = 0
EXIT_HARD_FAIL = 20
JSON_LOG_FIELDS = (
    "timestamp",
    "run_id",
    "stage",
    "dataset",
    "table",
    "event",
    "status",
    "duration_ms",
    "rows_in",
    "rows_out",
    "bytes_in",
    "bytes_out",
    "error_code",
    "message",
)
