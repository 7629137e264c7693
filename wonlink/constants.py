"""Shared defaults for the wonlink orchestrator."""

DEFAULT_FAST_PATH_THRESHOLD = 0.8
DEFAULT_CLASSIFIER_TIMEOUT = 30.0
DEFAULT_EXECUTOR_TIMEOUT = 30.0
DEFAULT_UPSERT_ATTEMPTS = 3
DEFAULT_HISTORY_LIMIT = 50
DEFAULT_RATE_LIMIT_PER_MINUTE = 60
MAX_INMEMORY_TASKS = 1000

# Query length at which the cost multiplier starts growing above 1.
COST_QUERY_UNIT = 500
MAX_QUERY_LENGTH = 10_000

FALLBACK_CONFIDENCE = 0.5
DEFAULT_FINAL_OUTPUT = "Task completed successfully"
AUTO_APPROVAL_FEEDBACK = (
    "Auto-approved: stand-in for human review until a reviewer is configured"
)
