"""
Constants for sql-scalerctl

Centralized definition of magic numbers and strings used throughout the project.
"""

# Database configuration
DEFAULT_POOL_MIN_SIZE = 1
DEFAULT_POOL_MAX_SIZE = 4

# Table names
TABLE_SCALER_STATE = "sql_scaler_state"

# State document paths. The legacy path predates per-project keys and is
# migrated to the canonical path on first read.
STATE_DOC_PATH_TEMPLATE = "projects/{project_id}/instances/{instance_id}"
LEGACY_STATE_DOC_PATH_TEMPLATE = "{instance_id}"

# Scaling methods
SCALING_METHOD_FIXED = "FIXED"
SCALING_METHOD_DIRECT = "DIRECT"
DEFAULT_SCALING_METHOD = SCALING_METHOD_FIXED

# Units
UNITS_VCPU = "VCPU"

# Only the cpu metric is used to determine if an overload situation exists
OVERLOAD_METRIC = "cpu"
OVERLOAD_THRESHOLD = 90

# Autoscaling is triggered if the metric value is outside of threshold +- margin
DEFAULT_THRESHOLD_MARGIN = 5

# Cloud SQL Enterprise Plus machine types are db-perf-optimized-N-X where X is
# the number of vCPUs
AVAILABLE_VCPUS = (2, 4, 8, 16, 32, 48, 64, 80, 96, 128)
DEFAULT_TIER_PREFIX = "db-perf-optimized-N-"
DEFAULT_CLOUDSQL_API_ROOT = "https://sqladmin.googleapis.com/v1"
CLOUDSQL_SCOPES = ("https://www.googleapis.com/auth/sqlservice.admin",)

# Operation status values reported by the Cloud SQL Admin API
OPERATION_TYPE_UPDATE = "UPDATE"
OPERATION_STATUS_DONE = "DONE"

# Cooldown defaults (minutes)
DEFAULT_SCALE_OUT_COOLING_MINUTES = 5
DEFAULT_SCALE_IN_COOLING_MINUTES = 30

# Only the first scale-in within this window benefits from near-zero downtime
SCALE_IN_REPEAT_WINDOW_MINUTES = 180

MS_IN_1_MIN = 60_000

# Downstream events
PUBLISH_TIMEOUT_SECONDS = 10
EVENT_SCALING = "SCALING"
EVENT_SCALING_FAILURE = "SCALING_FAILURE"

# Counters
COUNTERS_PREFIX = "sql_scaler_"
DEFAULT_COUNTERS_JOB = "sql-scalerctl"
