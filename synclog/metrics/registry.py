from prometheus_client import Counter, Histogram

STORE_WRITE_TOTAL = Counter(
    "synclog_store_write_total",
    "Record store writes by table, operation type and outcome",
    labelnames=["table", "op_type", "status"],
)

STORE_WRITE_LATENCY_SECONDS = Histogram(
    "synclog_store_write_latency_seconds",
    "Record store write latency in seconds",
    labelnames=["table", "op_type"],
    buckets=(0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

OPERATIONS_TRACKED_TOTAL = Counter(
    "synclog_operations_tracked_total",
    "Operations captured by the change tracker",
    labelnames=["table", "op_type", "status"],
)

OPERATION_LOG_WRITE_TOTAL = Counter(
    "synclog_operation_log_write_total",
    "Operation log additions and deletions, counted per operation",
    labelnames=["action", "status"],
)
