from .registry import (
    OPERATION_LOG_WRITE_TOTAL,
    OPERATIONS_TRACKED_TOTAL,
    STORE_WRITE_LATENCY_SECONDS,
    STORE_WRITE_TOTAL,
)

__all__ = [
    "STORE_WRITE_TOTAL",
    "STORE_WRITE_LATENCY_SECONDS",
    "OPERATIONS_TRACKED_TOTAL",
    "OPERATION_LOG_WRITE_TOTAL",
]
