from __future__ import annotations

import logging

from ..metrics.registry import (
    OPERATION_LOG_WRITE_TOTAL,
    OPERATIONS_TRACKED_TOTAL,
    STORE_WRITE_LATENCY_SECONDS,
    STORE_WRITE_TOTAL,
)

logger = logging.getLogger(__name__)


def observe_store_write(table: str, op_type: str, status: str, latency_s: float) -> None:
    """
    Record one record store write. Never raises; a broken metric must not
    mask the outcome of the write itself.
    """
    try:
        STORE_WRITE_TOTAL.labels(table=table, op_type=op_type, status=status).inc()
        STORE_WRITE_LATENCY_SECONDS.labels(table=table, op_type=op_type).observe(latency_s)
    except Exception:  # pragma: no cover
        logger.debug("Failed to record store write metric", exc_info=True)


def observe_operation_tracked(table: str, op_type: str, status: str) -> None:
    try:
        OPERATIONS_TRACKED_TOTAL.labels(table=table, op_type=op_type, status=status).inc()
    except Exception:  # pragma: no cover
        logger.debug("Failed to record tracked operation metric", exc_info=True)


def observe_operation_log_write(action: str, status: str, count: int) -> None:
    if count <= 0:
        return
    try:
        OPERATION_LOG_WRITE_TOTAL.labels(action=action, status=status).inc(count)
    except Exception:  # pragma: no cover
        logger.debug("Failed to record operation log metric", exc_info=True)
