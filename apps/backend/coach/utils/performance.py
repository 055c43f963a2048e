from __future__ import annotations
import logging
import time
from typing import Optional, Any
from contextlib import asynccontextmanager
from coach.core.config import settings


@asynccontextmanager
async def track_performance(
    operation_type: str,
    operation_name: str,
    session_id: Optional[str] = None,
    metadata: Optional[dict[str, Any]] = None,
):
    """Context manager for tracking performance metrics.

    Returns a no-op context manager if performance tracking is disabled.
    When enabled, measures execution time and logs it with the operation metadata.
    """
    if not settings.enable_performance_tracking:
        yield
        return

    start_time = time.perf_counter()
    try:
        yield
    finally:
        duration_ms = (time.perf_counter() - start_time) * 1000
        logging.info(
            "perf %s/%s session=%s duration_ms=%.1f metadata=%s",
            operation_type,
            operation_name,
            session_id or "unknown",
            duration_ms,
            metadata or {},
        )
