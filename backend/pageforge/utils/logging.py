"""
PageForge — Shared logger and per-stage duration tracking.

Log level comes from PAGEFORGE_LOG_LEVEL (default INFO).
"""

import logging
import os
import time
from contextlib import contextmanager
from typing import Generator

logging.basicConfig(
    level=os.getenv("PAGEFORGE_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
    datefmt="%H:%M:%S",
)

logger = logging.getLogger("pageforge")


@contextmanager
def step_timer(stage: str) -> Generator[None, None, None]:
    """Log entry, exit and elapsed time of one conversion stage; failures are logged and re-raised."""
    logger.info("▶ %s", stage)
    start = time.perf_counter()
    try:
        yield
    except Exception as exc:
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.warning("✘ %s — failed after %.0f ms (%s)", stage, elapsed_ms, type(exc).__name__)
        raise
    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.info("✔ %s — %.0f ms", stage, elapsed_ms)
