# src/tradedata_export/planner.py

import logging
import os
from typing import Optional

from .config import ConcurrencyPolicy

logger = logging.getLogger(__name__)


def available_parallelism() -> int:
    return os.cpu_count() or 1


def plan_workers(
    total_combinations: int,
    available: Optional[int] = None,
    override: Optional[int] = None,
    policy: Optional[ConcurrencyPolicy] = None,
) -> int:
    """
    Chooses the worker-pool size for a batch.

    Args:
        total_combinations: Number of combinations to process
        available: Available parallelism (defaults to the CPU count)
        override: Configured maximum; caps the result, never raises it
        policy: Tier thresholds and ceilings

    Returns:
        Worker count in [1, total_combinations], or 0 when there is nothing to run

    Example:
        plan_workers(5, available=16)    -> 2
        plan_workers(200, available=8)   -> 7
    """
    if total_combinations <= 0:
        return 0

    policy = policy or ConcurrencyPolicy()
    available = available if available is not None else available_parallelism()

    if total_combinations <= policy.small_batch_threshold:
        workers = min(total_combinations, policy.small_batch_workers)
    elif total_combinations <= policy.medium_batch_threshold:
        workers = min(available // 2, policy.medium_batch_ceiling)
    else:
        workers = min(available - 1, policy.large_batch_ceiling)

    if override is not None and override > 0:
        workers = min(workers, override)

    workers = max(1, min(workers, total_combinations))
    logger.debug(f"Planned {workers} worker(s) for {total_combinations} combination(s), parallelism {available}")
    return workers
