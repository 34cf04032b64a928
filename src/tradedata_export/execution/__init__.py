# src/tradedata_export/execution/__init__.py

from .batch_executor import BatchExecutor, JobState, PermitPool
from .cancellation import CancellationToken

__all__ = [
    'BatchExecutor',
    'CancellationToken',
    'JobState',
    'PermitPool',
]
