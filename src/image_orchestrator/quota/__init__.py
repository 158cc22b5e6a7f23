"""
Per-provider quota and admission control.

Provides the fixed-window request counter consulted before dispatch and the
bounded FIFO queue that caps in-flight upstream calls.
"""

from image_orchestrator.quota.limiter import (
    FixedWindowLimiter,
    RateLimitResult,
)
from image_orchestrator.quota.queue import BoundedWorkQueue, QueueSlot

__all__ = [
    "BoundedWorkQueue",
    "FixedWindowLimiter",
    "QueueSlot",
    "RateLimitResult",
]
