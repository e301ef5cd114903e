from __future__ import annotations

from .config import RetryConfig
from .retry import AttemptHook, Retry, log_before_sleep, retry, retry_condition

__all__ = [
    "AttemptHook",
    "Retry",
    "RetryConfig",
    "log_before_sleep",
    "retry",
    "retry_condition",
]
