"""Retry for async calls against the cluster, such as routing discovery.

Backoff is exponential with full jitter: each sleep is drawn uniformly from
``[wait_min, min(wait_max, multiplier * exp_base ** attempt)]``. Only
coroutine functions can be wrapped; every call gets its own tenacity
controller, so one wrapped function is safe to await concurrently.

Usage
-----
>>> fetch = retry(RetryConfig(max_attempts=3))(session.arun)
>>> records = await fetch([discovery_statement])
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import TYPE_CHECKING

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    after_nothing,
    before_nothing,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from ..core.types import P, R
from ..logger import get_logger
from .config import RetryConfig

if TYPE_CHECKING:
    from structlog.stdlib import BoundLogger
    from tenacity.retry import retry_base

type AttemptHook = Callable[[RetryCallState], Awaitable[None] | None]

logger: BoundLogger = get_logger(__name__)


def log_before_sleep(retry_state: RetryCallState) -> None:
    """Log the failed attempt that is about to be retried."""
    outcome = retry_state.outcome
    error = outcome.exception() if outcome is not None else None
    logger.warning(
        "Retrying after failed attempt",
        function=getattr(retry_state.fn, "__qualname__", None),
        attempt=retry_state.attempt_number,
        sleep_s=retry_state.next_action.sleep if retry_state.next_action else None,
        error=str(error) if error is not None else None,
    )


def retry_condition(config: RetryConfig) -> retry_base:
    """Retry on ``retry_on_exceptions`` (any ``Exception`` when unset), minus ``never_retry_on``."""
    condition = retry_if_exception_type(config.retry_on_exceptions or Exception)
    if config.never_retry_on:
        return condition & retry_if_not_exception_type(config.never_retry_on)
    return condition


class Retry:
    """Decorator applying a `RetryConfig` to coroutine functions.

    Parameters
    ----------
    config
        Attempt budget and backoff bounds, plus which exceptions to retry.
    before, after
        Hooks run before and after each attempt.
    before_sleep
        Hook run between a failed attempt and the next one.
    """

    __slots__ = ("_after", "_before", "_before_sleep", "_config")

    def __init__(
        self,
        config: RetryConfig,
        before: AttemptHook | None = None,
        after: AttemptHook | None = None,
        before_sleep: AttemptHook | None = None,
    ) -> None:
        self._config = config
        self._before = before or before_nothing
        self._after = after or after_nothing
        self._before_sleep = before_sleep

    @property
    def config(self) -> RetryConfig:
        return self._config

    def controller(self) -> AsyncRetrying:
        """Build a fresh tenacity controller for one call."""
        config = self._config
        return AsyncRetrying(
            stop=stop_after_attempt(config.max_attempts),
            wait=wait_random_exponential(
                multiplier=config.multiplier,
                min=config.wait_min,
                max=config.wait_max,
                exp_base=config.exp_base,
            ),
            retry=retry_condition(config),
            before=self._before,
            after=self._after,
            before_sleep=self._before_sleep,
            reraise=config.reraise,
        )

    def __call__(self, func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        if not inspect.iscoroutinefunction(func):
            msg = f"retry() wraps coroutine functions only, got {func!r}"
            raise TypeError(msg)

        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            return await self.controller()(func, *args, **kwargs)

        return wrapper


def retry(
    config: RetryConfig | None = None,
    before: AttemptHook | None = None,
    after: AttemptHook | None = None,
    before_sleep: AttemptHook | None = log_before_sleep,
) -> Retry:
    """Return a `Retry` decorator; the default config makes a single attempt."""
    return Retry(config or RetryConfig(), before, after, before_sleep)
