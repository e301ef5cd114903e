from __future__ import annotations

import asyncio
from typing import Literal

import pytest
from tenacity import RetryCallState

from graphcluster.resilience import Retry, RetryConfig, log_before_sleep, retry


@pytest.fixture
def discovery_retry_config() -> RetryConfig:
    return RetryConfig(
        max_attempts=3,
        wait_min=0.01,
        wait_max=0.02,
        multiplier=1.0,
        exp_base=2.0,
        retry_on_exceptions=None,
        never_retry_on=None,
        reraise=True,
    )


class TestRetryDecoratorAsync:
    """Test async retry decorator behavior."""

    @pytest.mark.asyncio
    async def test_default_config_makes_a_single_attempt(self) -> None:
        """Verify the default policy calls the function once and reraises.

        Arrange
        -------
        - Decorate an always-failing coroutine with the default config

        Act
        ---
        - Invoke the decorated function

        Assert
        ------
        - The original exception propagates
        - The function ran exactly once
        """
        call_count = 0

        @retry()
        async def fetch_routing_table() -> None:
            nonlocal call_count
            call_count += 1
            raise ConnectionError("refused")

        with pytest.raises(ConnectionError, match="refused"):
            await fetch_routing_table()

        assert call_count == 1

    @pytest.mark.asyncio
    async def test_retries_and_succeeds_after_transient_failures(self, discovery_retry_config: RetryConfig) -> None:
        call_count = 0

        @retry(discovery_retry_config)
        async def fetch_routing_table() -> Literal["table"]:
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise ConnectionError("leader election")
            return "table"

        assert await fetch_routing_table() == "table"
        assert call_count == 3

    @pytest.mark.asyncio
    async def test_raises_after_max_attempts_exhausted(self, discovery_retry_config: RetryConfig) -> None:
        call_count = 0

        @retry(discovery_retry_config)
        async def fetch_routing_table() -> None:
            nonlocal call_count
            call_count += 1
            raise TimeoutError("no route")

        with pytest.raises(TimeoutError):
            await fetch_routing_table()

        assert call_count == discovery_retry_config.max_attempts

    @pytest.mark.asyncio
    async def test_retries_only_on_configured_exceptions(self, discovery_retry_config: RetryConfig) -> None:
        """Verify exceptions outside ``retry_on_exceptions`` fail immediately."""
        call_count = 0
        config = discovery_retry_config.model_copy(update={"retry_on_exceptions": (ConnectionError,)})

        @retry(config)
        async def fetch_routing_table() -> None:
            nonlocal call_count
            call_count += 1
            raise ValueError("malformed")

        with pytest.raises(ValueError, match="malformed"):
            await fetch_routing_table()

        assert call_count == 1

    @pytest.mark.asyncio
    async def test_never_retry_on_takes_precedence(self, discovery_retry_config: RetryConfig) -> None:
        call_count = 0
        config = discovery_retry_config.model_copy(
            update={"retry_on_exceptions": (OSError,), "never_retry_on": (PermissionError,)}
        )

        @retry(config)
        async def fetch_routing_table() -> None:
            nonlocal call_count
            call_count += 1
            raise PermissionError("unauthorized")

        with pytest.raises(PermissionError):
            await fetch_routing_table()

        assert call_count == 1

    @pytest.mark.asyncio
    async def test_wait_times_stay_within_bounds(self, discovery_retry_config: RetryConfig) -> None:
        """Verify full-jitter sleeps are captured for each retry and respect the bounds.

        Arrange
        -------
        - Capture planned sleep durations in a before_sleep callback
        - Create a function that fails three times then succeeds

        Act
        ---
        - Invoke the decorated function

        Assert
        ------
        - One sleep per retry
        - Every sleep within [wait_min, wait_max]
        """
        sleep_durations: list[float] = []

        def capture_sleep(retry_state: RetryCallState) -> None:
            if retry_state.next_action:
                sleep_durations.append(retry_state.next_action.sleep)

        config = discovery_retry_config.model_copy(update={"max_attempts": 5})
        call_count = 0

        @retry(config, before_sleep=capture_sleep)
        async def flaky() -> Literal["done"]:
            nonlocal call_count
            call_count += 1
            if call_count < 4:
                raise ConnectionError("Fail")
            return "done"

        await flaky()

        assert len(sleep_durations) == 3
        for duration in sleep_durations:
            assert config.wait_min <= duration <= config.wait_max

    @pytest.mark.asyncio
    async def test_bound_method_keeps_instance(self, discovery_retry_config: RetryConfig) -> None:
        class Discovery:
            def __init__(self) -> None:
                self.calls = 0

            async def arun(self) -> int:
                self.calls += 1
                if self.calls == 1:
                    raise ConnectionError("reset")
                return self.calls

        discovery = Discovery()
        wrapped = retry(discovery_retry_config)(discovery.arun)

        assert await wrapped() == 2
        assert discovery.calls == 2



    @pytest.mark.asyncio
    async def test_hooks_fire_per_attempt(self, discovery_retry_config: RetryConfig) -> None:
        """Verify before, after and before_sleep hooks fire in attempt order."""
        before_calls: list[int] = []
        after_calls: list[int] = []
        sleep_calls: list[int] = []

        config = discovery_retry_config.model_copy(update={"max_attempts": 4})

        @retry(
            config,
            before=lambda s: before_calls.append(s.attempt_number),
            after=lambda s: after_calls.append(s.attempt_number),
            before_sleep=lambda s: sleep_calls.append(s.attempt_number),
        )
        async def fetch_routing_table(ttl: int, servers: int) -> int:
            if len(before_calls) < 3:
                raise ConnectionError("Retry")
            return ttl + servers

        assert await fetch_routing_table(300, 3) == 303
        assert before_calls == [1, 2, 3]
        assert after_calls == [1, 2]
        assert sleep_calls == [1, 2]

    @pytest.mark.asyncio
    async def test_default_before_sleep_logs_and_retries(self, discovery_retry_config: RetryConfig) -> None:
        call_count = 0

        @retry(discovery_retry_config, before_sleep=log_before_sleep)
        async def fetch_routing_table() -> str:
            nonlocal call_count
            call_count += 1
            if call_count < 2:
                raise ConnectionError("Transient")
            return "ok"

        assert await fetch_routing_table() == "ok"
        assert call_count == 2

    @pytest.mark.asyncio
    async def test_concurrent_calls_keep_separate_attempt_budgets(self, discovery_retry_config: RetryConfig) -> None:
        attempts: dict[str, int] = {"a": 0, "b": 0}

        @retry(discovery_retry_config)
        async def fetch_routing_table(name: str) -> str:
            attempts[name] += 1
            await asyncio.sleep(0)
            if attempts[name] < 3:
                raise ConnectionError(name)
            return name

        assert await asyncio.gather(fetch_routing_table("a"), fetch_routing_table("b")) == ["a", "b"]
        assert attempts == {"a": 3, "b": 3}


class TestRetryRejectsPlainFunctions:
    """Test that only coroutine functions can be wrapped."""

    def test_plain_function_raises_type_error(self, discovery_retry_config: RetryConfig) -> None:
        def fetch_routing_table() -> str:
            return "table"

        with pytest.raises(TypeError, match="coroutine functions only"):
            retry(discovery_retry_config)(fetch_routing_table)

    def test_decorator_exposes_config(self, discovery_retry_config: RetryConfig) -> None:
        decorator = retry(discovery_retry_config)

        assert isinstance(decorator, Retry)
        assert decorator.config is discovery_retry_config
        assert retry().config.max_attempts == 1
