from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class RetryConfig(BaseModel):
    """Retry policy with exponential backoff and full jitter.

    The default is a single attempt, which disables retrying altogether.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_attempts: int = Field(default=1, ge=1, description="Maximum attempts including the first call")
    wait_min: float = Field(default=0.1, ge=0, description="Minimum wait time in seconds")
    wait_max: float = Field(default=5.0, ge=0, description="Maximum wait time in seconds")
    multiplier: float = Field(default=1.0, ge=0, description="Wait multiplier")
    exp_base: float = Field(default=2.0, ge=1, description="Exponential base")

    retry_on_exceptions: tuple[type[Exception], ...] | None = Field(
        default=None,
        description="Exception types that trigger retry (None = all exceptions)",
    )
    never_retry_on: tuple[type[Exception], ...] | None = Field(
        default=None,
        description="Exception types that are never retried (takes precedence over retry_on_exceptions)",
    )

    reraise: bool = Field(default=True, description="Reraise the last exception after all attempts fail")
