"""Automatic retry with exponential backoff.

Runs a unit of work, consults the error classifier after each failure and
either retries after a backoff delay or propagates the error. Only the
backoff delay suspends; attempts of one call never overlap.

Delay for attempt ``n`` (1-indexed) before attempt ``n + 1``::

    min(base_delay * backoff_multiplier ** (n - 1), max_delay) [+ up to 10% jitter]
"""

from __future__ import annotations

import asyncio
import contextlib
import functools
import inspect
import logging
import random
import uuid
from collections.abc import Awaitable, Callable, Iterator, Mapping
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, TypeVar

from fileledger.models.errors import FileOperationErrorType
from fileledger.recovery.classifier import is_retryable_error

if TYPE_CHECKING:
    from fileledger.core.settings import LedgerSettings

logger = logging.getLogger(__name__)

T = TypeVar("T")

JITTER_RATIO = 0.1


@dataclass(frozen=True, slots=True)
class RetryConfig:
    """Retry policy for one call.

    Attributes:
        max_attempts: Attempts including the first one.
        base_delay: Delay in seconds after the first failure.
        max_delay: Upper bound in seconds for any delay.
        backoff_multiplier: Growth factor between consecutive delays.
        jitter_enabled: Add up to 10% random delay.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    backoff_multiplier: float = 2.0
    jitter_enabled: bool = True

    def __post_init__(self) -> None:
        """Validate policy values after initialization."""
        if self.max_attempts < 1:
            msg = f"max_attempts must be >= 1, got {self.max_attempts}"
            raise ValueError(msg)
        if self.base_delay < 0 or self.max_delay < 0:
            msg = "Delays cannot be negative"
            raise ValueError(msg)

    @classmethod
    def from_settings(cls, settings: LedgerSettings) -> RetryConfig:
        """Build the default policy from ledger settings."""
        return cls(
            max_attempts=settings.max_attempts,
            base_delay=settings.base_delay,
            max_delay=settings.max_delay,
            backoff_multiplier=settings.backoff_multiplier,
            jitter_enabled=settings.jitter_enabled,
        )

    def with_overrides(self, **overrides: Any) -> RetryConfig:
        """Get a copy with some fields replaced.

        Raises:
            TypeError: If an override names an unknown field.
        """
        return replace(self, **overrides)


def config_for_error_type(error_type: FileOperationErrorType) -> dict[str, Any]:
    """Get tuned retry overrides for a kind of failure.

    Args:
        error_type: Kind of failure the caller expects.

    Returns:
        Field overrides for :class:`RetryConfig` (empty for kinds without
        a tuned policy).
    """
    if error_type == FileOperationErrorType.NETWORK_ERROR:
        return {"max_attempts": 5, "base_delay": 2.0, "max_delay": 60.0, "backoff_multiplier": 2.0}
    if error_type == FileOperationErrorType.DISK_SPACE_INSUFFICIENT:
        return {"max_attempts": 2, "base_delay": 5.0, "max_delay": 10.0, "backoff_multiplier": 1.5}
    return {}


@dataclass(slots=True)
class RetryAttempt:
    """Metadata of one attempt.

    Attributes:
        attempt_number: 1-indexed attempt number.
        timestamp: When the attempt started.
        error: Exception raised by the attempt, None on success.
        delay: Backoff in seconds applied after this attempt (0 if none).
    """

    attempt_number: int
    timestamp: datetime
    error: BaseException | None = None
    delay: float = 0.0


@dataclass(slots=True)
class RetryContext:
    """Bookkeeping for one in-flight call."""

    operation_id: str
    operation_name: str
    config: RetryConfig
    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    attempts: list[RetryAttempt] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class RetryStatistics:
    """Aggregate view over the active calls."""

    active_retries: int
    total_attempts: int
    average_attempts: float
    successful_retries: int


class RetryOrchestrator:
    """Executes units of work with automatic retries.

    Every call is registered in an in-memory map of active retries while
    it runs and removed on every exit path. Cancelling clears that map
    only; in-flight sleeps and units of work are not interrupted.

    Attributes:
        default_config: Policy used when a call passes no config.
    """

    def __init__(
        self,
        default_config: RetryConfig | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: Callable[[], float] = random.random,
    ) -> None:
        """Initialize the RetryOrchestrator.

        Args:
            default_config: Default policy (RetryConfig() if None).
            sleep: Coroutine used to wait between attempts.
            rng: Source of uniform [0, 1) numbers for jitter.
        """
        self.default_config = default_config or RetryConfig()
        self._sleep = sleep
        self._rng = rng
        self._active: dict[str, RetryContext] = {}

    async def execute_with_retry(
        self,
        name: str,
        unit_of_work: Callable[[], T | Awaitable[T]],
        config: RetryConfig | Mapping[str, Any] | None = None,
        on_retry: Callable[[RetryAttempt], None] | None = None,
    ) -> T:
        """Run a unit of work, retrying transient failures.

        Args:
            name: Human-readable operation name for logs and statistics.
            unit_of_work: Zero-argument callable, sync or async.
            config: Full policy, or field overrides applied to the default.
            on_retry: Called with each failed attempt before its backoff.

        Returns:
            The unit of work's result.

        Raises:
            BaseException: The first non-retryable error, or the last error
                once attempts are exhausted, unchanged.
        """
        context = RetryContext(
            operation_id=self._generate_operation_id(),
            operation_name=name,
            config=self._resolve_config(config),
        )
        with self._track(context):
            return await self._retry_loop(unit_of_work, context, on_retry)

    def calculate_delay(self, attempt: int, config: RetryConfig) -> float:
        """Compute the backoff delay after a failed attempt.

        Args:
            attempt: 1-indexed number of the attempt that failed.
            config: Policy to apply.

        Returns:
            Delay in seconds.
        """
        delay = config.base_delay * config.backoff_multiplier ** (attempt - 1)
        delay = min(delay, config.max_delay)
        if config.jitter_enabled:
            delay += delay * JITTER_RATIO * self._rng()
        return delay

    def get_retry_statistics(self) -> RetryStatistics:
        """Summarize the calls currently in flight."""
        contexts = list(self._active.values())
        total_attempts = sum(len(ctx.attempts) for ctx in contexts)
        successful = sum(
            1 for ctx in contexts if len(ctx.attempts) > 1 and ctx.attempts[-1].error is None
        )
        return RetryStatistics(
            active_retries=len(contexts),
            total_attempts=total_attempts,
            average_attempts=total_attempts / len(contexts) if contexts else 0.0,
            successful_retries=successful,
        )

    def get_active_retries(self) -> list[RetryContext]:
        """Get the contexts of the calls currently in flight."""
        return list(self._active.values())

    def cancel_all_retries(self) -> None:
        """Forget every active call.

        Bookkeeping only: running sleeps and units of work continue.
        """
        self._active.clear()
        logger.info("Cancelled all active retries")

    async def _retry_loop(
        self,
        unit_of_work: Callable[[], T | Awaitable[T]],
        context: RetryContext,
        on_retry: Callable[[RetryAttempt], None] | None,
    ) -> T:
        config = context.config
        last_error: BaseException | None = None

        for attempt in range(1, config.max_attempts + 1):
            info = RetryAttempt(attempt_number=attempt, timestamp=datetime.now(UTC))
            context.attempts.append(info)
            logger.debug(
                "Attempting %s (attempt %d/%d)",
                context.operation_name,
                attempt,
                config.max_attempts,
            )

            try:
                result = unit_of_work()
                if inspect.isawaitable(result):
                    result = await result
            except Exception as e:
                last_error = e
                info.error = e
                logger.warning(
                    "%s failed on attempt %d: %s", context.operation_name, attempt, e
                )

                if not is_retryable_error(e):
                    logger.info("%s failed with non-retryable error", context.operation_name)
                    raise

                if attempt < config.max_attempts:
                    info.delay = self.calculate_delay(attempt, config)
                    if on_retry is not None:
                        on_retry(info)
                    logger.debug(
                        "Waiting %.3fs before retry attempt %d", info.delay, attempt + 1
                    )
                    await self._sleep(info.delay)
                continue

            if attempt > 1:
                logger.info("%s succeeded after %d attempts", context.operation_name, attempt)
            return result

        logger.error(
            "%s failed after %d attempts", context.operation_name, config.max_attempts
        )
        assert last_error is not None
        raise last_error

    @contextlib.contextmanager
    def _track(self, context: RetryContext) -> Iterator[RetryContext]:
        """Register a call as active for the duration of the block."""
        self._active[context.operation_id] = context
        try:
            yield context
        finally:
            self._active.pop(context.operation_id, None)

    def _resolve_config(self, config: RetryConfig | Mapping[str, Any] | None) -> RetryConfig:
        if config is None:
            return self.default_config
        if isinstance(config, RetryConfig):
            return config
        return self.default_config.with_overrides(**config)

    @staticmethod
    def _generate_operation_id() -> str:
        return f"retry_{uuid.uuid4().hex[:12]}"


def with_retry(
    orchestrator: RetryOrchestrator,
    func: Callable[..., T | Awaitable[T]],
    name: str | None = None,
    config: RetryConfig | Mapping[str, Any] | None = None,
) -> Callable[..., Awaitable[T]]:
    """Wrap a callable so every call goes through the orchestrator.

    Args:
        orchestrator: Orchestrator to execute with.
        func: Sync or async callable to wrap.
        name: Operation name (defaults to the callable's qualified name).
        config: Policy or overrides passed to every call.

    Returns:
        An async callable with the same arguments as ``func``.
    """
    operation_name = name or getattr(func, "__qualname__", repr(func))

    @functools.wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        return await orchestrator.execute_with_retry(
            operation_name,
            lambda: func(*args, **kwargs),
            config,
        )

    return wrapper
