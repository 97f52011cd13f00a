"""
Retry policy and retry middleware for Claude Hub
"""

import asyncio
import functools
import inspect
import logging
import random
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from ..error_classifier import is_retryable
from ..exceptions import ClaudeHubError, ConfigurationError, RateLimitError

# Set up logger
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryDecision:
    retry: bool
    delay: float = 0.0


@dataclass
class RetryPolicy:
    """
    Exponential backoff with full jitter

    Retry ``n`` (0-indexed) waits a delay drawn uniformly from
    ``[0, min(initial_delay * backoff_multiplier ** n, max_delay)]``. With
    ``jitter`` off the delay is exactly the upper bound. A rate-limit error
    that carries ``retry_after`` never waits less than the server asked for.

    The policy only decides; RetryMiddleware does the sleeping.
    """

    max_retries: int = 3
    initial_delay: float = 0.5  # seconds
    max_delay: float = 30.0     # seconds
    backoff_multiplier: float = 2.0
    jitter: bool = True

    def validate(self) -> None:
        """
        Check the policy parameters

        Raises:
            ConfigurationError: If any parameter is out of range
        """
        if isinstance(self.max_retries, bool) or not isinstance(self.max_retries, int) or self.max_retries < 0:
            raise ConfigurationError(f"max_retries must be an integer >= 0, got {self.max_retries!r}")
        if self.initial_delay < 0:
            raise ConfigurationError(f"initial_delay must be >= 0, got {self.initial_delay!r}")
        if self.max_delay < self.initial_delay:
            raise ConfigurationError(
                f"max_delay ({self.max_delay!r}) must be >= initial_delay ({self.initial_delay!r})"
            )
        if self.backoff_multiplier <= 1.0:
            raise ConfigurationError(f"backoff_multiplier must be > 1.0, got {self.backoff_multiplier!r}")

    def should_retry(self, error: BaseException, attempt: int) -> bool:
        return is_retryable(error) and attempt < self.max_retries

    def base_delay(self, attempt: int) -> float:
        """
        Backoff delay before jitter for the given retry number (0-indexed)
        """
        try:
            delay = self.initial_delay * (self.backoff_multiplier ** attempt)
        except OverflowError:
            return self.max_delay
        return min(delay, self.max_delay)

    def compute_delay(
        self,
        error: BaseException,
        attempt: int,
        rng: Optional[random.Random] = None,
    ) -> float:
        delay = self.base_delay(attempt)
        if self.jitter:
            delay = (rng or random).uniform(0.0, delay)
        if isinstance(error, RateLimitError) and error.retry_after is not None:
            delay = max(delay, error.retry_after)
        return delay

    def decide(
        self,
        error: BaseException,
        attempt: int,
        rng: Optional[random.Random] = None,
    ) -> RetryDecision:
        """
        Decide whether to retry after a failed attempt

        Args:
            error: The classified error of the failed attempt
            attempt: Number of retries already made (0 after the first failure)
            rng: Random source for jitter (module-level random by default)

        Returns:
            RetryDecision with the delay to wait before the next attempt
        """
        if not self.should_retry(error, attempt):
            return RetryDecision(retry=False)
        return RetryDecision(retry=True, delay=self.compute_delay(error, attempt, rng))


class RetryMiddleware:
    """
    Middleware for automatic retries of failed API requests

    Wraps a function performing exactly one attempt. Failures must already be
    classified into ClaudeHubError subclasses; anything else propagates
    untouched.
    """

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        sleep: Optional[Callable[[float], None]] = None,
        async_sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize the retry middleware

        Args:
            policy: Retry policy to consult (defaults to RetryPolicy())
            sleep: Blocking sleep used by sync callers (defaults to time.sleep)
            async_sleep: Sleep coroutine used by async callers (defaults to asyncio.sleep)
            rng: Random source for jitter
        """
        self.policy = policy or RetryPolicy()
        self.sleep = sleep or time.sleep
        self.async_sleep = async_sleep or asyncio.sleep
        self.rng = rng

    def wrap(self, func: Callable) -> Callable:
        """
        Wrap a function with retry logic

        Args:
            func: The function to wrap

        Returns:
            Wrapped function
        """
        @functools.wraps(func)
        def wrapped_sync(*args, **kwargs):
            attempt = 0
            while True:
                try:
                    return func(*args, **kwargs)
                except ClaudeHubError as e:
                    decision = self._decide(e, attempt)
                    if not decision.retry:
                        raise
                    self.sleep(decision.delay)
                    attempt += 1

        @functools.wraps(func)
        async def wrapped_async(*args, **kwargs):
            attempt = 0
            while True:
                try:
                    return await func(*args, **kwargs)
                except ClaudeHubError as e:
                    decision = self._decide(e, attempt)
                    if not decision.retry:
                        raise
                    await self.async_sleep(decision.delay)
                    attempt += 1

        if inspect.iscoroutinefunction(func):
            return wrapped_async
        return wrapped_sync

    def _decide(self, error: ClaudeHubError, attempt: int) -> RetryDecision:
        decision = self.policy.decide(error, attempt, self.rng)
        if decision.retry:
            logger.info(
                f"Retry {attempt + 1}/{self.policy.max_retries} after "
                f"{type(error).__name__}: {error}. Waiting {decision.delay:.2f}s"
            )
        elif error.retryable:
            logger.warning(f"Max retries ({self.policy.max_retries}) reached, giving up: {error}")
        else:
            logger.info(f"Non-retryable exception: {type(error).__name__}, giving up")
        return decision
