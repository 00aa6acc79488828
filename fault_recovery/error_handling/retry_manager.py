"""
Retry management with bounded attempts, backoff and cancellation.

This module provides the single retry routine every recovery strategy is
built on. A strategy supplies a per-attempt callable; the routine runs it up
to the policy's attempt budget, waiting between failed attempts, and stops
early when the caller cancels or an attempt raises a stop exception.
"""

import logging
import random
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Callable, Optional, Any, Dict, List, TypeVar

from .exceptions import ProbeError, RecoveryCancelled, RetryExhausted, UnexpectedCondition


T = TypeVar('T')


class RetryResult(Enum):
    """Result of a retry attempt."""
    SUCCESS = "success"
    FAILED = "failed"
    EXHAUSTED = "exhausted"
    CANCELLED = "cancelled"


@dataclass
class RetryAttempt:
    """Information about a retry attempt."""
    attempt_number: int
    timestamp: datetime
    delay: float
    result: Optional[RetryResult] = None
    error: Optional[Exception] = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now()


class CancellationToken:
    """
    Lets a caller abort a running recovery from another thread.

    Waits between attempts block on the underlying event, so cancel()
    wakes a waiting strategy immediately instead of after the full delay.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        """Request cancellation."""
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, delay: float) -> bool:
        """
        Block for up to delay seconds.

        Returns:
            True if cancelled during or before the wait, False if the delay elapsed
        """
        if delay <= 0:
            return self._event.is_set()
        return self._event.wait(delay)


class BackoffStrategy(ABC):
    """Base class for backoff strategies."""

    @abstractmethod
    def get_delay(self, attempt: int, base_delay: float = 1.0) -> float:
        """Get delay for the given attempt number."""
        pass


class ExponentialBackoff(BackoffStrategy):
    """Exponential backoff strategy with optional jitter."""

    def __init__(self, multiplier: float = 2.0, max_delay: float = 60.0,
                 jitter: bool = True, jitter_factor: float = 0.1):
        """
        Initialize exponential backoff.

        Args:
            multiplier: Multiplier for each retry attempt
            max_delay: Maximum delay between attempts
            jitter: Whether to add random jitter
            jitter_factor: Factor for jitter calculation (0.0 to 1.0)
        """
        self.multiplier = multiplier
        self.max_delay = max_delay
        self.jitter = jitter
        self.jitter_factor = jitter_factor

    def get_delay(self, attempt: int, base_delay: float = 1.0) -> float:
        """Get exponential delay with optional jitter."""
        if base_delay <= 0:
            return 0.0

        delay = base_delay * (self.multiplier ** (attempt - 1))
        delay = min(delay, self.max_delay)

        if self.jitter:
            jitter_amount = delay * self.jitter_factor
            delay += random.uniform(-jitter_amount, jitter_amount)

        return max(0.1, delay)


class FixedBackoff(BackoffStrategy):
    """Same delay between every attempt."""

    def get_delay(self, attempt: int, base_delay: float = 1.0) -> float:
        """Get fixed delay."""
        return max(0.0, base_delay)


@dataclass
class RetryPolicy:
    """Configuration for retry behavior."""
    max_attempts: int = 3
    delay: float = 2.0
    backoff_strategy: BackoffStrategy = None
    retry_on_exceptions: List[type] = field(default_factory=lambda: [ProbeError, OSError])
    stop_on_exceptions: List[type] = field(default_factory=lambda: [UnexpectedCondition])

    def __post_init__(self):
        if (isinstance(self.max_attempts, bool) or not isinstance(self.max_attempts, int)
                or self.max_attempts < 1):
            raise ValueError("max_attempts must be a positive integer")
        if self.delay < 0:
            raise ValueError("delay cannot be negative")
        if self.backoff_strategy is None:
            self.backoff_strategy = FixedBackoff()

    def scaled(self, factor: float) -> 'RetryPolicy':
        """Return a copy of this policy with the base delay multiplied by factor."""
        return replace(self, delay=self.delay * factor)

    @classmethod
    def from_settings(cls, settings) -> 'RetryPolicy':
        """Build a policy from RecoverySettings."""
        if settings.backoff == "exponential":
            backoff = ExponentialBackoff(jitter=False)
        else:
            backoff = FixedBackoff()
        return cls(
            max_attempts=settings.max_attempts,
            delay=settings.retry_delay,
            backoff_strategy=backoff
        )


class RetryManager:
    """
    Runs per-attempt callables under a RetryPolicy.

    An attempt succeeds when it returns anything other than None or False.
    """

    def __init__(self, default_policy: Optional[RetryPolicy] = None):
        """
        Initialize retry manager.

        Args:
            default_policy: Default retry policy to use
        """
        self.logger = logging.getLogger(__name__)
        self.default_policy = default_policy or RetryPolicy()
        self._retry_stats: Dict[str, List[RetryAttempt]] = {}
        self._lock = threading.RLock()

        self.max_tracked_operations = 1000

    def run_until(self,
                  attempt_func: Callable[[int], Optional[T]],
                  policy: Optional[RetryPolicy] = None,
                  operation_name: Optional[str] = None,
                  token: Optional[CancellationToken] = None) -> T:
        """
        Call attempt_func until it produces a result or the budget runs out.

        Args:
            attempt_func: Called with the 1-based attempt number
            policy: Retry policy (uses default if None)
            operation_name: Name for logging and statistics
            token: Cancellation token checked before each attempt and during waits

        Returns:
            The first non-None, non-False value returned by attempt_func

        Raises:
            RetryExhausted: No attempt succeeded within the budget
            RecoveryCancelled: The token was cancelled
            Exception: Any stop exception raised by attempt_func
        """
        policy = policy or self.default_policy
        operation_name = operation_name or getattr(attempt_func, '__name__', 'operation')
        token = token or CancellationToken()

        attempts: List[RetryAttempt] = []
        with self._lock:
            self._retry_stats.pop(operation_name, None)
            self._retry_stats[operation_name] = attempts
            self._cleanup_stats()

        for attempt in range(1, policy.max_attempts + 1):
            if token.is_cancelled:
                self.logger.info(f"Retry {operation_name} cancelled at attempt {attempt}")
                attempts.append(RetryAttempt(attempt, datetime.now(), 0.0, RetryResult.CANCELLED))
                raise RecoveryCancelled(f"Retry operation {operation_name} was cancelled", attempt)

            self.logger.debug(f"Attempting {operation_name} (attempt {attempt}/{policy.max_attempts})")
            attempt_info = RetryAttempt(attempt_number=attempt, timestamp=datetime.now(), delay=0.0)
            attempts.append(attempt_info)

            try:
                result = attempt_func(attempt)
            except Exception as e:
                attempt_info.error = e

                if any(isinstance(e, exc_type) for exc_type in policy.stop_on_exceptions):
                    self.logger.info(f"Stopping retry {operation_name} due to stop exception: {e}")
                    attempt_info.result = RetryResult.CANCELLED
                    raise

                if not any(isinstance(e, exc_type) for exc_type in policy.retry_on_exceptions):
                    self.logger.info(f"Not retrying {operation_name} due to non-retryable exception: {e}")
                    attempt_info.result = RetryResult.CANCELLED
                    raise

                self.logger.debug(f"Attempt {attempt} of {operation_name} raised: {e}")
                result = None

            if result is not None and result is not False:
                attempt_info.result = RetryResult.SUCCESS
                if attempt > 1:
                    self.logger.info(f"Retry {operation_name} succeeded on attempt {attempt}")
                return result

            attempt_info.result = RetryResult.FAILED

            if attempt < policy.max_attempts:
                delay = policy.backoff_strategy.get_delay(attempt, policy.delay)
                attempt_info.delay = delay
                self.logger.warning(f"Retry {operation_name} attempt {attempt} failed. "
                                    f"Retrying in {delay:.2f}s")

                if token.wait(delay):
                    attempt_info.result = RetryResult.CANCELLED
                    self.logger.info(f"Retry {operation_name} cancelled while waiting")
                    raise RecoveryCancelled(f"Retry operation {operation_name} was cancelled", attempt)
            else:
                attempt_info.result = RetryResult.EXHAUSTED

        self.logger.error(f"Retry {operation_name} exhausted all {policy.max_attempts} attempts")
        raise RetryExhausted(
            f"Retry operation {operation_name} exhausted {policy.max_attempts} attempts",
            attempts=policy.max_attempts,
            operation=operation_name
        )

    def get_attempts(self, operation_name: str) -> List[RetryAttempt]:
        """Get the attempts recorded by the most recent run of an operation."""
        with self._lock:
            return list(self._retry_stats.get(operation_name, []))

    def get_retry_stats(self, operation_name: Optional[str] = None) -> Dict[str, Any]:
        """
        Get retry statistics.

        Args:
            operation_name: Specific operation, or None for all stats

        Returns:
            Dictionary with retry statistics
        """
        with self._lock:
            if operation_name:
                attempts = self._retry_stats.get(operation_name, [])
                return {
                    'operation': operation_name,
                    'attempts': len(attempts),
                    'total_delay': sum(a.delay for a in attempts),
                    'success': any(a.result == RetryResult.SUCCESS for a in attempts),
                    'attempts_detail': list(attempts)
                }

            total_operations = len(self._retry_stats)
            total_attempts = sum(len(attempts) for attempts in self._retry_stats.values())
            successful = sum(
                1 for attempts in self._retry_stats.values()
                if any(a.result == RetryResult.SUCCESS for a in attempts)
            )
            return {
                'total_operations': total_operations,
                'total_attempts': total_attempts,
                'successful_operations': successful,
                'success_rate': successful / total_operations if total_operations > 0 else 0
            }

    def _cleanup_stats(self):
        """Drop the least recently run operations beyond max_tracked_operations."""
        while len(self._retry_stats) > self.max_tracked_operations:
            del self._retry_stats[next(iter(self._retry_stats))]
