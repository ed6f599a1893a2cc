"""
Error handling utilities for the Price Sentinel system.

This module provides error tracking, the shared retry/backoff helper used by
the aggregation layer, and the decorator that keeps scheduled jobs alive when
a single invocation fails.
"""

import asyncio
import functools
import traceback
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Type, TypeVar

from .logging import get_logger

T = TypeVar("T")


class ConfigurationError(ValueError):
    """Raised when required configuration (such as provider credentials) is missing."""


class ErrorSeverity(Enum):
    """Error severity levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories for classification."""

    NETWORK = "network"
    CONFIGURATION = "configuration"
    PARSING = "parsing"
    PERSISTENCE = "persistence"
    ALERT_EVALUATION = "alert_evaluation"
    NOTIFICATION = "notification"
    SYSTEM = "system"
    EXTERNAL_SERVICE = "external_service"


@dataclass
class ErrorInfo:
    """Information about an error occurrence."""

    timestamp: datetime
    component: str
    category: ErrorCategory
    severity: ErrorSeverity
    message: str
    exception_type: str
    traceback: str
    context: Dict[str, Any]


class ErrorTracker:
    """
    Tracks errors and provides statistics for monitoring.
    """

    def __init__(self, max_errors: int = 1000):
        """
        Initialize error tracker.

        Args:
            max_errors: Maximum number of errors to keep in memory
        """
        self.max_errors = max_errors
        self.errors: List[ErrorInfo] = []
        self.error_counts: Dict[str, int] = {}
        self.component_errors: Dict[str, List[ErrorInfo]] = {}
        self.logger = get_logger("error_tracker")

    def record_error(
        self,
        component: str,
        category: ErrorCategory,
        severity: ErrorSeverity,
        message: str,
        exception: Optional[BaseException] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> ErrorInfo:
        """
        Record an error occurrence.

        Args:
            component: Component where error occurred
            category: Error category
            severity: Error severity
            message: Error message
            exception: Exception object if available
            context: Additional context information

        Returns:
            ErrorInfo object
        """
        error_info = ErrorInfo(
            timestamp=datetime.now(),
            component=component,
            category=category,
            severity=severity,
            message=message,
            exception_type=type(exception).__name__ if exception else "Unknown",
            traceback="".join(
                traceback.format_exception(type(exception), exception, exception.__traceback__)
            )
            if exception
            else "",
            context=context or {},
        )

        self.errors.append(error_info)
        if len(self.errors) > self.max_errors:
            self.errors.pop(0)

        error_key = f"{component}.{category.value}.{severity.value}"
        self.error_counts[error_key] = self.error_counts.get(error_key, 0) + 1

        self.component_errors.setdefault(component, []).append(error_info)

        # Keep only recent errors per component
        if len(self.component_errors[component]) > 100:
            self.component_errors[component].pop(0)

        self.logger.error(
            f"Error recorded: {message}",
            extra={
                "component": component,
                "category": category.value,
                "severity": severity.value,
                "exception_type": error_info.exception_type,
                "context": context,
            },
        )

        return error_info

    def get_error_stats(self) -> Dict[str, Any]:
        """Get error statistics."""
        now = datetime.now()
        last_hour = now - timedelta(hours=1)
        last_day = now - timedelta(days=1)

        return {
            "total_errors": len(self.errors),
            "errors_last_hour": len([e for e in self.errors if e.timestamp >= last_hour]),
            "errors_last_day": len([e for e in self.errors if e.timestamp >= last_day]),
            "error_counts": self.error_counts.copy(),
            "component_error_counts": {
                component: len(errors)
                for component, errors in self.component_errors.items()
            },
            "severity_breakdown": {
                severity.value: len([e for e in self.errors if e.severity == severity])
                for severity in ErrorSeverity
            },
        }

    def clear_old_errors(self, older_than_days: int = 7):
        """Clear errors older than specified days."""
        cutoff = datetime.now() - timedelta(days=older_than_days)

        self.errors = [e for e in self.errors if e.timestamp >= cutoff]
        for component in self.component_errors:
            self.component_errors[component] = [
                e for e in self.component_errors[component] if e.timestamp >= cutoff
            ]


class RetryConfig:
    """Configuration for retry behavior."""

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 2.0,
        max_delay: float = 8.0,
        throttle_delay: float = 10.0,
    ):
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.throttle_delay = throttle_delay

    def delay_for(self, attempt: int, throttled: bool = False) -> float:
        """Seconds to wait after the given zero-based failed attempt."""
        if throttled:
            return self.throttle_delay

        return min(self.base_delay * (2**attempt), self.max_delay)


def _is_throttled(error: BaseException) -> bool:
    return bool(getattr(error, "is_throttled", False))


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    retry_config: Optional[RetryConfig] = None,
    description: str = "operation",
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """
    Run ``operation`` with retries and backoff.

    Errors exposing a truthy ``is_throttled`` attribute wait
    ``retry_config.throttle_delay`` instead of the exponential delay. The last
    error is re-raised once attempts are exhausted.
    """
    retry_config = retry_config or RetryConfig()
    logger = get_logger("retry")

    for attempt in range(retry_config.max_attempts):
        try:
            result = await operation()
            if attempt > 0:
                logger.info(f"{description} succeeded on attempt {attempt + 1}")
            return result

        except retry_on as e:
            if attempt == retry_config.max_attempts - 1:
                logger.warning(
                    f"{description} failed after {retry_config.max_attempts} attempts",
                    extra={"error": str(e)},
                )
                raise

            throttled = _is_throttled(e)
            delay = retry_config.delay_for(attempt, throttled)
            logger.info(
                f"Retrying {description} in {delay:.2f} seconds "
                f"(attempt {attempt + 1}/{retry_config.max_attempts})",
                extra={"error": str(e), "throttled": throttled},
            )
            await sleep(delay)

    raise RuntimeError("retry_async requires max_attempts >= 1")


# Global error tracker instance
_error_tracker: Optional[ErrorTracker] = None


def get_error_tracker() -> ErrorTracker:
    """Get global error tracker instance."""
    global _error_tracker
    if _error_tracker is None:
        _error_tracker = ErrorTracker()
    return _error_tracker


def with_error_handling(
    component: str,
    category: ErrorCategory,
    severity: ErrorSeverity = ErrorSeverity.MEDIUM,
    retry_config: Optional[RetryConfig] = None,
    fallback_value: Any = None,
    suppress_exceptions: bool = False,
):
    """
    Decorator for coroutine error handling.

    Args:
        component: Component name
        category: Error category
        severity: Error severity
        retry_config: Retry configuration
        fallback_value: Value to return on failure
        suppress_exceptions: Whether to suppress exceptions
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            error_tracker = get_error_tracker()
            logger = get_logger(component)

            async def attempt():
                return await func(*args, **kwargs)

            try:
                if retry_config:
                    return await retry_async(attempt, retry_config, func.__name__)
                return await attempt()

            except Exception as e:
                error_tracker.record_error(
                    component=component,
                    category=category,
                    severity=severity,
                    message=f"Error in {func.__name__}: {str(e)}",
                    exception=e,
                    context={"function": func.__name__},
                )

                if not suppress_exceptions:
                    raise

                logger.warning(f"Suppressing exception in {func.__name__}: {str(e)}")
                return fallback_value

        return wrapper

    return decorator
