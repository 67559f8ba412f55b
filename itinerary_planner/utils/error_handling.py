"""
Error handling utilities for the Itinerary Planner system.

This module provides the exception taxonomy shared by the pipeline, the
change engine and the event broadcast, together with a retry decorator
for the AI call boundary and helpers that map exceptions to stable,
user-visible messages.
"""

import functools
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar, cast

from loguru import logger
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])


class ItineraryPlannerError(Exception):
    """Base exception class for all Itinerary Planner errors."""

    user_message = "Something went wrong while processing the itinerary."

    def __init__(self, message: str, original_error: Exception | None = None):
        """
        Initialize an ItineraryPlannerError.

        Args:
            message: Error message
            original_error: The original exception that caused this error (optional)
        """
        self.original_error = original_error
        if original_error:
            message = f"{message} - Original error: {original_error!s}"
        super().__init__(message)


class ValidationError(ItineraryPlannerError):
    """Error raised when a ChangeSet or one of its operations is malformed."""

    user_message = "The requested change is not valid."


class NotFoundError(ItineraryPlannerError):
    """Error raised when an itinerary, day or node does not exist."""

    user_message = "The requested itinerary item could not be found."


class LockedNodeError(ItineraryPlannerError):
    """Error raised when a change targets a locked node."""

    user_message = "This item is locked and cannot be changed."

    def __init__(self, node_id: str, op: str):
        self.node_id = node_id
        self.op = op
        super().__init__(f"Cannot {op} locked node '{node_id}'")


class VersionConflictError(ItineraryPlannerError):
    """Error raised when a write is based on a stale itinerary version."""

    user_message = "The itinerary was changed by someone else. Please retry."

    def __init__(self, itinerary_id: str, expected: int, actual: int):
        self.itinerary_id = itinerary_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Version conflict on itinerary '{itinerary_id}': "
            f"expected {expected}, found {actual}"
        )


class StageFailure(ItineraryPlannerError):
    """Error raised when an agent or its AI call fails during a stage."""

    user_message = "We could not finish generating part of your itinerary."

    def __init__(
        self,
        message: str,
        agent_name: str,
        stage: str | None = None,
        original_error: Exception | None = None,
    ):
        """
        Initialize a StageFailure.

        Args:
            message: Error message
            agent_name: Name of the agent that failed
            stage: Pipeline stage the agent was running (optional)
            original_error: The original exception that caused this error (optional)
        """
        self.agent_name = agent_name
        self.stage = stage
        where = f" during stage '{stage}'" if stage else ""
        full_message = f"Error executing agent '{agent_name}'{where}: {message}"
        super().__init__(full_message, original_error)


class AmbiguousRoutingError(ItineraryPlannerError):
    """Error raised when a task type does not route to exactly one handler."""

    user_message = "This request cannot be handled right now."

    def __init__(self, problems: dict[str, int]):
        self.problems = problems
        details = ", ".join(
            f"{task}: {count} handlers" for task, count in sorted(problems.items())
        )
        super().__init__(f"Ambiguous agent routing ({details})")


class TransportError(ItineraryPlannerError):
    """Error raised when sending to a subscriber connection fails."""

    user_message = "The live update connection was lost."


class APIError(ItineraryPlannerError):
    """Error raised when an external API request fails."""

    user_message = "An external service is unavailable. Please try again later."

    def __init__(
        self,
        message: str,
        service_name: str,
        status_code: int | None = None,
        original_error: Exception | None = None,
    ):
        self.service_name = service_name
        self.status_code = status_code
        status_str = f" (status: {status_code})" if status_code else ""
        full_message = f"Error in {service_name} API{status_str}: {message}"
        super().__init__(full_message, original_error)


def user_message_for(error: BaseException) -> str:
    """
    Map an exception to a stable message that is safe to show to users.

    Args:
        error: Exception to describe

    Returns:
        User-visible message that never includes internal details
    """
    if isinstance(error, ItineraryPlannerError):
        return error.user_message
    return ItineraryPlannerError.user_message


def _log_retry(func_name: str) -> Callable[[Any], None]:
    def log(retry_state: Any) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            f"Retrying {func_name} (attempt {retry_state.attempt_number}) "
            f"after error: {error!s}"
        )

    return log


def with_async_retry(
    max_attempts: int = 3,
    min_wait_seconds: float = 1.0,
    max_wait_seconds: float = 10.0,
    retry_exceptions: tuple = (APIError,),
) -> Callable[[F], F]:
    """
    Decorator to retry a coroutine function with exponential backoff when
    specific exceptions occur.

    Args:
        max_attempts: Maximum number of attempts
        min_wait_seconds: Minimum wait time between retries
        max_wait_seconds: Maximum wait time between retries
        retry_exceptions: Tuple of exception types to retry on

    Returns:
        Decorated coroutine function
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(retry_exceptions),
                stop=stop_after_attempt(max_attempts),
                wait=wait_exponential(
                    multiplier=1, min=min_wait_seconds, max=max_wait_seconds
                ),
                before_sleep=_log_retry(func.__name__),
                reraise=True,
            ):
                with attempt:
                    return await func(*args, **kwargs)

        return cast(F, wrapper)

    return decorator
