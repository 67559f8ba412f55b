"""
Unit tests for helper utilities and error handling.
"""

import pytest

from itinerary_planner.utils.error_handling import (
    APIError,
    LockedNodeError,
    NotFoundError,
    StageFailure,
    VersionConflictError,
    user_message_for,
    with_async_retry,
)
from itinerary_planner.utils.helpers import (
    chunked,
    clean_json_response,
    format_price,
    generate_id,
)


def test_chunked_splits_in_order():
    assert list(chunked(range(1, 6), 2)) == [[1, 2], [3, 4], [5]]
    assert list(chunked([], 3)) == []
    with pytest.raises(ValueError):
        list(chunked([1], 0))


@pytest.mark.parametrize(
    "raw",
    [
        '{"a": 1}',
        '```json\n{"a": 1}\n```',
        '```\n{"a": 1}\n```',
        'Sure! {"a": 1} Hope this helps.',
    ],
)
def test_clean_json_response(raw):
    assert clean_json_response(raw) == '{"a": 1}'


def test_generate_id_prefix():
    first = generate_id("it")
    assert first.startswith("it_")
    assert first != generate_id("it")
    assert "_" not in generate_id()


def test_formatting_helpers():
    assert format_price(12.5) == "$12.50"
    assert format_price(1500, "JPY") == "¥1500"


def test_user_messages_hide_internal_details():
    failure = StageFailure("boom at line 3", "cost_estimator", "cost_estimation")

    assert "boom" not in user_message_for(failure)
    assert user_message_for(failure) == StageFailure.user_message
    assert user_message_for(KeyError("secret")) == (
        "Something went wrong while processing the itinerary."
    )
    assert user_message_for(NotFoundError("x")) != user_message_for(failure)


def test_error_details():
    locked = LockedNodeError("day1_node3", "delete")
    assert locked.node_id == "day1_node3"
    assert "locked" in str(locked)

    conflict = VersionConflictError("it_1", 2, 5)
    assert (conflict.expected, conflict.actual) == (2, 5)

    wrapped = StageFailure("failed", "transport_agent", "transport", ValueError("x"))
    assert "transport" in str(wrapped)
    assert "Original error: x" in str(wrapped)


@pytest.mark.asyncio
async def test_with_async_retry_retries_listed_errors():
    calls = []

    @with_async_retry(max_attempts=3, min_wait_seconds=0, max_wait_seconds=0)
    async def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise APIError("unavailable", "Gemini", 503)
        return "ok"

    assert await flaky() == "ok"
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_with_async_retry_gives_up():
    calls = []

    @with_async_retry(max_attempts=2, min_wait_seconds=0, max_wait_seconds=0)
    async def broken():
        calls.append(1)
        raise APIError("unavailable", "Gemini")

    with pytest.raises(APIError):
        await broken()
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_with_async_retry_ignores_other_errors():
    calls = []

    @with_async_retry(max_attempts=3, min_wait_seconds=0, max_wait_seconds=0)
    async def invalid():
        calls.append(1)
        raise ValueError("bad input")

    with pytest.raises(ValueError):
        await invalid()
    assert len(calls) == 1
