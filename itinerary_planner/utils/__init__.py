"""
Utility modules for the Itinerary Planner system.
"""

from itinerary_planner.config import LogLevel
from itinerary_planner.utils.error_handling import (
    AmbiguousRoutingError,
    APIError,
    ItineraryPlannerError,
    LockedNodeError,
    NotFoundError,
    StageFailure,
    TransportError,
    ValidationError,
    VersionConflictError,
    user_message_for,
    with_async_retry,
)
from itinerary_planner.utils.helpers import (
    chunked,
    clean_json_response,
    format_price,
    generate_id,
    get_currency_symbol,
    utc_now,
    utc_now_iso,
)
from itinerary_planner.utils.logging import AgentLogger, get_logger, setup_logging

__all__ = [
    "APIError",
    "AgentLogger",
    "AmbiguousRoutingError",
    "ItineraryPlannerError",
    "LockedNodeError",
    "LogLevel",
    "NotFoundError",
    "StageFailure",
    "TransportError",
    "ValidationError",
    "VersionConflictError",
    "chunked",
    "clean_json_response",
    "format_price",
    "generate_id",
    "get_currency_symbol",
    "get_logger",
    "setup_logging",
    "user_message_for",
    "utc_now",
    "utc_now_iso",
    "with_async_retry",
]
