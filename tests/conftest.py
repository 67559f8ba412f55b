"""
Pytest configuration for the Itinerary Planner system tests.
"""

import pytest

from itinerary_planner.config import (
    APIConfig,
    BroadcastConfig,
    ChangeConfig,
    ItineraryPlannerConfig,
    PipelineConfig,
    SystemConfig,
)
from itinerary_planner.utils import LogLevel, setup_logging


@pytest.fixture(scope="session", autouse=True)
def setup_test_logging():
    """Set up logging for tests."""
    setup_logging(LogLevel.DEBUG)


@pytest.fixture
def test_config():
    """Test application configuration."""
    return ItineraryPlannerConfig(
        api=APIConfig(
            gemini_api_key="test-key",
            aws_region="ap-northeast-1",
            dynamodb_table_name="itinerary-planner-test",
        ),
        system=SystemConfig(
            log_level=LogLevel.DEBUG,
            environment="test",
            default_currency="USD",
        ),
        pipeline=PipelineConfig(days_per_batch=2, readiness_timeout=0.05),
        broadcast=BroadcastConfig(grace_period=60.0),
        changes=ChangeConfig(max_revisions=5),
    )
