"""
Unit tests for configuration loading and validation.
"""

import pytest

from itinerary_planner.config import (
    AgentModelConfig,
    APIConfig,
    ItineraryPlannerConfig,
    PipelineConfig,
    initialize_config,
)


def test_valid_configuration(test_config):
    assert test_config.validate()
    assert test_config.changes.max_revisions == 5
    assert test_config.get_agent_model("skeleton").name


def test_missing_api_key_fails_validation(test_config):
    test_config.api = APIConfig(gemini_api_key="")

    assert not test_config.validate()
    with pytest.raises(ItineraryPlannerConfig.ConfigurationError):
        test_config.validate(raise_error=True)


def test_non_positive_batch_size_fails_validation(test_config):
    test_config.pipeline = PipelineConfig(days_per_batch=0)
    assert not test_config.validate()


def test_unknown_agent_type_gets_default_model(test_config):
    assert test_config.get_agent_model("unknown").name == "gemini-2.5-flash"


def test_agent_model_temperature_bounds():
    with pytest.raises(ValueError):
        AgentModelConfig(name="gemini-2.5-flash", temperature=1.5)


def test_values_read_from_environment(monkeypatch):
    monkeypatch.setenv("PIPELINE_DAYS_PER_BATCH", "3")
    monkeypatch.setenv("PIPELINE_PARALLEL_DAYS", "false")
    monkeypatch.setenv("EDITOR_MODEL", "gemini-2.5-pro")
    monkeypatch.setenv("EDITOR_TEMPERATURE", "0.1")

    loaded = ItineraryPlannerConfig()

    assert loaded.pipeline.days_per_batch == 3
    assert loaded.pipeline.parallel_days is False
    assert loaded.get_agent_model("editor") == AgentModelConfig(
        name="gemini-2.5-pro", temperature=0.1
    )


def test_missing_custom_env_file():
    with pytest.raises(FileNotFoundError):
        initialize_config("/nonexistent/.env", validate=False)
