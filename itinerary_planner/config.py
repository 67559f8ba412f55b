"""
Configuration management for the Itinerary Planner system.

This module handles loading and managing configuration for the entire
itinerary planning system, including environment variables, API keys,
and default settings for the generation pipeline, event broadcasting
and the change engine.
"""

import os
from dataclasses import dataclass, field
from enum import Enum

from dotenv import load_dotenv
from loguru import logger
from pydantic import BaseModel, Field, field_validator

# Load environment variables from .env file
load_dotenv()


class LogLevel(str, Enum):
    """Log levels supported by the system."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class AgentModelConfig(BaseModel):
    """Configuration for an agent's LLM model."""

    name: str = Field(..., description="Model name to use")
    temperature: float = Field(default=0.7, description="Model temperature")
    max_tokens: int | None = Field(default=None, description="Max tokens to generate")

    @field_validator("temperature")
    @classmethod
    def validate_temperature(cls, value: float) -> float:
        """Validate temperature is within reasonable bounds."""
        if not (0.0 <= value <= 1.0):
            raise ValueError(f"Temperature must be between 0.0 and 1.0, got {value}")
        return value

    @classmethod
    def from_env(cls, prefix: str = "") -> "AgentModelConfig":
        """Create an AgentModelConfig from environment variables."""
        prefix = f"{prefix}_" if prefix else ""
        return cls(
            name=os.getenv(f"{prefix}MODEL", "gemini-2.5-flash"),
            temperature=float(os.getenv(f"{prefix}TEMPERATURE", "0.7")),
            max_tokens=int(os.getenv(f"{prefix}MAX_TOKENS", "0")) or None,
        )


class APIConfig(BaseModel):
    """Configuration for external APIs."""

    gemini_api_key: str = Field(default="", description="Gemini API key")
    requests_per_minute: int = Field(
        default=60, description="Maximum AI generation requests per minute"
    )
    aws_region: str = Field(default="ap-northeast-1", description="AWS region")
    dynamodb_table_name: str = Field(
        default="itinerary-planner", description="DynamoDB table name"
    )
    dynamodb_endpoint: str | None = Field(
        default=None, description="DynamoDB endpoint URL (for local dev)"
    )

    class ValidationError(Exception):
        """Exception raised for API configuration validation errors."""

        def __init__(self, missing_keys: list[str]):
            self.missing_keys = missing_keys
            super().__init__(f"Missing required API keys: {', '.join(missing_keys)}")

    @classmethod
    def from_env(cls) -> "APIConfig":
        """Create an APIConfig from environment variables."""
        return cls(
            gemini_api_key=os.getenv("GEMINI_API_KEY", ""),
            requests_per_minute=int(os.getenv("AI_REQUESTS_PER_MINUTE", "60")),
            aws_region=os.getenv("AWS_REGION", "ap-northeast-1"),
            dynamodb_table_name=os.getenv("DYNAMODB_TABLE_NAME", "itinerary-planner"),
            dynamodb_endpoint=os.getenv("DYNAMODB_ENDPOINT"),
        )

    def validate(self, raise_error: bool = False) -> bool:
        """
        Validate that required API keys are present.

        Args:
            raise_error: If True, raise ValidationError instead of returning False

        Returns:
            True if all required keys are present, False otherwise
        """
        missing_keys = []
        if not self.gemini_api_key:
            missing_keys.append("GEMINI_API_KEY")
        if not self.dynamodb_table_name:
            missing_keys.append("DYNAMODB_TABLE_NAME")

        if missing_keys:
            logger.error(f"Missing required API keys: {', '.join(missing_keys)}")
            if raise_error:
                raise self.ValidationError(missing_keys)
            return False

        return True


class PipelineConfig(BaseModel):
    """Configuration for the itinerary generation pipeline."""

    days_per_batch: int = Field(
        default=2, description="Number of days generated per AI call batch"
    )
    pipeline_workers: int = Field(
        default=4, description="Maximum concurrent generation runs"
    )
    readiness_timeout: float = Field(
        default=5.0,
        description="Seconds to wait for the first subscriber before generating",
    )
    ai_timeout: float = Field(
        default=120.0, description="Timeout in seconds for a single AI call"
    )
    parallel_days: bool = Field(
        default=True, description="Generate the days of one batch concurrently"
    )

    @classmethod
    def from_env(cls) -> "PipelineConfig":
        """Create a PipelineConfig from environment variables."""
        return cls(
            days_per_batch=int(os.getenv("PIPELINE_DAYS_PER_BATCH", "2")),
            pipeline_workers=int(os.getenv("PIPELINE_WORKERS", "4")),
            readiness_timeout=float(os.getenv("PIPELINE_READINESS_TIMEOUT", "5.0")),
            ai_timeout=float(os.getenv("PIPELINE_AI_TIMEOUT", "120")),
            parallel_days=os.getenv("PIPELINE_PARALLEL_DAYS", "true").lower()
            == "true",
        )


class BroadcastConfig(BaseModel):
    """Configuration for the per-itinerary event broadcast."""

    buffer_size: int = Field(
        default=100, description="Events retained per itinerary for replay"
    )
    grace_period: float = Field(
        default=60.0,
        description="Seconds the replay buffer survives a terminal event",
    )
    sweep_interval: float = Field(
        default=30.0, description="Seconds between dead-subscriber sweeps"
    )
    subscriber_queue_size: int = Field(
        default=256, description="Pending events allowed per subscriber"
    )
    fanout_workers: int = Field(
        default=4, description="Maximum concurrent sends across all subscribers"
    )
    send_timeout: float = Field(
        default=10.0,
        description="Seconds one send may block before its subscriber is dropped",
    )
    legacy_flat_fields: bool = Field(
        default=True,
        description="Also emit flat progress/message/status fields on the wire",
    )

    @classmethod
    def from_env(cls) -> "BroadcastConfig":
        """Create a BroadcastConfig from environment variables."""
        return cls(
            buffer_size=int(os.getenv("BROADCAST_BUFFER_SIZE", "100")),
            grace_period=float(os.getenv("BROADCAST_GRACE_PERIOD", "60")),
            sweep_interval=float(os.getenv("BROADCAST_SWEEP_INTERVAL", "30")),
            subscriber_queue_size=int(os.getenv("BROADCAST_QUEUE_SIZE", "256")),
            fanout_workers=int(os.getenv("BROADCAST_FANOUT_WORKERS", "4")),
            send_timeout=float(os.getenv("BROADCAST_SEND_TIMEOUT", "10")),
            legacy_flat_fields=os.getenv("BROADCAST_LEGACY_FIELDS", "true").lower()
            == "true",
        )


class ChangeConfig(BaseModel):
    """Configuration for the change engine."""

    max_revisions: int = Field(
        default=50, description="Revisions retained per itinerary for undo"
    )

    @classmethod
    def from_env(cls) -> "ChangeConfig":
        """Create a ChangeConfig from environment variables."""
        return cls(max_revisions=int(os.getenv("CHANGE_MAX_REVISIONS", "50")))


class SystemConfig(BaseModel):
    """System-wide configuration."""

    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")
    log_file: str | None = Field(default=None, description="Optional log file path")
    environment: str = Field(
        default="development",
        description="Environment (development, staging, production)",
    )
    default_currency: str = Field(default="USD", description="Default currency")

    @classmethod
    def from_env(cls) -> "SystemConfig":
        """Create a SystemConfig from environment variables."""
        return cls(
            log_level=LogLevel(os.getenv("LOG_LEVEL", "INFO").upper()),
            log_file=os.getenv("LOG_FILE"),
            environment=os.getenv("ENVIRONMENT", "development"),
            default_currency=os.getenv("DEFAULT_CURRENCY", "USD"),
        )


@dataclass
class ItineraryPlannerConfig:
    """Main configuration class for the Itinerary Planner system."""

    api: APIConfig = field(default_factory=APIConfig.from_env)
    system: SystemConfig = field(default_factory=SystemConfig.from_env)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig.from_env)
    broadcast: BroadcastConfig = field(default_factory=BroadcastConfig.from_env)
    changes: ChangeConfig = field(default_factory=ChangeConfig.from_env)
    agent_models: dict[str, AgentModelConfig] = field(default_factory=dict)

    def __post_init__(self):
        """Initialize agent models if not provided."""
        if not self.agent_models:
            self.agent_models = {
                "skeleton": AgentModelConfig.from_env("SKELETON"),
                "activity": AgentModelConfig.from_env("ACTIVITY"),
                "meal": AgentModelConfig.from_env("MEAL"),
                "transport": AgentModelConfig.from_env("TRANSPORT"),
                "enrichment": AgentModelConfig.from_env("ENRICHMENT"),
                "cost": AgentModelConfig.from_env("COST"),
                "editor": AgentModelConfig.from_env("EDITOR"),
                "explain": AgentModelConfig.from_env("EXPLAIN"),
            }

    class ConfigurationError(Exception):
        """Exception raised for configuration validation errors."""

        pass

    def validate(self, raise_error: bool = False) -> bool:
        """
        Validate the entire configuration.

        Args:
            raise_error: If True, raise ConfigurationError instead of returning False

        Returns:
            True if configuration is valid, False otherwise
        """
        try:
            self.api.validate(raise_error=True)

            if self.pipeline.days_per_batch <= 0:
                raise ValueError("Days per batch must be positive")
            if self.pipeline.pipeline_workers <= 0:
                raise ValueError("Pipeline workers must be positive")
            if self.broadcast.buffer_size <= 0:
                raise ValueError("Broadcast buffer size must be positive")
            if self.broadcast.fanout_workers <= 0:
                raise ValueError("Broadcast fan-out workers must be positive")
            if self.broadcast.send_timeout <= 0:
                raise ValueError("Broadcast send timeout must be positive")

            return True

        except Exception as e:
            if not isinstance(e, self.api.ValidationError):
                logger.error(f"Configuration validation failed: {e!s}")

            if raise_error:
                raise self.ConfigurationError(
                    f"Configuration validation failed: {e!s}"
                ) from e

            return False

    def get_agent_model(self, agent_type: str) -> AgentModelConfig:
        """
        Get model configuration for a specific agent type.

        Args:
            agent_type: Type of agent to get model config for

        Returns:
            AgentModelConfig for the requested agent type, or a default if not found
        """
        return self.agent_models.get(
            agent_type,
            self.agent_models.get("default", AgentModelConfig(name="gemini-2.5-flash")),
        )


# Global configuration instance
config = ItineraryPlannerConfig()


def initialize_config(
    custom_config_path: str | None = None,
    validate: bool = True,
    raise_on_error: bool = False,
) -> ItineraryPlannerConfig:
    """
    Initialize and validate the configuration.

    Args:
        custom_config_path: Path to a custom .env file to load
        validate: Whether to validate the configuration
        raise_on_error: Whether to raise an exception on validation failure

    Returns:
        Initialized and validated configuration object

    Raises:
        ItineraryPlannerConfig.ConfigurationError: If validation fails and
            raise_on_error is True
        FileNotFoundError: If custom_config_path is provided but does not exist
    """
    if custom_config_path:
        if not os.path.exists(custom_config_path):
            error_msg = f"Custom configuration file not found: {custom_config_path}"
            logger.error(error_msg)
            raise FileNotFoundError(error_msg)

        logger.info(f"Loading custom configuration from {custom_config_path}")
        load_dotenv(custom_config_path, override=True)

        # Reload in place so modules holding a reference to `config` see the update
        config.api = APIConfig.from_env()
        config.system = SystemConfig.from_env()
        config.pipeline = PipelineConfig.from_env()
        config.broadcast = BroadcastConfig.from_env()
        config.changes = ChangeConfig.from_env()
        config.agent_models = {}
        config.__post_init__()

    if validate:
        is_valid = config.validate(raise_error=raise_on_error)
        if not is_valid:
            logger.warning(
                "Configuration validation failed. The application may not function "
                "correctly. Please check your environment variables."
            )
            logger.info(
                "Required environment variables: GEMINI_API_KEY, DYNAMODB_TABLE_NAME"
            )

    return config
