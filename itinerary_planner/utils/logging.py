"""
Logging framework for the Itinerary Planner system.

This module configures logging for the Itinerary Planner application,
providing a consistent logging interface across all modules.
"""

import json
import os
import sys
from datetime import datetime
from typing import Any

from loguru import logger

from itinerary_planner.config import LogLevel


def get_logger(name: str):
    """
    Get a logger instance for the specified module.

    Args:
        name: Module name (typically __name__)

    Returns:
        Configured logger instance with the module name attached
    """
    return logger.bind(name=name)


def setup_logging(
    log_level: LogLevel | str = LogLevel.INFO, log_file: str | None = None
):
    """
    Set up the logging configuration for the application.

    Args:
        log_level: The logging level to use (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path to write logs to
    """
    if isinstance(log_level, str):
        log_level = LogLevel(log_level.upper())

    logger.remove()

    logger.add(
        sys.stderr,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        ),
        level=log_level.value,
        colorize=True,
    )

    if log_file:
        os.makedirs(os.path.dirname(os.path.abspath(log_file)), exist_ok=True)
        logger.add(
            log_file,
            format=(
                "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | "
                "{name}:{function}:{line} - {message}"
            ),
            level=log_level.value,
            rotation="10 MB",
            compression="zip",
        )

    logger.info(f"Logging initialized with level {log_level.value}")


class AgentLogger:
    """
    Logger specialized for agent operations, providing context-aware logging
    with agent and itinerary information.
    """

    def __init__(self, agent_name: str, agent_id: str | None = None):
        """
        Initialize the agent logger.

        Args:
            agent_name: Name of the agent
            agent_id: Unique ID for the agent instance (optional)
        """
        self.agent_name = agent_name
        self.agent_id = (
            agent_id or f"{agent_name}-{datetime.now().strftime('%Y%m%d%H%M%S')}"
        )
        self.logger = logger.bind(agent_name=agent_name, agent_id=self.agent_id)

    def for_itinerary(self, itinerary_id: str) -> "AgentLogger":
        """Return a copy of this logger bound to one itinerary."""
        scoped = AgentLogger(self.agent_name, self.agent_id)
        scoped.logger = self.logger.bind(itinerary_id=itinerary_id)
        return scoped

    def debug(self, message: str, **kwargs):
        """Log a debug message with agent context."""
        self.logger.debug(message, **kwargs)

    def info(self, message: str, **kwargs):
        """Log an info message with agent context."""
        self.logger.info(message, **kwargs)

    def warning(self, message: str, **kwargs):
        """Log a warning message with agent context."""
        self.logger.warning(message, **kwargs)

    def error(self, message: str, **kwargs):
        """Log an error message with agent context."""
        self.logger.error(message, **kwargs)

    def exception(self, message: str, **kwargs):
        """Log an error message with the active traceback attached."""
        self.logger.exception(message, **kwargs)

    def log_llm_input(self, model: str, prompt: str, schema: Any | None = None):
        """
        Log input to a language model.

        Args:
            model: Name of the model
            prompt: Prompt text
            schema: Response schema requested (optional)
        """
        schema_name = getattr(schema, "__name__", None) if schema else None
        self.debug(
            f"LLM Request: {model} - Schema: {schema_name or 'text'}",
            model=model,
            prompt=prompt,
        )

    def log_llm_output(self, model: str, response: Any):
        """
        Log output from a language model.

        Args:
            model: Name of the model
            response: Model response
        """
        self.debug(
            f"LLM Response: {model}",
            model=model,
            response=self._safe_json(response),
        )

    def _safe_json(self, obj: Any) -> str | None:
        """
        Safely convert an object to JSON, handling conversion errors.

        Args:
            obj: Object to convert to JSON

        Returns:
            JSON string or None if conversion fails
        """
        if obj is None:
            return None

        try:
            return json.dumps(obj, default=str)
        except Exception as e:
            self.warning(f"Failed to serialize object to JSON: {e!s}")
            return str(obj)
