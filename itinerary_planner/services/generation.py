"""
AI-generation collaborator.

Agents depend only on the `GenerationClient` protocol. The production
implementation talks to Gemini through google-genai in JSON response mode,
with aiolimiter bounding the request rate and tenacity retrying transient
API failures. Timeouts and failures surface to the agents as exceptions,
which they report as stage failures.
"""

import asyncio
from typing import Protocol, runtime_checkable

from aiolimiter import AsyncLimiter
from google import genai
from google.genai import errors, types
from pydantic import BaseModel

from itinerary_planner.config import AgentModelConfig
from itinerary_planner.utils.error_handling import APIError, with_async_retry
from itinerary_planner.utils.logging import AgentLogger

DEFAULT_MODEL = AgentModelConfig(name="gemini-2.5-flash", temperature=0.7)


@runtime_checkable
class GenerationClient(Protocol):
    """Anything that can turn a prompt into model text."""

    async def generate(
        self,
        prompt: str,
        schema: type[BaseModel] | None = None,
        *,
        system_instruction: str | None = None,
        model: AgentModelConfig | None = None,
    ) -> str:
        """
        Generate text for a prompt.

        Args:
            prompt: User prompt
            schema: Pydantic model the answer must conform to (JSON mode)
            system_instruction: Optional system instruction
            model: Model configuration to use instead of the default

        Returns:
            Raw model text, possibly empty
        """
        ...


class GeminiGenerationClient:
    """GenerationClient backed by Gemini via google-genai."""

    def __init__(
        self,
        api_key: str | None = None,
        default_model: AgentModelConfig | None = None,
        requests_per_minute: int = 60,
        timeout: float = 120.0,
        client: genai.Client | None = None,
    ):
        """
        Initialize the client.

        Args:
            api_key: Gemini API key (falls back to the SDK's env lookup)
            default_model: Model used when a call does not name one
            requests_per_minute: Maximum requests per minute
            timeout: Timeout in seconds for one model call
            client: Pre-built google-genai client (optional)
        """
        self._api_key = api_key or None
        self._client = client
        self.default_model = default_model or DEFAULT_MODEL
        self.timeout = timeout
        self.limiter = AsyncLimiter(requests_per_minute, 60)
        self.logger = AgentLogger("gemini_generation")

    @property
    def client(self) -> genai.Client:
        """Create the google-genai client on first use."""
        if self._client is None:
            self._client = genai.Client(api_key=self._api_key)
        return self._client

    async def generate(
        self,
        prompt: str,
        schema: type[BaseModel] | None = None,
        *,
        system_instruction: str | None = None,
        model: AgentModelConfig | None = None,
    ) -> str:
        model = model or self.default_model
        config = types.GenerateContentConfig(
            temperature=model.temperature,
            max_output_tokens=model.max_tokens,
            system_instruction=system_instruction,
            response_mime_type="application/json" if schema else None,
            response_schema=schema,
        )
        contents = [
            types.Content(role="user", parts=[types.Part.from_text(text=prompt)])
        ]

        self.logger.log_llm_input(model=model.name, prompt=prompt, schema=schema)
        async with self.limiter:
            text = await self._call_model(model.name, contents, config)
        self.logger.log_llm_output(model=model.name, response=text)
        return text

    @with_async_retry(max_attempts=3, retry_exceptions=(APIError,))
    async def _call_model(
        self,
        model_name: str,
        contents: list[types.Content],
        config: types.GenerateContentConfig,
    ) -> str:
        try:
            async with asyncio.timeout(self.timeout):
                response = await self.client.aio.models.generate_content(
                    model=model_name,
                    contents=contents,
                    config=config,
                )
        except TimeoutError as e:
            raise APIError(
                f"Model call timed out after {self.timeout}s", "Gemini", None, e
            ) from e
        except errors.APIError as e:
            raise APIError(str(e.message or e), "Gemini", e.code, e) from e

        return response.text or ""
