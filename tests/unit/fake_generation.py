"""
Scripted GenerationClient for tests.

Answers every agent prompt with well-formed JSON built from the requested
response schema and the node ids listed in the prompt, so the whole
pipeline can run without network access. Individual schemas can be
overridden or made to fail for selected days.
"""

import asyncio
import json
import re
from collections.abc import Callable
from typing import Any

NODE_LINE = re.compile(r"^- (\S+) \[(\w+)\]", re.MULTILINE)
LEG_LINE = re.compile(r"^- (\S+) -> (\S+)$", re.MULTILINE)
DAY_NUMBER = re.compile(r"\bDay:? (\d+)")

DEFAULT_SLOTS = [
    {"type": "attraction", "title": "Morning sight", "start_time": "09:00", "end_time": "11:00"},
    {"type": "meal", "title": "Lunch", "start_time": "12:00", "end_time": "13:00"},
    {"type": "transport", "title": "Transfer", "start_time": "13:00", "end_time": "13:30"},
    {"type": "activity", "title": "Afternoon walk", "start_time": "14:00", "end_time": "17:00"},
    {"type": "meal", "title": "Dinner", "start_time": "19:00", "end_time": "20:30"},
]
NODE_COST = 12.5


def prompt_day(prompt: str) -> int | None:
    """Return the first day number mentioned in a prompt."""
    match = DAY_NUMBER.search(prompt)
    return int(match.group(1)) if match else None


class ScriptedGenerationClient:
    """Deterministic stand-in for GeminiGenerationClient."""

    def __init__(self, delay: float = 0.0):
        self.delay = delay
        self.calls: list[dict[str, Any]] = []
        self.overrides: dict[str, str | Callable[[str], str]] = {}
        self.failures: dict[str, set[int] | None] = {}

    def override(self, schema_name: str, answer: str | Callable[[str], str]) -> None:
        """Answer a schema with fixed text or a function of the prompt."""
        self.overrides[schema_name] = answer

    def fail(self, schema_name: str, days: set[int] | None = None) -> None:
        """Raise for a schema, optionally only for some day numbers."""
        self.failures[schema_name] = days

    def schemas_called(self) -> list[str]:
        return [call["schema"] for call in self.calls]

    async def generate(
        self,
        prompt: str,
        schema: type | None = None,
        *,
        system_instruction: str | None = None,
        model: Any = None,
    ) -> str:
        name = schema.__name__ if schema is not None else "text"
        self.calls.append(
            {"schema": name, "prompt": prompt, "system_instruction": system_instruction}
        )
        if self.delay:
            await asyncio.sleep(self.delay)

        if name in self.failures:
            days = self.failures[name]
            if days is None or prompt_day(prompt) in days:
                raise RuntimeError(f"scripted failure for {name}")

        answer = self.overrides.get(name)
        if answer is not None:
            return answer(prompt) if callable(answer) else answer

        builder = getattr(self, f"_answer_{name}", None)
        if builder is None:
            return json.dumps({"reply": "ok"})
        return json.dumps(builder(prompt))

    def _answer_SkeletonDayResponse(self, prompt: str) -> dict[str, Any]:
        day = prompt_day(prompt)
        return {
            "location": "Kyoto",
            "summary": f"Day {day} around Kyoto",
            "pace": "moderate",
            "slots": DEFAULT_SLOTS,
        }

    def _answer_NodeUpdatesResponse(self, prompt: str) -> dict[str, Any]:
        return {
            "nodes": [
                {
                    "node_id": node_id,
                    "description": f"Details for {node_id}",
                    "category": node_type,
                    "tips": ["Arrive early"],
                    "tags": ["popular"],
                }
                for node_id, node_type in NODE_LINE.findall(prompt)
            ]
        }

    def _answer_TransportResponse(self, prompt: str) -> dict[str, Any]:
        return {
            "legs": [
                {
                    "from_id": a,
                    "to_id": b,
                    "mode": "metro",
                    "duration_min": 15,
                    "distance_km": 2.5,
                }
                for a, b in LEG_LINE.findall(prompt)
            ],
            "nodes": [],
        }

    def _answer_CostEstimateResponse(self, prompt: str) -> dict[str, Any]:
        return {
            "estimates": [
                {"node_id": node_id, "amount": NODE_COST}
                for node_id, _ in NODE_LINE.findall(prompt)
            ]
        }

    def _answer_ExplainResponse(self, prompt: str) -> dict[str, Any]:
        return {"reply": "The first day starts with a morning sight."}

    def _answer_EditorResponse(self, prompt: str) -> dict[str, Any]:
        return {"reply": "Nothing to change.", "change_set": None}
