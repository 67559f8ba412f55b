"""
Services for the Itinerary Planner system.
"""

from itinerary_planner.services.generation import (
    GeminiGenerationClient,
    GenerationClient,
)

__all__ = ["GeminiGenerationClient", "GenerationClient"]
