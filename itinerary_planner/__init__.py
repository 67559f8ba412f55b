"""
Itinerary planning system powered by Google Gemini and LangGraph.

This package generates day-by-day travel itineraries with a pipeline of
specialized agents, streams progress to subscribers with resumable replay,
and applies versioned, undoable edits to the resulting documents.
"""

__version__ = "0.1.0"
