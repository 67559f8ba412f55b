"""
Orchestration package for the itinerary planner system.

This package drives itinerary generation: the agent registry routes tasks,
each batch of days runs through a LangGraph state graph of pipeline stages,
and the orchestrator persists results and publishes progress.
"""
