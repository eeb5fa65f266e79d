"""Pydantic contracts shared across the core, the agents and the API."""
