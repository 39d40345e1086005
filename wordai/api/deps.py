"""Reusable dependency providers for API routes."""

from __future__ import annotations

from functools import lru_cache

from wordai.config import Settings, get_settings
from wordai.services.heuristic_service import HeuristicBaseline


def get_app_settings() -> Settings:
    """Expose settings dependency for routes/services."""
    return get_settings()


@lru_cache(maxsize=1)
def get_heuristic() -> HeuristicBaseline:
    """Shared keyword baseline for the `predict` action."""
    return HeuristicBaseline()
