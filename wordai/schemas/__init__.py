"""Pydantic request/response schemas."""

from __future__ import annotations

from wordai.schemas.gateway import BatchParams
from wordai.schemas.model_metadata import ModelInfo, PredictionRecord

__all__ = ["BatchParams", "ModelInfo", "PredictionRecord"]
