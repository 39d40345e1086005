"""SQLAlchemy model exports."""

from __future__ import annotations

from wordai.models.model_metadata import ModelMetadata
from wordai.models.prediction_log import PredictionLog

__all__ = ["ModelMetadata", "PredictionLog"]
