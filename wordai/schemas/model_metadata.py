"""Pydantic schemas for training run metadata and prediction logs."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ModelInfo(BaseModel):
    """Description of a saved model as posted by the trainer."""

    name: str = Field(..., min_length=1, max_length=255)
    accuracy: float | None = None
    parameters: dict = Field(default_factory=dict)
    path: str | None = Field(default=None, max_length=255)


class PredictionRecord(BaseModel):
    """One prediction to append to the prediction log."""

    model_config = ConfigDict(populate_by_name=True)

    text: str = ""
    predicted_class: str = Field(default="", alias="class")
    confidence: float = 0.0
    user_id: str | None = Field(default=None, alias="userId")
