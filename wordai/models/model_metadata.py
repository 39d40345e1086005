"""SQLAlchemy model for the append-only training run log."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Float, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from wordai.database import Base


class ModelMetadata(Base):
    """One completed training run; the newest row is the current model."""

    __tablename__ = "model_metadata"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    model_name: Mapped[str] = mapped_column(String(255), nullable=False)
    accuracy: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    # JSON-encoded hyperparameters and column selection.
    parameters: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    creation_date: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), nullable=False)
    model_path: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
