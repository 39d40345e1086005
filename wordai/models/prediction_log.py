"""SQLAlchemy model for logged predictions."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Float, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from wordai.database import Base


class PredictionLog(Base):
    """A single prediction served to a user."""

    __tablename__ = "prediction_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    input_text: Mapped[str] = mapped_column(Text, nullable=False)
    predicted_class: Mapped[str] = mapped_column(String(255), nullable=False)
    confidence: Mapped[float] = mapped_column(Float, nullable=False)
    user_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    prediction_time: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), nullable=False)
