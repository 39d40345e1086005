"""Pydantic schemas for the action-dispatched JSON endpoint."""

from __future__ import annotations

from pydantic import BaseModel, Field


class BatchParams(BaseModel):
    """Pagination window for `get_batch`."""

    offset: int = Field(default=0, ge=0)
    limit: int = Field(default=100, ge=1, le=100000)
