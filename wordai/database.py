"""SQLAlchemy engine resolution and declarative base setup."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Engine
from sqlalchemy.orm import DeclarativeBase

from wordai.config import Settings, get_settings


class Base(DeclarativeBase):
    """Declarative base class for all SQLAlchemy models."""


@dataclass(frozen=True)
class ConnectionParams:
    """Per-call connection parameters; the gateway keeps no session state."""

    host: str
    username: str
    password: str
    db_name: str

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "ConnectionParams":
        settings = settings or get_settings()
        return cls(
            host=settings.db_host,
            username=settings.db_user,
            password=settings.db_password,
            db_name=settings.db_name,
        )

    @classmethod
    def from_payload(cls, payload: dict[str, Any], settings: Settings | None = None) -> "ConnectionParams":
        """Read `host`/`username`/`password`/`dbName` from a request body, falling back to settings."""
        defaults = cls.from_settings(settings)
        return cls(
            host=str(payload.get("host") or defaults.host),
            username=str(payload.get("username") or defaults.username),
            password=str(payload.get("password") if payload.get("password") is not None else defaults.password),
            db_name=str(payload.get("dbName") or defaults.db_name),
        )

    def as_payload(self) -> dict[str, str]:
        return {
            "host": self.host,
            "username": self.username,
            "password": self.password,
            "dbName": self.db_name,
        }


def resolve_database_url(params: ConnectionParams, settings: Settings | None = None) -> str:
    """Build the SQLAlchemy URL for one call."""
    settings = settings or get_settings()
    if settings.database_url:
        return settings.database_url
    url = URL.create(
        drivername=settings.db_driver,
        username=params.username,
        password=params.password or None,
        host=params.host,
        database=params.db_name,
    )
    return url.render_as_string(hide_password=False)


@lru_cache(maxsize=16)
def get_engine(url: str) -> Engine:
    """Return a pooled engine for one database URL."""
    return create_engine(url, future=True, pool_pre_ping=True)
