"""Pytest environment isolation.

Tests run against a throwaway SQLite database and artifact directory and must
never touch a real MySQL server or the runtime data directory.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path

import pytest
from sqlalchemy import Column, Integer, MetaData, Table, Text, delete, insert

# Configure an isolated filesystem root before app settings are imported.
_TEST_ROOT = Path(tempfile.mkdtemp(prefix="wordai-pytest-")).resolve()
_TEST_DB = _TEST_ROOT / "test.db"
_TEST_ARTIFACTS = _TEST_ROOT / "artifacts"

os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = f"sqlite:///{_TEST_DB}"
os.environ["ARTIFACT_DIR"] = str(_TEST_ARTIFACTS)
os.environ["WORD_TABLE"] = "word"
os.environ["EPOCHS"] = "3"
os.environ["BATCH_SIZE"] = "2"
os.environ["MAX_REQUEST_MB"] = "1"

from wordai.config import get_settings

get_settings.cache_clear()

WORD_ROWS = [
    {"id": 1, "text": "buy milk", "category": "shopping"},
    {"id": 2, "text": "write code", "category": "work"},
    {"id": 3, "text": "buy bread", "category": "shopping"},
]

word_metadata = MetaData()
word_table = Table(
    "word",
    word_metadata,
    Column("id", Integer, primary_key=True),
    Column("text", Text, nullable=True),
    Column("category", Text, nullable=True),
)


def get_test_engine():
    from wordai.database import get_engine

    return get_engine(get_settings().database_url)


def seed_words(rows: list[dict]) -> None:
    """Replace the word table content with `rows`."""
    with get_test_engine().begin() as connection:
        connection.execute(delete(word_table))
        if rows:
            connection.execute(insert(word_table), rows)


@pytest.fixture(scope="session", autouse=True)
def _bootstrap_test_environment() -> None:
    """Create the word table once per test session."""
    _TEST_ARTIFACTS.mkdir(parents=True, exist_ok=True)
    word_metadata.create_all(bind=get_test_engine())
    yield

    get_test_engine().dispose()
    shutil.rmtree(_TEST_ROOT, ignore_errors=True)


@pytest.fixture(autouse=True)
def _isolate_each_test() -> None:
    """Reseed words, drop the lazily created log tables and clear saved artifacts."""
    import wordai.models  # noqa: F401
    from wordai.database import Base
    from wordai.storage import get_storage

    seed_words(WORD_ROWS)
    Base.metadata.drop_all(bind=get_test_engine())
    shutil.rmtree(_TEST_ARTIFACTS, ignore_errors=True)
    _TEST_ARTIFACTS.mkdir(parents=True, exist_ok=True)
    get_storage.cache_clear()
    yield
