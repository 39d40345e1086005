"""Sequential, paginated corpus ingestion from the gateway."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Callable

import structlog

from wordai.errors import BackendConnectionError, QueryError
from wordai.ml.features import ColumnSelection, Corpus, Schema, TextPreprocessor, classify_columns
from wordai.ml.gateway_client import GatewayClient

logger = structlog.get_logger(__name__)


@dataclass
class LoadedCorpus:
    """Everything the model builder needs from one full corpus load."""

    schema: Schema
    selection: ColumnSelection
    corpus: Corpus
    preprocessors: dict[str, TextPreprocessor]
    total_records: int


def require_success(result: dict[str, Any], context: str) -> dict[str, Any]:
    """Raise the matching error for a tagged error result."""
    if result.get("status") == "success":
        return result
    message = str(result.get("message", "Unknown error"))
    if message.startswith("Connection failed"):
        raise BackendConnectionError(f"{context}: {message}")
    raise QueryError(f"{context}: {message}")


async def fetch_schema(client: GatewayClient) -> Schema:
    result = require_success(await client.get_schema(), "Failed to fetch schema")
    schema = Schema.from_describe(result["schema"])
    logger.info("schema_loaded", columns=len(schema))
    return schema


async def fetch_total_records(client: GatewayClient) -> int:
    result = require_success(await client.get_count(), "Failed to fetch record count")
    total = int(result["count"])
    logger.info("record_count_loaded", total=total)
    return total


async def load_corpus(
    client: GatewayClient,
    *,
    page_size: int = 1000,
    label_names: Sequence[str] = ("category", "label"),
    on_progress: Callable[[int], None] | None = None,
) -> LoadedCorpus:
    """
    Pull the whole table page by page and build vocabularies over it.

    One page request is outstanding at a time. Loading stops when a page
    returns fewer rows than requested or the offset reaches the total count.
    """
    schema = await fetch_schema(client)
    selection = classify_columns(schema, label_names)
    total = await fetch_total_records(client)

    corpus = Corpus(selection=selection)
    offset = 0
    while True:
        page = require_success(await client.get_batch(offset, page_size), "Failed to fetch data batch")
        rows = [schema.coerce_row(raw) for raw in page.get("data") or []]
        kept = corpus.ingest(rows)
        returned = int(page.get("count", len(rows)))
        offset += returned

        logger.info("batch_processed", offset=offset, returned=returned, kept=kept, total_processed=len(corpus))
        if on_progress:
            on_progress(min(100, round(offset / total * 100)) if total else 100)

        if returned < page_size or offset >= total:
            break

    preprocessors = corpus.build_preprocessors()
    logger.info("data_loading_complete", records=len(corpus), total_records=total)
    return LoadedCorpus(
        schema=schema,
        selection=selection,
        corpus=corpus,
        preprocessors=preprocessors,
        total_records=total,
    )
