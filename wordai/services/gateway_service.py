"""Service layer exposing the word table and the model metadata log."""

from __future__ import annotations

import contextlib
import json
from collections.abc import Callable, Iterator
from typing import Any

import structlog
from pydantic import ValidationError as SchemaError
from sqlalchemy import MetaData, Table, func, insert, inspect, select
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from wordai.config import Settings, get_settings
from wordai.database import ConnectionParams, get_engine, resolve_database_url
from wordai.errors import BackendConnectionError, QueryError
from wordai.models.model_metadata import ModelMetadata
from wordai.models.prediction_log import PredictionLog
from wordai.schemas.model_metadata import ModelInfo, PredictionRecord

logger = structlog.get_logger(__name__)

Result = dict[str, Any]


def success(**payload: Any) -> Result:
    """Build a tagged success result."""
    return {"status": "success", **payload}


def error(message: str) -> Result:
    """Build a tagged error result."""
    return {"status": "error", "message": message}


class WordTableGateway:
    """Parameter binding and error pass-through over the word table.

    Every public method returns a tagged result and never raises: connection
    problems and failing statements are both converted to
    `{"status": "error", "message": ...}`.
    """

    def __init__(self, params: ConnectionParams | None = None, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self.params = params or ConnectionParams.from_settings(self.settings)
        self.table_name = self.settings.word_table

    @contextlib.contextmanager
    def _connect(self) -> Iterator[Connection]:
        try:
            engine = get_engine(resolve_database_url(self.params, self.settings))
            connection = engine.connect()
        except (SQLAlchemyError, ImportError) as exc:
            raise BackendConnectionError(f"Connection failed: {exc}") from exc
        try:
            yield connection
        finally:
            connection.close()

    def _run(self, failure: str, operation: Callable[[Connection], Result]) -> Result:
        try:
            with self._connect() as connection:
                try:
                    return operation(connection)
                except (SQLAlchemyError, ValueError, TypeError) as exc:
                    raise QueryError(f"{failure}: {exc}") from exc
        except (BackendConnectionError, QueryError) as exc:
            logger.warning("gateway_operation_failed", failure=failure, error=str(exc))
            return error(str(exc))

    def _word_table(self, connection: Connection) -> Table:
        return Table(self.table_name, MetaData(), autoload_with=connection)

    def get_schema(self) -> Result:
        """Return the ordered column descriptors of the word table."""

        def operation(connection: Connection) -> Result:
            inspector = inspect(connection)
            columns = inspector.get_columns(self.table_name)
            primary_keys = set(inspector.get_pk_constraint(self.table_name).get("constrained_columns") or [])
            schema = [
                {
                    "Field": column["name"],
                    "Type": column["type"].compile(dialect=connection.dialect).lower(),
                    "Null": "YES" if column.get("nullable", True) else "NO",
                    "Key": "PRI" if column["name"] in primary_keys else "",
                }
                for column in columns
            ]
            return success(schema=schema)

        return self._run("Failed to get schema", operation)

    def get_count(self) -> Result:
        """Return the total number of rows in the word table."""

        def operation(connection: Connection) -> Result:
            table = self._word_table(connection)
            total = connection.scalar(select(func.count()).select_from(table)) or 0
            return success(count=int(total))

        return self._run("Failed to get count", operation)

    def get_batch(self, offset: int = 0, limit: int = 100) -> Result:
        """Return up to `limit` rows starting at `offset`, ordered by primary key."""
        offset = max(0, int(offset))
        limit = max(0, int(limit))

        def operation(connection: Connection) -> Result:
            table = self._word_table(connection)
            statement = select(table)
            primary_key = list(table.primary_key.columns)
            if primary_key:
                statement = statement.order_by(*primary_key)
            rows = connection.execute(statement.offset(offset).limit(limit)).mappings().all()
            data = [dict(row) for row in rows]
            logger.debug("batch_fetched", offset=offset, limit=limit, count=len(data))
            return success(data=data, offset=offset, limit=limit, count=len(data))

        return self._run("Failed to fetch data", operation)

    def save_model_metadata(self, model: ModelInfo | dict[str, Any]) -> Result:
        """Create the metadata table if needed and append one record."""
        try:
            info = model if isinstance(model, ModelInfo) else ModelInfo.model_validate(model)
        except SchemaError as exc:
            return _invalid("Failed to save model metadata", exc)

        def operation(connection: Connection) -> Result:
            ModelMetadata.__table__.create(connection, checkfirst=True)
            result = connection.execute(
                insert(ModelMetadata).values(
                    model_name=info.name,
                    accuracy=info.accuracy,
                    parameters=json.dumps(info.parameters),
                    model_path=info.path,
                )
            )
            connection.commit()
            record_id = result.inserted_primary_key[0]
            logger.info("model_metadata_saved", id=record_id, name=info.name, accuracy=info.accuracy)
            return success(message="Model metadata saved successfully", id=record_id)

        return self._run("Failed to save model metadata", operation)

    def get_latest_model_metadata(self) -> Result:
        """Return the most recent metadata record with its parameters decoded."""

        def operation(connection: Connection) -> Result:
            if not inspect(connection).has_table(ModelMetadata.__tablename__):
                return error("No model metadata table found")
            row = connection.execute(
                select(ModelMetadata.__table__)
                .order_by(ModelMetadata.creation_date.desc(), ModelMetadata.id.desc())
                .limit(1)
            ).mappings().first()
            if row is None:
                return error("No model metadata found")

            metadata = dict(row)
            metadata["parameters"] = _decode_parameters(metadata.get("parameters"))
            if metadata.get("creation_date") is not None:
                metadata["creation_date"] = metadata["creation_date"].isoformat()
            return success(metadata=metadata)

        return self._run("Failed to get model metadata", operation)

    def get_word_table_stats(self) -> Result:
        """Return the row count and, when a `category` column exists, its distribution."""

        def operation(connection: Connection) -> Result:
            table = self._word_table(connection)
            total = connection.scalar(select(func.count()).select_from(table)) or 0
            distribution: list[dict[str, Any]] = []
            if "category" in table.c:
                rows = connection.execute(
                    select(table.c.category, func.count().label("count")).group_by(table.c.category)
                ).all()
                distribution = [{"category": category, "count": int(count)} for category, count in rows]
            return success(totalRecords=int(total), categoryDistribution=distribution)

        return self._run("Failed to get word table stats", operation)

    def log_prediction(
        self,
        text: str,
        predicted_class: str,
        confidence: float,
        user_id: str | None = None,
    ) -> Result:
        """Create the prediction log table if needed and append one entry."""
        try:
            record = PredictionRecord(
                text=text, predicted_class=predicted_class, confidence=confidence, user_id=user_id
            )
        except SchemaError as exc:
            return _invalid("Failed to log prediction", exc)

        def operation(connection: Connection) -> Result:
            PredictionLog.__table__.create(connection, checkfirst=True)
            result = connection.execute(
                insert(PredictionLog).values(
                    input_text=record.text,
                    predicted_class=record.predicted_class,
                    confidence=record.confidence,
                    user_id=record.user_id,
                )
            )
            connection.commit()
            return success(message="Prediction logged successfully", id=result.inserted_primary_key[0])

        return self._run("Failed to log prediction", operation)


def _invalid(failure: str, exc: SchemaError) -> Result:
    detail = exc.errors()[0]
    location = ".".join(str(part) for part in detail.get("loc", ()))
    message = f"{failure}: {location + ' ' if location else ''}{detail['msg']}"
    logger.warning("gateway_operation_failed", failure=failure, error=message)
    return error(message)


def _decode_parameters(raw: str | None) -> Any:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return None
