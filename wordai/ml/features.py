"""Column classification, vocabularies and label encoding for word table rows."""

from __future__ import annotations

import enum
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Union

import numpy as np
import structlog

from wordai.errors import ConfigurationError

logger = structlog.get_logger(__name__)

Scalar = Union[str, int, float, None]
Row = dict[str, Scalar]

ID_COLUMN = "id"
UNKNOWN_INDEX = 0


class ColumnKind(str, enum.Enum):
    """Scalar family of a column, decided from its SQL type."""

    TEXT = "text"
    INTEGER = "integer"
    REAL = "real"
    OTHER = "other"


def column_kind(sql_type: str) -> ColumnKind:
    """Map a SQL type name (e.g. `varchar(255)`, `int(11)`) to a `ColumnKind`."""
    lowered = sql_type.lower()
    if any(marker in lowered for marker in ("char", "text", "string", "enum", "clob")):
        return ColumnKind.TEXT
    if any(marker in lowered for marker in ("float", "double", "real", "decimal", "numeric")):
        return ColumnKind.REAL
    if "int" in lowered or "serial" in lowered:
        return ColumnKind.INTEGER
    return ColumnKind.OTHER


@dataclass(frozen=True)
class ColumnDescriptor:
    """One column of the source table."""

    name: str
    is_primary_key: bool = False
    sql_type: str = ""
    nullable: bool = True
    kind: ColumnKind = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", column_kind(self.sql_type))

    @classmethod
    def from_describe(cls, row: Mapping[str, Any]) -> "ColumnDescriptor":
        """Build from a DESCRIBE-style row (`Field`, `Type`, `Null`, `Key`)."""
        return cls(
            name=str(row["Field"]),
            is_primary_key=str(row.get("Key") or "").upper() == "PRI",
            sql_type=str(row.get("Type") or ""),
            nullable=str(row.get("Null") or "YES").upper() != "NO",
        )

    def coerce(self, value: Any) -> Scalar:
        """Convert one raw value into this column's scalar type."""
        if value is None:
            return None
        if isinstance(value, bytes):
            value = value.decode("utf-8", errors="replace")
        try:
            if self.kind is ColumnKind.INTEGER:
                return int(value)
            if self.kind is ColumnKind.REAL:
                return float(value)
        except (TypeError, ValueError):
            return str(value)
        if self.kind is ColumnKind.TEXT:
            return str(value)
        if isinstance(value, (int, float, str)):
            return value
        if isinstance(value, Decimal):
            return float(value)
        return str(value)


@dataclass(frozen=True)
class Schema:
    """Ordered, immutable column list of the source table."""

    columns: tuple[ColumnDescriptor, ...]

    @classmethod
    def from_describe(cls, rows: Iterable[Mapping[str, Any]]) -> "Schema":
        return cls(columns=tuple(ColumnDescriptor.from_describe(row) for row in rows))

    @property
    def names(self) -> list[str]:
        return [column.name for column in self.columns]

    def __len__(self) -> int:
        return len(self.columns)

    def coerce_row(self, raw: Mapping[str, Any]) -> Row:
        """Type one raw row by the column kinds decided at schema-fetch time."""
        return {column.name: column.coerce(raw.get(column.name)) for column in self.columns}


@dataclass(frozen=True)
class ColumnSelection:
    """Which columns feed the model and which one is the target."""

    feature_columns: tuple[str, ...]
    label_column: str


def classify_columns(schema: Schema, label_names: Sequence[str] = ("category", "label")) -> ColumnSelection:
    """
    Split schema columns into features and exactly one label.

    The `id` column is skipped. The first column that is the primary key or
    whose name is exactly one of `label_names` becomes the label; every other
    column is a feature. Without such a column, the first non-id column is the
    label and is removed from the features.

    Raises:
        ConfigurationError: no label column can be chosen, or no feature remains.
    """
    label_column: str | None = None
    feature_columns: list[str] = []

    for column in schema.columns:
        if column.name == ID_COLUMN:
            continue
        if label_column is None and (column.is_primary_key or column.name in label_names):
            label_column = column.name
        else:
            feature_columns.append(column.name)

    if label_column is None:
        for column in schema.columns:
            if column.name != ID_COLUMN:
                label_column = column.name
                if label_column in feature_columns:
                    feature_columns.remove(label_column)
                break

    if label_column is None:
        raise ConfigurationError("No label column found in schema")
    if not feature_columns:
        raise ConfigurationError("No usable feature columns found for modeling")

    logger.info("columns_classified", feature_columns=feature_columns, label_column=label_column)
    return ColumnSelection(feature_columns=tuple(feature_columns), label_column=label_column)


def tokenize(value: Scalar) -> list[str]:
    """Lowercase and split on whitespace, dropping empty tokens."""
    if value is None:
        return []
    return str(value).lower().split()


def build_vocabulary(values: Iterable[Scalar]) -> dict[str, int]:
    """Index every distinct token from 1 in lexicographic order; 0 stays reserved."""
    tokens: set[str] = set()
    for value in values:
        tokens.update(tokenize(value))
    return {token: index for index, token in enumerate(sorted(tokens), start=1)}


@dataclass
class TextPreprocessor:
    """Token vocabulary of one feature column."""

    vocabulary: dict[str, int]
    type: str = "text"

    @property
    def vocab_size(self) -> int:
        """Distinct tokens plus the reserved unknown index."""
        return len(self.vocabulary) + 1

    def encode(self, value: Scalar) -> list[int]:
        """Token indices for one value; unknown tokens map to 0, empty values to `[0]`."""
        indices = [self.vocabulary.get(token, UNKNOWN_INDEX) for token in tokenize(value)]
        return indices or [UNKNOWN_INDEX]

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "vocabulary": self.vocabulary, "vocabSize": self.vocab_size}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "TextPreprocessor":
        vocabulary = {str(token): int(index) for token, index in dict(payload["vocabulary"]).items()}
        return cls(vocabulary=vocabulary, type=str(payload.get("type", "text")))


def pad_sequences(sequences: Sequence[Sequence[int]]) -> np.ndarray:
    """Right-pad with 0 to the longest sequence of this batch."""
    max_length = max((len(sequence) for sequence in sequences), default=1)
    max_length = max(max_length, 1)
    padded = np.zeros((len(sequences), max_length), dtype=np.int64)
    for row, sequence in enumerate(sequences):
        padded[row, : len(sequence)] = sequence
    return padded


def encode_batch(values: Sequence[Scalar], preprocessor: TextPreprocessor) -> np.ndarray:
    """Encode and pad one column of a batch of rows."""
    return pad_sequences([preprocessor.encode(value) for value in values])


class LabelEncoder:
    """Dense class ids assigned in first-seen order."""

    def __init__(self, mapping: Mapping[str, int] | None = None) -> None:
        self.mapping: dict[str, int] = dict(mapping or {})

    def encode(self, value: Scalar) -> int:
        key = str(value)
        if key not in self.mapping:
            self.mapping[key] = len(self.mapping)
        return self.mapping[key]

    def inverse(self) -> dict[int, str]:
        return {index: label for label, index in self.mapping.items()}

    @property
    def num_classes(self) -> int:
        return len(self.mapping)


@dataclass
class Corpus:
    """Feature rows and encoded labels accumulated from the word table."""

    selection: ColumnSelection
    features: list[Row] = field(default_factory=list)
    labels: list[int] = field(default_factory=list)
    label_encoder: LabelEncoder = field(default_factory=LabelEncoder)

    def ingest(self, rows: Iterable[Row]) -> int:
        """
        Add typed rows to the corpus and return how many were kept.

        Rows with a null label are dropped. Null feature values are omitted
        from the row's feature map.
        """
        kept = 0
        label_column = self.selection.label_column
        for row in rows:
            label = row.get(label_column)
            if label is None:
                continue
            feature_values = {
                column: row[column]
                for column in self.selection.feature_columns
                if row.get(column) is not None
            }
            self.features.append(feature_values)
            self.labels.append(self.label_encoder.encode(label))
            kept += 1
        return kept

    def column_values(self, column: str) -> list[Scalar]:
        """Values of one feature column; omitted values read as the empty string."""
        return [row.get(column, "") for row in self.features]

    def build_preprocessors(self) -> dict[str, TextPreprocessor]:
        """Build one vocabulary per feature column over the whole corpus."""
        preprocessors: dict[str, TextPreprocessor] = {}
        for column in self.selection.feature_columns:
            preprocessors[column] = TextPreprocessor(vocabulary=build_vocabulary(self.column_values(column)))
            logger.info(
                "vocabulary_built",
                column=column,
                unique_words=len(preprocessors[column].vocabulary),
            )
        logger.info("label_mapping_built", num_classes=self.label_encoder.num_classes)
        return preprocessors

    def __len__(self) -> int:
        return len(self.features)
