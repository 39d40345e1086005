"""Tests for column classification, vocabularies and label encoding."""

from __future__ import annotations

import numpy as np
import pytest

from wordai.errors import ConfigurationError
from wordai.ml.features import (
    ColumnKind,
    Corpus,
    LabelEncoder,
    Schema,
    TextPreprocessor,
    build_vocabulary,
    classify_columns,
    encode_batch,
    pad_sequences,
    tokenize,
)

WORD_SCHEMA = [
    {"Field": "id", "Type": "int(11)", "Null": "NO", "Key": "PRI"},
    {"Field": "text", "Type": "varchar(255)", "Null": "YES", "Key": ""},
    {"Field": "category", "Type": "varchar(64)", "Null": "YES", "Key": ""},
]


def _schema(*columns: tuple[str, str]) -> Schema:
    return Schema.from_describe([{"Field": name, "Type": "text", "Null": "YES", "Key": key} for name, key in columns])


def test_word_table_scenario_builds_expected_corpus() -> None:
    schema = Schema.from_describe(WORD_SCHEMA)
    selection = classify_columns(schema)
    assert selection.feature_columns == ("text",)
    assert selection.label_column == "category"

    corpus = Corpus(selection=selection)
    kept = corpus.ingest(
        [
            schema.coerce_row({"id": 1, "text": "buy milk", "category": "shopping"}),
            schema.coerce_row({"id": 2, "text": "write code", "category": "work"}),
            schema.coerce_row({"id": 3, "text": "buy bread", "category": "shopping"}),
        ]
    )
    preprocessors = corpus.build_preprocessors()

    assert kept == 3
    assert len(corpus) == 3
    assert corpus.label_encoder.num_classes == 2
    assert corpus.labels == [0, 1, 0]
    assert sorted(preprocessors["text"].vocabulary) == ["bread", "buy", "code", "milk", "write"]
    assert len(preprocessors["text"].vocabulary) == 5


def test_label_column_is_first_match_and_id_is_skipped() -> None:
    schema = _schema(("id", "PRI"), ("title", ""), ("label", ""), ("category", ""))
    selection = classify_columns(schema)

    assert selection.label_column == "label"
    assert selection.feature_columns == ("title", "category")


def test_non_id_primary_key_becomes_label() -> None:
    schema = _schema(("word", "PRI"), ("definition", ""))
    selection = classify_columns(schema)

    assert selection.label_column == "word"
    assert selection.feature_columns == ("definition",)


def test_fallback_label_is_first_non_id_column() -> None:
    schema = _schema(("id", "PRI"), ("title", ""), ("body", ""))
    selection = classify_columns(schema)

    assert selection.label_column == "title"
    assert selection.feature_columns == ("body",)


def test_zero_feature_columns_is_a_configuration_error() -> None:
    with pytest.raises(ConfigurationError, match="No usable feature columns"):
        classify_columns(_schema(("id", "PRI"), ("category", "")))


def test_schema_with_only_id_has_no_label() -> None:
    with pytest.raises(ConfigurationError, match="No label column"):
        classify_columns(_schema(("id", "PRI")))


def test_rows_with_null_label_are_dropped_and_null_features_omitted() -> None:
    schema = _schema(("id", "PRI"), ("title", ""), ("body", ""), ("category", ""))
    corpus = Corpus(selection=classify_columns(schema))

    kept = corpus.ingest(
        [
            {"id": 1, "title": "Hello", "body": None, "category": "a"},
            {"id": 2, "title": "skip me", "body": "x", "category": None},
        ]
    )

    assert kept == 1
    assert corpus.features == [{"title": "Hello"}]
    assert corpus.column_values("body") == [""]


def test_column_types_are_decided_from_schema() -> None:
    schema = Schema.from_describe(
        [
            {"Field": "id", "Type": "int(11)", "Null": "NO", "Key": "PRI"},
            {"Field": "score", "Type": "decimal(5,2)", "Null": "YES", "Key": ""},
            {"Field": "text", "Type": "varchar(10)", "Null": "YES", "Key": ""},
        ]
    )
    kinds = [column.kind for column in schema.columns]
    row = schema.coerce_row({"id": "4", "score": "1.5", "text": 12})

    assert kinds == [ColumnKind.INTEGER, ColumnKind.REAL, ColumnKind.TEXT]
    assert row == {"id": 4, "score": 1.5, "text": "12"}


def test_vocabulary_is_sorted_and_indexed_from_one() -> None:
    vocabulary = build_vocabulary(["Zeta alpha", "beta  ALPHA", None, 42])

    assert vocabulary == {"42": 1, "alpha": 2, "beta": 3, "zeta": 4}
    assert tokenize("  Mixed   Case ") == ["mixed", "case"]


def test_unknown_tokens_and_empty_text_encode_to_zero() -> None:
    preprocessor = TextPreprocessor(vocabulary={"buy": 1, "milk": 2})

    assert preprocessor.encode("Buy eggs") == [1, 0]
    assert preprocessor.encode("") == [0]
    assert preprocessor.vocab_size == 3


def test_padding_is_relative_to_the_batch() -> None:
    preprocessor = TextPreprocessor(vocabulary={"a": 1, "b": 2, "c": 3})

    batch = encode_batch(["a b c", "a"], preprocessor)
    single = encode_batch(["a"], preprocessor)

    assert batch.tolist() == [[1, 2, 3], [1, 0, 0]]
    assert single.tolist() == [[1]]
    assert batch.dtype == np.int64
    assert pad_sequences([]).shape == (0, 1)


def test_label_encoder_assigns_ids_in_first_seen_order() -> None:
    encoder = LabelEncoder()
    ids = [encoder.encode(value) for value in ["work", "home", "work", 3]]

    assert ids == [0, 1, 0, 2]
    assert encoder.inverse() == {0: "work", 1: "home", 2: "3"}


def test_preprocessor_dict_round_trip_keeps_vocabulary() -> None:
    preprocessor = TextPreprocessor(vocabulary={"buy": 1, "milk": 2})
    payload = preprocessor.to_dict()

    assert payload == {"type": "text", "vocabulary": {"buy": 1, "milk": 2}, "vocabSize": 3}
    assert TextPreprocessor.from_dict(payload) == preprocessor
