"""Persist and restore a trained classifier with its vocabularies and label map."""

from __future__ import annotations

import io
import json
from collections.abc import Mapping
from dataclasses import dataclass

import structlog
import torch

from wordai.errors import ConfigurationError, ModelNotTrainedError
from wordai.ml.features import TextPreprocessor
from wordai.ml.model import TextClassifier
from wordai.storage import StorageBackend, get_storage

logger = structlog.get_logger(__name__)

MODELS_BUCKET = "models"
WEIGHTS_BLOB = "weights.pt"
PREPROCESSORS_BLOB = "preprocessors.json"
LABEL_MAP_BLOB = "labelmap.json"
BUNDLE_BLOBS = [WEIGHTS_BLOB, PREPROCESSORS_BLOB, LABEL_MAP_BLOB]


@dataclass
class ModelArtifact:
    """Weights, vocabularies and inverse label map that belong together."""

    model: TextClassifier
    preprocessors: dict[str, TextPreprocessor]
    inverse_label_map: dict[int, str]
    label_column: str | None = None


def artifact_path(key: str) -> str:
    """Storage path recorded in the metadata log."""
    return f"artifact://{key}"


class ArtifactStore:
    """Reads and writes model artifacts as one bundle per key."""

    def __init__(self, storage: StorageBackend | None = None, bucket: str = MODELS_BUCKET) -> None:
        self.storage = storage or get_storage()
        self.bucket = bucket

    def exists(self, key: str) -> bool:
        return all(self.storage.object_exists(f"{key}/{name}", self.bucket) for name in BUNDLE_BLOBS)

    def save(
        self,
        key: str,
        model: TextClassifier,
        preprocessors: Mapping[str, TextPreprocessor],
        inverse_label_map: Mapping[int, str],
        label_column: str | None = None,
    ) -> str:
        """Write the three blobs under `key` together and return the artifact path."""
        buffer = io.BytesIO()
        checkpoint = {
            "architecture": model.architecture(),
            "model_state_dict": {name: tensor.detach().cpu() for name, tensor in model.state_dict().items()},
            "label_column": label_column,
        }
        torch.save(checkpoint, buffer)

        blobs = {
            WEIGHTS_BLOB: buffer.getvalue(),
            PREPROCESSORS_BLOB: json.dumps(
                {column: preprocessor.to_dict() for column, preprocessor in preprocessors.items()}
            ).encode("utf-8"),
            LABEL_MAP_BLOB: json.dumps({str(index): label for index, label in inverse_label_map.items()}).encode(
                "utf-8"
            ),
        }
        self.storage.write_bundle(key, blobs, self.bucket)
        logger.info("model_saved", key=key, num_classes=model.num_classes, feature_columns=model.feature_columns)
        return artifact_path(key)

    def load(self, key: str) -> ModelArtifact:
        """
        Restore a bundle written by `save`.

        Raises:
            ModelNotTrainedError: no complete bundle exists under `key`.
            ConfigurationError: the blobs do not describe the same model.
        """
        try:
            blobs = self.storage.read_bundle(key, BUNDLE_BLOBS, self.bucket)
        except FileNotFoundError as exc:
            raise ModelNotTrainedError(f"No saved model found under '{key}'") from exc

        checkpoint = torch.load(io.BytesIO(blobs[WEIGHTS_BLOB]), map_location="cpu", weights_only=True)
        preprocessors = {
            str(column): TextPreprocessor.from_dict(payload)
            for column, payload in json.loads(blobs[PREPROCESSORS_BLOB]).items()
        }
        inverse_label_map = {int(index): str(label) for index, label in json.loads(blobs[LABEL_MAP_BLOB]).items()}

        model = TextClassifier.from_architecture(checkpoint["architecture"])
        if set(model.feature_columns) != set(preprocessors):
            raise ConfigurationError("Saved vocabularies do not match the saved model's feature columns")
        if len(inverse_label_map) != model.num_classes:
            raise ConfigurationError("Saved label map does not match the saved model's class count")
        for column in model.feature_columns:
            if preprocessors[column].vocab_size != model.vocab_sizes[column]:
                raise ConfigurationError(f"Saved vocabulary for '{column}' does not match the saved weights")

        model.load_state_dict(checkpoint["model_state_dict"], strict=True)
        model.eval()
        logger.info("model_loaded", key=key, num_classes=model.num_classes)
        return ModelArtifact(
            model=model,
            preprocessors=preprocessors,
            inverse_label_map=inverse_label_map,
            label_column=checkpoint.get("label_column"),
        )
