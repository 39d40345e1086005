"""Explicit training session: ingest, train, evaluate, save, load and predict."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable

import numpy as np
import structlog
import torch
from torch import Tensor

from wordai.config import Settings, get_settings
from wordai.errors import ConfigurationError, ModelNotTrainedError, WordAIError
from wordai.ml.artifacts import ArtifactStore
from wordai.ml.features import TextPreprocessor
from wordai.ml.gateway_client import GatewayClient
from wordai.ml.ingest import LoadedCorpus, load_corpus
from wordai.ml.model import TextClassifier
from wordai.ml.trainer import ClassifierTrainer, EpochMetrics, EvaluationResult, TrainingConfig, prepare_inputs

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class SessionEvent:
    """One entry of the session's status/log/progress stream."""

    kind: str  # "status" | "log" | "progress" | "warning" | "error"
    message: str = ""
    progress: int | None = None


@dataclass(frozen=True)
class Prediction:
    """Classifier output for one text."""

    predicted_class: str
    probability: float
    probabilities: list[float]

    def as_dict(self) -> dict[str, Any]:
        return {
            "predictedClass": self.predicted_class,
            "probability": self.probability,
            "probabilities": self.probabilities,
        }


@dataclass
class SaveReport:
    """Outcome of the two independent save steps."""

    artifact_key: str
    artifact_path: str
    metadata_id: int | None = None
    metadata_error: str | None = None
    accuracy: float | None = None

    @property
    def metadata_saved(self) -> bool:
        return self.metadata_id is not None


@dataclass
class SessionState:
    """Snapshot of what the session can currently do."""

    initialized: bool = False
    train_enabled: bool = False
    is_trained: bool = False
    training_logs: list[EpochMetrics] = field(default_factory=list)


class WordAISession:
    """
    Holds one corpus and one model for a single init/train/evaluate/save/predict run.

    Each step publishes `SessionEvent`s to the optional listener. Failures are
    reported on the stream, then re-raised with the session left in its prior
    state.
    """

    def __init__(
        self,
        client: GatewayClient,
        *,
        settings: Settings | None = None,
        config: TrainingConfig | None = None,
        artifact_store: ArtifactStore | None = None,
        listener: Callable[[SessionEvent], None] | None = None,
    ) -> None:
        self.client = client
        self.settings = settings or get_settings()
        self.config = config or TrainingConfig.from_settings(self.settings)
        self.artifact_store = artifact_store or ArtifactStore()
        self.listener = listener

        self.loaded: LoadedCorpus | None = None
        self.model: TextClassifier | None = None
        self.trainer: ClassifierTrainer | None = None
        self.preprocessors: dict[str, TextPreprocessor] = {}
        self.inverse_label_map: dict[int, str] = {}
        self.feature_columns: list[str] = []
        self.label_column: str | None = None
        self.state = SessionState()
        self._stop_requested = False

    def _emit(self, event: SessionEvent) -> None:
        if self.listener is not None:
            self.listener(event)

    def update_status(self, message: str, is_error: bool = False) -> None:
        if is_error:
            logger.error("session_status", message=message)
        else:
            logger.info("session_status", message=message)
        self._emit(SessionEvent(kind="error" if is_error else "status", message=message))

    def log_message(self, message: str) -> None:
        logger.info("session_log", message=message)
        self._emit(SessionEvent(kind="log", message=message))

    def warn(self, message: str) -> None:
        logger.warning("session_warning", message=message)
        self._emit(SessionEvent(kind="warning", message=message))

    def update_progress(self, percentage: int) -> None:
        self._emit(SessionEvent(kind="progress", progress=int(percentage)))

    def request_stop(self) -> None:
        """Ask a running `train()` to stop before its next epoch."""
        self._stop_requested = True

    async def init(self) -> None:
        """Load the schema and corpus, build vocabularies, then build the model."""
        self.update_status("Initializing...")
        try:
            loaded = await load_corpus(
                self.client,
                page_size=self.settings.page_size,
                label_names=self.settings.label_column_names,
                on_progress=self.update_progress,
            )
            self.log_message(f"Schema loaded with {len(loaded.schema)} columns")
            self.log_message(f"Selected features: {', '.join(loaded.selection.feature_columns)}")
            self.log_message(f"Selected label: {loaded.selection.label_column}")
            self.log_message(f"Total records in database: {loaded.total_records}")
            self._build_model(loaded)
        except WordAIError as exc:
            self.update_status(f"Error during initialization: {exc}", is_error=True)
            raise

        self.loaded = loaded
        self.state.initialized = True
        self.state.train_enabled = True
        self.update_status(f"Ready to train. {len(loaded.corpus)} records processed.")

    def _build_model(self, loaded: LoadedCorpus) -> None:
        torch.manual_seed(self.config.seed)
        model = TextClassifier(
            vocab_sizes={
                column: loaded.preprocessors[column].vocab_size for column in loaded.selection.feature_columns
            },
            num_classes=loaded.corpus.label_encoder.num_classes,
        )
        self._attach_model(model)
        self.preprocessors = loaded.preprocessors
        self.inverse_label_map = loaded.corpus.label_encoder.inverse()
        self.feature_columns = list(loaded.selection.feature_columns)
        self.label_column = loaded.selection.label_column
        self.state.is_trained = False

        self.log_message("Model initialized with architecture:")
        for name, module in model.named_children():
            self.log_message(f"- {name}: {module.__class__.__name__}")

    def _attach_model(self, model: TextClassifier) -> None:
        self.model = model
        self.trainer = ClassifierTrainer(
            model,
            self.config,
            progress_callback=self._on_epoch_end,
            stop_signal=lambda: self._stop_requested,
        )

    def _on_epoch_end(self, metrics: EpochMetrics) -> None:
        self.update_progress(round(metrics.epoch / self.config.num_epochs * 100))
        self.log_message(metrics.describe(self.config.num_epochs))
        self.state.training_logs.append(metrics)

    def _prepare_training_data(self) -> tuple[dict[str, Tensor], Tensor]:
        if self.loaded is None:
            raise ConfigurationError("No corpus loaded; call init() first")
        corpus = self.loaded.corpus
        inputs = prepare_inputs(corpus.features, self.feature_columns, self.preprocessors)
        labels = torch.tensor(corpus.labels, dtype=torch.long)
        return inputs, labels

    def _require_model(self) -> tuple[TextClassifier, ClassifierTrainer]:
        if not self.state.is_trained or self.model is None or self.trainer is None:
            raise ModelNotTrainedError("Model not trained yet")
        return self.model, self.trainer

    async def train(self) -> list[EpochMetrics]:
        """Run the configured epochs, yielding to the event loop after each one."""
        if not self.state.train_enabled or self.trainer is None:
            raise ConfigurationError("Session is not ready to train; call init() first")

        trainer = self.trainer
        self.state.train_enabled = False
        self._stop_requested = False
        self.update_status("Starting training...")
        history: list[EpochMetrics] = []
        try:
            inputs, labels = self._prepare_training_data()
            for metrics in trainer.iter_fit(inputs, labels):
                history.append(metrics)
                await asyncio.sleep(0)
            del inputs, labels
        except Exception as exc:  # noqa: BLE001
            self.update_status(f"Error during training: {exc}", is_error=True)
            raise
        finally:
            self.state.train_enabled = True

        if history:
            self.state.is_trained = True
            self.update_status("Training complete! You can now evaluate or save the model.")
        else:
            self.update_status("Training stopped before the first epoch.")
        return history

    def evaluate(self) -> EvaluationResult:
        """Loss and accuracy over the loaded corpus (training-set fit)."""
        _, trainer = self._require_model()
        self.update_status("Evaluating model...")
        try:
            inputs, labels = self._prepare_training_data()
            result = trainer.evaluate(inputs, labels)
            del inputs, labels
        except Exception as exc:  # noqa: BLE001
            self.update_status(f"Error during evaluation: {exc}", is_error=True)
            raise

        summary = f"Loss: {result.loss:.4f}, Accuracy: {result.accuracy:.4f}"
        self.log_message(f"Evaluation results - {summary}")
        self.update_status(f"Evaluation complete - {summary}")
        return result

    async def save(self, name: str | None = None) -> SaveReport:
        """
        Save in two independently reported steps.

        The artifact bundle is written first; a failure there is an error.
        The metadata record is written second; a failure there is only a
        warning because the model is already stored locally.
        """
        model, _ = self._require_model()
        key = self.settings.artifact_key
        self.update_status("Saving model...")
        try:
            path = self.artifact_store.save(
                key, model, self.preprocessors, self.inverse_label_map, label_column=self.label_column
            )
        except Exception as exc:  # noqa: BLE001
            self.update_status(f"Error saving model: {exc}", is_error=True)
            raise
        report = SaveReport(artifact_key=key, artifact_path=path)

        try:
            # A loaded artifact has no corpus to score against.
            if self.loaded is not None:
                report.accuracy = self.evaluate().accuracy
            response = await self.client.save_model(
                {
                    "name": name or key,
                    "accuracy": report.accuracy,
                    "parameters": {
                        "featureColumns": self.feature_columns,
                        "labelColumn": self.label_column,
                        "numClasses": model.num_classes,
                        "epochs": self.config.num_epochs,
                        "batchSize": self.config.batch_size,
                    },
                    "path": path,
                }
            )
        except Exception as exc:  # noqa: BLE001
            response = {"status": "error", "message": str(exc)}

        if response.get("status") == "success":
            report.metadata_id = response.get("id")
            self.log_message(f"Model saved successfully with ID: {report.metadata_id}")
            self.update_status("Model saved successfully!")
        else:
            report.metadata_error = str(response.get("message", "Unknown error"))
            self.warn(
                f"Warning: Model saved locally but failed to save metadata to database: {report.metadata_error}"
            )
            self.update_status("Model saved locally but failed to save metadata to database.")
        return report

    def load(self, key: str | None = None) -> None:
        """Restore weights, vocabularies and label map saved together under `key`."""
        artifact = self.artifact_store.load(key or self.settings.artifact_key)
        self._attach_model(artifact.model)
        self.preprocessors = artifact.preprocessors
        self.inverse_label_map = artifact.inverse_label_map
        self.feature_columns = list(artifact.model.feature_columns)
        self.label_column = artifact.label_column
        self.state.is_trained = True
        self.log_message(f"Loaded model with {artifact.model.num_classes} classes")

    def predict(self, text: str) -> Prediction:
        """Classify one text, feeding it to every feature column of the model."""
        _, trainer = self._require_model()
        try:
            rows = [{column: text for column in self.feature_columns}]
            inputs = prepare_inputs(rows, self.feature_columns, self.preprocessors)
            probabilities = trainer.predict(inputs)[0]
            del inputs
        except Exception as exc:  # noqa: BLE001
            self.update_status(f"Error during prediction: {exc}", is_error=True)
            raise

        index = int(np.argmax(probabilities))
        return Prediction(
            predicted_class=self.inverse_label_map[index],
            probability=float(probabilities[index]),
            probabilities=[float(value) for value in probabilities],
        )
