"""Training loop, evaluation and inference for the text classifier."""

from __future__ import annotations

import math
import time
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import asdict, dataclass
from typing import Callable

import numpy as np
import structlog
import torch
import torch.nn as nn
from torch import Tensor
from torch.optim import Adam

from wordai.config import Settings
from wordai.errors import ConfigurationError
from wordai.ml.features import Row, TextPreprocessor, encode_batch
from wordai.ml.model import TextClassifier

logger = structlog.get_logger(__name__)


@dataclass
class TrainingConfig:
    """Configuration for training."""

    num_epochs: int = 50
    batch_size: int = 32
    validation_split: float = 0.2
    learning_rate: float = 1e-3
    seed: int = 42
    device: str = "cpu"

    @classmethod
    def from_settings(cls, settings: Settings) -> "TrainingConfig":
        return cls(
            num_epochs=settings.epochs,
            batch_size=settings.batch_size,
            validation_split=settings.validation_split,
            learning_rate=settings.learning_rate,
            seed=settings.seed,
        )


@dataclass
class EpochMetrics:
    """Metrics for one epoch."""

    epoch: int
    loss: float
    accuracy: float
    val_loss: float | None
    val_accuracy: float | None
    duration_sec: float

    def describe(self, num_epochs: int) -> str:
        line = f"Epoch {self.epoch}/{num_epochs} - loss: {self.loss:.4f} - accuracy: {self.accuracy:.4f}"
        if self.val_loss is not None and self.val_accuracy is not None:
            line += f" - val_loss: {self.val_loss:.4f} - val_acc: {self.val_accuracy:.4f}"
        return line

    def as_dict(self) -> dict[str, float | int | None]:
        return asdict(self)


@dataclass(frozen=True)
class EvaluationResult:
    """Loss and accuracy over one prepared set."""

    loss: float
    accuracy: float


def prepare_inputs(
    features: Sequence[Row],
    feature_columns: Sequence[str],
    preprocessors: Mapping[str, TextPreprocessor],
) -> dict[str, Tensor]:
    """
    Build one padded index tensor per feature column.

    Padding is relative to this set of rows: every column is padded to the
    longest sequence among `features`, not to a corpus-wide length.
    """
    inputs: dict[str, Tensor] = {}
    for column in feature_columns:
        preprocessor = preprocessors.get(column)
        if preprocessor is None or preprocessor.type != "text":
            continue
        values = [row.get(column, "") for row in features]
        inputs[column] = torch.from_numpy(encode_batch(values, preprocessor))
    if not inputs:
        raise ConfigurationError("No usable feature columns found for modeling")
    return inputs


def validation_split_index(num_samples: int, validation_split: float) -> int:
    """Index where the held-out tail starts; rows after it are validation rows."""
    if validation_split <= 0.0:
        return num_samples
    return int(math.floor(num_samples * (1.0 - validation_split)))


class ClassifierTrainer:
    """PyTorch trainer for the word table classifier."""

    def __init__(
        self,
        model: TextClassifier,
        config: TrainingConfig,
        progress_callback: Callable[[EpochMetrics], None] | None = None,
        stop_signal: Callable[[], bool] | None = None,
    ) -> None:
        """
        Initialize trainer.

        Args:
            model: TextClassifier to train
            config: Training configuration
            progress_callback: Optional callback called after each epoch with metrics
            stop_signal: Optional callable that returns True if training should stop
        """
        self.model = model
        self.config = config
        self.progress_callback = progress_callback
        self.stop_signal = stop_signal
        self.device = torch.device(config.device)
        self.model.to(self.device)
        self.criterion = nn.CrossEntropyLoss()
        self.optimizer = Adam(self.model.parameters(), lr=config.learning_rate)
        self.generator = torch.Generator().manual_seed(config.seed)
        self.metrics_history: list[EpochMetrics] = []

    def _to_device(self, inputs: Mapping[str, Tensor], index: Tensor | None = None) -> dict[str, Tensor]:
        if index is None:
            return {column: tensor.to(self.device) for column, tensor in inputs.items()}
        return {column: tensor[index].to(self.device) for column, tensor in inputs.items()}

    def train_epoch(self, inputs: Mapping[str, Tensor], labels: Tensor) -> tuple[float, float]:
        """
        Train for one epoch over shuffled mini-batches.

        Returns:
            Tuple of (average_loss, accuracy)
        """
        self.model.train()
        num_samples = int(labels.size(0))
        permutation = torch.randperm(num_samples, generator=self.generator)
        total_loss = 0.0
        correct = 0

        for start in range(0, num_samples, self.config.batch_size):
            index = permutation[start : start + self.config.batch_size]
            batch_inputs = self._to_device(inputs, index)
            batch_labels = labels[index].to(self.device)

            self.optimizer.zero_grad(set_to_none=True)
            logits = self.model(batch_inputs)
            loss = self.criterion(logits, batch_labels)
            loss.backward()
            self.optimizer.step()

            batch_size = int(batch_labels.size(0))
            total_loss += float(loss.item()) * batch_size
            correct += int((torch.argmax(logits, dim=1) == batch_labels).sum().item())

            # Release step tensors before the next batch.
            del batch_inputs, batch_labels, logits, loss

        if num_samples == 0:
            return 0.0, 0.0
        return total_loss / num_samples, correct / num_samples

    def evaluate(self, inputs: Mapping[str, Tensor], labels: Tensor) -> EvaluationResult:
        """Compute loss and accuracy over the given rows without updating weights."""
        self.model.eval()
        num_samples = int(labels.size(0))
        total_loss = 0.0
        correct = 0

        with torch.no_grad():
            for start in range(0, num_samples, self.config.batch_size):
                index = torch.arange(start, min(start + self.config.batch_size, num_samples))
                batch_inputs = self._to_device(inputs, index)
                batch_labels = labels[index].to(self.device)
                logits = self.model(batch_inputs)
                loss = self.criterion(logits, batch_labels)

                batch_size = int(batch_labels.size(0))
                total_loss += float(loss.item()) * batch_size
                correct += int((torch.argmax(logits, dim=1) == batch_labels).sum().item())
                del batch_inputs, batch_labels, logits, loss

        if num_samples == 0:
            return EvaluationResult(loss=0.0, accuracy=0.0)
        return EvaluationResult(loss=total_loss / num_samples, accuracy=correct / num_samples)

    def predict(self, inputs: Mapping[str, Tensor]) -> np.ndarray:
        """Return class probabilities as a [batch, num_classes] array."""
        device_inputs = self._to_device(inputs)
        probabilities = self.model.predict_proba(device_inputs)
        result = probabilities.cpu().numpy()
        del device_inputs, probabilities
        return result

    def iter_fit(self, inputs: Mapping[str, Tensor], labels: Tensor) -> Iterator[EpochMetrics]:
        """
        Train epoch by epoch, yielding metrics as each epoch completes.

        The last `validation_split` fraction of rows, taken before any
        shuffling, is held out for validation.
        """
        num_samples = int(labels.size(0))
        if num_samples == 0:
            raise ConfigurationError("No labeled rows available for training")

        split = validation_split_index(num_samples, self.config.validation_split)
        if split <= 0:
            raise ConfigurationError(
                f"Not enough rows ({num_samples}) to hold out a validation split of {self.config.validation_split}"
            )

        train_inputs = {column: tensor[:split] for column, tensor in inputs.items()}
        train_labels = labels[:split]
        val_inputs = {column: tensor[split:] for column, tensor in inputs.items()}
        val_labels = labels[split:]
        has_validation = int(val_labels.size(0)) > 0

        logger.info(
            "starting_training",
            num_epochs=self.config.num_epochs,
            train_size=split,
            val_size=int(val_labels.size(0)),
            batch_size=self.config.batch_size,
            seed=self.config.seed,
        )

        for epoch in range(1, self.config.num_epochs + 1):
            if self.stop_signal and self.stop_signal():
                logger.info("training_stopped_before_epoch", epoch=epoch)
                break

            started = time.perf_counter()
            loss, accuracy = self.train_epoch(train_inputs, train_labels)
            val_loss: float | None = None
            val_accuracy: float | None = None
            if has_validation:
                validation = self.evaluate(val_inputs, val_labels)
                val_loss, val_accuracy = validation.loss, validation.accuracy

            metrics = EpochMetrics(
                epoch=epoch,
                loss=loss,
                accuracy=accuracy,
                val_loss=val_loss,
                val_accuracy=val_accuracy,
                duration_sec=time.perf_counter() - started,
            )
            self.metrics_history.append(metrics)
            logger.debug("epoch_completed", **metrics.as_dict())
            if self.progress_callback:
                self.progress_callback(metrics)
            yield metrics

    def fit(self, inputs: Mapping[str, Tensor], labels: Tensor) -> list[EpochMetrics]:
        """Run every epoch and return the collected metrics."""
        return list(self.iter_fit(inputs, labels))
