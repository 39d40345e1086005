"""Multi-input embedding classifier for word table text columns."""

from __future__ import annotations

import math
from collections.abc import Mapping

import torch
from torch import Tensor, nn

from wordai.errors import ConfigurationError

MAX_EMBEDDING_DIM = 50


def embedding_dim_for(vocab_size: int) -> int:
    """Embedding width for a vocabulary: min(50, ceil(sqrt(vocab_size)))."""
    return max(1, min(MAX_EMBEDDING_DIM, math.ceil(math.sqrt(vocab_size))))


class EmbeddingBranch(nn.Module):
    """Token-index sequence to a fixed-size vector via lookup and masked mean pooling."""

    def __init__(self, vocab_size: int) -> None:
        super().__init__()
        self.vocab_size = vocab_size
        self.embedding_dim = embedding_dim_for(vocab_size)
        self.embedding = nn.Embedding(vocab_size, self.embedding_dim, padding_idx=0)

    def forward(self, tokens: Tensor) -> Tensor:
        """Pool [batch, seq] indices into [batch, embedding_dim]."""
        embedded = self.embedding(tokens)
        return self.masked_mean_pool(embedded, tokens)

    @staticmethod
    def masked_mean_pool(embedded: Tensor, tokens: Tensor) -> Tensor:
        """
        Average embeddings over non-zero token positions only.

        Index 0 marks padding and unknown tokens, so extra right-padding never
        changes the pooled vector. Rows with no active token pool to zeros.
        """
        if embedded.ndim != 3 or tokens.ndim != 2:
            raise ValueError("Expected embedded [batch, seq, dim] and tokens [batch, seq]")
        mask = (tokens != 0).unsqueeze(-1).to(embedded.dtype)
        summed = (embedded * mask).sum(dim=1)
        counts = mask.sum(dim=1).clamp_min(1.0)
        return summed / counts


class TextClassifier(nn.Module):
    """One embedding branch per feature column feeding a dense softmax head."""

    def __init__(
        self,
        *,
        vocab_sizes: Mapping[str, int],
        num_classes: int,
        hidden_units: int = 64,
        second_hidden_units: int = 32,
        dropout: float = 0.2,
    ) -> None:
        super().__init__()
        if not vocab_sizes:
            raise ConfigurationError("No usable feature columns found for modeling")
        if num_classes < 1:
            raise ConfigurationError("At least one class is required")

        self.feature_columns = list(vocab_sizes)
        self.vocab_sizes = dict(vocab_sizes)
        self.num_classes = num_classes
        self.hidden_units = hidden_units
        self.second_hidden_units = second_hidden_units
        self.dropout = dropout

        # Column names may contain characters ModuleDict keys reject.
        self.branches = nn.ModuleList([EmbeddingBranch(self.vocab_sizes[column]) for column in self.feature_columns])
        combined_dim = sum(branch.embedding_dim for branch in self.branches)

        self.head = nn.Sequential(
            nn.Linear(combined_dim, hidden_units),
            nn.ReLU(),
            nn.Dropout(dropout),
            nn.Linear(hidden_units, second_hidden_units),
            nn.ReLU(),
            nn.Linear(second_hidden_units, num_classes),
        )

    def forward(self, inputs: Mapping[str, Tensor]) -> Tensor:
        """Compute logits from a mapping of column name to [batch, seq] indices."""
        pooled = [branch(inputs[column]) for column, branch in zip(self.feature_columns, self.branches)]
        combined = pooled[0] if len(pooled) == 1 else torch.cat(pooled, dim=-1)
        return self.head(combined)

    def predict_proba(self, inputs: Mapping[str, Tensor]) -> Tensor:
        """Softmax class probabilities without tracking gradients."""
        was_training = self.training
        self.eval()
        try:
            with torch.no_grad():
                return torch.softmax(self.forward(inputs), dim=-1)
        finally:
            self.train(was_training)

    def architecture(self) -> dict[str, object]:
        """Constructor arguments needed to rebuild this model from a checkpoint."""
        return {
            "vocab_sizes": {column: self.vocab_sizes[column] for column in self.feature_columns},
            "num_classes": self.num_classes,
            "hidden_units": self.hidden_units,
            "second_hidden_units": self.second_hidden_units,
            "dropout": self.dropout,
        }

    @classmethod
    def from_architecture(cls, architecture: Mapping[str, object]) -> "TextClassifier":
        vocab_sizes = {str(column): int(size) for column, size in dict(architecture["vocab_sizes"]).items()}
        return cls(
            vocab_sizes=vocab_sizes,
            num_classes=int(architecture["num_classes"]),
            hidden_units=int(architecture.get("hidden_units", 64)),
            second_hidden_units=int(architecture.get("second_hidden_units", 32)),
            dropout=float(architecture.get("dropout", 0.2)),
        )
