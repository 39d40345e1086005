"""Error taxonomy shared by the gateway, the feature builder and the session."""

from __future__ import annotations


class WordAIError(Exception):
    """Base class for all WordAI errors."""


class BackendConnectionError(WordAIError):
    """The backing store cannot be reached."""


class QueryError(WordAIError):
    """An operation against the backing store failed or was malformed."""


class ConfigurationError(WordAIError):
    """The data cannot produce a trainable model (e.g. no feature columns)."""


class ModelNotTrainedError(WordAIError):
    """A model operation was requested before any model exists."""


class ValidationError(WordAIError):
    """A request is missing required fields."""
