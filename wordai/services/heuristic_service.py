"""Keyword-matching baseline predictor, independent of any trained model."""

from __future__ import annotations

from dataclasses import dataclass

KEYWORDS: dict[str, tuple[str, ...]] = {
    "programming": ("code", "javascript", "python", "function", "api", "data"),
    "cooking": ("recipe", "food", "bake", "ingredient", "delicious", "meal"),
    "finance": ("money", "budget", "invest", "stock", "saving", "financial"),
    "gardening": ("plant", "garden", "soil", "flower", "grow", "vegetable"),
}

MIN_CONFIDENCE = 0.5
MAX_CONFIDENCE = 0.95


@dataclass(frozen=True)
class HeuristicPrediction:
    """Keyword baseline outcome."""

    text: str
    predicted_category: str
    confidence: float

    def as_payload(self) -> dict[str, object]:
        return {
            "text": self.text,
            "predictedCategory": self.predicted_category,
            "confidence": self.confidence,
        }


class HeuristicBaseline:
    """Scores each category by how many of its keywords appear in the text."""

    def __init__(self, keywords: dict[str, tuple[str, ...]] | None = None) -> None:
        self.keywords = keywords or KEYWORDS

    def score(self, text: str) -> dict[str, int]:
        lowered = text.lower()
        return {
            category: sum(1 for keyword in words if keyword in lowered)
            for category, words in self.keywords.items()
        }

    def predict(self, text: str) -> HeuristicPrediction:
        lowered = text.lower()
        scores = self.score(lowered)
        # max() keeps the first category on ties.
        category = max(scores, key=lambda name: scores[name])
        word_count = len(lowered.split(" "))
        confidence = scores[category] / word_count
        confidence = min(MAX_CONFIDENCE, max(MIN_CONFIDENCE, confidence))
        return HeuristicPrediction(text=lowered, predicted_category=category, confidence=confidence)
