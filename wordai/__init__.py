"""WordAI: JSON gateway over a word table and a PyTorch text classifier trained on it."""

__version__ = "0.1.0"
