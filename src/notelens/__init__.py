"""notelens - semantic embedding index and similarity search for markdown notes."""

__version__ = "0.1.0"
