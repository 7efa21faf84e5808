"""Embedding service client."""

from notelens.client.openai import OpenAIEmbeddingClient

__all__ = ["OpenAIEmbeddingClient"]
