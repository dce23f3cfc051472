"""
Embedding providers for semantic code search.

The default implementation delegates to LangChain embedding wrappers so we
can swap providers (Ollama, OpenAI, HuggingFace) via configuration.
"""

from .providers import EmbeddingAdapter, EmbeddingPayload, EmbeddingProviderFactory

__all__ = ["EmbeddingAdapter", "EmbeddingPayload", "EmbeddingProviderFactory"]
