"""
Abstractions for embedding providers.

This module wires LangChain embeddings, making it straightforward to plug
different vendors by configuration.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Iterable, List, Optional, Protocol

from langchain_core.embeddings import Embeddings

from ..logger import get_logger
from ..settings import settings

log = get_logger(__name__)

DEFAULT_MODELS = {
    "ollama": "nomic-embed-text",
    "openai": "text-embedding-3-small",
    "huggingface": "Snowflake/snowflake-arctic-embed-l-v2.0",
}


class EmbeddingAdapter(Protocol):
    """Protocol representing a pluggable embeddings client."""

    def embed_documents(self, texts: Iterable[str]) -> List[List[float]]:
        ...

    def embed_query(self, text: str) -> List[float]:
        ...


@dataclass
class EmbeddingPayload:
    """Embedding representation the storage layer expects."""

    id: str
    text: str
    vector: List[float]
    metadata: dict


def _api_key(env_var: str, configured: Optional[str]) -> Optional[str]:
    return os.getenv(env_var) or configured


class EmbeddingProviderFactory:
    """Factory that returns embedding clients based on configuration."""

    @staticmethod
    def default_model(provider: str) -> str:
        try:
            return DEFAULT_MODELS[provider.lower()]
        except KeyError:
            raise NotImplementedError(f"Embedding provider not yet supported: {provider}") from None

    @staticmethod
    def create(provider: str | None = None, model: str | None = None) -> Embeddings:
        provider_name = (provider or settings.embedding_provider).lower()
        embed_model = model or settings.embedding_model or EmbeddingProviderFactory.default_model(
            provider_name
        )

        if provider_name == "ollama":
            from langchain_community.embeddings import OllamaEmbeddings  # type: ignore

            log.info(
                "initializing_ollama_embeddings",
                model=embed_model,
                base_url=settings.ollama_base_url,
            )
            return OllamaEmbeddings(model=embed_model, base_url=settings.ollama_base_url)

        if provider_name == "openai":
            from langchain_openai import OpenAIEmbeddings  # type: ignore

            api_key = _api_key("OPENAI_API_KEY", settings.openai_api_key)
            if not api_key:
                raise ValueError(
                    "Set OPENAI_API_KEY (or CODESHERPA_OPENAI_API_KEY) when using the "
                    "openai embedding provider."
                )
            log.info("initializing_openai_embeddings", model=embed_model)
            return OpenAIEmbeddings(model=embed_model, api_key=api_key)

        if provider_name == "huggingface":
            from langchain_community.embeddings import (  # type: ignore
                HuggingFaceInferenceAPIEmbeddings,
            )

            api_key = _api_key("HUGGINGFACE_API_KEY", settings.huggingface_api_key)
            if not api_key:
                raise ValueError(
                    "Set HUGGINGFACE_API_KEY (or CODESHERPA_HUGGINGFACE_API_KEY) when "
                    "using the huggingface embedding provider."
                )
            log.info("initializing_huggingface_embeddings", model=embed_model)
            return HuggingFaceInferenceAPIEmbeddings(api_key=api_key, model_name=embed_model)

        raise NotImplementedError(f"Embedding provider not yet supported: {provider_name}")
