"""
Centralized application settings.

Values come from ``CODESHERPA_*`` environment variables and an optional
TOML file; the CLI layers per-invocation overrides on top.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

try:  # Python 3.11+
    import tomllib  # type: ignore[attr-defined]
except ModuleNotFoundError:  # pragma: no cover - fallback for older interpreters
    import tomli as tomllib  # type: ignore[no-redef]

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Project-wide settings loaded from env or .env files."""

    model_config = SettingsConfigDict(
        env_prefix="CODESHERPA_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    max_chunk_size: int = Field(default=4096, ge=1)
    overlap_percentage: int = Field(default=10, ge=0, le=100)
    min_capture_width: int = 3
    min_node_width: int = 10
    min_child_width: int = 20
    min_generic_lines: int = 3
    section_min_lines: int = 5
    section_max_lines: int = Field(default=100, ge=1)
    section_blank_run: int = Field(default=2, ge=1)

    embedding_provider: str = "ollama"
    embedding_model: Optional[str] = None
    # Unset: taken from the first embedding vector of a new collection.
    embedding_dimension: Optional[int] = None
    embedding_batch_size: int = 64
    ollama_base_url: str = "http://localhost:11434"
    openai_api_key: Optional[str] = None
    huggingface_api_key: Optional[str] = None

    milvus_uri: str = "http://localhost:19530"
    milvus_username: Optional[str] = None
    milvus_password: Optional[str] = None
    milvus_upsert_batch_size: int = 100
    collection_name: Optional[str] = None


_CONFIG_ENV_VAR = "CODESHERPA_CONFIG_PATH"
_DEFAULT_CONFIG_FILE = Path("codesherpa_settings.toml")

_CHUNKING_KEYS = (
    "max_chunk_size",
    "overlap_percentage",
    "min_capture_width",
    "min_node_width",
    "min_child_width",
    "min_generic_lines",
    "section_min_lines",
    "section_max_lines",
    "section_blank_run",
)


def _load_toml_config() -> Dict[str, Any]:
    """Load configuration from the primary TOML file on disk."""
    candidates: List[Path] = []
    config_override = os.getenv(_CONFIG_ENV_VAR)
    if config_override:
        candidates.append(Path(config_override))
    candidates.append(_DEFAULT_CONFIG_FILE)

    for candidate in candidates:
        if candidate.is_file():
            with candidate.open("rb") as handle:
                return tomllib.load(handle)
    return {}


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and value.strip() == "":
        return None
    return value


def _flatten_config(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Translate grouped TOML sections into AppSettings keyword arguments."""
    data: Dict[str, Any] = {}

    chunking = raw.get("chunking", {})
    for key in _CHUNKING_KEYS:
        if key in chunking:
            data[key] = chunking[key]

    embedding = raw.get("embedding", {})
    if "provider" in embedding:
        data["embedding_provider"] = embedding["provider"]
    if "model" in embedding:
        data["embedding_model"] = _blank_to_none(embedding["model"])
    if "dimension" in embedding:
        data["embedding_dimension"] = _blank_to_none(embedding["dimension"])
    if "batch_size" in embedding:
        data["embedding_batch_size"] = embedding["batch_size"]
    if "ollama_base_url" in embedding:
        data["ollama_base_url"] = embedding["ollama_base_url"]
    if "openai_api_key" in embedding:
        data["openai_api_key"] = _blank_to_none(embedding["openai_api_key"])
    if "huggingface_api_key" in embedding:
        data["huggingface_api_key"] = _blank_to_none(embedding["huggingface_api_key"])

    milvus = raw.get("milvus", {})
    if "uri" in milvus:
        data["milvus_uri"] = milvus["uri"]
    if "username" in milvus:
        data["milvus_username"] = _blank_to_none(milvus["username"])
    if "password" in milvus:
        data["milvus_password"] = _blank_to_none(milvus["password"])
    if "upsert_batch_size" in milvus:
        data["milvus_upsert_batch_size"] = milvus["upsert_batch_size"]
    if "collection" in milvus:
        data["collection_name"] = _blank_to_none(milvus["collection"])

    return data


def load_settings() -> AppSettings:
    raw = _load_toml_config()
    return AppSettings(**_flatten_config(raw))


settings = load_settings()
