"""Settings loaded from environment variables."""

import os
from dataclasses import dataclass, field
from pathlib import Path

from .chat.client import DEFAULT_MAX_FUNCTION_ROUNDS, DEFAULT_MODEL
from .memory.embedding import DEFAULT_EMBEDDING_MODEL, DEFAULT_EMBEDDING_URL

_TRUE = {"1", "true", "yes", "on"}


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE


def _env_float(name: str) -> float | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return float(value)


@dataclass
class Settings:
    """Runtime configuration for the CLI and agent wiring."""

    groq_api_key: str | None = None
    model: str = DEFAULT_MODEL
    temperature: float | None = None
    max_function_rounds: int = DEFAULT_MAX_FUNCTION_ROUNDS
    memory_db: Path = field(default_factory=lambda: Path.home() / ".ragent" / "memory.db")
    vector_db: Path = field(default_factory=lambda: Path.home() / ".ragent" / "vectors")
    embedding_url: str = DEFAULT_EMBEDDING_URL
    embedding_model: str = DEFAULT_EMBEDDING_MODEL
    embedding_api_key: str | None = None
    tolerate_partial_retrieval: bool = False
    log_dir: Path | None = None

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from ``RAGENT_*`` and ``GROQ_API_KEY`` variables."""
        defaults = cls()
        log_dir = os.getenv("RAGENT_LOG_DIR")
        return cls(
            groq_api_key=os.getenv("GROQ_API_KEY"),
            model=os.getenv("RAGENT_MODEL", defaults.model),
            temperature=_env_float("RAGENT_TEMPERATURE"),
            max_function_rounds=int(
                os.getenv("RAGENT_MAX_FUNCTION_ROUNDS", str(defaults.max_function_rounds))
            ),
            memory_db=Path(os.getenv("RAGENT_MEMORY_DB", str(defaults.memory_db))).expanduser(),
            vector_db=Path(os.getenv("RAGENT_VECTOR_DB", str(defaults.vector_db))).expanduser(),
            embedding_url=os.getenv("RAGENT_EMBEDDING_URL", defaults.embedding_url),
            embedding_model=os.getenv("RAGENT_EMBEDDING_MODEL", defaults.embedding_model),
            embedding_api_key=os.getenv("RAGENT_EMBEDDING_API_KEY"),
            tolerate_partial_retrieval=_env_bool("RAGENT_TOLERATE_PARTIAL_RETRIEVAL"),
            log_dir=Path(log_dir).expanduser() if log_dir else None,
        )
