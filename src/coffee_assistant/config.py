"""Configuration models for the coffee-shop assistant."""

from __future__ import annotations

import os

from typing import Literal

from pydantic import BaseModel, Field


class RetrievalConfig(BaseModel):
    """Configures grounding-context retrieval for each chat turn."""

    top_k: int = Field(default=4, ge=1, le=20)
    enabled: bool = True
    min_score: float = Field(default=-1.0, ge=-1.0, le=1.0)


class IngestionConfig(BaseModel):
    """Configures batching of embedding requests during ingestion."""

    batch_size: int = Field(default=64, ge=1)
    max_workers: int = Field(default=1, ge=1)


class AgentConfig(BaseModel):
    """Configures the tool-call loop and external call timeouts."""

    max_tool_depth: int = Field(default=5, ge=1)
    model_timeout_seconds: float = Field(default=30.0, gt=0.0)
    embedding_timeout_seconds: float = Field(default=15.0, gt=0.0)


class ModelConfig(BaseModel):
    """Configures the chat and embedding model backends."""

    chat_model: str = "gpt-4o-mini"
    embedding_model: str = "text-embedding-3-small"
    # "auto" picks OpenAI when an API key is set and the hashing baseline otherwise.
    embedding_backend: Literal["auto", "openai", "local", "hashing"] = "auto"
    local_embedding_model: str = "all-MiniLM-L6-v2"
    local_embedding_device: str = "cpu"
    temperature: float = Field(default=0.0, ge=0.0, le=2.0)
    api_key: str | None = None
    hashing_dimension: int = Field(default=256, ge=8)


class AssistantSettings(BaseModel):
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    ingestion: IngestionConfig = Field(default_factory=IngestionConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)
    model: ModelConfig = Field(default_factory=ModelConfig)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "AssistantSettings":
        def _int(name: str, default: int) -> int:
            value = os.environ.get(name)
            return int(value) if value else default

        def _float(name: str, default: float) -> float:
            value = os.environ.get(name)
            return float(value) if value else default

        defaults_agent = AgentConfig()
        defaults_model = ModelConfig()
        return cls(
            retrieval=RetrievalConfig(top_k=_int("ASSISTANT_TOP_K", RetrievalConfig().top_k)),
            agent=AgentConfig(
                max_tool_depth=_int("ASSISTANT_MAX_TOOL_DEPTH", defaults_agent.max_tool_depth),
                model_timeout_seconds=_float(
                    "ASSISTANT_MODEL_TIMEOUT", defaults_agent.model_timeout_seconds
                ),
            ),
            model=ModelConfig(
                chat_model=os.environ.get("OPENAI_MODEL", defaults_model.chat_model),
                embedding_model=os.environ.get(
                    "OPENAI_EMBEDDING_MODEL", defaults_model.embedding_model
                ),
                api_key=os.environ.get("OPENAI_API_KEY") or None,
                embedding_backend=os.environ.get(
                    "ASSISTANT_EMBEDDINGS", defaults_model.embedding_backend
                ).lower(),
                local_embedding_model=os.environ.get(
                    "ASSISTANT_LOCAL_EMBEDDING_MODEL", defaults_model.local_embedding_model
                ),
            ),
            log_level=os.environ.get("ASSISTANT_LOG_LEVEL", "INFO").upper(),
        )
