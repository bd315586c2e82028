"""Shared configuration loaded from environment / .env file."""

from __future__ import annotations

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings, populated from env vars or .env file."""

    # LLM (summaries + vision)
    openai_api_key: str = Field(default="", description="OpenAI API key (or dummy value for local vLLM)")
    llm_model_name: str = Field(default="gpt-4o-mini", description="Chat model used for summaries")
    llm_base_url: str = Field(
        default="",
        description=(
            "Base URL for the LLM API. Leave empty to use OpenAI cloud. "
            "Set to any OpenAI-compatible endpoint (vLLM, Azure proxy, ...) otherwise."
        ),
    )
    llm_temperature: float = 0.3
    summary_max_tokens: int = 500
    request_timeout: float = Field(default=60.0, description="Per-call timeout (seconds) for model providers")

    # Embedding
    embedding_provider: str = Field(default="openai", description="'openai' or 'huggingface'")
    embedding_model: str = "text-embedding-3-small"
    embedding_dimension: int = Field(default=1536, description="Must match the vector store dimension")

    # Vision
    vision_enabled: bool = False
    vision_model_name: str = "gpt-4o-mini"

    # Vector store
    chroma_host: str = "localhost"
    chroma_port: int = 8000
    chroma_collection: str = "knowledge_ingest"
    chroma_persist_directory: str = Field(
        default="",
        description="When set, use an embedded PersistentClient at this path instead of HttpClient",
    )
    distance_metric: str = "l2"
    upsert_batch_size: int = 100

    # Pipeline
    data_directory: str = "./data"
    chunk_size: int = 1000
    chunk_overlap: int = 200
    skip_existing_documents: bool = True
    summary_max_input_chars: int = 10000
    max_workers: int = 4
    embed_concurrency: int = 4
    run_timeout_seconds: float | None = None

    # Logging
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @model_validator(mode="after")
    def _check_numeric_constraints(self) -> Settings:
        if self.chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if self.chunk_overlap < 0:
            raise ValueError("chunk_overlap cannot be negative")
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError(
                f"chunk_overlap ({self.chunk_overlap}) must be < chunk_size ({self.chunk_size})"
            )
        if self.embedding_dimension <= 0:
            raise ValueError("embedding_dimension must be positive")
        if self.upsert_batch_size <= 0:
            raise ValueError("upsert_batch_size must be positive")
        if self.max_workers <= 0 or self.embed_concurrency <= 0:
            raise ValueError("max_workers and embed_concurrency must be positive")
        return self


# Singleton: import `settings` wherever needed.
settings = Settings()
