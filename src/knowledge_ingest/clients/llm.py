"""Model initialisation — single place to swap providers.

Supports two modes:

1. **OpenAI cloud** (default) — set ``OPENAI_API_KEY``.
2. **OpenAI-compatible endpoint** — set ``LLM_BASE_URL`` to a vLLM /
   gateway service (e.g. ``http://llm-server.ml.svc.cluster.local/v1``).
   ``ChatOpenAI`` and ``OpenAIEmbeddings`` work unchanged against it.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from knowledge_ingest.config import Settings, settings as default_settings
from knowledge_ingest.errors import ConfigurationError

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings
    from langchain_openai import ChatOpenAI

logger = logging.getLogger(__name__)


def _openai_kwargs(cfg: Settings) -> dict:
    kwargs: dict = {"timeout": cfg.request_timeout}
    if cfg.llm_base_url:
        logger.info("Using OpenAI-compatible endpoint: %s", cfg.llm_base_url)
        kwargs["base_url"] = cfg.llm_base_url
        # Self-hosted endpoints don't need a real key; the client requires a non-empty value.
        kwargs["api_key"] = cfg.openai_api_key or "EMPTY"
    elif cfg.openai_api_key:
        kwargs["api_key"] = cfg.openai_api_key
    return kwargs


def get_llm(cfg: Settings | None = None, *, model: str | None = None) -> ChatOpenAI:
    """Return the configured chat model used for summaries (and vision).

    Parameters
    ----------
    cfg:
        Settings to read from; defaults to the module-level singleton.
    model:
        Override the model name (the vision analyzer passes
        ``settings.vision_model_name``).
    """
    from langchain_openai import ChatOpenAI

    cfg = cfg or default_settings
    return ChatOpenAI(
        model=model or cfg.llm_model_name,
        temperature=cfg.llm_temperature,
        max_tokens=cfg.summary_max_tokens,
        **_openai_kwargs(cfg),
    )


def get_embedding_function(cfg: Settings | None = None) -> Embeddings:
    """Return the configured LangChain embedding model.

    ``embedding_provider="openai"`` uses ``OpenAIEmbeddings`` and requests
    ``embedding_dimension`` from models that support shortening;
    ``"huggingface"`` uses a local sentence-transformer.
    """
    cfg = cfg or default_settings
    provider = cfg.embedding_provider.lower()

    if provider == "openai":
        from langchain_openai import OpenAIEmbeddings

        kwargs = _openai_kwargs(cfg)
        timeout = kwargs.pop("timeout")
        extra: dict = {}
        if cfg.embedding_model.startswith("text-embedding-3"):
            extra["dimensions"] = cfg.embedding_dimension
        return OpenAIEmbeddings(
            model=cfg.embedding_model,
            request_timeout=timeout,
            **kwargs,
            **extra,
        )

    if provider == "huggingface":
        from langchain_huggingface import HuggingFaceEmbeddings

        return HuggingFaceEmbeddings(model_name=cfg.embedding_model)

    raise ConfigurationError(
        f"Unsupported embedding_provider={cfg.embedding_provider!r}. Choose from: openai, huggingface."
    )
