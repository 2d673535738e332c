"""Explicit construction of every component from a DaybookConfig.

Providers are created on first use so commands that never touch a model
(feed list, profile show, …) work without API keys.
"""

from __future__ import annotations

from functools import cached_property
from typing import Optional

from daybook.agent.answer import AnswerSynthesizer
from daybook.config import DaybookConfig
from daybook.context.ranker import RetrievalRanker
from daybook.context.store import ContextStore
from daybook.db import Database
from daybook.feed.lifecycle import FeedLifecycleManager
from daybook.feed.store import FeedStore
from daybook.feed.synthesizer import FeedSynthesizer
from daybook.ingest.profile import ProfileService
from daybook.llm.base import EmbeddingProvider, GenerationProvider
from daybook.tools.executor import ToolExecutor, default_tools


class Services:
    """Holds one instance of each component. Anything passed in is used as-is."""

    def __init__(
        self,
        config: DaybookConfig,
        db: Optional[Database] = None,
        embedder: Optional[EmbeddingProvider] = None,
        llm: Optional[GenerationProvider] = None,
        tools: Optional[ToolExecutor] = None,
    ):
        self.config = config
        self.db = db or Database(config.db_path)
        self._embedder = embedder
        self._llm = llm
        self._tools = tools

    @property
    def embedder(self) -> EmbeddingProvider:
        if self._embedder is None:
            from daybook.llm.embeddings import GeminiEmbedder

            self._embedder = GeminiEmbedder(
                model=self.config.embedding_model, dimension=self.config.embedding_dim,
            )
        return self._embedder

    @property
    def llm(self) -> GenerationProvider:
        if self._llm is None:
            from daybook.llm.client import LLMClient

            self._llm = LLMClient(provider=self.config.provider, model=self.config.model)
        return self._llm

    @property
    def tools(self) -> ToolExecutor:
        if self._tools is None:
            self._tools = default_tools(self.config)
        return self._tools

    @cached_property
    def context_store(self) -> ContextStore:
        return ContextStore(self.db, _LazyEmbedder(self))

    @cached_property
    def ranker(self) -> RetrievalRanker:
        return RetrievalRanker(self.context_store)

    @cached_property
    def profiles(self) -> ProfileService:
        return ProfileService(self.db, self.context_store)

    @cached_property
    def feed_store(self) -> FeedStore:
        return FeedStore(self.db)

    @cached_property
    def lifecycle(self) -> FeedLifecycleManager:
        return FeedLifecycleManager(self.feed_store)

    @cached_property
    def answers(self) -> AnswerSynthesizer:
        return AnswerSynthesizer(
            self.ranker,
            self.llm,
            self.tools,
            semantic_limit=self.config.answer_semantic_limit,
            recent_limit=self.config.answer_recent_limit,
            window_hours=self.config.answer_window_hours,
        )

    @cached_property
    def feed(self) -> FeedSynthesizer:
        return FeedSynthesizer(
            self.context_store,
            self.feed_store,
            self.llm,
            context_limit=self.config.feed_context_limit,
        )

    def close(self):
        self.db.close()


class _LazyEmbedder:
    """Defers building the real embedder until something is embedded."""

    def __init__(self, services: Services):
        self._services = services

    @property
    def dimension(self) -> int:
        if self._services._embedder is not None:
            return self._services._embedder.dimension
        return self._services.config.embedding_dim

    def embed(self, text: str):
        return self._services.embedder.embed(text)


def build_services(config: DaybookConfig, **overrides) -> Services:
    return Services(config, **overrides)
