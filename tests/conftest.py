"""
Pytest configuration for Daybook tests

Provides a temporary database, a deterministic embedder, a scripted
generation model and the stores built on top of them.
"""

import hashlib
import re
from datetime import datetime, timedelta, timezone

import numpy as np
import pytest

from daybook.context.ranker import RetrievalRanker
from daybook.context.store import ContextStore
from daybook.db import Database
from daybook.errors import ProviderError
from daybook.feed.lifecycle import FeedLifecycleManager
from daybook.feed.store import FeedStore
from daybook.llm.base import Completion

DIM = 1536
NOW = datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)

_TOKEN_RE = re.compile(r"\w+")


class HashingEmbedder:
    """Bag-of-words vectors: each lowercase token bumps one hashed dimension."""

    def __init__(self, dimension=DIM):
        self.dimension = dimension
        self.calls = []

    def embed(self, text):
        self.calls.append(text)
        vec = np.zeros(self.dimension, dtype=np.float32)
        for token in _TOKEN_RE.findall(text.lower()):
            idx = int(hashlib.md5(token.encode()).hexdigest(), 16) % self.dimension
            vec[idx] += 1.0
        return vec


class FailingEmbedder:
    dimension = DIM

    def embed(self, text):
        raise ProviderError("embedding service unavailable")


class ScriptedLLM:
    """Plays back canned responses and records every call."""

    def __init__(self, completions=None, texts=None):
        self.completions = list(completions or [])
        self.texts = list(texts or [])
        self.complete_calls = []
        self.run_calls = []

    def complete(self, system_prompt, messages, tools=None, temperature=None):
        # snapshot: the caller keeps appending to the same list
        self.complete_calls.append({"system": system_prompt, "messages": list(messages), "tools": tools,
                                    "temperature": temperature})
        if not self.completions:
            raise AssertionError("ScriptedLLM.complete called more times than scripted")
        return self.completions.pop(0)

    def run(self, system_prompt, user_message, temperature=None):
        self.run_calls.append({"system": system_prompt, "user": user_message, "temperature": temperature})
        if not self.texts:
            raise AssertionError("ScriptedLLM.run called more times than scripted")
        return self.texts.pop(0)


class Clock:
    """Mutable 'now' for components that take a clock callable."""

    def __init__(self, start=NOW):
        self.current = start

    def __call__(self):
        return self.current

    def advance(self, **kwargs):
        self.current = self.current + timedelta(**kwargs)


def text_completion(text):
    return Completion(text=text, tool_calls=[])


@pytest.fixture
def db(tmp_path):
    database = Database(tmp_path / "daybook.db")
    yield database
    database.close()


@pytest.fixture
def embedder():
    return HashingEmbedder()


@pytest.fixture
def context_store(db, embedder):
    return ContextStore(db, embedder)


@pytest.fixture
def ranker(context_store):
    return RetrievalRanker(context_store)


@pytest.fixture
def feed_store(db):
    return FeedStore(db)


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def lifecycle(feed_store, clock):
    return FeedLifecycleManager(feed_store, now=clock)
