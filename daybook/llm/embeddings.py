"""Gemini embedding client (fixed 1536-dim output)."""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from daybook.config import get_api_key
from daybook.context.embeddings import EMBEDDING_DIM
from daybook.errors import ProviderError

logger = logging.getLogger(__name__)

DEFAULT_EMBEDDING_MODEL = "gemini-embedding-001"


class GeminiEmbedder:
    """Embeds text with the Gemini embedding API."""

    def __init__(
        self,
        model: str = DEFAULT_EMBEDDING_MODEL,
        dimension: int = EMBEDDING_DIM,
        api_key: Optional[str] = None,
    ):
        try:
            from google import genai
        except ImportError:
            raise ImportError("Install google-genai: pip install google-genai")

        api_key = api_key or get_api_key("GEMINI_API_KEY")
        if not api_key:
            raise ValueError(
                "GEMINI_API_KEY not found. Either:\n"
                "  • Run: daybook set-key gemini\n"
                "  • Or:  export GEMINI_API_KEY='your-key'"
            )
        self.model = model
        self.dimension = dimension
        self._client = genai.Client(api_key=api_key)

    def embed(self, text: str) -> np.ndarray:
        """Return a float32 vector of shape (dimension,)."""
        from google.genai import errors, types

        try:
            response = self._client.models.embed_content(
                model=self.model,
                contents=text,
                config=types.EmbedContentConfig(output_dimensionality=self.dimension),
            )
        except errors.APIError as exc:
            logger.error("Gemini embed failed: %s", exc)
            raise ProviderError(f"Embedding request failed: {exc}") from exc

        if not response.embeddings or not response.embeddings[0].values:
            raise ProviderError("Embedding response was empty")

        vec = np.array(response.embeddings[0].values, dtype=np.float32)
        if vec.shape[0] != self.dimension:
            raise ProviderError(
                f"Embedding model returned {vec.shape[0]} dims, expected {self.dimension}"
            )
        return vec
