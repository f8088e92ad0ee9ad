"""Embedding utilities wrapping OpenAI's embeddings API.

Provides:
- normalize_l2: L2 normalization that leaves the zero vector unchanged.
- EmbeddingEncoder: turns text into a fixed-dimension, L2-normalized vector.
  Provider vectors longer than the configured dimension are truncated to their
  first components before normalization.

The OpenAI client is passed in explicitly; nothing here reads credentials.
"""
import logging
from typing import List, Sequence

import numpy as np
from openai import OpenAI, OpenAIError

from routerag.entities import EmbeddingVector
from routerag.errors import RetrievalError

logger = logging.getLogger(__name__)


def normalize_l2(vec: Sequence[float]) -> EmbeddingVector:
    """Divide every component by the Euclidean norm.

    Args:
        vec: Input vector.

    Returns:
        EmbeddingVector: Unit-length vector, or the input unchanged if its norm is 0.
    """
    arr = np.asarray(vec, dtype=float)
    norm = float(np.linalg.norm(arr))
    if norm == 0.0:
        return tuple(float(x) for x in arr)
    return tuple(float(x) for x in arr / norm)


class EmbeddingEncoder:
    """Encode text into canonical-dimension embeddings.

    Args:
        client: OpenAI client (anything exposing ``embeddings.create``).
        model: Embedding model name.
        dimension: Canonical vector length D for this deployment.
    """

    def __init__(self, client: OpenAI, model: str, dimension: int):
        self.client = client
        self.model = model
        self.dimension = dimension

    def _fit(self, raw: Sequence[float]) -> EmbeddingVector:
        if len(raw) < self.dimension:
            raise RetrievalError(
                f"embedding provider returned {len(raw)} dims, expected at least {self.dimension}"
            )
        return normalize_l2(list(raw)[: self.dimension])

    def encode(self, text: str) -> EmbeddingVector:
        """Embed a single text.

        Raises:
            RetrievalError: If the provider call fails or returns a short vector.
        """
        return self.encode_batch([text])[0]

    def encode_batch(self, texts: List[str]) -> List[EmbeddingVector]:
        """Embed a batch of texts with one provider call."""
        if not texts:
            return []
        try:
            resp = self.client.embeddings.create(model=self.model, input=texts, encoding_format="float")
        except OpenAIError as e:
            logger.error("Embedding request failed: %s", e)
            raise RetrievalError(f"embedding provider error: {e}") from e
        return [self._fit(d.embedding) for d in resp.data]
