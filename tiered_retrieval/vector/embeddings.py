"""
Embedding providers.

Strategies are tried in a fixed order by ``FallbackEmbeddingChain``; the first
one that produces a vector of the configured dimension wins. The deterministic
hash embedding needs no external dependency and always succeeds, which keeps
tests reproducible.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from ..core.errors import EmbeddingUnavailable
from ..core.text import normalize_text
from util.logging import logger


class IEmbeddingProvider(ABC):
    """Abstract interface for embedding providers."""

    name: str = "abstract"

    # Whether vectors carry meaning (model output) or are only a stable
    # fingerprint of the text.
    semantic: bool = False

    @abstractmethod
    def embed_text(self, text: str) -> List[float]:
        """Generate embedding vector for given text.

        Raises:
            EmbeddingUnavailable: if this strategy cannot produce a vector.
        """
        pass

    @abstractmethod
    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        pass


# Keyword clusters that pull texts about the same topic together in hash space.
TOPIC_MARKERS: Dict[str, Tuple[str, ...]] = {
    "anger": ("angry", "anger", "rage", "furious", "frustrated", "irritated", "annoyed", "mad"),
    "sadness": ("sad", "depressed", "empty", "hopeless", "lonely", "grief", "cry", "meaningless"),
    "fear": ("afraid", "scared", "anxious", "anxiety", "worried", "panic", "nervous", "fear"),
    "inadequacy": ("not good enough", "failure", "failing", "inadequate", "falling short", "worthless"),
    "faith": ("pray", "prayer", "faith", "god", "allah", "spiritual", "worship", "dua"),
    "gratitude": ("grateful", "thankful", "blessed", "gratitude", "thank"),
    "patience": ("patience", "patient", "endure", "perseverance", "wait"),
    "crisis": ("end my life", "kill myself", "suicide", "want to die", "self harm"),
}
TOPIC_BIAS = 1.0


def rolling_hash(text: str) -> int:
    """32-bit signed rolling hash ``h = h * 31 + ord(c)`` over characters."""
    h = 0
    for ch in text:
        h = ((h << 5) - h + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return h


class DeterministicHashEmbedding(IEmbeddingProvider):
    """Deterministic hash-based embedding provider.

    Normalizes the text, hashes it, and spreads the hash over ``dimension``
    values with ``(sin(hash + i) + 1) / 2``. Index bands are biased upward when
    the text contains a topic marker cluster so texts on the same topic score
    closer than arbitrary text. Same text always gives the same vector.
    """

    name = "hash"
    semantic = False

    def __init__(self, dimension: int = 1024, topic_markers: Optional[Dict[str, Tuple[str, ...]]] = None):
        self.dimension = dimension
        self.topic_markers = topic_markers if topic_markers is not None else TOPIC_MARKERS
        self._band = max(1, dimension // (2 * max(len(self.topic_markers), 1)))

    def embed_text(self, text: str) -> List[float]:
        """Generate deterministic embedding vector using hash function."""
        normalized = normalize_text(text)
        if not normalized:
            return [0.0] * self.dimension

        h = rolling_hash(normalized)
        vector = (np.sin(h + np.arange(self.dimension, dtype=np.float64)) + 1.0) / 2.0

        for start, end in self._topic_bands(normalized):
            vector[start:end] += TOPIC_BIAS

        return vector.tolist()

    def _topic_bands(self, normalized: str):
        padded = f" {normalized} "
        for k, markers in enumerate(self.topic_markers.values()):
            if any(f" {marker} " in padded for marker in markers):
                start = k * self._band
                end = min(start + self._band, self.dimension)
                if start < end:
                    yield start, end

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        return self.dimension


class ZeroEmbedding(IEmbeddingProvider):
    """Last-resort provider returning the zero vector."""

    name = "zero"
    semantic = False

    def __init__(self, dimension: int = 1024):
        self.dimension = dimension

    def embed_text(self, text: str) -> List[float]:
        return [0.0] * self.dimension

    def get_dimension(self) -> int:
        return self.dimension


class SentenceTransformerEmbedding(IEmbeddingProvider):
    """Sentence transformers embedding provider using pre-trained models.

    The model is loaded on first use. A model whose output dimension differs
    from the configured one is treated as unavailable.
    """

    name = "sentence_transformers"
    semantic = True

    def __init__(self, model_name: str = "all-mpnet-base-v2", dimension: Optional[int] = None):
        self.model_name = model_name
        self.dimension = dimension
        self._model = None

    @property
    def model(self):
        if self._model is None:
            from sentence_transformers import SentenceTransformer
            self._model = SentenceTransformer(self.model_name)
        return self._model

    def embed_text(self, text: str) -> List[float]:
        """Generate embedding vector using sentence transformers."""
        try:
            embedding = self.model.encode(text, convert_to_tensor=False)
        except Exception as e:
            raise EmbeddingUnavailable(self.name, str(e)) from e

        vector = np.asarray(embedding, dtype=np.float64).reshape(-1).tolist()
        if self.dimension is not None and len(vector) != self.dimension:
            raise EmbeddingUnavailable(
                self.name, f"model returned {len(vector)} dimensions, expected {self.dimension}"
            )
        return vector

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        if self.dimension is None:
            self.dimension = self.model.get_sentence_embedding_dimension()
        return self.dimension


class OllamaEmbedding(IEmbeddingProvider):
    """Embeddings from an Ollama server (external call)."""

    name = "ollama"
    semantic = True

    def __init__(self, model_name: str = "mxbai-embed-large", host: Optional[str] = None,
                 dimension: int = 1024, timeout: float = 2.0):
        self.model_name = model_name
        self.host = host
        self.dimension = dimension
        self.timeout = timeout
        self._client = None

    @property
    def client(self):
        if self._client is None:
            import ollama
            self._client = ollama.Client(host=self.host, timeout=self.timeout)
        return self._client

    def embed_text(self, text: str) -> List[float]:
        try:
            response = self.client.embed(model=self.model_name, input=text)
            vector = list(response["embeddings"][0])
        except Exception as e:
            raise EmbeddingUnavailable(self.name, str(e)) from e

        if len(vector) != self.dimension:
            raise EmbeddingUnavailable(
                self.name, f"model returned {len(vector)} dimensions, expected {self.dimension}"
            )
        return [float(v) for v in vector]

    def get_dimension(self) -> int:
        return self.dimension


@dataclass
class EmbeddingResult:
    """A vector plus the strategy that produced it."""
    vector: List[float]
    provider: str
    semantic: bool


class FallbackEmbeddingChain(IEmbeddingProvider):
    """Ordered embedding strategies; the first success wins.

    ``embed`` and ``embed_text`` never raise: any strategy error moves on to the
    next strategy. ``aembed`` additionally bounds each strategy with ``timeout``
    seconds.
    """

    name = "chain"

    def __init__(self, strategies: Sequence[IEmbeddingProvider], timeout: float = 2.0):
        if not strategies:
            raise ValueError("FallbackEmbeddingChain needs at least one strategy")
        self.strategies = list(strategies)
        self.timeout = timeout
        self.dimension = self.strategies[0].get_dimension()
        for strategy in self.strategies[1:]:
            if strategy.get_dimension() != self.dimension:
                raise ValueError(
                    f"Strategy '{strategy.name}' has dimension {strategy.get_dimension()}, expected {self.dimension}"
                )

    @property
    def semantic(self) -> bool:
        return self.strategies[0].semantic

    def get_dimension(self) -> int:
        return self.dimension

    def _zero(self) -> EmbeddingResult:
        return EmbeddingResult(vector=[0.0] * self.dimension, provider="zero", semantic=False)

    def _next_name(self, index: int) -> Optional[str]:
        if index + 1 < len(self.strategies):
            return self.strategies[index + 1].name
        return None

    def embed(self, text: str) -> EmbeddingResult:
        """Embed synchronously with the first strategy that succeeds."""
        if not text or not text.strip():
            return self._zero()

        for i, strategy in enumerate(self.strategies):
            try:
                vector = strategy.embed_text(text)
            except EmbeddingUnavailable as e:
                logger.log_embedding_fallback(strategy.name, e.reason, self._next_name(i))
                continue
            except Exception as e:
                logger.log_embedding_fallback(strategy.name, f"{type(e).__name__}: {e}", self._next_name(i))
                continue
            return EmbeddingResult(vector=vector, provider=strategy.name, semantic=strategy.semantic)

        return self._zero()

    async def aembed(self, text: str) -> EmbeddingResult:
        """Embed without blocking the event loop, with a per-strategy timeout."""
        if not text or not text.strip():
            return self._zero()

        for i, strategy in enumerate(self.strategies):
            try:
                vector = await asyncio.wait_for(
                    asyncio.to_thread(strategy.embed_text, text),
                    timeout=self.timeout,
                )
            except asyncio.TimeoutError:
                logger.log_embedding_fallback(strategy.name, f"timed out after {self.timeout}s", self._next_name(i))
                continue
            except EmbeddingUnavailable as e:
                logger.log_embedding_fallback(strategy.name, e.reason, self._next_name(i))
                continue
            except Exception as e:
                logger.log_embedding_fallback(strategy.name, f"{type(e).__name__}: {e}", self._next_name(i))
                continue
            return EmbeddingResult(vector=vector, provider=strategy.name, semantic=strategy.semantic)

        return self._zero()

    def embed_text(self, text: str) -> List[float]:
        return self.embed(text).vector

    def embed_many(self, texts: Sequence[str]) -> List[EmbeddingResult]:
        """Embed multiple texts in order."""
        return [self.embed(text) for text in texts]
