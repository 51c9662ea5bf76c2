"""
Embedding providers and the fallback chain.
"""

import asyncio
import time

import numpy as np
import pytest
from unittest.mock import MagicMock

from tiered_retrieval.core.errors import EmbeddingUnavailable
from tiered_retrieval.vector.embeddings import (
    IEmbeddingProvider,
    DeterministicHashEmbedding,
    FallbackEmbeddingChain,
    OllamaEmbedding,
    SentenceTransformerEmbedding,
    ZeroEmbedding,
    rolling_hash,
    TOPIC_BIAS,
    TOPIC_MARKERS,
)


class FailingEmbedding(IEmbeddingProvider):
    name = "failing"
    semantic = True

    def __init__(self, dimension=16):
        self.dimension = dimension
        self.calls = 0

    def embed_text(self, text):
        self.calls += 1
        raise EmbeddingUnavailable(self.name, "connection refused")

    def get_dimension(self):
        return self.dimension


class SlowEmbedding(IEmbeddingProvider):
    name = "slow"
    semantic = True

    def __init__(self, dimension=16, delay=0.5):
        self.dimension = dimension
        self.delay = delay

    def embed_text(self, text):
        time.sleep(self.delay)
        return [1.0] * self.dimension

    def get_dimension(self):
        return self.dimension


class FixedEmbedding(IEmbeddingProvider):
    name = "fixed"
    semantic = True

    def __init__(self, dimension=16):
        self.dimension = dimension

    def embed_text(self, text):
        return [0.5] * self.dimension

    def get_dimension(self):
        return self.dimension


def test_embedding_interface():
    """Hash embedding implements the provider interface."""
    embedder = DeterministicHashEmbedding(dimension=384)

    assert isinstance(embedder, IEmbeddingProvider)
    assert embedder.get_dimension() == 384
    assert embedder.semantic is False


def test_deterministic_embedding():
    """Same input always produces the same output, across instances."""
    text = "How can I control my anger?"
    vector1 = DeterministicHashEmbedding(dimension=1024).embed_text(text)
    vector2 = DeterministicHashEmbedding(dimension=1024).embed_text(text)

    assert vector1 == vector2
    assert len(vector1) == 1024


def test_normalization_before_hashing():
    """Case and punctuation do not change the vector."""
    embedder = DeterministicHashEmbedding(dimension=64)

    assert embedder.embed_text("Hello, World!") == embedder.embed_text("hello world")


def test_different_inputs_produce_different_vectors():
    embedder = DeterministicHashEmbedding(dimension=384)

    assert embedder.embed_text("What is patience?") != embedder.embed_text("How do I pray?")


def test_values_follow_sine_formula():
    """Without topic markers, value i is (sin(h + i) + 1) / 2."""
    embedder = DeterministicHashEmbedding(dimension=8, topic_markers={})
    text = "plain text"
    h = rolling_hash(text)

    expected = [(np.sin(h + i) + 1) / 2 for i in range(8)]
    assert embedder.embed_text(text) == pytest.approx(expected)


def test_rolling_hash_wraps_to_signed_32_bit():
    h = rolling_hash("a much longer string that overflows thirty two bits many times over")

    assert -2**31 <= h < 2**31
    assert rolling_hash("a") == 97
    assert rolling_hash("ab") == 97 * 31 + 98


def test_empty_input_returns_zero_vector():
    embedder = DeterministicHashEmbedding(dimension=32)

    assert embedder.embed_text("") == [0.0] * 32
    assert embedder.embed_text("?!...") == [0.0] * 32


def test_topic_markers_bias_their_index_band():
    """A text containing an anger marker has its anger band lifted above 1."""
    embedder = DeterministicHashEmbedding(dimension=1024)
    band = 1024 // (2 * len(TOPIC_MARKERS))
    anger_start = list(TOPIC_MARKERS).index("anger") * band

    angry = embedder.embed_text("I am so angry at my brother")
    plain = embedder.embed_text("what time does the market open")

    assert all(v >= 1.0 for v in angry[anger_start:anger_start + band])
    assert all(v <= 1.0 for v in plain)


def test_shared_topic_band_is_shared_between_texts():
    """Two texts on the same topic both carry the bias in the same band."""
    embedder = DeterministicHashEmbedding(dimension=1024)
    unbiased = DeterministicHashEmbedding(dimension=1024, topic_markers={})
    band = 1024 // (2 * len(TOPIC_MARKERS))
    faith_start = list(TOPIC_MARKERS).index("faith") * band

    for text in ("I pray every night", "my faith feels weak"):
        diff = np.array(embedder.embed_text(text)) - np.array(unbiased.embed_text(text))
        assert diff[faith_start:faith_start + band] == pytest.approx([TOPIC_BIAS] * band)


def test_zero_embedding():
    embedder = ZeroEmbedding(dimension=10)

    assert embedder.embed_text("anything") == [0.0] * 10
    assert embedder.semantic is False


def test_chain_first_success_wins():
    chain = FallbackEmbeddingChain([FixedEmbedding(16), DeterministicHashEmbedding(16)])

    result = chain.embed("hello")

    assert result.provider == "fixed"
    assert result.semantic is True
    assert result.vector == [0.5] * 16


def test_chain_falls_back_in_order():
    failing = FailingEmbedding(16)
    chain = FallbackEmbeddingChain([failing, DeterministicHashEmbedding(16), ZeroEmbedding(16)])

    result = chain.embed("hello")

    assert failing.calls == 1
    assert result.provider == "hash"
    assert result.semantic is False
    assert result.vector == DeterministicHashEmbedding(16).embed_text("hello")


def test_chain_empty_input_is_zero_vector():
    failing = FailingEmbedding(16)
    chain = FallbackEmbeddingChain([failing, DeterministicHashEmbedding(16)])

    result = chain.embed("   ")

    assert result.vector == [0.0] * 16
    assert result.provider == "zero"
    assert failing.calls == 0


def test_chain_all_failing_returns_zero_vector():
    chain = FallbackEmbeddingChain([FailingEmbedding(8), FailingEmbedding(8)])

    assert chain.embed_text("hello") == [0.0] * 8


def test_chain_falls_back_on_unexpected_strategy_errors():
    broken = MagicMock(spec=IEmbeddingProvider)
    broken.name = "broken"
    broken.get_dimension.return_value = 16
    broken.embed_text.side_effect = KeyError("embeddings")
    chain = FallbackEmbeddingChain([broken, DeterministicHashEmbedding(16)], timeout=1.0)

    assert chain.embed("hello").provider == "hash"
    assert asyncio.run(chain.aembed("hello")).provider == "hash"


def test_chain_rejects_mixed_dimensions():
    with pytest.raises(ValueError):
        FallbackEmbeddingChain([FixedEmbedding(16), DeterministicHashEmbedding(32)])


def test_chain_async_timeout_falls_back():
    chain = FallbackEmbeddingChain([SlowEmbedding(16, delay=0.5), DeterministicHashEmbedding(16)], timeout=0.05)

    result = asyncio.run(chain.aembed("hello"))

    assert result.provider == "hash"


def test_chain_async_success():
    chain = FallbackEmbeddingChain([FixedEmbedding(16), DeterministicHashEmbedding(16)], timeout=1.0)

    result = asyncio.run(chain.aembed("hello"))

    assert result.provider == "fixed"


def test_ollama_embedding_uses_client():
    embedder = OllamaEmbedding(model_name="mxbai-embed-large", dimension=4)
    embedder._client = MagicMock()
    embedder._client.embed.return_value = {"embeddings": [[0.1, 0.2, 0.3, 0.4]]}

    vector = embedder.embed_text("hello")

    assert vector == pytest.approx([0.1, 0.2, 0.3, 0.4])
    embedder._client.embed.assert_called_once_with(model="mxbai-embed-large", input="hello")


def test_ollama_errors_become_unavailable():
    embedder = OllamaEmbedding(dimension=4)
    embedder._client = MagicMock()
    embedder._client.embed.side_effect = ConnectionError("refused")

    with pytest.raises(EmbeddingUnavailable):
        embedder.embed_text("hello")


def test_ollama_wrong_dimension_is_unavailable():
    embedder = OllamaEmbedding(dimension=1024)
    embedder._client = MagicMock()
    embedder._client.embed.return_value = {"embeddings": [[0.1] * 768]}

    with pytest.raises(EmbeddingUnavailable):
        embedder.embed_text("hello")


def test_sentence_transformer_with_mock_model():
    embedder = SentenceTransformerEmbedding(model_name="all-mpnet-base-v2", dimension=3)
    embedder._model = MagicMock()
    embedder._model.encode.return_value = np.array([0.1, 0.2, 0.3])

    assert embedder.embed_text("hello") == pytest.approx([0.1, 0.2, 0.3])


def test_sentence_transformer_encode_failure_is_unavailable():
    embedder = SentenceTransformerEmbedding(model_name="all-mpnet-base-v2", dimension=3)
    embedder._model = MagicMock()
    embedder._model.encode.side_effect = RuntimeError("CUDA out of memory")

    with pytest.raises(EmbeddingUnavailable):
        embedder.embed_text("hello")


def test_sentence_transformer_wrong_dimension_is_unavailable():
    embedder = SentenceTransformerEmbedding(model_name="all-mpnet-base-v2", dimension=1024)
    embedder._model = MagicMock()
    embedder._model.encode.return_value = np.zeros(768)

    with pytest.raises(EmbeddingUnavailable):
        embedder.embed_text("hello")
