"""
Retrieval configuration and the component factories.
"""

import numpy as np
import pytest
from unittest.mock import MagicMock

from tiered_retrieval.core.config import (
    DEFAULT_CRISIS_QUERY_MARKERS,
    RetrievalConfig,
    get_embedding_provider,
    get_vector_store,
    parse_emotion_groups,
    validate_retrieval_config,
)
from tiered_retrieval.vector import SimpleInMemoryVectorStore
from tiered_retrieval.vector.embeddings import OllamaEmbedding, SentenceTransformerEmbedding


class TestRetrievalConfig:
    """Config values and environment overrides."""

    def test_defaults_are_valid(self):
        config = RetrievalConfig(embed_provider="hash", vector_provider="memory")

        assert validate_retrieval_config(config) == []
        assert config.safety_trigger_score == 0.95
        assert config.safety_clamp_score == 0.1
        assert config.same_emotion_multiplier == 1.2
        assert config.related_emotion_multiplier == 1.1

    def test_from_env_reads_current_environment(self, monkeypatch):
        monkeypatch.setenv("CONFIDENCE_THRESHOLD", "90")
        monkeypatch.setenv("EMBED_DIM", "8")
        monkeypatch.setenv("AUTO_DETECT_EMOTION", "false")
        monkeypatch.setenv("EMOTION_GROUPS", "calm:calm, peaceful")
        monkeypatch.setenv("CRISIS_QUERY_MARKERS", "Give Up, , end it")

        config = RetrievalConfig.from_env()

        assert config.confidence_threshold == 90.0
        assert config.embed_dim == 8
        assert config.auto_detect_emotion is False
        assert config.emotion_groups == {"calm": ("calm", "peaceful")}
        assert config.crisis_query_markers == ("give up", "end it")

    def test_from_env_default_markers(self, monkeypatch):
        monkeypatch.delenv("CRISIS_QUERY_MARKERS", raising=False)

        assert RetrievalConfig.from_env().crisis_query_markers == DEFAULT_CRISIS_QUERY_MARKERS

    def test_config_is_frozen(self):
        config = RetrievalConfig()

        with pytest.raises(AttributeError):
            config.confidence_threshold = 10


def test_parse_emotion_groups_ignores_junk():
    groups = parse_emotion_groups("negative:Sad,ANGRY;garbage;empty:;:orphan")

    assert groups == {"negative": ("sad", "angry")}


@pytest.mark.parametrize("overrides,fragment", [
    (dict(embed_dim=0), "EMBED_DIM"),
    (dict(embed_provider="openai"), "EMBED_PROVIDER"),
    (dict(vector_provider="pinecone"), "VECTOR_PROVIDER"),
    (dict(confidence_threshold=120), "CONFIDENCE_THRESHOLD"),
    (dict(tier_high=0.95), "Tier boundaries"),
    (dict(request_deadline_sec=0), "REQUEST_DEADLINE_SEC"),
    (dict(duplicate_window=0), "DUPLICATE_WINDOW"),
    (dict(duplicate_jaccard=1.5), "Duplicate thresholds"),
])
def test_validate_retrieval_config_reports_issues(overrides, fragment):
    config = RetrievalConfig(embed_provider="hash", vector_provider="memory", **overrides)

    issues = validate_retrieval_config(config)

    assert len(issues) == 1
    assert fragment in issues[0]


class TestFactories:
    """Vector store and embedding chain selection."""

    def test_memory_store(self):
        store = get_vector_store(RetrievalConfig(vector_provider="memory", embed_dim=32))

        assert isinstance(store, SimpleInMemoryVectorStore)
        assert store.dimension == 32

    def test_unknown_store_falls_back_to_memory(self):
        store = get_vector_store(RetrievalConfig(vector_provider="unknown", embed_dim=32))

        assert isinstance(store, SimpleInMemoryVectorStore)

    def test_faiss_store(self):
        pytest.importorskip("faiss")
        from tiered_retrieval.vector import FaissVectorStore

        store = get_vector_store(RetrievalConfig(vector_provider="faiss", embed_dim=32))

        assert isinstance(store, FaissVectorStore)

    def test_hash_chain(self):
        chain = get_embedding_provider(RetrievalConfig(embed_provider="hash", embed_dim=64))

        assert [s.name for s in chain.strategies] == ["hash", "zero"]
        assert chain.get_dimension() == 64
        assert chain.semantic is False

    def test_ollama_chain(self):
        config = RetrievalConfig(embed_provider="ollama", embed_dim=64,
                                 ollama_host="http://ollama:11434", embed_timeout_sec=1.5)

        chain = get_embedding_provider(config)

        primary = chain.strategies[0]
        assert isinstance(primary, OllamaEmbedding)
        assert primary.host == "http://ollama:11434"
        assert [s.name for s in chain.strategies[1:]] == ["hash", "zero"]
        assert chain.timeout == 1.5
        assert chain.semantic is True

    def test_sentence_transformers_chain(self):
        chain = get_embedding_provider(RetrievalConfig(embed_provider="sentence_transformers", embed_dim=64))

        assert isinstance(chain.strategies[0], SentenceTransformerEmbedding)

    def test_default_sentence_transformers_chain_produces_semantic_vectors(self):
        config = RetrievalConfig(embed_provider="sentence_transformers", embed_model_name="all-mpnet-base-v2",
                                 embed_dim=None, vector_provider="memory")
        chain = get_embedding_provider(config)
        model = MagicMock()
        model.encode.return_value = np.ones(768)
        chain.strategies[0]._model = model

        result = chain.embed("How do I pray?")

        assert config.embed_dim == 768
        assert result.provider == "sentence_transformers"
        assert len(result.vector) == 768
        assert validate_retrieval_config(config) == []


@pytest.mark.parametrize("overrides", [
    dict(embed_provider="sentence_transformers", embed_model_name="all-mpnet-base-v2", embed_dim=1024),
    dict(embed_provider="ollama", ollama_embed_model="nomic-embed-text:latest", embed_dim=1024),
])
def test_validate_flags_model_dimension_mismatch(overrides):
    issues = validate_retrieval_config(RetrievalConfig(vector_provider="memory", **overrides))

    assert len(issues) == 1
    assert "does not match model output dimension" in issues[0]
