"""
Retrieval configuration.
Environment knobs are read once at import; ``RetrievalConfig.from_env()`` freezes
them into the single config object every component receives.
"""

import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from dotenv import load_dotenv

load_dotenv()

# Embedding configuration
EMBED_PROVIDER = os.getenv("EMBED_PROVIDER", "hash")  # ollama|sentence_transformers|hash
EMBED_DIM = int(os.getenv("EMBED_DIM")) if os.getenv("EMBED_DIM") else None  # None: model default
EMBED_MODEL_NAME = os.getenv("EMBED_MODEL_NAME", "all-mpnet-base-v2")
OLLAMA_HOST = os.getenv("OLLAMA_HOST", "http://127.0.0.1:11434")
OLLAMA_EMBED_MODEL = os.getenv("OLLAMA_EMBED_MODEL", "mxbai-embed-large")
EMBED_TIMEOUT_SEC = float(os.getenv("EMBED_TIMEOUT_SEC", "2.0"))

# Vector index configuration
VECTOR_PROVIDER = os.getenv("VECTOR_PROVIDER", "memory")  # memory|faiss
VECTOR_SEARCH_THRESHOLD = float(os.getenv("VECTOR_SEARCH_THRESHOLD", "0.3"))

# Decision configuration
CONFIDENCE_THRESHOLD = float(os.getenv("CONFIDENCE_THRESHOLD", "80"))
TIER_EXACT = float(os.getenv("TIER_EXACT", "0.9"))
TIER_HIGH = float(os.getenv("TIER_HIGH", "0.7"))
TIER_MEDIUM = float(os.getenv("TIER_MEDIUM", "0.5"))
TIER_LOW = float(os.getenv("TIER_LOW", "0.4"))
REQUEST_DEADLINE_SEC = float(os.getenv("REQUEST_DEADLINE_SEC", "3.0"))
CONTEXT_LIMIT = int(os.getenv("CONTEXT_LIMIT", "5"))
AUTO_DETECT_EMOTION = os.getenv("AUTO_DETECT_EMOTION", "true").lower() == "true"

# Duplicate detection
DUPLICATE_WINDOW = int(os.getenv("DUPLICATE_WINDOW", "10"))
DUPLICATE_CONTAINMENT_RATIO = float(os.getenv("DUPLICATE_CONTAINMENT_RATIO", "0.8"))
DUPLICATE_JACCARD = float(os.getenv("DUPLICATE_JACCARD", "0.85"))
DUPLICATE_MIN_LENGTH = int(os.getenv("DUPLICATE_MIN_LENGTH", "30"))

# Heuristic tables
CONCEPT_TABLE_PATH = os.getenv("CONCEPT_TABLE_PATH")  # optional JSON override

# Emotion groups, "group:a,b;group2:c,d"
EMOTION_GROUPS_DEFAULT = os.getenv(
    "EMOTION_GROUPS",
    "negative:sad,angry,fear,disgust,stressed;"
    "positive:happy,grateful,excited;"
    "confused:confused,uncertain;"
    "neutral:neutral,calm"
)

# Crisis markers. Editing these lists is a policy decision.
DEFAULT_CRISIS_QUERY_MARKERS = (
    "end my life",
    "kill myself",
    "want to die",
    "take my own life",
    "suicide",
    "suicidal",
    "no reason to live",
    "better off dead",
    "hurt myself",
    "self harm",
    "muốn chết",
    "tự tử",
)
DEFAULT_CRISIS_RESPONSE_MARKERS = DEFAULT_CRISIS_QUERY_MARKERS + (
    "crisis",
    "hotline",
    "helpline",
    "emergency",
    "your life is precious",
    "life is precious",
    "reach out",
    "professional help",
    "counselor",
    "despair",
    "hopeless",
)

# Output sizes of the embedding models we know about
MODEL_DIMENSIONS = {
    "all-mpnet-base-v2": 768,
    "all-MiniLM-L6-v2": 384,
    "multi-qa-mpnet-base-dot-v1": 768,
    "paraphrase-multilingual-mpnet-base-v2": 768,
    "mxbai-embed-large": 1024,
    "nomic-embed-text": 768,
    "all-minilm": 384,
}
DEFAULT_EMBED_DIM = 1024

# Version string
VERSION = "1.0.0"


def model_dimension(provider: str, model_name: str, ollama_model: str) -> Optional[int]:
    """Known output dimension of the model a provider will load, if any."""
    if provider == "sentence_transformers":
        return MODEL_DIMENSIONS.get(model_name)
    if provider == "ollama":
        return MODEL_DIMENSIONS.get(ollama_model.split(":", 1)[0])
    return None


def parse_emotion_groups(value: str) -> Dict[str, Tuple[str, ...]]:
    """Parse ``group:a,b;group2:c`` into a mapping of group name to emotions."""
    groups = {}
    for chunk in value.split(";"):
        if ":" not in chunk:
            continue
        name, members = chunk.split(":", 1)
        emotions = tuple(m.strip().lower() for m in members.split(",") if m.strip())
        if name.strip() and emotions:
            groups[name.strip().lower()] = emotions
    return groups


def _parse_markers(value: Optional[str], default: Tuple[str, ...]) -> Tuple[str, ...]:
    if not value:
        return default
    return tuple(m.strip().lower() for m in value.split(",") if m.strip())


@dataclass(frozen=True)
class RetrievalConfig:
    """Immutable retrieval settings shared by every component of one pipeline."""

    embed_dim: Optional[int] = EMBED_DIM
    embed_provider: str = EMBED_PROVIDER
    embed_model_name: str = EMBED_MODEL_NAME
    ollama_host: str = OLLAMA_HOST
    ollama_embed_model: str = OLLAMA_EMBED_MODEL
    embed_timeout_sec: float = EMBED_TIMEOUT_SEC

    vector_provider: str = VECTOR_PROVIDER
    vector_search_threshold: float = VECTOR_SEARCH_THRESHOLD

    confidence_threshold: float = CONFIDENCE_THRESHOLD
    tier_exact: float = TIER_EXACT
    tier_high: float = TIER_HIGH
    tier_medium: float = TIER_MEDIUM
    tier_low: float = TIER_LOW
    request_deadline_sec: float = REQUEST_DEADLINE_SEC
    context_limit: int = CONTEXT_LIMIT
    auto_detect_emotion: bool = AUTO_DETECT_EMOTION

    same_emotion_multiplier: float = 1.2
    related_emotion_multiplier: float = 1.1
    emotion_groups: Dict[str, Tuple[str, ...]] = field(
        default_factory=lambda: parse_emotion_groups(EMOTION_GROUPS_DEFAULT)
    )

    crisis_query_markers: Tuple[str, ...] = DEFAULT_CRISIS_QUERY_MARKERS
    crisis_response_markers: Tuple[str, ...] = DEFAULT_CRISIS_RESPONSE_MARKERS
    safety_trigger_score: float = 0.95
    safety_clamp_score: float = 0.1

    duplicate_window: int = DUPLICATE_WINDOW
    duplicate_containment_ratio: float = DUPLICATE_CONTAINMENT_RATIO
    duplicate_jaccard: float = DUPLICATE_JACCARD
    duplicate_min_length: int = DUPLICATE_MIN_LENGTH

    concept_table_path: Optional[str] = CONCEPT_TABLE_PATH

    def __post_init__(self):
        # Unset dimension follows the selected model
        if self.embed_dim is None:
            known = model_dimension(self.embed_provider, self.embed_model_name, self.ollama_embed_model)
            object.__setattr__(self, "embed_dim", known or DEFAULT_EMBED_DIM)

    @classmethod
    def from_env(cls) -> "RetrievalConfig":
        """Build a config from the current environment (re-read, not import-time)."""
        return cls(
            embed_dim=int(os.getenv("EMBED_DIM")) if os.getenv("EMBED_DIM") else None,
            embed_provider=os.getenv("EMBED_PROVIDER", EMBED_PROVIDER),
            embed_model_name=os.getenv("EMBED_MODEL_NAME", EMBED_MODEL_NAME),
            ollama_host=os.getenv("OLLAMA_HOST", OLLAMA_HOST),
            ollama_embed_model=os.getenv("OLLAMA_EMBED_MODEL", OLLAMA_EMBED_MODEL),
            embed_timeout_sec=float(os.getenv("EMBED_TIMEOUT_SEC", str(EMBED_TIMEOUT_SEC))),
            vector_provider=os.getenv("VECTOR_PROVIDER", VECTOR_PROVIDER),
            vector_search_threshold=float(os.getenv("VECTOR_SEARCH_THRESHOLD", str(VECTOR_SEARCH_THRESHOLD))),
            confidence_threshold=float(os.getenv("CONFIDENCE_THRESHOLD", str(CONFIDENCE_THRESHOLD))),
            tier_exact=float(os.getenv("TIER_EXACT", str(TIER_EXACT))),
            tier_high=float(os.getenv("TIER_HIGH", str(TIER_HIGH))),
            tier_medium=float(os.getenv("TIER_MEDIUM", str(TIER_MEDIUM))),
            tier_low=float(os.getenv("TIER_LOW", str(TIER_LOW))),
            request_deadline_sec=float(os.getenv("REQUEST_DEADLINE_SEC", str(REQUEST_DEADLINE_SEC))),
            context_limit=int(os.getenv("CONTEXT_LIMIT", str(CONTEXT_LIMIT))),
            auto_detect_emotion=os.getenv("AUTO_DETECT_EMOTION", "true").lower() == "true",
            emotion_groups=parse_emotion_groups(os.getenv("EMOTION_GROUPS", EMOTION_GROUPS_DEFAULT)),
            crisis_query_markers=_parse_markers(os.getenv("CRISIS_QUERY_MARKERS"), DEFAULT_CRISIS_QUERY_MARKERS),
            crisis_response_markers=_parse_markers(os.getenv("CRISIS_RESPONSE_MARKERS"), DEFAULT_CRISIS_RESPONSE_MARKERS),
            duplicate_window=int(os.getenv("DUPLICATE_WINDOW", str(DUPLICATE_WINDOW))),
            duplicate_containment_ratio=float(os.getenv("DUPLICATE_CONTAINMENT_RATIO", str(DUPLICATE_CONTAINMENT_RATIO))),
            duplicate_jaccard=float(os.getenv("DUPLICATE_JACCARD", str(DUPLICATE_JACCARD))),
            duplicate_min_length=int(os.getenv("DUPLICATE_MIN_LENGTH", str(DUPLICATE_MIN_LENGTH))),
            concept_table_path=os.getenv("CONCEPT_TABLE_PATH", CONCEPT_TABLE_PATH),
        )


def get_vector_store(config: Optional[RetrievalConfig] = None):
    """Get configured vector store implementation."""
    config = config or RetrievalConfig.from_env()

    if config.vector_provider == "faiss":
        from ..vector.faiss_store import FaissVectorStore
        return FaissVectorStore(dimension=config.embed_dim)

    # Default to memory store for unknown providers
    from ..vector.index import SimpleInMemoryVectorStore
    return SimpleInMemoryVectorStore(dimension=config.embed_dim)


def get_embedding_provider(config: Optional[RetrievalConfig] = None):
    """Get the configured embedding strategy chain.

    The deterministic hash embedding and the zero vector always close the
    chain, so the returned provider never fails outwardly.
    """
    config = config or RetrievalConfig.from_env()

    from ..vector.embeddings import (
        DeterministicHashEmbedding,
        FallbackEmbeddingChain,
        OllamaEmbedding,
        SentenceTransformerEmbedding,
        ZeroEmbedding,
    )

    strategies = []
    if config.embed_provider == "ollama":
        strategies.append(OllamaEmbedding(
            model_name=config.ollama_embed_model,
            host=config.ollama_host,
            dimension=config.embed_dim,
            timeout=config.embed_timeout_sec,
        ))
    elif config.embed_provider == "sentence_transformers":
        strategies.append(SentenceTransformerEmbedding(
            model_name=config.embed_model_name,
            dimension=config.embed_dim,
        ))

    strategies.append(DeterministicHashEmbedding(dimension=config.embed_dim))
    strategies.append(ZeroEmbedding(dimension=config.embed_dim))

    return FallbackEmbeddingChain(strategies, timeout=config.embed_timeout_sec)


def validate_retrieval_config(config: RetrievalConfig) -> List[str]:
    """Validate retrieval configuration and return any issues."""
    issues = []

    if config.embed_dim < 1:
        issues.append("EMBED_DIM must be >= 1")

    if config.embed_provider not in ["ollama", "sentence_transformers", "hash"]:
        issues.append(f"Invalid EMBED_PROVIDER: {config.embed_provider}")

    known = model_dimension(config.embed_provider, config.embed_model_name, config.ollama_embed_model)
    if known is not None and config.embed_dim != known:
        issues.append(f"EMBED_DIM {config.embed_dim} does not match model output dimension {known}")

    if config.vector_provider not in ["memory", "faiss"]:
        issues.append(f"Invalid VECTOR_PROVIDER: {config.vector_provider}")

    if not (0 <= config.confidence_threshold <= 100):
        issues.append("CONFIDENCE_THRESHOLD must be within [0, 100]")

    if not (0 < config.tier_low <= config.tier_medium <= config.tier_high <= config.tier_exact < 1):
        issues.append("Tier boundaries must satisfy 0 < low <= medium <= high <= exact < 1")

    if config.embed_timeout_sec <= 0 or config.request_deadline_sec <= 0:
        issues.append("EMBED_TIMEOUT_SEC and REQUEST_DEADLINE_SEC must be > 0")

    if config.duplicate_window < 1:
        issues.append("DUPLICATE_WINDOW must be >= 1")

    if not (0 < config.duplicate_containment_ratio <= 1) or not (0 < config.duplicate_jaccard <= 1):
        issues.append("Duplicate thresholds must be within (0, 1]")

    return issues
