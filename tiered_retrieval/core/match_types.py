"""
Match candidates and their per-source metadata.

Metadata is a closed set of variants; each one carries only the fields that
make sense for its source, and ``MatchCandidate.match_type`` is derived from
the variant.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Union

from .confidence import ConfidenceTier


@dataclass(frozen=True)
class ExactQAMatch:
    """Query equals the entry question after normalization."""
    question: str
    answer: str
    emotion: Optional[str] = None
    category: Optional[str] = None


@dataclass(frozen=True)
class SemanticQAMatch:
    """Entry scored by embedding cosine or the heuristic scorer."""
    question: str
    answer: str
    method: str  # "embedding" | "heuristic" | "exact" (exact but safety-clamped)
    raw_similarity: float
    emotion: Optional[str] = None
    category: Optional[str] = None
    emotion_multiplier: float = 1.0
    safety_clamped: bool = False


@dataclass(frozen=True)
class EvidenceChunkMatch:
    """Document chunk found by vector search."""
    document_id: str
    chunk_index: int
    text: str
    document_title: Optional[str] = None


@dataclass(frozen=True)
class DocumentChunkMatch:
    """Document chunk found by keyword overlap."""
    document_id: str
    chunk_index: int
    text: str
    matched_words: int = 0
    document_title: Optional[str] = None


MatchMetadata = Union[ExactQAMatch, SemanticQAMatch, EvidenceChunkMatch, DocumentChunkMatch]

MATCH_TYPES: Dict[type, str] = {
    ExactQAMatch: "exact_qa",
    SemanticQAMatch: "semantic_qa",
    EvidenceChunkMatch: "evidence_chunk",
    DocumentChunkMatch: "document_chunk",
}


@dataclass
class MatchCandidate:
    source_id: str
    score: float
    confidence_tier: ConfidenceTier
    metadata: MatchMetadata
    percentage: float = 0.0

    def __post_init__(self):
        self.score = min(max(float(self.score), 0.0), 1.0)

    @property
    def match_type(self) -> str:
        return MATCH_TYPES[type(self.metadata)]

    @property
    def text(self) -> str:
        """Content a caller would show or pass on as context."""
        if isinstance(self.metadata, (ExactQAMatch, SemanticQAMatch)):
            return self.metadata.answer
        return self.metadata.text
