"""
Q&A matching: score every corpus entry against a query and keep the best.

Per entry, in order:

1. normalized question equals normalized query -> 1.0
2. query vector and entry embedding both present -> cosine similarity
3. otherwise -> heuristic text similarity
4. emotion multiplier, capped at 1.0
5. crisis safety clamp

Thresholding is left to the caller: a non-empty corpus always yields a
candidate, however low its score.
"""

from typing import Iterable, List, Optional, Sequence, Union

from .concept_tables import load_concept_tables
from .config import RetrievalConfig
from .confidence import ConfidenceClassifier
from .corpus import QACorpus, QAEntry
from .emotion import emotion_multiplier
from .errors import CorpusEntryMalformed, DimensionMismatch
from .heuristic_similarity import HeuristicTextSimilarity
from .match_types import ExactQAMatch, MatchCandidate, SemanticQAMatch
from .text import normalize_text
from ..agents.safety import CrisisSafetyGuard
from ..vector.similarity import cosine_similarity
from util.logging import logger

CorpusLike = Union[QACorpus, Iterable[QAEntry]]


class QAMatcher:
    """Scores Q&A entries against a query."""

    def __init__(self, config: Optional[RetrievalConfig] = None,
                 scorer: Optional[HeuristicTextSimilarity] = None,
                 classifier: Optional[ConfidenceClassifier] = None,
                 safety: Optional[CrisisSafetyGuard] = None):
        self.config = config or RetrievalConfig()
        self.scorer = scorer or HeuristicTextSimilarity(load_concept_tables(self.config.concept_table_path))
        self.classifier = classifier or ConfidenceClassifier.from_config(self.config)
        self.safety = safety or CrisisSafetyGuard.from_config(self.config)

    def find_best_match(self, query: str, corpus: CorpusLike, emotion: Optional[str] = None,
                        query_vector: Optional[Sequence[float]] = None) -> Optional[MatchCandidate]:
        """Highest-scoring entry, first-seen on ties; None only for an empty corpus."""
        candidates = self._scan(query, corpus, emotion, query_vector)

        best = None
        for candidate in candidates:
            if best is None or candidate.score > best.score:
                best = candidate

        if best is not None:
            logger.log_match_result(query, best.source_id, best.score, best.match_type, len(candidates))
        else:
            logger.log_match_result(query, None, 0.0, "none", 0)
        return best

    def find_top_matches(self, query: str, corpus: CorpusLike, emotion: Optional[str] = None,
                         limit: int = 5, query_vector: Optional[Sequence[float]] = None) -> List[MatchCandidate]:
        """Up to ``limit`` candidates, best first, ties in corpus order."""
        candidates = self._scan(query, corpus, emotion, query_vector)
        total = len(candidates)
        candidates.sort(key=lambda c: c.score, reverse=True)

        if candidates:
            best = candidates[0]
            logger.log_match_result(query, best.source_id, best.score, best.match_type, total)
        return candidates[:max(limit, 0)]

    def _scan(self, query: str, corpus: CorpusLike, emotion: Optional[str],
              query_vector: Optional[Sequence[float]]) -> List[MatchCandidate]:
        entries = corpus.entries() if isinstance(corpus, QACorpus) else list(corpus)
        normalized_query = normalize_text(query)
        crisis_markers = self.safety.crisis_markers(query)

        candidates = []
        for entry in entries:
            try:
                entry.validate()
            except CorpusEntryMalformed as e:
                logger.log_corpus_warning(e.entry_id, e.reason)
                continue
            candidates.append(self.score_entry(query, entry, emotion, query_vector,
                                               normalized_query=normalized_query,
                                               crisis_markers=crisis_markers))
        return candidates

    def score_entry(self, query: str, entry: QAEntry, emotion: Optional[str] = None,
                    query_vector: Optional[Sequence[float]] = None,
                    normalized_query: Optional[str] = None,
                    crisis_markers: Optional[List[str]] = None) -> MatchCandidate:
        """Score one entry through the full per-entry pipeline."""
        if normalized_query is None:
            normalized_query = normalize_text(query)

        exact = bool(normalized_query) and normalized_query == normalize_text(entry.question)
        method = "exact"
        if exact:
            raw = 1.0
        else:
            raw = None
            if query_vector is not None and entry.embedding is not None:
                try:
                    raw = cosine_similarity(query_vector, entry.embedding)
                    method = "embedding"
                except DimensionMismatch as e:
                    logger.log_operation("qa.embedding_score", "fallback", {
                        "entry_id": entry.id, "error": str(e)
                    })
            if raw is None:
                raw = self.scorer.score(query, entry.question)
                method = "heuristic"

        multiplier = emotion_multiplier(
            entry.emotion, emotion,
            groups=self.config.emotion_groups,
            same=self.config.same_emotion_multiplier,
            related=self.config.related_emotion_multiplier,
        )
        score = min(raw * multiplier, 1.0)

        validation = self.safety.check(query, score, entry.question, entry.answer,
                                       source_id=entry.id, query_markers=crisis_markers)
        score = validation.score

        if exact and not validation.clamped:
            metadata = ExactQAMatch(
                question=entry.question,
                answer=entry.answer,
                emotion=entry.emotion,
                category=entry.category,
            )
        else:
            metadata = SemanticQAMatch(
                question=entry.question,
                answer=entry.answer,
                method=method,
                raw_similarity=raw,
                emotion=entry.emotion,
                category=entry.category,
                emotion_multiplier=multiplier,
                safety_clamped=validation.clamped,
            )

        classification = self.classifier.classify(score)
        return MatchCandidate(
            source_id=entry.id,
            score=score,
            confidence_tier=classification.tier,
            metadata=metadata,
            percentage=classification.percentage,
        )
