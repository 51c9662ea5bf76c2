"""
Response-mode decision: verbatim document answer or generative hand-off.

Document mode requires all three of:

- a candidate exists
- its classified percentage meets the threshold (raw scores are never compared)
- the query is not a repeat of a recent user turn

Anything else produces generative mode carrying every candidate found.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Union

from .config import RetrievalConfig
from .confidence import Classification, ConfidenceClassifier
from .duplicates import DuplicateDetector
from .match_types import MatchCandidate
from .qa_matcher import CorpusLike, QAMatcher
from util.logging import logger

REASON_NO_CANDIDATE = "no_candidate"
REASON_BELOW_THRESHOLD = "below_threshold"
REASON_DUPLICATE = "duplicate"
REASON_DEADLINE = "deadline"
REASON_ERROR = "error"


@dataclass
class DocumentMode:
    """Answer with the matched content verbatim."""
    candidate: MatchCandidate
    classification: Classification
    mode: str = "document"

    @property
    def answer(self) -> str:
        return self.candidate.text


@dataclass
class GenerativeMode:
    """Delegate to a generative model with retrieved context."""
    context: List[MatchCandidate] = field(default_factory=list)
    duplicate_forced: bool = False
    classification: Optional[Classification] = None
    reason: str = REASON_NO_CANDIDATE
    mode: str = "generative"


Decision = Union[DocumentMode, GenerativeMode]


class ResponseModeDecider:
    def __init__(self, config: Optional[RetrievalConfig] = None,
                 matcher: Optional[QAMatcher] = None,
                 classifier: Optional[ConfidenceClassifier] = None,
                 duplicates: Optional[DuplicateDetector] = None):
        self.config = config or RetrievalConfig()
        self.classifier = classifier or ConfidenceClassifier.from_config(self.config)
        self.matcher = matcher or QAMatcher(self.config, classifier=self.classifier)
        self.duplicates = duplicates or DuplicateDetector.from_config(self.config)

    def evaluate(self, candidate: Optional[MatchCandidate], classification: Optional[Classification],
                 is_duplicate: bool, context: Optional[Sequence[MatchCandidate]] = None) -> Decision:
        """Apply the decision rule to already-computed inputs."""
        context = list(context) if context is not None else ([candidate] if candidate else [])

        if candidate is None or classification is None:
            decision = GenerativeMode(context=context, duplicate_forced=False,
                                      classification=classification, reason=REASON_NO_CANDIDATE)
        elif not self.classifier.meets_threshold(classification):
            decision = GenerativeMode(context=context, duplicate_forced=False,
                                      classification=classification, reason=REASON_BELOW_THRESHOLD)
        elif is_duplicate:
            # Would have been a document answer; the repeat forces variety
            decision = GenerativeMode(context=context, duplicate_forced=True,
                                      classification=classification, reason=REASON_DUPLICATE)
        else:
            decision = DocumentMode(candidate=candidate, classification=classification)

        logger.log_decision(
            decision.mode,
            classification.percentage if classification else None,
            is_duplicate,
            len(context),
            getattr(decision, "reason", ""),
        )
        return decision

    def decide(self, query: str, corpus: CorpusLike, history=None, emotion: Optional[str] = None,
               query_vector: Optional[Sequence[float]] = None,
               extra_context: Optional[Sequence[MatchCandidate]] = None) -> Decision:
        """Match, classify, check duplicates and decide.

        Args:
            query: User query
            corpus: Q&A corpus
            history: Conversation turns (``ConversationTurn`` or dicts)
            emotion: Detected query emotion
            query_vector: Semantic query embedding, if one is available
            extra_context: Evidence chunks to pass along in generative mode

        Returns:
            ``DocumentMode`` or ``GenerativeMode``
        """
        top = self.matcher.find_top_matches(query, corpus, emotion,
                                            limit=max(self.config.context_limit, 1),
                                            query_vector=query_vector)
        candidate = top[0] if top else None
        classification = self.classifier.classify(candidate.score) if candidate else None
        is_duplicate = self.duplicates.is_duplicate_in_history(query, history)

        context = top + list(extra_context or [])
        return self.evaluate(candidate, classification, is_duplicate, context)
