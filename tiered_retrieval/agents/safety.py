"""
Crisis safety guard for Q&A matching.

A query containing a crisis marker must never be answered verbatim by an
unrelated corpus entry just because the texts happen to score high. The guard
runs as the last step of per-entry scoring:

1. Detect crisis markers in the query
2. Check whether the candidate question or answer addresses the crisis
3. Clamp the score when a high-scoring candidate does not
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..core.config import DEFAULT_CRISIS_QUERY_MARKERS, DEFAULT_CRISIS_RESPONSE_MARKERS
from ..core.text import normalize_text
from util.logging import logger


@dataclass
class SafetyValidation:
    """Result of a safety check on one scored candidate."""
    clamped: bool
    score: float
    original_score: float
    reason: Optional[str]
    flagged_terms: List[str]


def find_markers(text: str, markers: Iterable[str]) -> List[str]:
    """Markers that occur in ``text`` as whole words after normalization."""
    padded = f" {normalize_text(text)} "
    found = []
    for marker in markers:
        needle = normalize_text(marker)
        if needle and f" {needle} " in padded:
            found.append(marker)
    return found


class CrisisSafetyGuard:
    """
    Clamps high scores for crisis queries matched to entries that do not
    address the crisis.

    Marker lists are configuration; extending them is a policy decision.
    """

    def __init__(self,
                 query_markers: Tuple[str, ...] = DEFAULT_CRISIS_QUERY_MARKERS,
                 response_markers: Tuple[str, ...] = DEFAULT_CRISIS_RESPONSE_MARKERS,
                 trigger_score: float = 0.95,
                 clamp_score: float = 0.1):
        self.query_markers = tuple(query_markers)
        self.response_markers = tuple(response_markers)
        self.trigger_score = trigger_score
        self.clamp_score = clamp_score
        self.clamps_applied = 0

    @classmethod
    def from_config(cls, config) -> "CrisisSafetyGuard":
        return cls(
            query_markers=config.crisis_query_markers,
            response_markers=config.crisis_response_markers,
            trigger_score=config.safety_trigger_score,
            clamp_score=config.safety_clamp_score,
        )

    def crisis_markers(self, query: str) -> List[str]:
        """Crisis markers present in the query."""
        return find_markers(query, self.query_markers)

    def addresses_crisis(self, question: str, answer: str) -> bool:
        """True if the candidate's question or answer carries a crisis-response marker."""
        return bool(find_markers(f"{question} {answer}", self.response_markers))

    def check(self, query: str, score: float, question: str, answer: str,
              source_id: str = "", query_markers: Optional[List[str]] = None) -> SafetyValidation:
        """
        Apply the crisis clamp to one candidate score.

        Args:
            query: User query
            score: Candidate score after emotion adjustment
            question: Candidate question text
            answer: Candidate answer text
            source_id: Candidate ID, for logging
            query_markers: Precomputed ``crisis_markers(query)`` for bulk scans

        Returns:
            Safety validation with the (possibly clamped) score
        """
        markers = query_markers if query_markers is not None else self.crisis_markers(query)

        if not markers or score <= self.trigger_score:
            return SafetyValidation(False, score, score, None, markers)

        if self.addresses_crisis(question, answer):
            return SafetyValidation(False, score, score, "Candidate addresses crisis", markers)

        clamped = min(score, self.clamp_score)
        self.clamps_applied += 1
        logger.log_safety_override(source_id, score, clamped)
        return SafetyValidation(
            clamped=True,
            score=clamped,
            original_score=score,
            reason=f"Crisis query matched unrelated content: {', '.join(markers[:3])}",
            flagged_terms=markers,
        )

    def get_safety_stats(self) -> Dict[str, Any]:
        """Get statistics about guard activity."""
        return {
            "clamps_applied": self.clamps_applied,
            "query_markers": len(self.query_markers),
            "response_markers": len(self.response_markers),
        }
