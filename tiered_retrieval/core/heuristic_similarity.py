"""
Multi-factor heuristic text similarity.

Used when vectors are unavailable or carry no meaning. The score is a weighted
average of four sub-scores, each interpreted from the concept tables:

    core concepts     0.4
    meaning groups    0.3
    contextual words  0.2
    structure         0.1
"""

import re
from dataclasses import dataclass
from typing import Dict, Optional

from .concept_tables import ConceptGroup, ConceptTables, DEFAULT_TABLES
from .text import normalize_for_semantic_match, words

CORE_WEIGHT = 0.4
PHRASE_WEIGHT = 0.3
CONTEXT_WEIGHT = 0.2
STRUCTURE_WEIGHT = 0.1

RELATED_CONCEPT_CREDIT = 0.7

EXACT_WORD = 1.0
SYNONYM_WORD = 0.8
PARTIAL_WORD = 0.5

_NEGATION = re.compile(r"\b(not|no|never|cannot|can't|don't|doesn't|won't|wouldn't)\b")
_EMOTION = re.compile(r"\b(feel|feeling|think|believe|seem)\b")
_QUANTIFIER = re.compile(r"\b(always|never|all|every|nothing|something|anything)\b")
_COMPARISON = re.compile(r"\b(than|as|like|compare|better|worse)\b")


@dataclass
class HeuristicBreakdown:
    core: float
    phrase: float
    context: float
    structure: float
    total: float


class HeuristicTextSimilarity:
    """Pure scorer over a fixed set of concept tables."""

    def __init__(self, tables: Optional[ConceptTables] = None):
        self.tables = tables or DEFAULT_TABLES

    def score(self, a: str, b: str) -> float:
        """Similarity of two texts in [0, 1]."""
        return self.breakdown(a, b).total

    def breakdown(self, a: str, b: str) -> HeuristicBreakdown:
        """All four sub-scores and the combined total."""
        if a == b:
            return HeuristicBreakdown(1.0, 1.0, 1.0, 1.0, 1.0)

        norm_a = normalize_for_semantic_match(a)
        norm_b = normalize_for_semantic_match(b)
        if norm_a == norm_b:
            return HeuristicBreakdown(1.0, 1.0, 1.0, 1.0, 1.0)

        core = self.core_score(norm_a, norm_b)
        phrase = self.phrase_score(norm_a, norm_b)
        context = self.context_score(norm_a, norm_b)
        structure = self.structure_score(a, b, norm_a, norm_b)

        total = (
            core * CORE_WEIGHT
            + phrase * PHRASE_WEIGHT
            + context * CONTEXT_WEIGHT
            + structure * STRUCTURE_WEIGHT
        ) / (CORE_WEIGHT + PHRASE_WEIGHT + CONTEXT_WEIGHT + STRUCTURE_WEIGHT)

        return HeuristicBreakdown(core, phrase, context, structure, min(max(total, 0.0), 1.0))

    @staticmethod
    def _both_hit(groups: Dict[str, ConceptGroup], name: str, a: str, b: str) -> bool:
        group = groups.get(name)
        return group is not None and group.hit(a) and group.hit(b)

    def core_score(self, a: str, b: str) -> float:
        """Concept overlap; a concept hit on one side earns credit through related concepts."""
        concepts = self.tables.semantic_concepts
        match_score = 0.0
        concepts_found = 0.0

        for group in concepts.values():
            in_a = group.hit(a)
            in_b = group.hit(b)
            if in_a and in_b:
                match_score += 1.0
                concepts_found += 1.0
            elif in_a or in_b:
                related = sum(
                    weight for name, weight in group.related.items()
                    if self._both_hit(concepts, name, a, b)
                )
                if related > 0:
                    match_score += related * RELATED_CONCEPT_CREDIT
                    concepts_found += RELATED_CONCEPT_CREDIT

        if concepts_found <= 0:
            return 0.0
        return min(match_score / max(concepts_found, 1.0), 1.0)

    def phrase_score(self, a: str, b: str) -> float:
        """Average over meaning groups; one-sided hits take the best related-group weight."""
        groups = self.tables.meaning_groups
        if not groups:
            return 0.0

        total = 0.0
        for group in groups.values():
            in_a = group.hit(a)
            in_b = group.hit(b)
            if in_a and in_b:
                total += 1.0
            elif in_a or in_b:
                total += max(
                    (weight for name, weight in group.related.items() if self._both_hit(groups, name, a, b)),
                    default=0.0,
                )
        return total / len(groups)

    def _synonyms(self, w1: str, w2: str) -> bool:
        for key, synonyms in self.tables.synonym_groups.items():
            if (w1 == key or w1 in synonyms) and (w2 == key or w2 in synonyms):
                return True
        return False

    def context_score(self, a: str, b: str) -> float:
        """Pairwise word credit over words longer than two characters."""
        words_a = words(a, min_length=2)
        words_b = words(b, min_length=2)
        if not words_a or not words_b:
            return 0.0

        matches = 0.0
        for w1 in words_a:
            for w2 in words_b:
                if w1 == w2:
                    matches += EXACT_WORD
                elif self._synonyms(w1, w2):
                    matches += SYNONYM_WORD
                elif w1 in w2 or w2 in w1:
                    matches += PARTIAL_WORD
        return matches / (len(words_a) * len(words_b))

    @staticmethod
    def _features(raw: str, norm: str):
        return (
            norm.startswith("i "),
            "?" in raw,
            bool(_NEGATION.search(norm)),
            bool(_EMOTION.search(norm)),
            bool(_QUANTIFIER.search(norm)),
            bool(_COMPARISON.search(norm)),
        )

    def structure_score(self, raw_a: str, raw_b: str, a: str, b: str) -> float:
        """Six boolean features plus word-count similarity, averaged."""
        features_a = self._features(raw_a, a)
        features_b = self._features(raw_b, b)
        similar = sum(1.0 for fa, fb in zip(features_a, features_b) if fa == fb)

        count_a = len(a.split())
        count_b = len(b.split())
        longest = max(count_a, count_b)
        similar += 1.0 - abs(count_a - count_b) / longest if longest else 1.0

        return similar / (len(features_a) + 1)
