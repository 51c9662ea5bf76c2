"""
Response-mode decision.
"""

import pytest

from tiered_retrieval.core.confidence import ConfidenceClassifier
from tiered_retrieval.core.config import RetrievalConfig
from tiered_retrieval.core.corpus import QACorpus, QAEntry
from tiered_retrieval.core.decision import (
    DocumentMode,
    GenerativeMode,
    ResponseModeDecider,
    REASON_BELOW_THRESHOLD,
    REASON_DUPLICATE,
    REASON_NO_CANDIDATE,
)
from tiered_retrieval.core.duplicates import ConversationTurn
from tiered_retrieval.core.match_types import DocumentChunkMatch, MatchCandidate, SemanticQAMatch


@pytest.fixture
def classifier():
    return ConfidenceClassifier()


@pytest.fixture
def decider(classifier):
    return ResponseModeDecider(RetrievalConfig(), classifier=classifier)


@pytest.fixture
def corpus():
    return QACorpus([
        QAEntry(id="qa_1", question="How can I control my anger?",
                answer="Seek refuge and pause before reacting.", emotion="angry"),
        QAEntry(id="qa_2", question="What is patience?", answer="Patience is steadfastness."),
    ])


def make_candidate(classifier, score):
    classification = classifier.classify(score)
    candidate = MatchCandidate(
        source_id="qa_1",
        score=score,
        confidence_tier=classification.tier,
        metadata=SemanticQAMatch(question="q", answer="a", method="heuristic", raw_similarity=score),
        percentage=classification.percentage,
    )
    return candidate, classification


def test_meets_threshold_gives_document_mode(decider, classifier):
    candidate, classification = make_candidate(classifier, 0.7)

    decision = decider.evaluate(candidate, classification, is_duplicate=False)

    assert isinstance(decision, DocumentMode)
    assert decision.candidate is candidate
    assert decision.answer == "a"
    assert decision.mode == "document"


def test_79_percent_gives_generative_mode(decider, classifier):
    candidate, classification = make_candidate(classifier, 0.69)
    assert classification.percentage == pytest.approx(79.0)

    decision = decider.evaluate(candidate, classification, is_duplicate=False)

    assert isinstance(decision, GenerativeMode)
    assert decision.reason == REASON_BELOW_THRESHOLD
    assert decision.duplicate_forced is False
    assert decision.context == [candidate]


def test_duplicate_at_95_percent_gives_generative_mode(decider, classifier):
    candidate, classification = make_candidate(classifier, 0.9)
    assert classification.percentage == pytest.approx(95.0)

    decision = decider.evaluate(candidate, classification, is_duplicate=True)

    assert isinstance(decision, GenerativeMode)
    assert decision.duplicate_forced is True
    assert decision.reason == REASON_DUPLICATE
    assert decision.context == [candidate]


def test_duplicate_below_threshold_is_not_flagged(decider, classifier):
    candidate, classification = make_candidate(classifier, 0.3)

    decision = decider.evaluate(candidate, classification, is_duplicate=True)

    assert decision.reason == REASON_BELOW_THRESHOLD
    assert decision.duplicate_forced is False


def test_no_candidate_gives_generative_mode(decider):
    decision = decider.evaluate(None, None, is_duplicate=False)

    assert isinstance(decision, GenerativeMode)
    assert decision.reason == REASON_NO_CANDIDATE
    assert decision.context == []
    assert decision.mode == "generative"


def test_decide_exact_match(decider, corpus):
    decision = decider.decide("How can I control my anger", corpus, emotion="angry")

    assert isinstance(decision, DocumentMode)
    assert decision.candidate.source_id == "qa_1"
    assert decision.classification.percentage == 100.0


def test_decide_repeat_question_goes_generative(decider, corpus):
    history = [
        ConversationTurn(role="user", text="How can I control my anger?"),
        ConversationTurn(role="assistant", text="Seek refuge and pause before reacting."),
    ]

    decision = decider.decide("how can i control my anger", corpus, history=history)

    assert isinstance(decision, GenerativeMode)
    assert decision.duplicate_forced is True
    assert decision.context[0].source_id == "qa_1"


def test_decide_accepts_dict_history(decider, corpus):
    history = [{"role": "user", "text": "what is patience"}]

    decision = decider.decide("What is patience?", corpus, history=history)

    assert decision.duplicate_forced is True


def test_decide_empty_corpus(decider):
    decision = decider.decide("anything at all", QACorpus())

    assert isinstance(decision, GenerativeMode)
    assert decision.reason == REASON_NO_CANDIDATE


def test_decide_generative_context_carries_all_candidates(decider, corpus):
    evidence = MatchCandidate(
        source_id="doc_chunk_0",
        score=0.4,
        confidence_tier=decider.classifier.classify(0.4).tier,
        metadata=DocumentChunkMatch(document_id="doc", chunk_index=0, text="Some evidence."),
    )

    decision = decider.decide("Where is the market?", corpus, extra_context=[evidence])

    assert isinstance(decision, GenerativeMode)
    assert len(decision.context) == 3
    assert {c.source_id for c in decision.context[:2]} == {"qa_1", "qa_2"}
    assert decision.context[-1].text == "Some evidence."


def test_context_limit_bounds_corpus_candidates(corpus):
    decider = ResponseModeDecider(RetrievalConfig(context_limit=1))

    decision = decider.decide("Where is the market?", corpus)

    assert len(decision.context) == 1
