"""
Async retrieval pipeline.

Wires the embedding chain, document evidence search, Q&A matching and the
response-mode decision together under one request deadline. Any failure or
deadline expiry degrades to generative mode with the context collected so far;
retrieval problems never surface to the caller as errors.
"""

import asyncio
from typing import Any, Dict, List, Optional

from .chunking import DocumentCollection
from .config import RetrievalConfig, get_embedding_provider, get_vector_store
from .confidence import ConfidenceClassifier
from .corpus import QACorpus
from .decision import Decision, GenerativeMode, ResponseModeDecider, REASON_DEADLINE, REASON_ERROR
from .emotion import EmotionDetector
from .match_types import MatchCandidate
from util.logging import logger, sanitize_payload


class RetrievalPipeline:
    """
    Entry point for one chatbot backend: owns the corpus, the document
    collection and the components that score against them.
    """

    def __init__(self, config: Optional[RetrievalConfig] = None,
                 corpus: Optional[QACorpus] = None,
                 documents: Optional[DocumentCollection] = None,
                 embedder=None,
                 store=None,
                 decider: Optional[ResponseModeDecider] = None,
                 emotion_detector: Optional[EmotionDetector] = None):
        self.config = config or RetrievalConfig.from_env()
        self.embedder = embedder or get_embedding_provider(self.config)
        self.store = store or get_vector_store(self.config)
        self.classifier = ConfidenceClassifier.from_config(self.config)
        self.corpus = corpus if corpus is not None else QACorpus()
        self.documents = documents or DocumentCollection(self.embedder, self.store, classifier=self.classifier)
        self.decider = decider or ResponseModeDecider(self.config, classifier=self.classifier)
        self.emotion_detector = emotion_detector or EmotionDetector()

    async def process(self, query: str, history=None, emotion: Optional[str] = None) -> Decision:
        """
        Decide the response mode for a query.

        Args:
            query: User query
            history: Conversation turns for duplicate detection
            emotion: Detected emotion; auto-detected when omitted and enabled

        Returns:
            ``DocumentMode`` or ``GenerativeMode``; never raises for retrieval failures
        """
        partial: List[MatchCandidate] = []
        try:
            return await asyncio.wait_for(
                self._run(query, history, emotion, partial),
                timeout=self.config.request_deadline_sec,
            )
        except asyncio.TimeoutError:
            logger.log_operation("pipeline.deadline", "fallback", {
                "query": sanitize_payload(query),
                "deadline_sec": self.config.request_deadline_sec,
                "context_size": len(partial),
            })
            return GenerativeMode(context=list(partial), reason=REASON_DEADLINE)
        except Exception as e:
            logger.error(f"Retrieval pipeline failed: {str(e)}")
            return GenerativeMode(context=list(partial), reason=REASON_ERROR)

    async def _run(self, query: str, history, emotion: Optional[str],
                   partial: List[MatchCandidate]) -> Decision:
        if emotion is None and self.config.auto_detect_emotion:
            emotion = self.emotion_detector.detect(query)

        embedding = await self.embedder.aembed(query)
        query_vector = embedding.vector if embedding.semantic else None

        evidence = await asyncio.to_thread(
            self.documents.search,
            query,
            self.config.context_limit,
            self.config.vector_search_threshold,
            query_vector,
        )
        partial.extend(evidence)

        return await asyncio.to_thread(
            self.decider.decide,
            query,
            self.corpus,
            history,
            emotion,
            query_vector,
            evidence,
        )

    def index_corpus(self) -> int:
        """Attach semantic embeddings to corpus entries that lack them."""
        return self.corpus.attach_embeddings(self.embedder)

    def add_document(self, document_id: str, text: str, title: Optional[str] = None,
                     metadata: Optional[Dict[str, Any]] = None):
        return self.documents.add_document(document_id, text, title=title, metadata=metadata)

    def delete_document(self, document_id: str) -> int:
        return self.documents.delete_document(document_id)

    def clear(self) -> None:
        self.corpus.clear()
        self.documents.clear()

    def stats(self) -> Dict[str, Any]:
        return {
            "corpus_entries": len(self.corpus),
            "documents": self.documents.stats(),
            "embedding_dimension": self.embedder.get_dimension(),
        }
