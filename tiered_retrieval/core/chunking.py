"""
Document chunking and the chunk collection used for evidence retrieval.

Documents are split on sentence boundaries into chunks of at most
``chunk_size`` characters (a single longer sentence becomes its own chunk),
and each new chunk repeats the last ``overlap_sentences`` sentences of the
previous one.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from .confidence import ConfidenceClassifier, LEXICAL
from .locks import ReadWriteLock
from .match_types import DocumentChunkMatch, EvidenceChunkMatch, MatchCandidate
from .text import normalize_text
from ..vector.index import IVectorStore
from ..vector.types import VectorRecord
from util.logging import logger

CHUNK_SIZE = 1000
OVERLAP_SENTENCES = 2
KEYWORD_WORD_SCORE = 2

_SENTENCE = re.compile(r"[^.!?]+(?:[.!?]+|$)")


@dataclass
class DocumentChunk:
    id: str
    document_id: str
    chunk_index: int
    text: str
    embedding: Optional[List[float]] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


def split_sentences(text: str):
    """``(start, end, sentence)`` spans; trailing text without punctuation counts as a sentence."""
    spans = []
    for m in _SENTENCE.finditer(text):
        raw = m.group(0)
        stripped = raw.strip()
        if not stripped:
            continue
        start = m.start() + (len(raw) - len(raw.lstrip()))
        spans.append((start, start + len(stripped), stripped))
    return spans


class DocumentChunker:
    def __init__(self, chunk_size: int = CHUNK_SIZE, overlap_sentences: int = OVERLAP_SENTENCES):
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        self.chunk_size = chunk_size
        self.overlap_sentences = max(overlap_sentences, 0)

    def chunk(self, document_id: str, text: str, metadata: Optional[Dict[str, Any]] = None) -> List[DocumentChunk]:
        sentences = split_sentences(text or "")
        chunks: List[DocumentChunk] = []
        current: List[tuple] = []
        new_in_current = 0

        def emit():
            chunk_text = " ".join(s[2] for s in current)
            chunk_metadata = dict(metadata or {})
            chunk_metadata.update({
                "sentence_count": len(current),
                "start_char": current[0][0],
                "end_char": current[-1][1],
            })
            index = len(chunks)
            chunks.append(DocumentChunk(
                id=f"{document_id}_chunk_{index}",
                document_id=document_id,
                chunk_index=index,
                text=chunk_text,
                metadata=chunk_metadata,
            ))

        for sentence in sentences:
            length = sum(len(s[2]) + 1 for s in current)
            if current and new_in_current and length + len(sentence[2]) > self.chunk_size:
                emit()
                current = current[-self.overlap_sentences:] if self.overlap_sentences else []
                new_in_current = 0
            if not new_in_current:
                # Overlap gives way to the new sentence
                while current and sum(len(s[2]) + 1 for s in current) + len(sentence[2]) > self.chunk_size:
                    current.pop(0)
            current.append(sentence)
            new_in_current += 1

        if current and new_in_current:
            emit()
        return chunks


class DocumentCollection:
    """Owns document chunks and keeps the vector index in step with them.

    Chunks are indexed only when the embedder produced a semantic vector;
    otherwise search falls back to keyword overlap.
    """

    def __init__(self, embedder, store: IVectorStore,
                 chunker: Optional[DocumentChunker] = None,
                 classifier: Optional[ConfidenceClassifier] = None):
        self.embedder = embedder
        self.store = store
        self.chunker = chunker or DocumentChunker()
        self.classifier = classifier or ConfidenceClassifier()
        self._documents: Dict[str, List[DocumentChunk]] = {}
        self._titles: Dict[str, Optional[str]] = {}
        self._lock = ReadWriteLock()

    def add_document(self, document_id: str, text: str, title: Optional[str] = None,
                     metadata: Optional[Dict[str, Any]] = None) -> List[DocumentChunk]:
        """Chunk, embed and index a document, replacing any previous version."""
        self.delete_document(document_id)

        chunk_metadata = dict(metadata or {})
        if title:
            chunk_metadata["title"] = title
        chunks = self.chunker.chunk(document_id, text, chunk_metadata)

        records = []
        for chunk in chunks:
            result = self.embedder.embed(chunk.text)
            if not result.semantic:
                continue
            chunk.embedding = list(result.vector)
            records.append(VectorRecord(
                id=chunk.id,
                vector=chunk.embedding,
                text=chunk.text,
                metadata={"document_id": document_id, "chunk_index": chunk.chunk_index, **chunk_metadata},
            ))

        if records:
            self.store.batch_put(records)

        with self._lock.write():
            self._documents[document_id] = chunks
            self._titles[document_id] = title

        logger.log_operation("documents.add", "success", {
            "document_id": document_id,
            "chunks": len(chunks),
            "indexed": len(records),
        })
        return chunks

    def delete_document(self, document_id: str) -> int:
        """Delete a document and its chunks from the index. Returns chunks removed."""
        with self._lock.write():
            chunks = self._documents.pop(document_id, [])
            self._titles.pop(document_id, None)

        for chunk in chunks:
            if chunk.embedding is not None:
                self.store.delete(chunk.id)

        if chunks:
            logger.log_operation("documents.delete", "success", {"document_id": document_id, "chunks": len(chunks)})
        return len(chunks)

    def get_chunks(self, document_id: str) -> List[DocumentChunk]:
        with self._lock.read():
            return list(self._documents.get(document_id, []))

    def all_chunks(self) -> List[DocumentChunk]:
        with self._lock.read():
            return [chunk for chunks in self._documents.values() for chunk in chunks]

    def search(self, query: str, limit: int = 5, threshold: float = 0.0,
               query_vector: Optional[Sequence[float]] = None) -> List[MatchCandidate]:
        """Evidence chunks for a query, best first.

        Uses vector search when a semantic ``query_vector`` is given and chunks
        are indexed; keyword overlap otherwise.
        """
        if query_vector is not None and self.store.count() > 0:
            return self._vector_search(query_vector, limit, threshold)
        return self.keyword_search(query, limit)

    def _vector_search(self, query_vector: Sequence[float], limit: int, threshold: float) -> List[MatchCandidate]:
        results = self.store.search_similar(query_vector, limit=limit, threshold=threshold)
        with self._lock.read():
            titles = dict(self._titles)
        candidates = []
        for result in results:
            document_id = result.metadata.get("document_id", "")
            classification = self.classifier.classify(result.score)
            candidates.append(MatchCandidate(
                source_id=result.id,
                score=result.score,
                confidence_tier=classification.tier,
                metadata=EvidenceChunkMatch(
                    document_id=document_id,
                    chunk_index=int(result.metadata.get("chunk_index", 0)),
                    text=result.text,
                    document_title=titles.get(document_id),
                ),
                percentage=classification.percentage,
            ))
        return candidates

    def keyword_search(self, query: str, limit: int = 5) -> List[MatchCandidate]:
        """Chunks scored by how many query words they contain."""
        query_words = normalize_text(query).split()
        if not query_words or limit <= 0:
            return []

        with self._lock.read():
            chunks = [chunk for doc_chunks in self._documents.values() for chunk in doc_chunks]
            titles = dict(self._titles)

        scored = []
        for chunk in chunks:
            chunk_text = normalize_text(chunk.text)
            matched = sum(1 for word in query_words if word in chunk_text)
            if matched == 0:
                continue
            raw = matched * KEYWORD_WORD_SCORE
            scored.append((chunk, matched, raw, min(raw / (len(query_words) * KEYWORD_WORD_SCORE), 1.0)))

        scored.sort(key=lambda item: item[3], reverse=True)

        candidates = []
        for chunk, matched, raw, score in scored[:limit]:
            classification = self.classifier.classify(raw, scale=LEXICAL)
            candidates.append(MatchCandidate(
                source_id=chunk.id,
                score=score,
                confidence_tier=classification.tier,
                metadata=DocumentChunkMatch(
                    document_id=chunk.document_id,
                    chunk_index=chunk.chunk_index,
                    text=chunk.text,
                    matched_words=matched,
                    document_title=titles.get(chunk.document_id),
                ),
                percentage=classification.percentage,
            ))
        return candidates

    def clear(self) -> None:
        with self._lock.write():
            self._documents.clear()
            self._titles.clear()
        self.store.clear()

    def stats(self) -> Dict[str, Any]:
        with self._lock.read():
            documents = len(self._documents)
            chunks = sum(len(c) for c in self._documents.values())
        return {"documents": documents, "chunks": chunks, "index": self.store.stats()}
