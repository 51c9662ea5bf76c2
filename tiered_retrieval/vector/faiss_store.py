"""
FAISS-backed vector index with the same contract as the in-memory store.
"""

from typing import Any, Dict, List, Optional

import numpy as np

from .index import IVectorStore, metadata_matches
from .similarity import VectorLike, as_vector
from .types import VectorRecord, QueryResult
from ..core.locks import ReadWriteLock
from util.logging import logger


class FaissVectorStore(IVectorStore):
    """FAISS-backed implementation of IVectorStore.

    Vectors are L2-normalized and stored in an inner-product index wrapped in
    an ``IndexIDMap2`` so records can be replaced and deleted by ID. Source text
    and metadata are kept alongside in a plain dict.
    """

    def __init__(self, dimension: int = 1024):
        """
        Initialize FAISS vector store.

        Args:
            dimension: Dimension of the vectors (default: 1024)
        """
        try:
            import faiss
        except ImportError:
            raise ImportError("FAISS not installed. Please install faiss-cpu package.")

        self.faiss = faiss
        self.dimension = dimension
        self.index = self._new_index()

        self._records: Dict[str, VectorRecord] = {}
        self._id_to_int: Dict[str, int] = {}
        self._int_to_id: Dict[int, str] = {}
        self._next_int = 0
        self._lock = ReadWriteLock()

    def _new_index(self):
        return self.faiss.IndexIDMap2(self.faiss.IndexFlatIP(self.dimension))

    def _prepare(self, vector: VectorLike) -> np.ndarray:
        v = as_vector(vector)
        self._check_dimension(v)
        return v

    def _store(self, record: VectorRecord) -> Optional[np.ndarray]:
        """Register a record; return its normalized float32 row, or None for a zero vector."""
        self._remove(record.id)
        self._records[record.id] = record

        norm = np.linalg.norm(record.vector)
        if norm == 0:  # zero vectors never match; keep the record but skip the index
            return None

        internal_id = self._next_int
        self._next_int += 1
        self._id_to_int[record.id] = internal_id
        self._int_to_id[internal_id] = record.id
        return np.asarray(record.vector / norm, dtype=np.float32)

    def _remove(self, record_id: str) -> bool:
        existed = self._records.pop(record_id, None) is not None
        internal_id = self._id_to_int.pop(record_id, None)
        if internal_id is not None:
            self._int_to_id.pop(internal_id, None)
            self.index.remove_ids(np.array([internal_id], dtype=np.int64))
        return existed

    def put(self, record_id: str, vector: VectorLike, text: str = "",
            metadata: Optional[Dict[str, Any]] = None) -> None:
        """Insert or replace a single vector record."""
        v = self._prepare(vector)

        with self._lock.write():
            row = self._store(VectorRecord(id=record_id, vector=v, text=text, metadata=dict(metadata or {})))
            if row is not None:
                ids = np.array([self._id_to_int[record_id]], dtype=np.int64)
                self.index.add_with_ids(row.reshape(1, -1), ids)

        logger.log_vector_operation("put", record_id, {"backend": "faiss", "dimension": self.dimension})

    def batch_put(self, records: List[VectorRecord]) -> None:
        """Insert or replace multiple records in one FAISS call."""
        if not records:
            return

        prepared = [
            VectorRecord(id=r.id, vector=self._prepare(r.vector), text=r.text, metadata=dict(r.metadata))
            for r in records
        ]

        with self._lock.write():
            rows = []
            ids = []
            for record in prepared:
                row = self._store(record)
                if row is not None:
                    rows.append(row)
                    ids.append(self._id_to_int[record.id])

            # A later duplicate ID in the same batch removed the earlier row
            live = [(row, i) for row, i in zip(rows, ids) if i in self._int_to_id]
            if live:
                batch_vectors = np.vstack([row for row, _ in live]).astype(np.float32)
                self.index.add_with_ids(batch_vectors, np.array([i for _, i in live], dtype=np.int64))

        logger.log_vector_operation("batch_put", f"{len(prepared)} records", {"backend": "faiss"})

    def get(self, record_id: str) -> Optional[VectorRecord]:
        with self._lock.read():
            return self._records.get(record_id)

    def delete(self, record_id: str) -> bool:
        """Delete a vector record by ID."""
        with self._lock.write():
            existed = self._remove(record_id)

        if existed:
            logger.log_vector_operation("delete", record_id, {"backend": "faiss"})
        return existed

    def search_similar(self, query_vector: VectorLike, limit: int = 5,
                       threshold: float = 0.0) -> List[QueryResult]:
        """Search for similar vectors and return ranked results."""
        q = self._prepare(query_vector)

        norm = np.linalg.norm(q)
        if norm == 0 or limit <= 0:
            return []

        query_array = np.asarray(q / norm, dtype=np.float32).reshape(1, -1)

        with self._lock.read():
            if not self.index.ntotal:
                return []

            scores, indices = self.index.search(query_array, min(limit, self.index.ntotal))

            results = []
            for score, internal_id in zip(scores[0], indices[0]):
                if internal_id < 0 or int(internal_id) not in self._int_to_id:
                    continue
                # float32 inner products can drift just past 1.0
                score = min(max(float(score), 0.0), 1.0)
                if score < threshold:
                    continue
                record = self._records[self._int_to_id[int(internal_id)]]
                results.append(QueryResult(
                    id=record.id,
                    score=score,
                    text=record.text,
                    metadata=dict(record.metadata),
                ))
        return results

    def search_by_metadata(self, filters: Dict[str, Any], limit: int = 10) -> List[VectorRecord]:
        with self._lock.read():
            matches = [r for r in self._records.values() if metadata_matches(r.metadata, filters)]
        return matches[:limit]

    def clear(self) -> None:
        """Clear all records from the FAISS store."""
        with self._lock.write():
            self.index = self._new_index()
            self._records.clear()
            self._id_to_int.clear()
            self._int_to_id.clear()
            self._next_int = 0
        logger.log_vector_operation("clear", "*", {"backend": "faiss"})

    def count(self) -> int:
        with self._lock.read():
            return len(self._records)

    def stats(self) -> Dict[str, Any]:
        stats = super().stats()
        with self._lock.read():
            stats["indexed"] = int(self.index.ntotal)
        return stats
