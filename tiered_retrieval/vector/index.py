"""
Vector index interface and the brute-force in-memory implementation.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import numpy as np

from .similarity import VectorLike, as_vector, normalize
from .types import VectorRecord, QueryResult
from ..core.errors import DimensionMismatch
from ..core.locks import ReadWriteLock
from util.logging import logger


class IVectorStore(ABC):
    """Abstract interface for vector storage operations."""

    dimension: int

    @abstractmethod
    def put(self, record_id: str, vector: VectorLike, text: str = "",
            metadata: Optional[Dict[str, Any]] = None) -> None:
        """Insert or replace a single vector record."""
        pass

    @abstractmethod
    def batch_put(self, records: List[VectorRecord]) -> None:
        """Insert or replace multiple vector records."""
        pass

    @abstractmethod
    def get(self, record_id: str) -> Optional[VectorRecord]:
        """Return a record by ID, or None."""
        pass

    @abstractmethod
    def delete(self, record_id: str) -> bool:
        """Delete a vector record by ID. Returns True if it existed."""
        pass

    @abstractmethod
    def search_similar(self, query_vector: VectorLike, limit: int = 5,
                       threshold: float = 0.0) -> List[QueryResult]:
        """Records with cosine score >= threshold, best first, at most ``limit``."""
        pass

    @abstractmethod
    def search_by_metadata(self, filters: Dict[str, Any], limit: int = 10) -> List[VectorRecord]:
        """Records whose metadata matches every filter key exactly."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Clear all records from the store."""
        pass

    @abstractmethod
    def count(self) -> int:
        """Number of stored records."""
        pass

    def stats(self) -> Dict[str, Any]:
        """Basic index statistics."""
        return {
            "backend": type(self).__name__,
            "dimension": self.dimension,
            "count": self.count(),
        }

    def _check_dimension(self, vector: np.ndarray) -> None:
        if vector.shape[0] != self.dimension:
            raise DimensionMismatch(vector.shape[0], self.dimension)


def metadata_matches(metadata: Dict[str, Any], filters: Dict[str, Any]) -> bool:
    """True when every filter key is present in ``metadata`` with an equal value."""
    return all(key in metadata and metadata[key] == value for key, value in filters.items())


class SimpleInMemoryVectorStore(IVectorStore):
    """Simple in-memory implementation of IVectorStore using cosine similarity.

    Search is brute force over every stored vector. Reads and writes are
    guarded by a read-write lock so concurrent requests can search while an
    import is pending.
    """

    def __init__(self, dimension: int = 1024):
        self.dimension = dimension
        self._records: Dict[str, VectorRecord] = {}
        self._index: Dict[str, np.ndarray] = {}  # record_id -> normalized vector
        self._lock = ReadWriteLock()

    def put(self, record_id: str, vector: VectorLike, text: str = "",
            metadata: Optional[Dict[str, Any]] = None) -> None:
        """Insert or replace a single vector record."""
        v = as_vector(vector)
        self._check_dimension(v)

        with self._lock.write():
            self._store(VectorRecord(id=record_id, vector=v, text=text, metadata=dict(metadata or {})))

        logger.log_vector_operation("put", record_id, {"dimension": self.dimension})

    def _store(self, record: VectorRecord) -> None:
        self._records[record.id] = record
        if np.linalg.norm(record.vector) == 0:  # zero vectors never match; keep the record but skip the index
            self._index.pop(record.id, None)
        else:
            self._index[record.id] = normalize(record.vector)

    def batch_put(self, records: List[VectorRecord]) -> None:
        """Insert or replace multiple records; all are validated before any is stored."""
        prepared = []
        for record in records:
            v = as_vector(record.vector)
            self._check_dimension(v)
            prepared.append(VectorRecord(id=record.id, vector=v, text=record.text,
                                         metadata=dict(record.metadata)))

        with self._lock.write():
            for record in prepared:
                self._store(record)

        logger.log_vector_operation("batch_put", f"{len(prepared)} records", {"dimension": self.dimension})

    def get(self, record_id: str) -> Optional[VectorRecord]:
        with self._lock.read():
            return self._records.get(record_id)

    def delete(self, record_id: str) -> bool:
        """Delete a vector record by ID."""
        with self._lock.write():
            existed = self._records.pop(record_id, None) is not None
            self._index.pop(record_id, None)

        if existed:
            logger.log_vector_operation("delete", record_id)
        return existed

    def search_similar(self, query_vector: VectorLike, limit: int = 5,
                       threshold: float = 0.0) -> List[QueryResult]:
        """Search for similar vectors and return ranked results."""
        q = as_vector(query_vector)
        self._check_dimension(q)

        norm = np.linalg.norm(q)
        if norm == 0 or limit <= 0:
            return []
        normalized_query = q / norm

        with self._lock.read():
            scored = []
            for record_id, stored_vector in self._index.items():
                score = float(np.dot(normalized_query, stored_vector))
                score = min(max(score, 0.0), 1.0)
                if score >= threshold:
                    scored.append((record_id, score))

            # Stable sort keeps insertion order among equal scores
            scored.sort(key=lambda item: item[1], reverse=True)

            results = []
            for record_id, score in scored[:limit]:
                record = self._records[record_id]
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
        """Clear all records from the store."""
        with self._lock.write():
            self._records.clear()
            self._index.clear()
        logger.log_vector_operation("clear", "*")

    def count(self) -> int:
        with self._lock.read():
            return len(self._records)
