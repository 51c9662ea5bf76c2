"""
Error taxonomy for the retrieval core.

Only ``DimensionMismatch`` is allowed to reach callers, and only from explicit
one-off similarity calls; everything else is recovered where it is raised.
"""


class RetrievalError(Exception):
    """Base class for retrieval core errors."""


class DimensionMismatch(RetrievalError, ValueError):
    """Two vectors of unequal length were compared."""

    def __init__(self, left: int, right: int):
        self.left = left
        self.right = right
        super().__init__(f"Vector dimension mismatch: {left} != {right}")


class EmbeddingUnavailable(RetrievalError):
    """An embedding strategy could not produce a vector."""

    def __init__(self, provider: str, reason: str):
        self.provider = provider
        self.reason = reason
        super().__init__(f"Embedding provider '{provider}' unavailable: {reason}")


class CorpusEntryMalformed(RetrievalError, ValueError):
    """A corpus entry is missing its question or answer text."""

    def __init__(self, entry_id: str, reason: str):
        self.entry_id = entry_id
        self.reason = reason
        super().__init__(f"Malformed corpus entry '{entry_id}': {reason}")
