"""
Vector index record types.
"""

from typing import Dict, Optional
import numpy as np
from dataclasses import dataclass, field


@dataclass
class VectorRecord:
    """Represents a vector record with its source text and metadata."""

    id: str
    """Unique identifier for the vector record"""

    vector: Optional[np.ndarray]
    """The vector representation of the content"""

    text: str = ""
    """The text the vector was computed from"""

    metadata: Dict[str, object] = field(default_factory=dict)
    """Additional metadata associated with the vector"""


@dataclass
class QueryResult:
    """Represents a search result from vector store."""

    id: str
    """Identifier for the matching record"""

    score: float
    """Similarity score of the match, clamped to [0, 1]"""

    text: str
    """Text of the matched record"""

    metadata: Dict[str, object]
    """Metadata associated with the matched record"""
