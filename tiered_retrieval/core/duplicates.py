"""
Duplicate-question detection across a conversation.

A query that repeats a recent user turn should not get the same verbatim
answer again; the decider uses this to force the generative path.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence, Union

from pydantic import ValidationError

from .schemas import ConversationTurnIn
from .text import normalize_text
from util.logging import logger


@dataclass(frozen=True)
class ConversationTurn:
    role: str  # "user" | "assistant"
    text: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def to_turns(history: Iterable[Union[ConversationTurn, dict]]) -> List[ConversationTurn]:
    """Convert raw history rows to turns; invalid rows are skipped with a warning."""
    turns = []
    for i, item in enumerate(history):
        if isinstance(item, ConversationTurn):
            turns.append(item)
            continue
        try:
            validated = ConversationTurnIn.model_validate(item)
        except ValidationError as e:
            logger.warning(f"Skipping invalid conversation turn {i}: {e.errors()[0]['msg']}")
            continue
        turns.append(ConversationTurn(
            role=validated.role,
            text=validated.text,
            timestamp=validated.timestamp or datetime.now(timezone.utc),
        ))
    return turns


def word_set(text: str, min_length: int = 3) -> set:
    return {w for w in text.split() if len(w) > min_length}


def jaccard(a: set, b: set) -> float:
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


class DuplicateDetector:
    """Near-repeat check of the current message against recent user turns."""

    def __init__(self, window: int = 10, containment_ratio: float = 0.8,
                 jaccard_threshold: float = 0.85, min_length: int = 30):
        self.window = window
        self.containment_ratio = containment_ratio
        self.jaccard_threshold = jaccard_threshold
        self.min_length = min_length

    @classmethod
    def from_config(cls, config) -> "DuplicateDetector":
        return cls(
            window=config.duplicate_window,
            containment_ratio=config.duplicate_containment_ratio,
            jaccard_threshold=config.duplicate_jaccard,
            min_length=config.duplicate_min_length,
        )

    def recent_user_messages(self, history: Sequence[Union[ConversationTurn, dict]]) -> List[str]:
        """Text of the last ``window`` user turns, oldest first."""
        user_texts = [t.text for t in to_turns(history) if t.role == "user"]
        return user_texts[-self.window:] if self.window > 0 else []

    def matches(self, current: str, previous: str) -> bool:
        """True if ``previous`` is a near-repeat of ``current``."""
        a = normalize_text(current)
        b = normalize_text(previous)
        if not a or not b:
            return False

        if a == b:
            return True

        shorter, longer = (a, b) if len(a) <= len(b) else (b, a)
        if shorter in longer and len(shorter) / len(longer) > self.containment_ratio:
            return True

        if len(a) > self.min_length and len(b) > self.min_length:
            if jaccard(word_set(a), word_set(b)) > self.jaccard_threshold:
                return True

        return False

    def is_duplicate(self, current: str, recent_user_messages: Sequence[str]) -> bool:
        """Compare against the most recent ``window`` messages; true on first hit."""
        recent = list(recent_user_messages)[-self.window:] if self.window > 0 else []
        for previous in reversed(recent):
            if self.matches(current, previous):
                return True
        return False

    def is_duplicate_in_history(self, current: str,
                                history: Optional[Sequence[Union[ConversationTurn, dict]]]) -> bool:
        if not history:
            return False
        return self.is_duplicate(current, self.recent_user_messages(history))
