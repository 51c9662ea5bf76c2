"""
Emotion context for Q&A matching: the score multiplier and a keyword detector
used when the caller does not supply an emotion.
"""

from typing import Dict, Iterable, List, Optional, Tuple

from .text import normalize_text

SAME_EMOTION_MULTIPLIER = 1.2
RELATED_EMOTION_MULTIPLIER = 1.1

DEFAULT_EMOTION_GROUPS: Dict[str, Tuple[str, ...]] = {
    "negative": ("sad", "angry", "fear", "disgust", "stressed"),
    "positive": ("happy", "grateful", "excited"),
    "confused": ("confused", "uncertain"),
    "neutral": ("neutral", "calm"),
}

# Checked in order; the first emotion with a keyword hit is the primary one.
EMOTION_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "happy": ("happy", "joy", "delighted", "pleased", "glad", "cheerful", "vui", "hạnh phúc"),
    "excited": ("excited", "thrilled", "eager"),
    "sad": ("sad", "unhappy", "depressed", "miserable", "sorrowful", "empty", "lonely", "buồn", "thất vọng"),
    "angry": ("angry", "anger", "mad", "furious", "annoyed", "irritated", "frustrated", "giận", "tức"),
    "fear": ("afraid", "scared", "worried", "anxious", "nervous", "terrified", "sợ", "lo lắng"),
    "stressed": ("stressed", "overwhelmed", "pressure", "burned out", "exhausted"),
    "disgust": ("disgusted", "revolted", "repulsed", "ghê", "kinh tởm"),
    "confused": ("confused", "puzzled", "unclear", "lost", "không hiểu", "bối rối", "khó hiểu"),
    "uncertain": ("uncertain", "unsure", "doubt", "not sure"),
    "grateful": ("thank", "thanks", "grateful", "appreciate", "cảm ơn", "biết ơn"),
    "calm": ("calm", "peaceful", "relaxed"),
}


def emotions_related(a: str, b: str, groups: Dict[str, Tuple[str, ...]]) -> bool:
    """True if both emotions belong to the same group."""
    return any(a in members and b in members for members in groups.values())


def emotion_multiplier(entry_emotion: Optional[str], query_emotion: Optional[str],
                       groups: Optional[Dict[str, Tuple[str, ...]]] = None,
                       same: float = SAME_EMOTION_MULTIPLIER,
                       related: float = RELATED_EMOTION_MULTIPLIER) -> float:
    """Score multiplier for an entry's tagged emotion against the query emotion.

    Same emotion gives ``same``, same group gives ``related``, anything else
    (including a missing emotion on either side) gives 1.0.
    """
    if not entry_emotion or not query_emotion:
        return 1.0

    entry_emotion = entry_emotion.strip().lower()
    query_emotion = query_emotion.strip().lower()

    if entry_emotion == query_emotion:
        return same
    if emotions_related(entry_emotion, query_emotion, groups if groups is not None else DEFAULT_EMOTION_GROUPS):
        return related
    return 1.0


class EmotionDetector:
    """Keyword emotion detector."""

    def __init__(self, keywords: Optional[Dict[str, Iterable[str]]] = None):
        self.keywords = {
            emotion: tuple(normalize_text(k) for k in kws)
            for emotion, kws in (keywords or EMOTION_KEYWORDS).items()
        }

    def detect_all(self, text: str) -> List[str]:
        """Every emotion with a keyword hit, in table order."""
        padded = f" {normalize_text(text)} "
        return [
            emotion for emotion, keywords in self.keywords.items()
            if any(f" {k} " in padded for k in keywords if k)
        ]

    def detect(self, text: str) -> str:
        """Primary emotion, or ``"neutral"`` when no keyword matches."""
        found = self.detect_all(text)
        return found[0] if found else "neutral"
