"""
Text normalization shared by the matcher, scorer and duplicate detector.
"""

import re

_PUNCT = re.compile(r"[^\w\s]")
_WS = re.compile(r"\s+")

CONTRACTIONS = [
    (re.compile(r"\bi('m|m)\b"), "i am"),
    (re.compile(r"\byou('re|re)\b"), "you are"),
    (re.compile(r"\bdon('t|t)\b"), "do not"),
    (re.compile(r"\bdoesn('t|t)\b"), "does not"),
    (re.compile(r"\bdidn('t|t)\b"), "did not"),
    (re.compile(r"\bcan('t|t)\b"), "cannot"),
    (re.compile(r"\bwon('t|t)\b"), "will not"),
    (re.compile(r"\bisn('t|t)\b"), "is not"),
    (re.compile(r"\baren('t|t)\b"), "are not"),
    (re.compile(r"\bwasn('t|t)\b"), "was not"),
    (re.compile(r"\bweren('t|t)\b"), "were not"),
    (re.compile(r"\bhaven('t|t)\b"), "have not"),
    (re.compile(r"\bhasn('t|t)\b"), "has not"),
    (re.compile(r"\bhadn('t|t)\b"), "had not"),
    (re.compile(r"\bwouldn('t|t)\b"), "would not"),
    (re.compile(r"\bshouldn('t|t)\b"), "should not"),
    (re.compile(r"\bcouldn('t|t)\b"), "could not"),
]


def normalize_text(text: str) -> str:
    """Lowercase, drop punctuation and collapse whitespace."""
    if not text:
        return ""
    text = _PUNCT.sub("", text.lower())
    return _WS.sub(" ", text).strip()


def normalize_for_semantic_match(text: str) -> str:
    """Normalize and expand contractions ("don't" -> "do not").

    Contractions are expanded before punctuation is stripped so the apostrophe
    forms are caught as well as the already-stripped "dont" forms.
    """
    if not text:
        return ""
    text = _WS.sub(" ", text.lower().replace("’", "'")).strip()
    for pattern, replacement in CONTRACTIONS:
        text = pattern.sub(replacement, text)
    text = _PUNCT.sub(" ", text)
    return _WS.sub(" ", text).strip()


def words(text: str, min_length: int = 0):
    """Split normalized text into words longer than ``min_length`` characters."""
    return [w for w in text.split() if len(w) > min_length]
