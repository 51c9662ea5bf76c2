"""
Phrase tables driving the heuristic text scorer.

Tables are plain data: a ``ConceptGroup`` is a named list of phrases plus the
weighted edges to related groups. The built-in tables can be replaced by a JSON
file (``CONCEPT_TABLE_PATH``) without touching the scorer.
"""

import json
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from util.logging import logger


@dataclass(frozen=True)
class ConceptGroup:
    name: str
    phrases: Tuple[str, ...]
    related: Dict[str, float] = field(default_factory=dict)

    def hit(self, text: str) -> bool:
        """True if any phrase occurs as a substring of ``text``."""
        return any(phrase in text for phrase in self.phrases)


@dataclass(frozen=True)
class ConceptTables:
    semantic_concepts: Dict[str, ConceptGroup]
    meaning_groups: Dict[str, ConceptGroup]
    synonym_groups: Dict[str, Tuple[str, ...]]


def _groups(phrases: Dict[str, Tuple[str, ...]], related: Dict[str, Dict[str, float]]) -> Dict[str, ConceptGroup]:
    return {
        name: ConceptGroup(name=name, phrases=tuple(p), related=dict(related.get(name, {})))
        for name, p in phrases.items()
    }


# Core concepts. A related concept hit in both texts is worth 0.5.
_SEMANTIC_PHRASES = {
    "inadequacy": (
        "not good enough", "not enough", "never enough", "not sufficient", "inadequate",
        "insufficient", "not right", "not capable", "not able", "cannot do",
        "not capable enough", "not measuring up",
    ),
    "failure": (
        "falling short", "coming up short", "not measuring up", "disappointing", "letting down",
        "failing", "not making it", "not succeeding", "failing to meet",
    ),
    "effort": (
        "no matter what i do", "nothing i do", "whatever i do", "however hard i try",
        "how much effort", "how hard i work", "regardless of my efforts", "no matter how hard",
        "regardless of efforts",
    ),
    "feeling": (
        "i feel like", "i feel that", "it feels like", "i think", "i believe", "seems like",
        "appears that", "i cannot shake the feeling", "i cannot escape the feeling", "it seems like",
    ),
    "always_never": (
        "always", "never", "constantly", "perpetually", "forever", "all the time", "every time",
        "no matter what", "regardless of",
    ),
    "emotional_states": (
        "sad", "happy", "angry", "confused", "anxious", "worried", "scared", "grateful", "thankful",
    ),
    "spiritual_emptiness": (
        "spiritually empty", "spiritual emptiness", "spiritually numb", "spiritually vacant",
        "spiritually dead", "spiritual void", "empty spiritually", "hollow inside",
        "completely hollow", "feel nothing", "feel empty", "feeling nothing", "feeling empty",
        "spiritual dryness", "spiritually dry",
    ),
    "religious_practice": (
        "still pray", "keep praying", "pray every day", "pray regularly", "religious practices",
        "religious routine", "go through motions", "go through rituals", "maintain routine",
        "do all practices",
    ),
    "spiritual_disconnection": (
        "no connection", "disconnected from faith", "disconnected from god",
        "no spiritual connection", "prayers bounce off", "prayers feel empty",
        "prayers meaningless", "no spiritual fulfillment", "spiritual life feels dead",
        "feel no connection",
    ),
}

_SEMANTIC_RELATED = {
    "inadequacy": {"failure": 0.5, "effort": 0.5},
    "failure": {"inadequacy": 0.5, "effort": 0.5},
    "effort": {"inadequacy": 0.5, "failure": 0.5},
    "feeling": {"emotional_states": 0.5, "spiritual_emptiness": 0.5},
    "emotional_states": {"feeling": 0.5, "spiritual_emptiness": 0.5, "spiritual_disconnection": 0.5},
    "spiritual_emptiness": {
        "spiritual_disconnection": 0.5, "religious_practice": 0.5, "feeling": 0.5, "emotional_states": 0.5,
    },
    "religious_practice": {"spiritual_emptiness": 0.5, "spiritual_disconnection": 0.5},
    "spiritual_disconnection": {"spiritual_emptiness": 0.5, "religious_practice": 0.5, "emotional_states": 0.5},
}

_MEANING_PHRASES = {
    "inadequacy_self": (
        "not good enough", "not enough", "never enough", "not sufficient", "inadequate",
        "insufficient", "not capable", "not able", "not worthy", "not deserving",
    ),
    "failure_attempts": (
        "falling short", "coming up short", "not measuring up", "not making the cut",
        "not meeting expectations", "disappointing others", "letting people down",
    ),
    "persistent_effort": (
        "no matter what i do", "nothing i do", "whatever i do", "however hard i try",
        "regardless of my efforts", "no matter how much effort",
    ),
    "emotional_certainty": (
        "i feel like", "it feels like", "i always feel", "i constantly feel",
        "i can never shake the feeling", "i cannot escape the feeling",
    ),
    "universal_quantifiers": (
        "always", "never", "nothing", "everything", "all the time", "constantly", "perpetually", "forever",
    ),
    "impact_on_others": (
        "disappointing people", "letting others down", "not meeting expectations",
        "falling short of what others expect",
    ),
    "self_doubt": (
        "not capable enough", "just not measuring up", "not able to do anything right",
        "never able to succeed", "stuck in a cycle",
    ),
    "spiritual_emptiness_core": (
        "spiritually empty", "spiritual emptiness", "spiritually numb", "spiritually vacant",
        "spiritually dead", "hollow inside", "completely hollow", "feel nothing", "feeling nothing",
    ),
    "religious_practice_maintenance": (
        "still pray", "keep praying", "pray every day", "pray regularly", "religious practices",
        "religious routine", "go through motions", "maintain routine",
    ),
    "spiritual_disconnection_phrases": (
        "no connection", "disconnected from faith", "no spiritual connection", "prayers feel empty",
        "prayers meaningless", "no spiritual fulfillment", "spiritual life feels dead",
    ),
}

_MEANING_RELATED = {
    "inadequacy_self": {"failure_attempts": 0.8, "self_doubt": 0.9},
    "failure_attempts": {"inadequacy_self": 0.8, "persistent_effort": 0.7},
    "persistent_effort": {"failure_attempts": 0.7, "emotional_certainty": 0.6},
    "emotional_certainty": {"universal_quantifiers": 0.6, "self_doubt": 0.7, "spiritual_emptiness_core": 0.8},
    "universal_quantifiers": {"emotional_certainty": 0.6},
    "impact_on_others": {"inadequacy_self": 0.6, "failure_attempts": 0.7},
    "self_doubt": {"inadequacy_self": 0.9, "emotional_certainty": 0.7},
    "spiritual_emptiness_core": {
        "spiritual_disconnection_phrases": 0.9, "religious_practice_maintenance": 0.8, "emotional_certainty": 0.7,
    },
    "religious_practice_maintenance": {"spiritual_emptiness_core": 0.8, "spiritual_disconnection_phrases": 0.7},
    "spiritual_disconnection_phrases": {"spiritual_emptiness_core": 0.9, "religious_practice_maintenance": 0.7},
}

SYNONYM_GROUPS: Dict[str, Tuple[str, ...]] = {
    "inadequate": ("insufficient", "lacking", "deficient", "poor", "weak", "subpar"),
    "good": ("great", "excellent", "fine", "okay", "sufficient", "adequate", "right"),
    "enough": ("sufficient", "adequate", "satisfactory", "acceptable"),
    "try": ("attempt", "work", "effort", "struggle", "strive"),
    "feel": ("think", "believe", "sense", "perceive", "experience"),
    "never": ("not", "cannot", "unable", "impossible"),
    "always": ("constantly", "continually", "forever", "perpetually"),
}

SEMANTIC_CONCEPTS = _groups(_SEMANTIC_PHRASES, _SEMANTIC_RELATED)
MEANING_GROUPS = _groups(_MEANING_PHRASES, _MEANING_RELATED)

DEFAULT_TABLES = ConceptTables(
    semantic_concepts=SEMANTIC_CONCEPTS,
    meaning_groups=MEANING_GROUPS,
    synonym_groups=SYNONYM_GROUPS,
)


def load_concept_tables(path: Optional[str] = None) -> ConceptTables:
    """Load tables from a JSON file, or return the built-in tables.

    The file may replace any of ``semantic_concepts``, ``meaning_groups`` or
    ``synonym_groups``; sections it omits keep their built-in value. Group
    entries have the form ``{"phrases": [...], "related": {"other": 0.5}}``.

    Raises:
        FileNotFoundError: if ``path`` does not exist.
        pydantic.ValidationError: if the file does not match the table format.
    """
    if not path:
        return DEFAULT_TABLES

    from .schemas import ConceptTableFile

    with open(path, "r", encoding="utf-8") as f:
        data = ConceptTableFile.model_validate(json.load(f))

    def convert(section, default):
        if section is None:
            return default
        return {
            name: ConceptGroup(
                name=name,
                phrases=tuple(p.lower() for p in group.phrases),
                related=dict(group.related),
            )
            for name, group in section.items()
        }

    tables = ConceptTables(
        semantic_concepts=convert(data.semantic_concepts, SEMANTIC_CONCEPTS),
        meaning_groups=convert(data.meaning_groups, MEANING_GROUPS),
        synonym_groups=(
            {k: tuple(v) for k, v in data.synonym_groups.items()}
            if data.synonym_groups is not None else SYNONYM_GROUPS
        ),
    )

    logger.log_operation("concept_tables.load", "success", {
        "path": path,
        "semantic_concepts": len(tables.semantic_concepts),
        "meaning_groups": len(tables.meaning_groups),
        "synonym_groups": len(tables.synonym_groups),
    })
    return tables
