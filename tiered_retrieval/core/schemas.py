"""
Boundary validation for imported Q&A rows, conversation history and concept
table files. Validated models are converted to internal dataclasses before
they reach the scoring code.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, field_validator


class QAImportRecord(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[str] = None
    question: str
    answer: str
    emotion: Optional[str] = None
    category: Optional[str] = None

    @field_validator('id', mode='before')
    @classmethod
    def id_to_string(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        return str(v)

    @field_validator('question')
    @classmethod
    def question_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('question cannot be empty')
        return v

    @field_validator('answer')
    @classmethod
    def answer_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('answer cannot be empty')
        return v

    @field_validator('emotion', 'category')
    @classmethod
    def blank_to_none(cls, v):
        if v is None or not v.strip():
            return None
        return v.lower()


class ConversationTurnIn(BaseModel):
    role: str
    text: str
    timestamp: Optional[datetime] = None

    @field_validator('role')
    @classmethod
    def role_must_be_valid(cls, v):
        valid_roles = ['user', 'assistant']
        v = v.strip().lower()
        if v not in valid_roles:
            raise ValueError(f'role must be one of: {valid_roles}')
        return v


class ConceptGroupIn(BaseModel):
    phrases: List[str]
    related: Dict[str, float] = {}

    @field_validator('phrases')
    @classmethod
    def phrases_must_not_be_empty(cls, v):
        phrases = [p.strip() for p in v if p.strip()]
        if not phrases:
            raise ValueError('phrases cannot be empty')
        return phrases

    @field_validator('related')
    @classmethod
    def weights_in_range(cls, v):
        for name, weight in v.items():
            if not 0 <= weight <= 1:
                raise ValueError(f'related weight for {name} must be within [0, 1]')
        return v


class ConceptTableFile(BaseModel):
    semantic_concepts: Optional[Dict[str, ConceptGroupIn]] = None
    meaning_groups: Optional[Dict[str, ConceptGroupIn]] = None
    synonym_groups: Optional[Dict[str, List[str]]] = None
