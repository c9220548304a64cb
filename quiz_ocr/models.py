from __future__ import annotations

import re
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Dict, List, Optional, Tuple

# Question id ("Q<n>") -> answer text
AnswerMap = Dict[str, str]
# Question id -> expected answer, "/" separates accepted alternatives
AnswerKey = Dict[str, str]

SELECTED_MARKER = "[X]"


class BlockType(str, Enum):
    TABLE = "TABLE"
    CELL = "CELL"
    KEY_VALUE = "KEY_VALUE_SET"
    WORD = "WORD"
    SELECTION = "SELECTION_ELEMENT"
    OTHER = "OTHER"

    @classmethod
    def from_raw(cls, raw: Optional[str]) -> "BlockType":
        try:
            return cls(str(raw))
        except ValueError:
            return cls.OTHER


@dataclass(frozen=True)
class Relationship:
    type: str
    ids: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Block:
    id: str
    block_type: BlockType
    row_index: Optional[int] = None
    column_index: Optional[int] = None
    text: Optional[str] = None
    selection_status: Optional[str] = None
    entity_types: Tuple[str, ...] = ()
    relationships: Tuple[Relationship, ...] = ()

    @property
    def selected(self) -> bool:
        return self.selection_status == "SELECTED"

    def related_ids(self, rel_type: str) -> List[str]:
        out: List[str] = []
        for rel in self.relationships:
            if rel.type == rel_type:
                out.extend(rel.ids)
        return out


@dataclass
class CorrectionStats:
    fuzzy_corrections: int = 0
    misplacements_detected: int = 0
    merges_detected: int = 0
    merges_resolved: int = 0
    splits_resolved: int = 0
    shifted: int = 0
    removed: int = 0

    @property
    def total_changes(self) -> int:
        return self.fuzzy_corrections + self.merges_detected + self.splits_resolved + self.shifted + self.removed

    def add(self, other: "CorrectionStats") -> None:
        for f in fields(self):
            setattr(self, f.name, getattr(self, f.name) + getattr(other, f.name))


@dataclass
class PageResult:
    source: str
    answers: AnswerMap
    method: str  # "table", "key_value" or "none"
    name: Optional[str] = None
    email: Optional[str] = None
    stats: CorrectionStats = field(default_factory=CorrectionStats)


@dataclass
class SheetResult:
    sheet_id: str
    answers: AnswerMap = field(default_factory=dict)
    name: Optional[str] = None
    email: Optional[str] = None
    pages: List[PageResult] = field(default_factory=list)
    stats: CorrectionStats = field(default_factory=CorrectionStats)
    error: Optional[str] = None


def question_id(number: int) -> str:
    return f"Q{number}"


def question_number(qid: str) -> int:
    """Numeric part of an id like "Q12" (0 when there is none)."""
    m = re.search(r"\d+", qid)
    return int(m.group(0)) if m else 0


def sort_answers(answers: AnswerMap) -> AnswerMap:
    """Order answers numerically: Q1, Q2, ... Q10 rather than Q1, Q10, Q2."""
    return dict(sorted(answers.items(), key=lambda kv: question_number(kv[0])))
