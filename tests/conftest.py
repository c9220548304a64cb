from __future__ import annotations

from typing import Dict, List, Optional, Sequence

import pytest

from quiz_ocr.blocks import blocks_from_json
from quiz_ocr.models import Block

ANSWERS: List[str] = [
    "CRUEL SUMMER", "WATERLOO", "DANCING QUEEN", "FERNANDO", "HEART OF GLASS",
    "SUNDAY GIRL", "CALL ME", "ATOMIC", "VOGUE", "CHINA IN YOUR HAND",
    "INSTANT REPLAY", "THE EDGE OF HEAVEN", "VOULEZ VOUS", "KARMA CHAMELEON", "RELAX",
    "TAINTED LOVE", "JOLENE", "ROXANNE", "NINETEEN", "MANIC MONDAY",
    "SUSSUDIO", "PURPLE RAIN", "THRILLER", "BAD", "FAITH",
    "MONEY FOR NOTHING", "TAKE ON ME", "HUNGRY LIKE THE WOLF", "RIO", "GOLD",
    "TRUE", "SLEDGEHAMMER", "DON'T YOU FORGET ABOUT ME", "WHITE WEDDING", "EYE OF THE TIGER",
    "BACK", "STABBERS", "GLORIA", "MANEATER", "KOKOMO",
    "LA BAMBA", "ALONE", "HEAVEN IS A PLACE ON EARTH", "NEVER GONNA GIVE YOU UP", "ZOMBIE",
    "WONDERWALL", "YELLOW", "CREEP", "LOSER", "SOMETIMES",
]


class TextractFactory:
    """Builds raw Textract block dicts the way AnalyzeDocument returns them."""

    def __init__(self) -> None:
        self.raw: List[dict] = []
        self._n = 0

    def _id(self, prefix: str) -> str:
        self._n += 1
        return f"{prefix}-{self._n}"

    def words(self, text: str) -> List[str]:
        ids = []
        for w in text.split():
            wid = self._id("word")
            self.raw.append({"Id": wid, "BlockType": "WORD", "Text": w})
            ids.append(wid)
        return ids

    def selection(self, selected: bool) -> str:
        sid = self._id("sel")
        self.raw.append(
            {"Id": sid, "BlockType": "SELECTION_ELEMENT", "SelectionStatus": "SELECTED" if selected else "NOT_SELECTED"}
        )
        return sid

    def cell(self, row: int, col: int, text: str, extra_children: Sequence[str] = ()) -> str:
        cid = self._id("cell")
        ids = self.words(text) + list(extra_children)
        block: dict = {"Id": cid, "BlockType": "CELL", "RowIndex": row, "ColumnIndex": col}
        if ids:
            block["Relationships"] = [{"Type": "CHILD", "Ids": ids}]
        self.raw.append(block)
        return cid

    def table(self, rows: Sequence[Sequence[str]], first_row: int = 1) -> str:
        cell_ids = []
        for r, row in enumerate(rows, start=first_row):
            for c, text in enumerate(row, start=1):
                cell_ids.append(self.cell(r, c, text))
        tid = self._id("table")
        self.raw.append({"Id": tid, "BlockType": "TABLE", "Relationships": [{"Type": "CHILD", "Ids": cell_ids}]})
        return tid

    def key_value(self, key: str, value: str) -> None:
        kid, vid = self._id("key"), self._id("value")
        vwords = self.words(value)
        self.raw.append(
            {
                "Id": vid,
                "BlockType": "KEY_VALUE_SET",
                "EntityTypes": ["VALUE"],
                "Relationships": [{"Type": "CHILD", "Ids": vwords}] if vwords else [],
            }
        )
        self.raw.append(
            {
                "Id": kid,
                "BlockType": "KEY_VALUE_SET",
                "EntityTypes": ["KEY"],
                "Relationships": [{"Type": "VALUE", "Ids": [vid]}, {"Type": "CHILD", "Ids": self.words(key)}],
            }
        )

    def blocks(self) -> List[Block]:
        return blocks_from_json(self.raw)


HEADER = ["#", "Question", "Answer", "#", "Question", "Answer"]


def quiz_rows(answers: Optional[Dict[int, str]] = None) -> List[List[str]]:
    """Header plus 25 six-column rows covering Q1-Q25 and Q26-Q50."""
    answers = answers if answers is not None else {i + 1: a for i, a in enumerate(ANSWERS)}
    rows = [list(HEADER)]
    for r in range(1, 26):
        rows.append([
            str(r), f"Question {r}", answers.get(r, ""),
            str(r + 25), f"Question {r + 25}", answers.get(r + 25, ""),
        ])
    return rows


@pytest.fixture
def factory() -> TextractFactory:
    return TextractFactory()


@pytest.fixture
def answer_key() -> Dict[str, str]:
    return {f"Q{i + 1}": a for i, a in enumerate(ANSWERS)}
