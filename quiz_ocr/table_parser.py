from __future__ import annotations

import logging
import re
from typing import Dict, Iterator, List, Optional, Tuple

from .blocks import BlockGraph
from .config import LAYOUT, TableLayout
from .models import AnswerMap, Block, BlockType, question_id

logger = logging.getLogger(__name__)

_LEADING_INT = re.compile(r"^\s*(\d+)")
_LEADING_QNUM = re.compile(r"^(\d+)\s")


def table_cells(graph: BlockGraph, table: Block) -> List[Block]:
    seen = set()
    cells: List[Block] = []
    for child in graph.children(table):
        if child.block_type == BlockType.CELL and child.id not in seen:
            seen.add(child.id)
            cells.append(child)
    return cells


def iter_table_rows(graph: BlockGraph, table: Block) -> Iterator[Tuple[int, List[Block]]]:
    """Yield (row_index, cells) in ascending row order, cells sorted by column."""
    rows: Dict[int, List[Block]] = {}
    for cell in table_cells(graph, table):
        rows.setdefault(cell.row_index or 0, []).append(cell)
    for row_index in sorted(rows):
        yield row_index, sorted(rows[row_index], key=lambda c: c.column_index or 0)


def _parse_leading_int(text: str) -> Optional[int]:
    m = _LEADING_INT.match(text)
    return int(m.group(1)) if m else None


def is_header_row(graph: BlockGraph, cells: List[Block], layout: TableLayout = LAYOUT) -> bool:
    marker = layout.header_marker.upper()
    per_group = layout.cells_per_row // len(layout.groups)
    for g in range(len(layout.groups)):
        answer_cell = cells[g * per_group + per_group - 1]
        if marker in graph.resolve_text(answer_cell).upper():
            return True
    return False


def _resolve_question(
    number_text: str,
    question_text: str,
    answer: str,
    lo: int,
    hi: int,
    expected: int,
    answers: AnswerMap,
) -> Optional[int]:
    parsed = _parse_leading_int(number_text)
    if parsed is not None and lo <= parsed <= hi:
        if question_id(parsed) not in answers:
            return parsed
        # Printed number already used: OCR noise or a duplicate, rely on the sequence
    else:
        m = _LEADING_QNUM.match(question_text)
        if m:
            n = int(m.group(1))
            if lo <= n <= hi and question_id(n) not in answers:
                return n
    if answer and expected <= hi:
        return expected
    return None


def extract_table_answers(graph: BlockGraph, max_q: int = 100, layout: TableLayout = LAYOUT) -> AnswerMap:
    """Read question/answer pairs out of every six-column answer table on the page.

    Each row holds one (number, question, answer) triple per column group. The
    printed number is preferred; the question text's leading number and then
    a running per-group counter are the fallbacks. First assignment wins.
    """
    answers: AnswerMap = {}
    per_group = layout.cells_per_row // len(layout.groups)
    tables = graph.of_type(BlockType.TABLE)
    logger.debug("Found %d table(s)", len(tables))

    for table in tables:
        expected = [lo for lo, _ in layout.groups]
        for row_index, cells in iter_table_rows(graph, table):
            if len(cells) != layout.cells_per_row:
                continue
            if is_header_row(graph, cells, layout):
                continue

            for g, (lo, hi) in enumerate(layout.groups):
                base = g * per_group
                number_text = graph.resolve_text(cells[base])
                question_text = graph.resolve_text(cells[base + 1])
                answer = graph.resolve_text(cells[base + per_group - 1])

                qnum = _resolve_question(number_text, question_text, answer, lo, hi, expected[g], answers)
                if qnum is not None and qnum <= max_q and answer and question_id(qnum) not in answers:
                    answers[question_id(qnum)] = answer
                    logger.debug('Row %d: Q%d = "%s"', row_index, qnum, answer)
                    expected[g] = qnum + 1
                elif answer:
                    expected[g] += 1

    logger.info("Extracted %d answers from table", len(answers))
    return answers
