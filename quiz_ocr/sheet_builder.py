from __future__ import annotations

import logging
import os
import re
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Sequence

from tqdm import tqdm

from .answer_key_loader import try_load_answer_key
from .blocks import BlockGraph
from .config import CORRECTION, LAYOUT, CorrectionConfig, RunConfig, TableLayout
from .corrections import apply_corrections
from .key_values import extract_key_values, extract_kv_answers, normalise_kv
from .models import AnswerKey, Block, PageResult, SheetResult, sort_answers
from .page_render import PageImage, expand_pages, is_page_file
from .table_parser import extract_table_answers
from .textract_client import TextractClient

logger = logging.getLogger(__name__)

_EMAIL = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def extract_page(
    blocks: Iterable[Block],
    max_q: int = 100,
    answer_key: Optional[AnswerKey] = None,
    source: str = "",
    layout: TableLayout = LAYOUT,
    correction: CorrectionConfig = CORRECTION,
) -> PageResult:
    """Answers for one page: the table path first, key-value pairs when no table answers exist."""
    graph = BlockGraph(blocks)
    kv = normalise_kv(extract_key_values(graph))
    name = kv.pop("name", None) or None
    email = kv.pop("email", None) or None

    raw = extract_table_answers(graph, max_q=max_q, layout=layout)
    if raw:
        # Shifts must not write past the question cap
        correction = replace(correction, last_question=min(correction.last_question, max_q))
        result = apply_corrections(raw, answer_key, correction)
        return PageResult(source=source, answers=result.answers, method="table", name=name, email=email, stats=result.stats)

    logger.debug("No table answers found in %s, falling back to key-value pairs", source or "page")
    answers = extract_kv_answers(kv, max_q)
    return PageResult(source=source, answers=answers, method="key_value" if answers else "none", name=name, email=email)


def list_pages(folder: str, pages: Optional[Sequence[str]] = None) -> List[PageImage]:
    """Pages in caller order when given, otherwise by sorted file name."""
    names = list(pages) if pages else sorted(f for f in os.listdir(folder) if is_page_file(f))
    out: List[PageImage] = []
    for name in names:
        out.extend(expand_pages(os.path.join(folder, name)))
    return out


def process_sheet(
    folder: str,
    client: TextractClient,
    pages: Optional[Sequence[str]] = None,
    max_q: int = 100,
    answer_key: Optional[AnswerKey] = None,
    correction: CorrectionConfig = CORRECTION,
) -> SheetResult:
    """Process one answer sheet folder page by page.

    Pages run strictly in order: a later page overwrites answers for the same
    question, while name and email keep the first value found.
    """
    sheet = SheetResult(sheet_id=os.path.basename(os.path.normpath(folder)))
    page_list = list_pages(folder, pages)
    logger.info("Processing %s: %d page(s)", sheet.sheet_id, len(page_list))

    for page in page_list:
        blocks = client.analyze(page)
        res = extract_page(blocks, max_q=max_q, answer_key=answer_key, source=page.label, correction=correction)
        sheet.pages.append(res)
        sheet.answers.update(res.answers)
        sheet.stats.add(res.stats)
        if not sheet.name and res.name:
            sheet.name = res.name
            logger.info("Found student name for %s: %s", sheet.sheet_id, res.name)
        if not sheet.email and res.email:
            sheet.email = res.email
            logger.info("Found student email for %s: %s", sheet.sheet_id, res.email)
        logger.debug("Merged %d answers from %s (%s)", len(res.answers), page.label, res.method)

    if sheet.email and not _EMAIL.match(sheet.email):
        logger.warning("Email for %s looks malformed: %s", sheet.sheet_id, sheet.email)
    sheet.answers = sort_answers(sheet.answers)
    logger.info("Finished %s: %d answers from %d page(s)", sheet.sheet_id, len(sheet.answers), len(page_list))
    return sheet


def find_sheet_folders(folder: str) -> List[str]:
    """Every sub-folder is one sheet; a folder holding pages directly is a single sheet."""
    subdirs = sorted(
        os.path.join(folder, d)
        for d in os.listdir(folder)
        if os.path.isdir(os.path.join(folder, d)) and not d.startswith(".")
    )
    if subdirs:
        return subdirs
    if any(is_page_file(f) for f in os.listdir(folder)):
        return [folder]
    return []


def run_batch(cfg: RunConfig, client: Optional[TextractClient] = None) -> Dict[str, SheetResult]:
    if not os.path.isdir(cfg.folder):
        raise ValueError(f"Input folder not found: {cfg.folder}")
    answer_key = try_load_answer_key(cfg.answer_key_path)
    client = client or TextractClient(cfg.textract)

    results: Dict[str, SheetResult] = {}
    folders = find_sheet_folders(cfg.folder)
    for folder in tqdm(folders, desc="sheets", unit="sheet"):
        sheet_id = os.path.basename(os.path.normpath(folder))
        try:
            results[sheet_id] = process_sheet(
                folder,
                client,
                pages=cfg.pages,
                max_q=cfg.max_questions,
                answer_key=answer_key,
                correction=cfg.correction,
            )
        except (OSError, RuntimeError, ValueError) as e:
            logger.error("Failed to process %s: %s", sheet_id, e)
            results[sheet_id] = SheetResult(sheet_id=sheet_id, error=str(e))

    if cfg.outputs:
        from .report import write_outputs

        write_outputs(results, cfg.outputs)

    total = len(results)
    failed = sum(1 for r in results.values() if r.error)
    answers = sum(len(r.answers) for r in results.values())
    corrected = sum(r.stats.total_changes for r in results.values())
    print("\n--- Extraction Summary ---")
    print(f"Sheets: {total}")
    print(f"Failed: {failed}")
    print(f"Answers extracted: {answers}")
    print(f"Corrections applied: {corrected}")
    for out in cfg.outputs:
        print(f"{out.type}: {out.path}")
    return results
