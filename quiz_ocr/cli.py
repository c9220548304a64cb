from __future__ import annotations

import argparse
import json
import logging
import os
from dataclasses import asdict, replace
from typing import List, Optional

from dotenv import find_dotenv, load_dotenv

from .answer_key_loader import load_answer_key
from .blocks import blocks_from_json
from .config import CORRECTION, PATHS, OutputTarget, RunConfig, load_config, validate_config
from .corrections import apply_corrections
from .models import sort_answers
from .sheet_builder import extract_page, run_batch

# Load .env if present so AWS settings are available via env vars
load_dotenv(find_dotenv(), override=False)


def _setup_logging(debug: bool) -> None:
    level = logging.DEBUG if debug else getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s", datefmt="%H:%M:%S")


def _config_from_args(args: argparse.Namespace) -> RunConfig:
    if args.config:
        cfg = load_config(args.config)
    else:
        cfg = RunConfig(folder=args.folder or PATHS.input)
    outputs: List[OutputTarget] = list(cfg.outputs)
    if args.out:
        outputs.append(OutputTarget(type="file", path=args.out))
    if args.report:
        outputs.append(OutputTarget(type="html_report", path=args.report))
    if not outputs:
        outputs = [OutputTarget(type="file", path=PATHS.results)]
    cfg = replace(
        cfg,
        folder=args.folder or cfg.folder,
        pages=tuple(args.pages) if args.pages else cfg.pages,
        max_questions=args.max_questions or cfg.max_questions,
        answer_key_path=args.answer_key or cfg.answer_key_path,
        textract=replace(
            cfg.textract,
            use_cache=cfg.textract.use_cache or args.use_cache,
            save_cache=cfg.textract.save_cache or args.save_cache,
        ),
        outputs=tuple(outputs),
    )
    validate_config(cfg)
    return cfg


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser("quiz-ocr")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="cmd", required=True)

    ex = sub.add_parser("extract", help="Extract answers from every answer sheet folder")
    ex.add_argument("--config", help="YAML run config", default=None)
    ex.add_argument("--folder", help="Folder of sheet sub-folders (or of pages)", default=None)
    ex.add_argument("--pages", nargs="*", help="Explicit page file order inside each sheet", default=None)
    ex.add_argument("--max-questions", type=int, default=None)
    ex.add_argument("--answer-key", help="Answer key JSON used for OCR corrections", default=None)
    ex.add_argument("--use-cache", action="store_true", help="Reuse saved Textract responses")
    ex.add_argument("--save-cache", action="store_true", help="Save Textract responses next to the pages")
    ex.add_argument("--out", help="Results JSON path", default=None)
    ex.add_argument("--report", help="HTML report path", default=None)

    pg = sub.add_parser("page", help="Extract answers from one saved Textract response")
    pg.add_argument("blocks", help="Textract JSON (block list or AnalyzeDocument response)")
    pg.add_argument("--max-questions", type=int, default=100)
    pg.add_argument("--answer-key", default=None)

    co = sub.add_parser("correct", help="Apply OCR corrections to an answers JSON")
    co.add_argument("answers", help="JSON object of Q<n> -> answer")
    co.add_argument("--answer-key", required=True)

    args = parser.parse_args(argv)
    _setup_logging(args.debug)

    if args.cmd == "extract":
        cfg = _config_from_args(args)
        run_batch(cfg)
    elif args.cmd == "page":
        with open(args.blocks, "r", encoding="utf-8") as f:
            blocks = blocks_from_json(json.load(f))
        key = load_answer_key(args.answer_key) if args.answer_key else None
        res = extract_page(blocks, max_q=args.max_questions, answer_key=key, source=args.blocks)
        print(json.dumps(
            {
                "method": res.method,
                "name": res.name,
                "email": res.email,
                "answers": sort_answers(res.answers),
                "corrections": asdict(res.stats),
            },
            ensure_ascii=False,
            indent=2,
        ))
    elif args.cmd == "correct":
        with open(args.answers, "r", encoding="utf-8") as f:
            answers = {str(k): str(v) for k, v in json.load(f).items()}
        result = apply_corrections(answers, load_answer_key(args.answer_key), CORRECTION)
        print(json.dumps(
            {"answers": sort_answers(result.answers), "corrections": asdict(result.stats)},
            ensure_ascii=False,
            indent=2,
        ))


if __name__ == "__main__":
    main()
