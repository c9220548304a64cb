from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, List, Optional, Tuple

import yaml


@dataclass(frozen=True)
class Paths:
    root: str = os.getcwd()
    input: str = os.path.join(root, "quizzes")
    base_output: str = os.path.join(root, "output")
    results: str = os.path.join(base_output, "results.json")
    report: str = os.path.join(base_output, "report.html")


@dataclass(frozen=True)
class TextractConfig:
    # Explicit region; falls back to $AWS_REGION, then default_region
    region: Optional[str] = None
    region_env: str = "AWS_REGION"
    default_region: str = "eu-west-2"
    feature_types: Tuple[str, ...] = ("TABLES", "FORMS")
    cache_dirname: str = ".textract"
    use_cache: bool = False
    save_cache: bool = False
    retry_limit: int = 2
    render_dpi: int = 200


@dataclass(frozen=True)
class TableLayout:
    cells_per_row: int = 6
    header_marker: str = "ANSWER"
    # (first, last) question number for each column group, left to right
    groups: Tuple[Tuple[int, int], ...] = ((1, 25), (26, 50))


@dataclass(frozen=True)
class CorrectionConfig:
    merge_threshold: float = 0.8
    accept_threshold: float = 0.85
    reject_threshold: float = 0.5
    shift_threshold: float = 0.7
    neighbour_window: int = 3
    first_question: int = 1
    last_question: int = 50
    min_split_prefix: int = 3


@dataclass(frozen=True)
class OutputTarget:
    type: str
    path: str


@dataclass(frozen=True)
class RunConfig:
    folder: str
    pages: Optional[Tuple[str, ...]] = None
    max_questions: int = 100
    answer_key_path: Optional[str] = None
    textract: TextractConfig = field(default_factory=TextractConfig)
    correction: CorrectionConfig = field(default_factory=CorrectionConfig)
    outputs: Tuple[OutputTarget, ...] = ()


PATHS = Paths()
TEXTRACT = TextractConfig()
LAYOUT = TableLayout()
CORRECTION = CorrectionConfig()

OUTPUT_TYPES = {"file", "html_report"}


def _overrides(cls, section: Optional[dict]) -> Dict[str, Any]:
    """Keep only keys that are fields of `cls`."""
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in (section or {}).items() if k in names}


def load_config(path: str) -> RunConfig:
    """Load a YAML run config and merge it over the defaults.

    Layout::

        input: {folder, pages, max_questions}
        textract: {use_cache, save_cache, region}
        answer_key: {path}
        corrections: {accept_threshold, ...}
        output: [{type: file|html_report, path}]
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ValueError(f"Failed to load config from {path}: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"Config {path} must be a mapping")

    inp = data.get("input") or {}
    tx = dict(data.get("textract") or {})
    if tx.get("region") is not None:
        tx["region"] = str(tx["region"])

    pages = inp.get("pages")
    outputs: List[OutputTarget] = []
    for item in data.get("output") or []:
        if isinstance(item, dict):
            outputs.append(OutputTarget(type=str(item.get("type", "")), path=str(item.get("path") or "")))

    cfg = RunConfig(
        folder=str(inp.get("folder") or ""),
        pages=tuple(str(p) for p in pages) if pages else None,
        max_questions=int(inp.get("max_questions", 100) or 100),
        answer_key_path=(data.get("answer_key") or {}).get("path"),
        textract=replace(TEXTRACT, **_overrides(TextractConfig, tx)),
        correction=replace(CORRECTION, **_overrides(CorrectionConfig, data.get("corrections"))),
        outputs=tuple(outputs),
    )
    validate_config(cfg)
    return cfg


def validate_config(cfg: RunConfig) -> None:
    if not cfg.folder:
        raise ValueError("input.folder is required")
    if cfg.max_questions <= 0:
        raise ValueError("input.max_questions must be a positive integer")
    for out in cfg.outputs:
        if out.type not in OUTPUT_TYPES:
            raise ValueError(f"Unknown output type: {out.type!r}")
        if not out.path:
            raise ValueError(f"output.path is required for {out.type} output")
