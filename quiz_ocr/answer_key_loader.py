from __future__ import annotations

import json
import logging
from typing import Optional

from .models import AnswerKey, question_id, question_number

logger = logging.getLogger(__name__)


def load_answer_key(path: str) -> AnswerKey:
    """Load an answer key JSON.

    Format: {"Q1": "CRUEL SUMMER", "Q2": "GLORY/HAPPY DAYS", ...}; "/" separates
    accepted alternatives. Bare numeric keys ("1") are read as "Q1".
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ValueError(f"Failed to load answer key {path}: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"Answer key {path} must be a JSON object")

    key: AnswerKey = {}
    for qid, ans in data.items():
        if ans is None:
            continue
        n = question_number(str(qid))
        if n <= 0:
            continue
        key[question_id(n)] = str(ans).strip()
    logger.info("Loaded answer key %s with %d questions", path, len(key))
    return key


def try_load_answer_key(path: Optional[str]) -> Optional[AnswerKey]:
    """Like load_answer_key, but a missing or broken key only disables corrections."""
    if not path:
        return None
    try:
        return load_answer_key(path)
    except ValueError as e:
        logger.warning("Answer key not loaded, OCR corrections will be skipped: %s", e)
        return None
