from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional

from .blocks import BlockGraph
from .models import AnswerMap, Block, BlockType, question_id

logger = logging.getLogger(__name__)

# Key text -> value text, in document order
KVMap = Dict[str, str]

_EMAIL_KEY = re.compile(r"^e-?mail", re.IGNORECASE)
_NAME_KEY = re.compile(r"^name\b", re.IGNORECASE)
_DIGITS = re.compile(r"^\d+$")


def _value_block(graph: BlockGraph, key_block: Block) -> Optional[Block]:
    for vid in key_block.related_ids("VALUE"):
        vb = graph.get(vid)
        if vb is not None and vb.block_type == BlockType.KEY_VALUE:
            return vb
    return None


def extract_key_values(graph: BlockGraph) -> KVMap:
    """Pair every KEY block with the text of its VALUE partner."""
    keys: List[Block] = [
        b for b in graph.of_type(BlockType.KEY_VALUE) if "KEY" in b.entity_types
    ]
    kv: KVMap = {}
    for kb in keys:
        key_text = graph.resolve_text(kb)
        if not key_text:
            continue
        kv[key_text] = graph.resolve_text(_value_block(graph, kb))
        logger.debug('Extracted KV pair: "%s" = "%s"', key_text, kv[key_text])
    logger.info("Extracted %d key-value pairs", len(kv))
    return kv


def normalise_kv(kv: KVMap) -> KVMap:
    """Trim keys and values and lift "name" / "email" entries when present."""
    out: KVMap = {}
    for k, v in kv.items():
        value = v.strip()
        out[k.strip()] = value
        # Unlabelled email addresses still count
        if "@" in value and "email" not in out:
            out["email"] = value

    for k, v in kv.items():
        key = re.sub(r"\s+", " ", k.lower()).strip()
        if _EMAIL_KEY.match(key):
            out["email"] = v.strip()
        elif _NAME_KEY.match(key):
            out["name"] = v.strip()
    return out


def extract_kv_answers(kv: KVMap, max_q: int = 100) -> AnswerMap:
    """Pure-number keys mark a question; the following pair's value is its answer."""
    answers: AnswerMap = {}
    items = list(kv.items())
    i = 0
    while i < len(items):
        key = items[i][0].strip()
        if _DIGITS.match(key):
            n = int(key)
            if 0 < n <= max_q and i + 1 < len(items):
                answers[question_id(n)] = items[i + 1][1]
                logger.debug('Matched Q%d -> "%s"', n, items[i + 1][1])
                i += 2
                continue
        i += 1
    logger.info("Extracted %d answers from key-value pairs", len(answers))
    return answers
