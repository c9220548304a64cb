from __future__ import annotations

import re
from typing import List

from rapidfuzz.distance import Levenshtein

_NON_ALNUM = re.compile(r"[^A-Z0-9]")


def normalize(text: str) -> str:
    """Uppercase and drop everything that is not A-Z or 0-9."""
    return _NON_ALNUM.sub("", (text or "").upper()).strip()


def split_alternatives(expected: str) -> List[str]:
    """Normalized "/"-separated alternatives of an expected answer."""
    return [normalize(alt.strip()) for alt in (expected or "").split("/")]


def similarity(candidate: str, expected: str) -> float:
    """Best normalized edit similarity of `candidate` against the alternatives of `expected`.

    Alternatives are only expanded on the expected side, so the reference
    answer must always be passed second.
    """
    norm = normalize(candidate)
    if not norm:
        return 0.0
    best = 0.0
    for alt in split_alternatives(expected):
        if norm == alt:
            return 1.0
        if not alt:
            continue
        # Edit distance over the longer length
        score = Levenshtein.normalized_similarity(norm, alt)
        if score > best:
            best = score
    return best
