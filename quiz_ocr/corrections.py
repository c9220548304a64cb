from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Set

from .config import CORRECTION, CorrectionConfig
from .models import AnswerKey, AnswerMap, CorrectionStats, question_id, question_number
from .similarity import normalize, similarity, split_alternatives

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Merge:
    question: int  # slot whose text held two answers
    first: int
    second: int
    remainder: str


@dataclass
class CorrectionResult:
    answers: AnswerMap
    stats: CorrectionStats = field(default_factory=CorrectionStats)
    merges: List[Merge] = field(default_factory=list)


class _Phase(Enum):
    SHIFTING = "shifting"
    REMAINDER_CHECK = "remainder_check"
    DONE = "done"


PULL = 1  # slot k takes the content of slot k+1
PUSH = -1  # slot k takes the content of slot k-1


class _Corrector:
    """Working state for one correction call: answers, assigned key ids, merges and counts."""

    def __init__(self, answers: AnswerMap, answer_key: AnswerKey, config: CorrectionConfig):
        self.answers: AnswerMap = dict(answers)
        self.key = answer_key
        self.cfg = config
        self.assigned: Set[str] = set()
        self.merges: List[Merge] = []
        self.stats = CorrectionStats()
        self.key_numbers = sorted(
            n
            for n in (question_number(k) for k, v in answer_key.items() if v)
            if config.first_question <= n <= config.last_question
        )

    def expected(self, number: int) -> Optional[str]:
        return self.key.get(question_id(number)) or None

    def _ordered(self) -> List[str]:
        return sorted(self.answers, key=question_number)

    # Pass 1
    def detect_merges(self) -> None:
        for qid in self._ordered():
            extracted = self.answers[qid]
            norm = normalize(extracted)
            own = self.key.get(qid)
            if own and (norm == normalize(own) or norm in split_alternatives(own)):
                continue
            merge = self._find_merge(norm)
            if merge is None:
                continue
            first_key = question_id(merge[0])
            logger.debug(
                'Detected merge in %s: "%s" contains "%s" + "%s"',
                qid, extracted, self.key[first_key], self.key[question_id(merge[1])],
            )
            self.answers[qid] = self.key[first_key]
            self.assigned.add(first_key)
            self.merges.append(Merge(question_number(qid), merge[0], merge[1], merge[2]))
            self.stats.merges_detected += 1

    def _find_merge(self, norm: str):
        for i in self.key_numbers:
            ikey = question_id(i)
            if ikey in self.assigned:
                continue
            norm_i = normalize(self.key[ikey])
            if not norm_i or not norm.startswith(norm_i) or len(norm) <= len(norm_i):
                continue
            remainder = norm[len(norm_i):]
            for j in self.key_numbers:
                jkey = question_id(j)
                if j <= i or jkey in self.assigned:
                    continue
                norm_j = normalize(self.key[jkey])
                if remainder == norm_j or similarity(remainder, norm_j) > self.cfg.merge_threshold:
                    return i, j, remainder
        return None

    # Pass 2
    def fuzzy_correct(self) -> None:
        for qid in self._ordered():
            extracted = self.answers[qid]
            number = question_number(qid)
            expected = self.expected(number)
            if not expected:
                logger.debug('No expected answer for %s, keeping "%s"', qid, extracted)
                continue
            score = similarity(extracted, expected)
            if score >= self.cfg.accept_threshold:
                if normalize(extracted) != normalize(expected):
                    logger.debug('High similarity (%.2f) for %s: "%s" -> "%s"', score, qid, extracted, expected)
                    self.answers[qid] = expected
                    self.stats.fuzzy_corrections += 1
            elif score < self.cfg.reject_threshold:
                best_key, best_score = self._best_neighbour(number, extracted)
                if best_score > self.cfg.accept_threshold:
                    # Reassignment is left to the shift pass
                    logger.debug('Better match (%.2f) for %s: "%s" matches %s', best_score, qid, extracted, best_key)
                    self.stats.misplacements_detected += 1
                else:
                    logger.debug('Low similarity (%.2f) for %s: "%s" vs "%s"', score, qid, extracted, expected)

    def _best_neighbour(self, number: int, extracted: str):
        best_key, best_score = "", 0.0
        w = self.cfg.neighbour_window
        for offset in range(-w, w + 1):
            n = number + offset
            if offset == 0 or n < self.cfg.first_question or n > self.cfg.last_question:
                continue
            nkey = question_id(n)
            nearby = self.key.get(nkey)
            if not nearby or nkey in self.assigned:
                continue
            score = similarity(extracted, nearby)
            if score > best_score:
                best_key, best_score = nkey, score
        return best_key, best_score

    # Pass 3
    def resolve_splits(self) -> None:
        snapshot: AnswerMap = dict(self.answers)
        adjacent: Dict[int, Merge] = {
            m.question: m for m in self.merges if m.first == m.question and m.second == m.question + 1
        }
        q = self.cfg.first_question
        while q <= self.cfg.last_question:
            merge = adjacent.get(q)
            if merge is not None and self.expected(merge.second) and merge.second <= self.cfg.last_question:
                self._resolve_merge(snapshot, merge)
                q += 2
                continue
            if self._resolve_split(snapshot, q):
                q += 2
                continue
            q += 1

    def _resolve_split(self, snapshot: AnswerMap, q: int) -> bool:
        extracted = snapshot.get(question_id(q))
        expected = self.expected(q)
        if not extracted or not expected:
            return False
        norm = normalize(extracted)
        norm_expected = normalize(expected)
        if not (
            norm_expected.startswith(norm)
            and len(norm) < len(norm_expected)
            and len(norm) > self.cfg.min_split_prefix
        ):
            return False
        following = snapshot.get(question_id(q + 1))
        if not following:
            return False
        remainder = norm_expected[len(norm):]
        norm_following = normalize(following)
        if not (norm_following == remainder or norm_following.startswith(remainder)):
            return False

        logger.debug(
            'Detected split answer: Q%d "%s" + Q%d "%s" = "%s"', q, extracted, q + 1, following, expected
        )
        self.answers[question_id(q)] = expected
        self.stats.splits_resolved += 1
        self._cascade(snapshot, q + 1, PULL)
        return True

    def _resolve_merge(self, snapshot: AnswerMap, merge: Merge) -> None:
        second = question_id(merge.second)
        self.answers[second] = self.key[second]
        self.stats.merges_resolved += 1
        logger.debug('Placed merged remainder: %s = "%s"', second, self.key[second])

        k = merge.second + 1
        expected = self.expected(k)
        if not expected:
            return
        if self._matches(self._source(snapshot, k, PULL), expected):
            self._cascade(snapshot, k, PULL)
        elif self._matches(self._source(snapshot, k, PUSH), expected):
            self._cascade(snapshot, k, PUSH)

    def _source(self, snapshot: AnswerMap, k: int, step: int) -> Optional[str]:
        n = k + step
        if n < self.cfg.first_question or n > self.cfg.last_question:
            return None
        return snapshot.get(question_id(n)) or None

    def _matches(self, text: Optional[str], expected: str) -> bool:
        if not text:
            return False
        return similarity(text, expected) > self.cfg.shift_threshold or self._matched_prefix(text, expected) is not None

    @staticmethod
    def _matched_prefix(text: str, expected: str) -> Optional[str]:
        norm = normalize(text)
        for alt in split_alternatives(expected):
            if alt and norm.startswith(alt):
                return alt
        return None

    def _cascade(self, snapshot: AnswerMap, start: int, step: int) -> None:
        """Shift answers slot by slot until the neighbouring content stops matching.

        Each step assigns slot k its own expected text when the source slot
        (k+1 for PULL, k-1 for PUSH) holds that answer. A source that starts
        with the expected answer and carries extra text may also satisfy k+1.
        """
        k = start
        phase = _Phase.SHIFTING
        remainder = ""
        protected: Set[str] = set()
        while phase is not _Phase.DONE:
            kid = question_id(k)
            if phase is _Phase.SHIFTING:
                expected = self.expected(k)
                if k > self.cfg.last_question or not expected:
                    logger.debug("Stopping shift at %s: no expected answer", kid)
                    phase = _Phase.DONE
                    continue
                source = self._source(snapshot, k, step)
                if not source:
                    if step == PULL and kid not in protected and kid in self.answers:
                        # Content of this slot already moved to k-1
                        del self.answers[kid]
                        self.stats.removed += 1
                        logger.debug("Removed %s: no source left after shift", kid)
                    phase = _Phase.DONE
                    continue
                score = similarity(source, expected)
                prefix = self._matched_prefix(source, expected)
                logger.debug(
                    'Shift check %s: source="%s" expected="%s" (similarity=%.2f, prefix=%s)',
                    kid, source, expected, score, prefix is not None,
                )
                if score <= self.cfg.shift_threshold and prefix is None:
                    logger.debug("Stopping shift at %s", kid)
                    phase = _Phase.DONE
                    continue
                self.answers[kid] = expected
                self.stats.shifted += 1
                norm_source = normalize(source)
                if prefix is not None and len(norm_source) > len(prefix):
                    remainder = norm_source[len(prefix):]
                    phase = _Phase.REMAINDER_CHECK
                else:
                    k += 1
            elif phase is _Phase.REMAINDER_CHECK:
                nid = question_id(k + 1)
                next_expected = self.expected(k + 1)
                if (
                    k + 1 <= self.cfg.last_question
                    and next_expected
                    and similarity(remainder, next_expected) > self.cfg.shift_threshold
                ):
                    self.answers[nid] = next_expected
                    protected.add(nid)
                    self.stats.shifted += 1
                    logger.debug('Assigned %s = "%s" from remainder', nid, next_expected)
                remainder = ""
                k += 1
                phase = _Phase.SHIFTING


def apply_corrections(
    answers: AnswerMap,
    answer_key: Optional[AnswerKey],
    config: CorrectionConfig = CORRECTION,
) -> CorrectionResult:
    """Repair OCR errors in one page's answers against an answer key.

    Runs merge detection, direct fuzzy correction, then split detection with
    a cascading shift. Without a key the answers are returned unchanged.
    """
    if not answer_key:
        logger.debug("No answer key provided, skipping OCR corrections")
        return CorrectionResult(answers=dict(answers))

    c = _Corrector(answers, answer_key, config)
    c.detect_merges()
    c.fuzzy_correct()
    c.resolve_splits()
    logger.info(
        "Applied OCR corrections: %d fuzzy, %d merges, %d splits, %d shifted, %d removed",
        c.stats.fuzzy_corrections, c.stats.merges_detected, c.stats.splits_resolved,
        c.stats.shifted, c.stats.removed,
    )
    return CorrectionResult(answers=c.answers, stats=c.stats, merges=list(c.merges))
