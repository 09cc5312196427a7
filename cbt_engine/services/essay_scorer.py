# FILE: cbt_engine/services/essay_scorer.py
"""
Heuristic essay scorer

Blends rubric keyword coverage, answer length and overlap with an optional
model answer into a provisional percent plus a confidence value. The
confidence, not the percent, decides whether a human has to review the grade.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from cbt_engine.services.objective_scorer import round_half_up

logger = logging.getLogger(__name__)

KEYWORD_WEIGHT = 0.5
LENGTH_WEIGHT = 0.3
OVERLAP_WEIGHT = 0.2

SHORT_ANSWER_CREDIT = 0.8
OVERLAP_BOOST = 1.2
NEUTRAL_KEYWORD_SCORE = 1.0
NEUTRAL_LENGTH_SCORE = 1.0
NEUTRAL_OVERLAP_SCORE = 0.5

BASE_CONFIDENCE = 0.4
CONFIDENCE_STEP = 0.2
MIN_KEYWORDS_FOR_CONFIDENCE = 3
OVERLAP_CONFIDENCE_THRESHOLD = 0.2

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")


@dataclass
class EssayScore:
    percent: int
    confidence: float
    details: Dict[str, Any] = field(default_factory=dict)


def tokenize(text: Optional[str]) -> List[str]:
    """Lowercase, replace non-alphanumerics with spaces, split on whitespace"""
    cleaned = _NON_ALNUM.sub(" ", str(text or "").lower())
    return cleaned.split()


def parse_keywords(keywords_csv: Optional[str]) -> List[str]:
    return [k.strip().lower() for k in str(keywords_csv or "").split(",") if k.strip()]


def keyword_score(answer_tokens: Sequence[str], keywords_csv: Optional[str]) -> Tuple[float, int, int]:
    """(coverage, hits, total); neutral when no keywords are configured"""
    keywords = parse_keywords(keywords_csv)
    if not keywords:
        return NEUTRAL_KEYWORD_SCORE, 0, 0

    answer_set = set(answer_tokens)
    hits = sum(1 for kw in keywords if kw in answer_set)
    return hits / len(keywords), hits, len(keywords)


def length_score(word_count: int, min_words: Optional[int]) -> float:
    if not min_words or min_words <= 0:
        return NEUTRAL_LENGTH_SCORE
    ratio = word_count / min_words
    if ratio >= 1:
        return 1.0
    # partial credit, at most 80%, below the minimum length
    return max(0.0, ratio * SHORT_ANSWER_CREDIT)


def overlap_score(answer_tokens: Sequence[str], model_tokens: Sequence[str]) -> float:
    if not model_tokens:
        return NEUTRAL_OVERLAP_SCORE
    model_set = set(model_tokens)
    common = len(set(answer_tokens) & model_set)
    return min(1.0, (common / len(model_set)) * OVERLAP_BOOST)


def score_essay(
    answer_text: Optional[str],
    rubric_keywords: Optional[str] = None,
    min_words: Optional[int] = None,
    model_answer: Optional[str] = None
) -> EssayScore:
    """Score one essay answer; never raises for malformed or empty input"""
    tokens = tokenize(answer_text)
    model_tokens = tokenize(model_answer)

    kw, hits, total = keyword_score(tokens, rubric_keywords)
    length = length_score(len(tokens), min_words)
    overlap = overlap_score(tokens, model_tokens)

    weighted = KEYWORD_WEIGHT * kw + LENGTH_WEIGHT * length + OVERLAP_WEIGHT * overlap
    percent = min(100, max(0, round_half_up(weighted * 100)))

    confidence = BASE_CONFIDENCE
    if total >= MIN_KEYWORDS_FOR_CONFIDENCE:
        confidence += CONFIDENCE_STEP
    if length >= 1:
        confidence += CONFIDENCE_STEP
    if overlap >= OVERLAP_CONFIDENCE_THRESHOLD:
        confidence += CONFIDENCE_STEP
    confidence = round(min(1.0, confidence), 2)

    return EssayScore(
        percent=percent,
        confidence=confidence,
        details={
            "keywords_hit": hits,
            "keywords_total": total,
            "word_count": len(tokens),
            "keyword_score": round(kw, 4),
            "length_score": round(length, 4),
            "overlap_score": round(overlap, 4),
        }
    )


def aggregate_essay_scores(scores: Sequence[EssayScore]) -> Tuple[int, float]:
    """Mean percent (rounded) and mean confidence (2 decimals)"""
    if not scores:
        return 0, 0.0
    avg_percent = round_half_up(sum(s.percent for s in scores) / len(scores))
    avg_confidence = round(sum(s.confidence for s in scores) / len(scores), 2)
    return avg_percent, avg_confidence
