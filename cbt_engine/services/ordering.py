# FILE: cbt_engine/services/ordering.py
"""
Deterministic question/option ordering per attempt

The seed hash and bit generator below are a frozen contract: orderings already
handed to students are regenerated from them, so any change must bump
ORDERING_ALGORITHM_VERSION.
"""
import logging
from typing import Callable, List, Optional, Sequence, TypeVar
from datetime import datetime, timezone

from cbt_engine.models.attempts import OrderingRecord
from cbt_engine.models.exams import ObjectiveQuestion, Question

logger = logging.getLogger(__name__)

ORDERING_ALGORITHM_VERSION = "fnv1a-mulberry32-v1"

MASK32 = 0xFFFFFFFF
FNV_OFFSET_BASIS = 2166136261
FNV_PRIME = 16777619
MULBERRY_INCREMENT = 0x6D2B79F5

T = TypeVar("T")


def seed_hash(text: str) -> int:
    """32-bit FNV-1a hash of a seed string"""
    h = FNV_OFFSET_BASIS
    for ch in text:
        h ^= ord(ch)
        h = (h * FNV_PRIME) & MASK32
    return h


def _imul(a: int, b: int) -> int:
    return (a * b) & MASK32


def mulberry32(seed: int) -> Callable[[], float]:
    """
    Mulberry32 generator

    Returns a callable yielding floats in [0, 1); the sequence depends only on
    the 32-bit seed.
    """
    state = seed & MASK32

    def next_float() -> float:
        nonlocal state
        state = (state + MULBERRY_INCREMENT) & MASK32
        t = _imul(state ^ (state >> 15), state | 1)
        t ^= (t + _imul(t ^ (t >> 7), t | 61)) & MASK32
        return ((t ^ (t >> 14)) & MASK32) / 4294967296

    return next_float


def seeded_shuffle(items: Sequence[T], rng: Callable[[], float]) -> List[T]:
    """Fisher-Yates shuffle driven by rng; returns a new list"""
    result = list(items)
    for i in range(len(result) - 1, 0, -1):
        j = int(rng() * (i + 1))
        result[i], result[j] = result[j], result[i]
    return result


def attempt_seed(exam_id: str, student_id: str) -> str:
    """Seed string for the question sequence of an attempt"""
    return f"{exam_id}{student_id}"


def question_permutation(
    exam_id: str,
    student_id: str,
    question_ids: Sequence[str],
    randomize: bool = True
) -> List[str]:
    """Order of question ids for an attempt (identity when disabled)"""
    if not randomize:
        return list(question_ids)
    rng = mulberry32(seed_hash(attempt_seed(exam_id, student_id)))
    return seeded_shuffle(question_ids, rng)


def option_permutation(
    exam_id: str,
    student_id: str,
    question_id: str,
    option_count: int,
    randomize: bool = True
) -> List[int]:
    """Order of original option indices for one question (identity when disabled)"""
    indices = list(range(option_count))
    if not randomize or option_count < 2:
        return indices
    # Each question draws from its own stream so the question toggle and
    # question order never shift option orders.
    rng = mulberry32(seed_hash(attempt_seed(exam_id, student_id) + question_id))
    return seeded_shuffle(indices, rng)


def generate_ordering(
    exam_id: str,
    student_id: str,
    questions: Sequence[Question],
    randomize_questions: bool = True,
    randomize_options: bool = True,
    started_at: Optional[datetime] = None
) -> OrderingRecord:
    """Generate the ordering record for an attempt"""
    question_order = question_permutation(
        exam_id, student_id, [q.id for q in questions], randomize_questions
    )

    option_orders = {}
    for question in questions:
        option_count = len(question.options) if isinstance(question, ObjectiveQuestion) else 0
        option_orders[question.id] = option_permutation(
            exam_id, student_id, question.id, option_count, randomize_options
        )

    logger.debug(
        f"Generated ordering for exam={exam_id} student={student_id}: "
        f"{len(question_order)} questions"
    )

    return OrderingRecord(
        exam_id=exam_id,
        student_id=student_id,
        question_order=question_order,
        option_orders=option_orders,
        algorithm_version=ORDERING_ALGORITHM_VERSION,
        started_at=started_at or datetime.now(timezone.utc)
    )
