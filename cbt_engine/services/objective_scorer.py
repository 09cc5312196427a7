# FILE: cbt_engine/services/objective_scorer.py
"""
Objective scoring: exact match against the option at the designated index
"""
import logging
import math
from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Sequence

from cbt_engine.models.exams import ObjectiveQuestion
from cbt_engine.models.results import QuestionEvaluation

logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    """Round x.5 upwards (Python's round() rounds half to even)"""
    return int(math.floor(value + 0.5))


@dataclass
class ObjectiveScore:
    matches: int
    total: int
    percent: int
    per_question: List[QuestionEvaluation] = field(default_factory=list)


def correct_option_text(question: ObjectiveQuestion) -> Optional[str]:
    """
    The only source of truth for the correct answer: options[correct_option_index]

    Returns None when the index is missing or out of range.
    """
    index = question.correct_option_index
    if index is None or not 0 <= index < len(question.options):
        logger.warning(
            f"Question {question.id} has no usable correct_option_index "
            f"({index!r} for {len(question.options)} options); no match possible"
        )
        return None
    return question.options[index]


def is_correct(question: ObjectiveQuestion, submitted: Optional[str]) -> bool:
    if submitted is None or submitted == "":
        return False
    expected = correct_option_text(question)
    if expected is None:
        return False
    return submitted == expected


def score_objective(
    questions: Sequence[ObjectiveQuestion],
    answers: Mapping[str, Optional[str]]
) -> ObjectiveScore:
    """Count exact matches; percent = round(100 * matches / total)"""
    per_question = []
    matches = 0

    for question in questions:
        submitted = answers.get(question.id)
        correct = is_correct(question, submitted)
        if correct:
            matches += 1
        per_question.append(QuestionEvaluation(
            question_id=question.id,
            submitted=submitted,
            correct=correct
        ))

    total = len(questions)
    percent = round_half_up(100 * matches / total) if total else 0

    return ObjectiveScore(matches=matches, total=total, percent=percent, per_question=per_question)
