# FILE: cbt_engine/services/result_assembler.py
"""
Result assembly: pick the scoring strategy by exam type and route the status
"""
import logging
from typing import Mapping, Optional, Protocol, Sequence

from cbt_engine.config import get_settings
from cbt_engine.models.attempts import AttemptStatus, FinalizeReason
from cbt_engine.models.exams import EssayQuestion, ExamDescriptor, ExamType, ObjectiveQuestion, Question
from cbt_engine.models.results import EvaluationResult, QuestionEvaluation, ResultRecord
from cbt_engine.services.essay_scorer import aggregate_essay_scores, score_essay
from cbt_engine.services.objective_scorer import score_objective

logger = logging.getLogger(__name__)
settings = get_settings()


class ResultSink(Protocol):
    """Persistence collaborator receiving finalized results"""

    async def save(self, record: ResultRecord) -> None:
        ...


def route_essay_status(aggregate_confidence: float, threshold: Optional[float] = None) -> AttemptStatus:
    """provisional when confident enough, otherwise escalate to a human reviewer"""
    if threshold is None:
        threshold = settings.review_confidence_threshold
    if aggregate_confidence >= threshold:
        return AttemptStatus.PROVISIONAL
    return AttemptStatus.PENDING_REVIEW


def _assemble_objective(questions: Sequence[Question], answers: Mapping[str, Optional[str]]) -> EvaluationResult:
    objective = [q for q in questions if isinstance(q, ObjectiveQuestion)]
    score = score_objective(objective, answers)
    return EvaluationResult(
        per_question=score.per_question,
        aggregate_percent=score.percent,
        aggregate_confidence=None,
        status=AttemptStatus.COMPLETED,
        matches=score.matches,
        total=score.total
    )


def _assemble_essay(
    questions: Sequence[Question],
    answers: Mapping[str, Optional[str]],
    threshold: Optional[float]
) -> EvaluationResult:
    per_question = []
    scores = []

    for question in questions:
        if not isinstance(question, EssayQuestion):
            continue
        submitted = answers.get(question.id)
        score = score_essay(
            submitted,
            rubric_keywords=question.rubric_keywords,
            min_words=question.min_words,
            model_answer=question.model_answer
        )
        scores.append(score)
        per_question.append(QuestionEvaluation(
            question_id=question.id,
            submitted=submitted,
            percent=score.percent,
            confidence=score.confidence,
            details=score.details
        ))

    percent, confidence = aggregate_essay_scores(scores)
    status = route_essay_status(confidence, threshold)
    if status == AttemptStatus.PENDING_REVIEW:
        logger.info(f"Essay aggregate confidence {confidence} below threshold; routing to pending_review")

    return EvaluationResult(
        per_question=per_question,
        aggregate_percent=percent,
        aggregate_confidence=confidence,
        status=status
    )


def assemble_result(
    exam: ExamDescriptor,
    questions: Sequence[Question],
    answers: Mapping[str, Optional[str]],
    threshold: Optional[float] = None
) -> EvaluationResult:
    """Score an attempt with the strategy matching the exam type"""
    if exam.type == ExamType.ESSAY:
        return _assemble_essay(questions, answers, threshold)
    return _assemble_objective(questions, answers)


def build_record(
    exam: ExamDescriptor,
    student_id: str,
    result: EvaluationResult,
    answers: Mapping[str, Optional[str]],
    time_spent_seconds: float,
    reason: FinalizeReason,
    question_order: Sequence[str] = ()
) -> ResultRecord:
    return ResultRecord(
        exam_id=exam.id,
        student_id=student_id,
        answers=dict(answers),
        aggregate_percent=result.aggregate_percent,
        aggregate_confidence=result.aggregate_confidence,
        status=result.status,
        time_spent_seconds=int(time_spent_seconds),
        finalize_reason=reason,
        question_order=list(question_order),
        matches=result.matches,
        total=result.total
    )


async def handoff(sink: ResultSink, record: ResultRecord) -> ResultRecord:
    """Hand the finalized record to the persistence collaborator"""
    await sink.save(record)
    logger.info(
        f"Result handed off: exam={record.exam_id} student={record.student_id} "
        f"percent={record.aggregate_percent} status={record.status.value}"
    )
    return record
