# FILE: cbt_engine/models/results.py
"""
Evaluation and result models
"""
import uuid
from typing import Optional, List, Dict, Any
from datetime import datetime, timezone
from pydantic import BaseModel, ConfigDict, Field

from cbt_engine.models.attempts import AttemptStatus, FinalizeReason


class QuestionEvaluation(BaseModel):
    """Per-question evaluation row"""
    model_config = ConfigDict(frozen=True)

    question_id: str
    submitted: Optional[str] = None
    correct: Optional[bool] = None
    percent: Optional[int] = Field(None, ge=0, le=100)
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0)
    details: Optional[Dict[str, Any]] = None


class EvaluationResult(BaseModel):
    """Result of scoring one attempt; computed once, never mutated"""
    model_config = ConfigDict(frozen=True)

    per_question: List[QuestionEvaluation] = Field(default_factory=list)
    aggregate_percent: int = Field(..., ge=0, le=100)
    aggregate_confidence: Optional[float] = Field(None, ge=0.0, le=1.0)
    status: AttemptStatus
    matches: Optional[int] = Field(None, ge=0, description="Correct answers (objective exams)")
    total: Optional[int] = Field(None, ge=0, description="Questions scored (objective exams)")


class ResultRecord(BaseModel):
    """Finalized result handed to the persistence sink"""
    result_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    exam_id: str
    student_id: str
    answers: Dict[str, Optional[str]] = Field(default_factory=dict)
    aggregate_percent: int
    aggregate_confidence: Optional[float] = None
    status: AttemptStatus
    time_spent_seconds: int = Field(..., ge=0)
    finalize_reason: FinalizeReason
    question_order: List[str] = Field(default_factory=list)
    submitted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    matches: Optional[int] = None
    total: Optional[int] = None
    recalculated: bool = False

    # operator review
    finalized: bool = False
    finalized_at: Optional[datetime] = None
    finalize_note: Optional[str] = None


class FinalizeReviewRequest(BaseModel):
    """Operator closes a provisional or pending_review grade"""
    exam_id: Optional[str] = None
    percent: int
    note: str = ""
