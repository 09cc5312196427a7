# FILE: cbt_engine/models/attempts.py
"""
Attempt models
"""
from enum import Enum
from typing import Optional, List, Dict
from datetime import datetime
from pydantic import BaseModel, Field

from cbt_engine.models.exams import ExamType, PresentedQuestion


class AttemptStatus(str, Enum):
    """Lifecycle status of one student's attempt"""
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    PROVISIONAL = "provisional"
    PENDING_REVIEW = "pending_review"


class FinalizeReason(str, Enum):
    """Why an attempt was finalized"""
    MANUAL = "manual"
    EXPIRED = "expired"


class Attempt(BaseModel):
    """One student's single pass at one exam"""
    exam_id: str
    student_id: str
    started_at: datetime
    duration_seconds: int = Field(..., ge=0)
    status: AttemptStatus = AttemptStatus.NOT_STARTED


class OrderingRecord(BaseModel):
    """Persisted, reproducible shuffle of questions and options for one attempt"""
    exam_id: str
    student_id: str
    question_order: List[str] = Field(default_factory=list)
    option_orders: Dict[str, List[int]] = Field(default_factory=dict)
    algorithm_version: str
    started_at: datetime


class StartAttemptRequest(BaseModel):
    """Start (or reload) an attempt"""
    exam_id: str
    student_id: str


class RecordAnswerRequest(BaseModel):
    """Record one answer into the in-memory answer set"""
    exam_id: str
    student_id: str
    question_id: str
    value: Optional[str] = None


class FinalizeRequest(BaseModel):
    """Finalize an attempt"""
    exam_id: str
    student_id: str
    reason: FinalizeReason = FinalizeReason.MANUAL


class StartedAttempt(BaseModel):
    """Ordered question sequence handed to the student"""
    exam_id: str
    student_id: str
    exam_type: ExamType
    started_at: datetime
    duration_seconds: int
    remaining_seconds: float
    questions: List[PresentedQuestion] = Field(default_factory=list)


class AttemptState(BaseModel):
    """Countdown and answer progress of an attempt"""
    exam_id: str
    student_id: str
    status: AttemptStatus
    countdown_state: str
    remaining_seconds: float
    answered: int
    total_questions: int
