# FILE: cbt_engine/models/exams.py
"""
Exam and question models
"""
from enum import Enum
from typing import Optional, List, Union
from pydantic import BaseModel, Field


class ExamType(str, Enum):
    """Scoring family of an exam (an exam is uniformly one type)"""
    OBJECTIVE = "objective"
    ESSAY = "essay"


class ObjectiveQuestion(BaseModel):
    """Multiple choice question scored by exact match"""
    id: str
    prompt_text: str
    options: List[str] = Field(default_factory=list)
    correct_option_index: Optional[int] = Field(
        None, description="Index into options of the correct answer text"
    )


class EssayQuestion(BaseModel):
    """Free-text question scored by the essay heuristic"""
    id: str
    prompt_text: str
    rubric_keywords: Optional[str] = Field(None, description="Comma-separated keywords")
    min_words: Optional[int] = None
    model_answer: Optional[str] = None


Question = Union[ObjectiveQuestion, EssayQuestion]


class ExamDescriptor(BaseModel):
    """Exam metadata consumed by the attempt engine"""
    id: str
    title: str = ""
    type: ExamType = ExamType.OBJECTIVE
    duration_minutes: float = Field(..., ge=0)
    randomize_questions: bool = True
    randomize_options: bool = True

    @property
    def duration_seconds(self) -> int:
        return int(round(self.duration_minutes * 60))


class PresentedQuestion(BaseModel):
    """Question as shown to the student (options already permuted)"""
    id: str
    prompt_text: str
    options: List[str] = Field(default_factory=list)
    min_words: Optional[int] = None
