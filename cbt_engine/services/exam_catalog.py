# FILE: cbt_engine/services/exam_catalog.py
"""
Exam catalog: read-only question supply keyed by exam id
"""
import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from cbt_engine.config import get_settings
from cbt_engine.exceptions import ExamNotFoundError
from cbt_engine.models.exams import EssayQuestion, ExamDescriptor, ExamType, ObjectiveQuestion, Question

logger = logging.getLogger(__name__)
settings = get_settings()

_SAFE_ID = re.compile(r"^[A-Za-z0-9_.-]+$")


def is_safe_id(value: str) -> bool:
    """Ids are used in file names; reject anything that could leave the data dir"""
    return bool(_SAFE_ID.match(value or "")) and ".." not in value


class ExamCatalog:
    """Store for exam descriptors and their question banks"""

    def __init__(self, exams_dir: Optional[str] = None):
        self.exams_dir = Path(exams_dir or settings.exams_dir)
        self.exams_dir.mkdir(parents=True, exist_ok=True)
        self._cache: Dict[str, Dict[str, Any]] = {}

    def _exam_file(self, exam_id: str) -> Path:
        if not is_safe_id(exam_id):
            raise ExamNotFoundError(exam_id)
        return self.exams_dir / f"{exam_id}.json"

    def _load(self, exam_id: str) -> Dict[str, Any]:
        if exam_id in self._cache:
            return self._cache[exam_id]

        exam_file = self._exam_file(exam_id)
        if not exam_file.exists():
            raise ExamNotFoundError(exam_id)

        with open(exam_file, 'r') as f:
            data = json.load(f)

        exam = ExamDescriptor.model_validate(data["exam"])
        questions = self._parse_questions(exam, data.get("questions", []))
        entry = {"exam": exam, "questions": questions}
        self._cache[exam_id] = entry

        logger.info(f"Loaded exam {exam_id}: type={exam.type.value}, {len(questions)} questions")
        return entry

    def _parse_questions(self, exam: ExamDescriptor, raw: List[Dict[str, Any]]) -> List[Question]:
        model = EssayQuestion if exam.type == ExamType.ESSAY else ObjectiveQuestion
        questions: List[Question] = []
        seen = set()
        for item in raw:
            question = model.model_validate(item)
            if question.id in seen:
                logger.warning(f"Exam {exam.id}: duplicate question id {question.id} ignored")
                continue
            seen.add(question.id)
            questions.append(question)
        return questions

    def get_exam(self, exam_id: str) -> ExamDescriptor:
        """Get exam descriptor"""
        return self._load(exam_id)["exam"]

    def get_questions(self, exam_id: str) -> List[Question]:
        """Get question bank for exam (bank order)"""
        return list(self._load(exam_id)["questions"])

    def put_exam(self, exam: ExamDescriptor, questions: Sequence[Question]):
        """Write exam descriptor and questions"""
        exam_file = self._exam_file(exam.id)

        data = {
            "exam": exam.model_dump(mode="json"),
            "questions": [q.model_dump(mode="json") for q in questions]
        }

        with open(exam_file, 'w') as f:
            json.dump(data, f, indent=2)

        self._cache.pop(exam.id, None)
        logger.info(f"Stored exam {exam.id} with {len(questions)} questions")

    def invalidate(self, exam_id: Optional[str] = None):
        """Drop cached banks so edits on disk are picked up"""
        if exam_id is None:
            self._cache.clear()
        else:
            self._cache.pop(exam_id, None)
