# FILE: cbt_engine/exceptions.py
"""
Domain exceptions raised by the attempt engine
"""


class CBTEngineError(Exception):
    """Base class for attempt engine errors"""


class ExamNotFoundError(CBTEngineError):
    """Exam descriptor or question bank is not available"""

    def __init__(self, exam_id: str):
        super().__init__(f"Exam not found: {exam_id}")
        self.exam_id = exam_id


class AttemptNotFoundError(CBTEngineError):
    """No live or finalized attempt exists for the exam/student pair"""

    def __init__(self, exam_id: str, student_id: str):
        super().__init__(f"No attempt for exam={exam_id} student={student_id}")
        self.exam_id = exam_id
        self.student_id = student_id


class AttemptError(CBTEngineError):
    """Operation is not valid for the attempt in its current form"""


class ResultNotFoundError(CBTEngineError):
    """No stored result with this id"""

    def __init__(self, result_id: str):
        super().__init__(f"Result not found: {result_id}")
        self.result_id = result_id
