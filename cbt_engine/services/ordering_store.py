# FILE: cbt_engine/services/ordering_store.py
"""
Attempt state store: persisted ordering per (exam, student)
"""
import hashlib
import logging
from pathlib import Path
from typing import List, Optional, Sequence, Tuple
from datetime import datetime

import aiofiles
import aiofiles.os

from cbt_engine.config import get_settings
from cbt_engine.models.attempts import OrderingRecord
from cbt_engine.models.exams import ExamDescriptor, ObjectiveQuestion, Question
from cbt_engine.services.ordering import ORDERING_ALGORITHM_VERSION, generate_ordering

logger = logging.getLogger(__name__)
settings = get_settings()

OrderedQuestions = List[Tuple[Question, List[int]]]


class OrderingStore:
    """File-backed store for ordering records"""

    def __init__(self, store_dir: Optional[str] = None):
        self.store_dir = Path(store_dir or settings.orderings_dir)
        self.store_dir.mkdir(parents=True, exist_ok=True)

    def _get_key(self, exam_id: str, student_id: str) -> str:
        """Generate deterministic record key"""
        key_str = f"{exam_id}|{student_id}"
        return hashlib.sha256(key_str.encode()).hexdigest()

    def _path(self, exam_id: str, student_id: str) -> Path:
        return self.store_dir / f"{self._get_key(exam_id, student_id)}.json"

    async def load(self, exam_id: str, student_id: str) -> Optional[OrderingRecord]:
        """Load ordering record; unreadable records count as absent"""
        record_file = self._path(exam_id, student_id)

        if not record_file.exists():
            return None

        try:
            async with aiofiles.open(record_file, mode='r', encoding='utf-8') as f:
                record = OrderingRecord.model_validate_json(await f.read())
        except ValueError as e:
            logger.info(f"Discarding unreadable ordering for {exam_id}/{student_id}: {e}")
            return None

        if record.exam_id != exam_id or record.student_id != student_id:
            return None

        logger.debug(f"Ordering loaded: {exam_id}/{student_id}")
        return record

    async def save(self, exam_id: str, student_id: str, record: OrderingRecord):
        """Persist ordering record (write to a temp file, then replace)"""
        record_file = self._path(exam_id, student_id)
        tmp_file = record_file.with_suffix(".tmp")

        async with aiofiles.open(tmp_file, mode='w', encoding='utf-8') as f:
            await f.write(record.model_dump_json(indent=2))
        await aiofiles.os.replace(tmp_file, record_file)

        logger.debug(f"Ordering stored: {exam_id}/{student_id}")

    async def clear(self, exam_id: str, student_id: str):
        """Delete ordering record so the next attempt reshuffles"""
        try:
            await aiofiles.os.remove(self._path(exam_id, student_id))
        except FileNotFoundError:
            return
        logger.debug(f"Ordering cleared: {exam_id}/{student_id}")


def map_ordering(record: OrderingRecord, questions: Sequence[Question]) -> Optional[OrderedQuestions]:
    """
    Map a stored record onto the current question bank

    Returns None when the record no longer fits the bank (question added or
    removed, option count changed, other algorithm version).
    """
    if record.algorithm_version != ORDERING_ALGORITHM_VERSION:
        return None

    by_id = {q.id: q for q in questions}
    if len(record.question_order) != len(by_id) or set(record.question_order) != set(by_id):
        return None

    ordered = []
    for question_id in record.question_order:
        question = by_id[question_id]
        option_count = len(question.options) if isinstance(question, ObjectiveQuestion) else 0
        option_order = record.option_orders.get(question_id)
        if option_order is None or sorted(option_order) != list(range(option_count)):
            return None
        ordered.append((question, list(option_order)))

    return ordered


async def resolve_ordering(
    store: OrderingStore,
    exam: ExamDescriptor,
    student_id: str,
    questions: Sequence[Question],
    started_at: Optional[datetime] = None
) -> Tuple[OrderingRecord, OrderedQuestions, bool]:
    """
    Reuse the stored ordering for this attempt or generate and persist a new one

    Returns (record, ordered questions with option orders, reused flag).
    """
    record = await store.load(exam.id, student_id)

    if record is not None:
        ordered = map_ordering(record, questions)
        if ordered is not None:
            logger.debug(f"Ordering reused: {exam.id}/{student_id}")
            return record, ordered, True
        logger.info(f"Stored ordering for {exam.id}/{student_id} no longer matches bank; regenerating")

    record = generate_ordering(
        exam.id,
        student_id,
        questions,
        randomize_questions=exam.randomize_questions,
        randomize_options=exam.randomize_options,
        started_at=started_at
    )
    await store.save(exam.id, student_id, record)

    return record, map_ordering(record, questions), False
