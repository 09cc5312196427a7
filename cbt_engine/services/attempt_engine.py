# FILE: cbt_engine/services/attempt_engine.py
"""
Attempt engine: start, answer and finalize timed exam attempts

One live session per (exam, student). Each session owns its countdown; the
countdown is released on every exit path (manual submit, expiry, abandonment,
shutdown). Finalize runs at most once per session: the countdown transition
picks the winner and a per-session lock serializes the scoring/handoff.
"""
import asyncio
import logging
import time
from collections import OrderedDict
from datetime import datetime, timezone
from functools import partial
from typing import Callable, Dict, List, Optional, Tuple

from cbt_engine.config import get_settings
from cbt_engine.exceptions import AttemptError, AttemptNotFoundError
from cbt_engine.models.attempts import (
    Attempt, AttemptState, AttemptStatus, FinalizeReason, OrderingRecord, StartedAttempt
)
from cbt_engine.models.exams import EssayQuestion, ExamDescriptor, ObjectiveQuestion, PresentedQuestion, Question
from cbt_engine.models.results import EvaluationResult
from cbt_engine.services.countdown import CountdownController, CountdownState
from cbt_engine.services.exam_catalog import ExamCatalog
from cbt_engine.services.ordering_store import OrderedQuestions, OrderingStore, resolve_ordering
from cbt_engine.services.result_assembler import ResultSink, assemble_result, build_record, handoff
from cbt_engine.services.result_store import ResultStore

logger = logging.getLogger(__name__)
settings = get_settings()

SessionKey = Tuple[str, str]


class AttemptSession:
    """In-memory state of one live attempt"""

    def __init__(
        self,
        attempt: Attempt,
        exam: ExamDescriptor,
        questions: List[Question],
        ordered: OrderedQuestions,
        record: OrderingRecord
    ):
        self.attempt = attempt
        self.exam = exam
        self.questions = questions
        self.ordered = ordered
        self.record = record
        self.answers: Dict[str, Optional[str]] = {}
        self.countdown: Optional[CountdownController] = None
        self.result: Optional[EvaluationResult] = None
        self.lock = asyncio.Lock()
        self._question_ids = {q.id for q in questions}

    @property
    def key(self) -> SessionKey:
        return self.attempt.exam_id, self.attempt.student_id

    def has_question(self, question_id: str) -> bool:
        return question_id in self._question_ids

    def presented_questions(self) -> List[PresentedQuestion]:
        """Questions in attempt order with options permuted; correct index never leaves here"""
        presented = []
        for question, option_order in self.ordered:
            if isinstance(question, ObjectiveQuestion):
                presented.append(PresentedQuestion(
                    id=question.id,
                    prompt_text=question.prompt_text,
                    options=[question.options[i] for i in option_order]
                ))
            elif isinstance(question, EssayQuestion):
                presented.append(PresentedQuestion(
                    id=question.id,
                    prompt_text=question.prompt_text,
                    min_words=question.min_words
                ))
        return presented

    def finalize_reason(self) -> FinalizeReason:
        if self.countdown is not None and self.countdown.state == CountdownState.EXPIRED:
            return FinalizeReason.EXPIRED
        return FinalizeReason.MANUAL


class AttemptEngine:
    """Coordinates ordering, countdown, scoring and result handoff"""

    def __init__(
        self,
        catalog: Optional[ExamCatalog] = None,
        ordering_store: Optional[OrderingStore] = None,
        result_sink: Optional[ResultSink] = None,
        tick_seconds: Optional[float] = None,
        review_threshold: Optional[float] = None,
        clock: Callable[[], float] = time.time,
        auto_tick: bool = True,
        finalized_cache_size: Optional[int] = None
    ):
        self.catalog = catalog or ExamCatalog()
        self.ordering_store = ordering_store or OrderingStore()
        self.result_sink = result_sink or ResultStore()
        self.tick_seconds = tick_seconds or settings.countdown_tick_seconds
        self.review_threshold = review_threshold
        self.clock = clock
        self.auto_tick = auto_tick
        self.finalized_cache_size = finalized_cache_size or settings.finalized_cache_size

        self._sessions: Dict[SessionKey, AttemptSession] = {}
        self._opening: Dict[SessionKey, asyncio.Future] = {}
        # most recent finalized results, oldest first
        self._finalized: Dict[SessionKey, EvaluationResult] = OrderedDict()

    def get_session(self, exam_id: str, student_id: str) -> Optional[AttemptSession]:
        return self._sessions.get((exam_id, student_id))

    def _require_session(self, exam_id: str, student_id: str) -> AttemptSession:
        session = self.get_session(exam_id, student_id)
        if session is None:
            raise AttemptNotFoundError(exam_id, student_id)
        return session

    async def start_attempt(self, exam_id: str, student_id: str) -> StartedAttempt:
        """Start an attempt, or return the live one on reload"""
        key = (exam_id, student_id)
        session = self.get_session(exam_id, student_id)
        if session is not None:
            logger.debug(f"Attempt reloaded: {exam_id}/{student_id}")
            return self._started_view(session)

        # concurrent starts for one pair (double click, reconnect) share a single opening
        opening = self._opening.get(key)
        if opening is None or opening.done():
            opening = asyncio.ensure_future(self._open_session(exam_id, student_id))
            self._opening[key] = opening
            opening.add_done_callback(partial(self._opening_done, key))
        else:
            logger.debug(f"Attempt start already in progress: {exam_id}/{student_id}")

        session = await asyncio.shield(opening)
        return self._started_view(session)

    def _opening_done(self, key: SessionKey, task: asyncio.Future):
        if self._opening.get(key) is task:
            del self._opening[key]

    async def _open_session(self, exam_id: str, student_id: str) -> AttemptSession:
        exam = self.catalog.get_exam(exam_id)
        questions = self.catalog.get_questions(exam_id)

        now = self.clock()
        record, ordered, reused = await resolve_ordering(
            self.ordering_store,
            exam,
            student_id,
            questions,
            started_at=datetime.fromtimestamp(now, tz=timezone.utc)
        )

        attempt = Attempt(
            exam_id=exam_id,
            student_id=student_id,
            started_at=record.started_at,
            duration_seconds=exam.duration_seconds,
            status=AttemptStatus.IN_PROGRESS
        )
        session = AttemptSession(attempt, exam, questions, ordered, record)
        session.countdown = CountdownController(
            exam.duration_seconds,
            on_expire=partial(self._complete, session),
            tick_seconds=self.tick_seconds,
            clock=self.clock
        )

        self._sessions[session.key] = session
        self._finalized.pop(session.key, None)

        if reused:
            # same attempt resumed after a restart: keep the original anchor
            session.countdown.resume(record.started_at.timestamp())
        else:
            session.countdown.start(now)

        logger.info(
            f"Attempt started: exam={exam_id} student={student_id} "
            f"questions={len(questions)} duration={exam.duration_seconds}s resumed={reused}"
        )

        # a resumed attempt whose budget is spent expires here
        if await session.countdown.tick():
            return session

        if self.auto_tick:
            session.countdown.launch()

        return session

    def _started_view(self, session: AttemptSession) -> StartedAttempt:
        return StartedAttempt(
            exam_id=session.attempt.exam_id,
            student_id=session.attempt.student_id,
            exam_type=session.exam.type,
            started_at=session.attempt.started_at,
            duration_seconds=session.attempt.duration_seconds,
            remaining_seconds=session.countdown.remaining_seconds(),
            questions=session.presented_questions()
        )

    def record_answer(self, exam_id: str, student_id: str, question_id: str, value: Optional[str]) -> bool:
        """
        Store an answer in the in-memory answer set

        Returns False when the attempt no longer accepts answers (finalized or
        out of time).
        """
        session = self.get_session(exam_id, student_id)
        if session is None:
            if (exam_id, student_id) in self._finalized:
                return False
            raise AttemptNotFoundError(exam_id, student_id)

        if not session.has_question(question_id):
            raise AttemptError(f"Question {question_id} is not part of exam {exam_id}")

        countdown = session.countdown
        if not countdown.is_running or countdown.remaining_seconds() <= 0:
            logger.debug(f"Answer ignored for {exam_id}/{student_id}: attempt no longer running")
            return False

        session.answers[question_id] = value
        return True

    async def finalize(
        self,
        exam_id: str,
        student_id: str,
        reason: FinalizeReason = FinalizeReason.MANUAL
    ) -> EvaluationResult:
        """Finalize the attempt; repeated or racing calls return the single result"""
        key = (exam_id, student_id)
        session = self.get_session(exam_id, student_id)
        if session is None:
            if key in self._finalized:
                return self._finalized[key]
            raise AttemptNotFoundError(exam_id, student_id)

        if reason == FinalizeReason.MANUAL:
            won = session.countdown.submit()
        else:
            won = session.countdown.expire()
        if not won:
            logger.debug(f"Finalize({reason.value}) lost the race for {exam_id}/{student_id}")

        return await self._complete(session)

    async def _complete(self, session: AttemptSession) -> EvaluationResult:
        """Score, hand off and clean up; runs once per session"""
        async with session.lock:
            if session.result is not None:
                return session.result

            exam_id, student_id = session.key
            reason = session.finalize_reason()
            answers = dict(session.answers)

            try:
                result = assemble_result(session.exam, session.questions, answers, self.review_threshold)
                record = build_record(
                    session.exam,
                    student_id,
                    result,
                    answers,
                    time_spent_seconds=session.countdown.elapsed_seconds(),
                    reason=reason,
                    question_order=session.record.question_order
                )
                await handoff(self.result_sink, record)
                await self.ordering_store.clear(exam_id, student_id)
            finally:
                session.countdown.release()

            session.result = result
            session.attempt.status = result.status
            self._sessions.pop(session.key, None)
            self._remember_result(session.key, result)

            logger.info(
                f"Attempt finalized: exam={exam_id} student={student_id} reason={reason.value} "
                f"answered={len(answers)}/{len(session.questions)} status={result.status.value}"
            )
            return result

    def _remember_result(self, key: SessionKey, result: EvaluationResult):
        self._finalized[key] = result
        self._finalized.move_to_end(key)
        while len(self._finalized) > self.finalized_cache_size:
            self._finalized.popitem(last=False)

    def attempt_state(self, exam_id: str, student_id: str) -> AttemptState:
        """Countdown and progress of the live attempt"""
        session = self._require_session(exam_id, student_id)
        return AttemptState(
            exam_id=exam_id,
            student_id=student_id,
            status=session.attempt.status,
            countdown_state=session.countdown.state.value,
            remaining_seconds=session.countdown.remaining_seconds(),
            answered=len(session.answers),
            total_questions=len(session.questions)
        )

    def get_result(self, exam_id: str, student_id: str) -> Optional[EvaluationResult]:
        return self._finalized.get((exam_id, student_id))

    def abandon(self, exam_id: str, student_id: str):
        """Drop the live session without scoring; the stored ordering is kept"""
        session = self._sessions.pop((exam_id, student_id), None)
        if session is None:
            return
        session.countdown.release()
        logger.info(f"Attempt abandoned: {exam_id}/{student_id}")

    def shutdown(self):
        """Release every live countdown"""
        for session in list(self._sessions.values()):
            session.countdown.release()
        logger.info(f"Attempt engine shut down ({len(self._sessions)} live sessions released)")
        self._sessions.clear()


_engine: Optional[AttemptEngine] = None


def get_engine() -> AttemptEngine:
    """Get or create singleton attempt engine"""
    global _engine
    if _engine is None:
        _engine = AttemptEngine()
    return _engine


def set_engine(engine: Optional[AttemptEngine]):
    """Replace the singleton engine (useful for testing)"""
    global _engine
    _engine = engine
