# FILE: cbt_engine/routes/attempts.py
"""
Attempt endpoints
"""
import logging
from fastapi import APIRouter, HTTPException

from cbt_engine.exceptions import AttemptError, AttemptNotFoundError, ExamNotFoundError
from cbt_engine.models.attempts import FinalizeRequest, RecordAnswerRequest, StartAttemptRequest
from cbt_engine.services.attempt_engine import get_engine

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/start")
async def start_attempt(request: StartAttemptRequest):
    """Start (or reload) an attempt and return the ordered questions"""
    logger.info(f"Start attempt: {request.exam_id}/{request.student_id}")

    try:
        started = await get_engine().start_attempt(request.exam_id, request.student_id)
    except ExamNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return started


@router.post("/answer")
async def record_answer(request: RecordAnswerRequest):
    """Record one answer (in memory only)"""
    try:
        accepted = get_engine().record_answer(
            exam_id=request.exam_id,
            student_id=request.student_id,
            question_id=request.question_id,
            value=request.value
        )
    except AttemptNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except AttemptError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return {
        "status": "accepted" if accepted else "closed",
        "question_id": request.question_id
    }


@router.post("/finalize")
async def finalize_attempt(request: FinalizeRequest):
    """Finalize an attempt and return its evaluation"""
    logger.info(f"Finalize attempt: {request.exam_id}/{request.student_id} reason={request.reason.value}")

    try:
        result = await get_engine().finalize(request.exam_id, request.student_id, request.reason)
    except AttemptNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return result


@router.get("/status")
async def attempt_status(exam_id: str, student_id: str):
    """Countdown state of a live attempt, or the result once finalized"""
    engine = get_engine()

    result = engine.get_result(exam_id, student_id)
    if result is not None and engine.get_session(exam_id, student_id) is None:
        return {
            "status": result.status.value,
            "countdown_state": "finished",
            "remaining_seconds": 0,
            "result": result
        }

    try:
        return engine.attempt_state(exam_id, student_id)
    except AttemptNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/abandon")
async def abandon_attempt(request: StartAttemptRequest):
    """Release the live attempt without scoring it"""
    get_engine().abandon(request.exam_id, request.student_id)
    return {"status": "abandoned", "exam_id": request.exam_id, "student_id": request.student_id}
