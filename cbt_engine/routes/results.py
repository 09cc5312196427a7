# FILE: cbt_engine/routes/results.py
"""
Result endpoints for operators
"""
import logging
from typing import Optional
from fastapi import APIRouter, HTTPException
from fastapi.responses import PlainTextResponse

from cbt_engine.exceptions import AttemptError, ResultNotFoundError
from cbt_engine.models.attempts import AttemptStatus
from cbt_engine.models.results import FinalizeReviewRequest
from cbt_engine.services.attempt_engine import get_engine
from cbt_engine.services.exam_catalog import is_safe_id

logger = logging.getLogger(__name__)
router = APIRouter()


def _result_store():
    store = get_engine().result_sink
    if not hasattr(store, "list_results"):
        raise HTTPException(status_code=501, detail="Result sink does not support listing")
    return store


def _check_exam_id(exam_id: Optional[str]):
    if exam_id is not None and not is_safe_id(exam_id):
        raise HTTPException(status_code=400, detail=f"Invalid exam id: {exam_id}")


@router.get("")
async def list_results(
    exam_id: Optional[str] = None,
    student_id: Optional[str] = None,
    status: Optional[AttemptStatus] = None
):
    """List stored results"""
    _check_exam_id(exam_id)
    records = _result_store().list_results(exam_id=exam_id, student_id=student_id, status=status)

    return {
        "status": "success",
        "count": len(records),
        "data": records
    }


@router.get("/pending-review")
async def pending_review(exam_id: Optional[str] = None):
    """Heuristic grades waiting for a human reviewer"""
    _check_exam_id(exam_id)
    records = _result_store().pending_review(exam_id=exam_id)

    return {
        "status": "success",
        "count": len(records),
        "data": records
    }


@router.get("/export")
async def export_results(
    exam_id: Optional[str] = None,
    status: Optional[AttemptStatus] = None,
    format: str = "csv"
):
    """Export results as CSV or JSON"""
    logger.info(f"Export results: format={format}")
    _check_exam_id(exam_id)

    if format not in ("csv", "json"):
        raise HTTPException(status_code=400, detail="format must be 'csv' or 'json'")

    data = _result_store().export(exam_id=exam_id, status=status, format=format)
    if format == "csv":
        return PlainTextResponse(data, media_type="text/csv")

    return {
        "status": "success",
        "format": format,
        "count": len(data),
        "data": data
    }


@router.post("/{result_id}/finalize")
async def finalize_review(result_id: str, request: FinalizeReviewRequest):
    """Close a provisional or pending_review grade with the reviewer's percent"""
    logger.info(f"Finalize review: result={result_id} percent={request.percent}")
    _check_exam_id(request.exam_id)

    if not 0 <= request.percent <= 100:
        raise HTTPException(status_code=400, detail="percent must be between 0 and 100")

    store = _result_store()
    if not hasattr(store, "finalize_review"):
        raise HTTPException(status_code=501, detail="Result sink does not support review")

    try:
        record = store.finalize_review(request.exam_id, result_id, request.percent, request.note)
    except ResultNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except AttemptError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return {
        "status": "success",
        "data": record
    }
