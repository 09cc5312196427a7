# FILE: cbt_engine/services/result_store.py
"""
Result store (persistence sink) with idempotent save and operator export
"""
import csv
import io
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiofiles

from cbt_engine.config import get_settings
from cbt_engine.exceptions import AttemptError, ResultNotFoundError
from cbt_engine.models.attempts import AttemptStatus
from cbt_engine.models.results import ResultRecord
from cbt_engine.services.exam_catalog import is_safe_id

logger = logging.getLogger(__name__)
settings = get_settings()

EXPORT_FIELDS = [
    "result_id", "exam_id", "student_id", "aggregate_percent", "aggregate_confidence",
    "matches", "total", "status", "finalize_reason", "time_spent_seconds", "submitted_at",
    "recalculated", "finalized", "finalized_at", "finalize_note"
]

REVIEWABLE_STATUSES = (AttemptStatus.PROVISIONAL, AttemptStatus.PENDING_REVIEW)


class ResultStore:
    """Append-only JSONL store of finalized results, one file per exam"""

    def __init__(self, results_dir: Optional[str] = None):
        self.results_dir = Path(results_dir or settings.results_dir)
        self.results_dir.mkdir(parents=True, exist_ok=True)

    def results_file(self, exam_id: str) -> Path:
        if not is_safe_id(exam_id):
            raise ValueError(f"Invalid exam id: {exam_id!r}")
        return self.results_dir / f"{exam_id}.jsonl"

    async def save(self, record: ResultRecord) -> None:
        """Persist result (idempotent on result_id)"""
        results_file = self.results_file(record.exam_id)

        if results_file.exists():
            async with aiofiles.open(results_file, mode='r', encoding='utf-8') as f:
                async for line in f:
                    if line.strip() and ResultRecord.model_validate_json(line).result_id == record.result_id:
                        logger.debug(f"Result {record.result_id} already exists (idempotent)")
                        return

        async with aiofiles.open(results_file, mode='a', encoding='utf-8') as f:
            await f.write(record.model_dump_json() + '\n')

        logger.info(f"Stored result {record.result_id}: {record.exam_id}/{record.student_id}")

    def _read(self, results_file: Path) -> List[ResultRecord]:
        if not results_file.exists():
            return []

        records = []
        with open(results_file, 'r', encoding='utf-8') as f:
            for line in f:
                if line.strip():
                    records.append(ResultRecord.model_validate_json(line))
        return records

    def list_results(
        self,
        exam_id: Optional[str] = None,
        student_id: Optional[str] = None,
        status: Optional[AttemptStatus] = None
    ) -> List[ResultRecord]:
        """List stored results, optionally filtered"""
        if exam_id is not None:
            files = [self.results_file(exam_id)]
        else:
            files = sorted(self.results_dir.glob("*.jsonl"))

        records = []
        for results_file in files:
            for record in self._read(results_file):
                if student_id is not None and record.student_id != student_id:
                    continue
                if status is not None and record.status != status:
                    continue
                records.append(record)
        return records

    def pending_review(self, exam_id: Optional[str] = None) -> List[ResultRecord]:
        """Results a human has to regrade"""
        return self.list_results(exam_id=exam_id, status=AttemptStatus.PENDING_REVIEW)

    def rewrite(self, exam_id: str, records: List[ResultRecord]):
        """Replace the results of one exam (batch tools and operator review only)"""
        results_file = self.results_file(exam_id)
        tmp_file = results_file.with_suffix(".tmp")

        with open(tmp_file, 'w', encoding='utf-8') as f:
            for record in records:
                f.write(record.model_dump_json() + '\n')
        tmp_file.replace(results_file)

        logger.info(f"Rewrote {len(records)} results for exam {exam_id}")

    def finalize_review(
        self,
        exam_id: Optional[str],
        result_id: str,
        percent: int,
        note: str = ""
    ) -> ResultRecord:
        """
        Close a heuristic grade with the reviewer's percent

        The record moves to status completed and is flagged finalized. Without
        exam_id every exam file is searched.
        """
        if not 0 <= percent <= 100:
            raise ValueError("percent must be between 0 and 100")

        if exam_id is not None:
            files = [self.results_file(exam_id)]
        else:
            files = sorted(self.results_dir.glob("*.jsonl"))

        for results_file in files:
            records = self._read(results_file)
            for i, record in enumerate(records):
                if record.result_id != result_id:
                    continue

                if record.status not in REVIEWABLE_STATUSES and not record.finalized:
                    raise AttemptError(f"Result {result_id} is {record.status.value}; nothing to review")

                records[i] = record.model_copy(update={
                    "aggregate_percent": percent,
                    "status": AttemptStatus.COMPLETED,
                    "finalized": True,
                    "finalized_at": datetime.now(timezone.utc),
                    "finalize_note": note
                })
                self.rewrite(record.exam_id, records)

                logger.info(
                    f"Result {result_id} finalized by review: "
                    f"{record.aggregate_percent}% -> {percent}% (was {record.status.value})"
                )
                return records[i]

        raise ResultNotFoundError(result_id)

    def export(
        self,
        exam_id: Optional[str] = None,
        status: Optional[AttemptStatus] = None,
        format: str = "csv"
    ) -> Any:
        """Export results"""
        records = self.list_results(exam_id=exam_id, status=status)
        rows = [r.model_dump(mode="json") for r in records]

        if format == "csv":
            return self._export_csv(rows)
        return rows

    def _export_csv(self, rows: List[Dict[str, Any]]) -> str:
        """Export results as CSV"""
        if not rows:
            return ""

        output = io.StringIO()
        writer = csv.DictWriter(output, fieldnames=EXPORT_FIELDS)
        writer.writeheader()

        for row in rows:
            writer.writerow({k: "" if row.get(k) is None else row.get(k) for k in EXPORT_FIELDS})

        return output.getvalue()
