# FILE: tools/recompute_results.py
"""
Recompute stored objective results against options[correct_option_index]

Out-of-band batch job for results produced by the old scorer that compared
answers with a separate correct-answer field (every result scored 0).
Dry run by default; --apply rewrites the result file and flags changed rows
with recalculated=true.

Run: python -m tools.recompute_results [EXAM_ID ...] [--apply]
"""
import argparse
import logging
from typing import Dict, List, Optional

from cbt_engine.exceptions import ExamNotFoundError
from cbt_engine.models.attempts import AttemptStatus
from cbt_engine.models.exams import ExamType, ObjectiveQuestion
from cbt_engine.services.exam_catalog import ExamCatalog
from cbt_engine.services.objective_scorer import score_objective
from cbt_engine.services.result_store import ResultStore

logger = logging.getLogger(__name__)


def recompute_exam(
    exam_id: str,
    catalog: ExamCatalog,
    store: ResultStore,
    apply: bool = False
) -> Dict[str, int]:
    """Recompute every stored result of one objective exam"""
    exam = catalog.get_exam(exam_id)
    if exam.type != ExamType.OBJECTIVE:
        print(f"- {exam_id}: essay exam, skipped")
        return {"total": 0, "changed": 0}

    questions = [q for q in catalog.get_questions(exam_id) if isinstance(q, ObjectiveQuestion)]
    records = store.list_results(exam_id=exam_id)
    if not records:
        print(f"- {exam_id}: no results")
        return {"total": 0, "changed": 0}

    updated = []
    changed = 0
    for record in records:
        score = score_objective(questions, record.answers)
        if score.percent != record.aggregate_percent:
            changed += 1
            print(
                f"  {record.student_id}: {record.aggregate_percent}% -> {score.percent}% "
                f"({score.matches}/{score.total} correct)"
            )
            record = record.model_copy(update={
                "aggregate_percent": score.percent,
                "matches": score.matches,
                "total": score.total,
                "status": AttemptStatus.COMPLETED,
                "recalculated": True
            })
        updated.append(record)

    print(f"✓ {exam_id}: {changed}/{len(records)} results differ")

    if apply and changed:
        store.rewrite(exam_id, updated)
        print(f"  applied to {store.results_file(exam_id)}")

    return {"total": len(records), "changed": changed}


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Recompute objective exam results from stored answers.")
    parser.add_argument("exam_ids", nargs="*", help="Exam ids (default: every exam with stored results)")
    parser.add_argument("--apply", action="store_true", help="Rewrite result files (default: dry run)")
    parser.add_argument("--exams-dir", default=None, help="Override EXAMS_DIR")
    parser.add_argument("--results-dir", default=None, help="Override RESULTS_DIR")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)

    catalog = ExamCatalog(args.exams_dir)
    store = ResultStore(args.results_dir)
    exam_ids = args.exam_ids or sorted(p.stem for p in store.results_dir.glob("*.jsonl"))

    total = 0
    changed = 0
    for exam_id in exam_ids:
        try:
            stats = recompute_exam(exam_id, catalog, store, apply=args.apply)
        except ExamNotFoundError:
            print(f"✗ {exam_id}: exam NOT FOUND")
            continue
        total += stats["total"]
        changed += stats["changed"]

    mode = "applied" if args.apply else "dry run"
    print(f"\n{changed}/{total} results recomputed ({mode})")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
