"""
Report card readiness and generation.

A student is ready once enough subject submissions are approved for the
term. Generation calls the report-rendering edge function once per student,
one after another; a failure is recorded and the batch carries on.
"""
import logging
import threading
from typing import Callable, Collection, Dict, Iterable, List, Optional, Sequence, Set

from gradeflow.core.config import settings
from gradeflow.core.context import SessionContext
from gradeflow.core.exceptions import ValidationError
from gradeflow.db.lookup import batch_lookup
from gradeflow.db.models import (
    ClassEnrollment,
    GeneratedReport,
    Profile,
    SchoolClass,
    Student,
    SubmissionRecord,
)
from gradeflow.db.supabase import run_query
from gradeflow.schemas.reports import GenerationResult, RenderOutcome, StudentReadiness

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[GenerationResult], None]


def compute_readiness(
    students: Sequence[StudentReadiness],
    submissions: Iterable[SubmissionRecord],
    threshold: Optional[int] = None,
    total_subjects: int = 0,
) -> List[StudentReadiness]:
    """
    Fill in approved/pending counts and the ready flag for each student.

    `is_ready` is `approved_count >= threshold`; the threshold defaults to
    REPORT_READY_THRESHOLD.
    """
    if threshold is None:
        threshold = settings.REPORT_READY_THRESHOLD

    approved: Dict[str, int] = {}
    pending: Dict[str, int] = {}
    for s in submissions:
        if s.status == "approved":
            approved[s.student_id] = approved.get(s.student_id, 0) + 1
        elif s.status == "pending":
            pending[s.student_id] = pending.get(s.student_id, 0) + 1

    result = []
    for student in students:
        approved_count = approved.get(student.student_id, 0)
        result.append(student.model_copy(update={
            "approved_count": approved_count,
            "pending_count": pending.get(student.student_id, 0),
            "total_subjects": total_subjects,
            "is_ready": approved_count >= threshold,
        }))
    return result


def select_all_ready(readiness: Iterable[StudentReadiness], selected: Collection[str]) -> Set[str]:
    """
    Toggle selection of every ready student: select exactly the ready ones,
    or clear the selection if it already is exactly those.
    """
    ready = {r.student_id for r in readiness if r.is_ready}
    if set(selected) == ready:
        return set()
    return ready


def load_readiness(
    client,
    context: SessionContext,
    term: str,
    class_id: Optional[str] = None,
    stream_id: Optional[str] = None,
    threshold: Optional[int] = None,
) -> List[StudentReadiness]:
    """
    Readiness of every actively enrolled student for the context's academic
    year and `term`, optionally narrowed to a class or stream.
    """
    year_id = context.require_academic_year()

    query = (
        client.table("student_enrollments")
        .select("student_id, class_id, stream_id, academic_year_id, status")
        .eq("status", "active")
        .eq("academic_year_id", year_id)
    )
    if class_id:
        query = query.eq("class_id", class_id)
    if stream_id:
        query = query.eq("stream_id", stream_id)
    enrollments = [ClassEnrollment(**row) for row in run_query(query, "load enrollments")]
    if not enrollments:
        return []

    student_ids = list(dict.fromkeys(e.student_id for e in enrollments))
    students = {
        sid: Student(**row)
        for sid, row in batch_lookup(client, "students", student_ids, "id, student_id, profile_id").items()
    }
    profiles = {
        pid: Profile(**row)
        for pid, row in batch_lookup(
            client, "profiles", [s.profile_id for s in students.values()], "id, first_name, last_name, role"
        ).items()
    }
    classes = {
        cid: SchoolClass(**row)
        for cid, row in batch_lookup(client, "classes", [e.class_id for e in enrollments], "id, name").items()
    }

    submissions = [
        SubmissionRecord(**row)
        for row in run_query(
            client.table("subject_submissions")
            .select("*")
            .eq("academic_year_id", year_id)
            .eq("term", term)
            .in_("student_id", student_ids),
            "load submissions",
        )
    ]
    reports = {
        row["student_id"]: GeneratedReport(**row)
        for row in run_query(
            client.table("generated_reports")
            .select("student_id, status, verification_code, generated_at")
            .eq("academic_year_id", year_id)
            .eq("term", term)
            .in_("student_id", student_ids),
            "load generated reports",
        )
    }
    total_subjects = len(run_query(
        client.table("subjects").select("id").eq("is_active", True),
        "count subjects",
    ))

    rows = []
    for enrollment in enrollments:
        student = students.get(enrollment.student_id)
        profile = profiles.get(student.profile_id) if student else None
        school_class = classes.get(enrollment.class_id)
        report = reports.get(enrollment.student_id)
        rows.append(StudentReadiness(
            student_id=enrollment.student_id,
            admission_no=(student.student_id if student else None) or "",
            name=profile.full_name if profile else "",
            class_name=school_class.name if school_class else "",
            report_status=report.status if report else None,
            report_code=report.verification_code if report else None,
            report_date=report.generated_at if report else None,
        ))

    return compute_readiness(rows, submissions, threshold, total_subjects)


def generate(
    client,
    context: SessionContext,
    student_ids: Sequence[str],
    term: str,
    on_progress: Optional[ProgressCallback] = None,
    cancel_event: Optional[threading.Event] = None,
) -> GenerationResult:
    """
    Render one report card per student, sequentially.

    Each call gets {studentId, academicYearId, term, generatedBy}. A failing
    student is logged and recorded as failed; the loop continues and no
    exception escapes. Progress (completed / total * 100) is updated and
    reported after every student, failed or not. If `cancel_event` is set
    between students the rest are recorded as cancelled.

    Raises:
        ValidationError: if no students are selected
    """
    if not student_ids:
        raise ValidationError("No students selected")
    year_id = context.require_academic_year()

    result = GenerationResult(total=len(student_ids))
    for index, student_id in enumerate(student_ids):
        if cancel_event is not None and cancel_event.is_set():
            logger.info("Report generation cancelled with %d of %d done", result.completed, result.total)
            result.outcomes.extend(
                RenderOutcome(student_id=sid, status="cancelled") for sid in student_ids[index:]
            )
            break

        body = {
            "studentId": student_id,
            "academicYearId": year_id,
            "term": term,
            "generatedBy": context.profile_id,
        }
        try:
            client.functions.invoke(settings.REPORT_FUNCTION_NAME, invoke_options={"body": body})
            result.outcomes.append(RenderOutcome(student_id=student_id, status="succeeded"))
        except Exception as e:
            logger.error("Failed to generate report for %s: %s", student_id, e)
            result.outcomes.append(RenderOutcome(student_id=student_id, status="failed", error=str(e)))

        result.completed += 1
        result.progress = round(result.completed / result.total * 100)
        if on_progress is not None:
            on_progress(result)

    logger.info(
        "Report generation finished: %d succeeded, %d failed",
        len(result.succeeded_ids), len(result.failed_ids),
    )
    return result
