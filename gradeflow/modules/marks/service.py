"""
Teacher-facing marks entry: eligible students, draft saves and submission
for approval.

Submission rows are keyed on (student, subject, academic year, term) and
written with an upsert on that key. Approved rows are frozen for the
teacher; the check happens before any write is attempted.
"""
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from gradeflow.core.config import settings
from gradeflow.core.context import SessionContext
from gradeflow.core.exceptions import ValidationError
from gradeflow.db.lookup import batch_lookup
from gradeflow.db.models import (
    ClassEnrollment,
    GradingBand,
    Profile,
    Student,
    SubmissionRecord,
    SUBMISSION_CONFLICT_KEYS,
)
from gradeflow.db.supabase import run_query
from gradeflow.modules.grading.service import compute_derived, load_grading_bands
from gradeflow.schemas.marks import EligibleStudent, MarksEntry, RosterEntry, ScoreInput

logger = logging.getLogger(__name__)

SCORE_FIELDS = set(ScoreInput.model_fields)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _check_term(term: str) -> None:
    if term not in settings.terms:
        raise ValidationError(f"Unknown term '{term}'. Expected one of: {', '.join(settings.terms)}")


def _active_student_ids(client, table: str, column: str, value: str, academic_year_id: str) -> set:
    rows = run_query(
        client.table(table)
        .select("student_id, status, academic_year_id")
        .eq(column, value)
        .eq("academic_year_id", academic_year_id)
        .eq("status", "active"),
        f"load {table}",
    )
    return {ClassEnrollment(**row).student_id for row in rows}


def load_eligible_students(
    client,
    context: SessionContext,
    class_id: str,
    subject_id: str,
    term: str,
    academic_year_id: Optional[str] = None,
) -> List[EligibleStudent]:
    """
    Students actively enrolled in both the class and the subject for the
    academic year, each with their existing submission (if any), ordered by
    admission number.

    Either enrollment set being empty yields an empty list.
    """
    _check_term(term)
    year_id = academic_year_id or context.require_academic_year()

    in_class = _active_student_ids(client, "student_enrollments", "class_id", class_id, year_id)
    if not in_class:
        return []
    in_subject = _active_student_ids(client, "student_subject_enrollments", "subject_id", subject_id, year_id)
    student_ids = sorted(in_class & in_subject)
    if not student_ids:
        return []

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
    existing = _load_submissions(client, subject_id, year_id, term, student_ids)

    eligible = []
    for sid in student_ids:
        student = students.get(sid)
        profile = profiles.get(student.profile_id) if student else None
        eligible.append(EligibleStudent(
            student_id=sid,
            admission_no=(student.student_id if student else None) or "",
            full_name=(profile.full_name if profile else "") or "Unknown",
            submission=existing.get(sid),
        ))

    eligible.sort(key=lambda s: s.admission_no)
    return eligible


def _load_submissions(client, subject_id: str, academic_year_id: str, term: str,
                      student_ids: Sequence[str]) -> Dict[str, SubmissionRecord]:
    if not student_ids:
        return {}
    rows = run_query(
        client.table("subject_submissions")
        .select("*")
        .eq("subject_id", subject_id)
        .eq("academic_year_id", academic_year_id)
        .eq("term", term)
        .in_("student_id", list(student_ids)),
        "load submissions",
    )
    return {row["student_id"]: SubmissionRecord(**row) for row in rows}


def apply_scores(
    record: SubmissionRecord,
    scores: ScoreInput,
    bands: Sequence[GradingBand],
) -> SubmissionRecord:
    """
    Return a copy of `record` carrying the new scores and freshly derived
    fields.

    Grade and points follow the band of the new total. With no total the
    previous grade is left alone. A band's default remark only fills an
    empty remark.
    """
    derived = compute_derived(
        scores.assessment_1, scores.assessment_2, scores.assessment_3, scores.exam_score, bands
    )
    updated = record.model_copy(update={
        "assessment_1": scores.assessment_1,
        "assessment_2": scores.assessment_2,
        "assessment_3": scores.assessment_3,
        "exam_score": scores.exam_score,
        "avg_assessment": derived.avg_assessment,
        "ca_20": derived.ca_20,
        "exam_80": derived.exam_80,
        "total": derived.total,
    })

    if scores.identifier is not None:
        updated.identifier = scores.identifier
    if scores.remark is not None:
        updated.remark = scores.remark

    if derived.total is not None:
        updated.grade = derived.grade
        updated.grade_points = derived.grade_points
        if not updated.remark and derived.remark:
            updated.remark = derived.remark

    return updated


def _build_record(
    context: SessionContext,
    entry: MarksEntry,
    academic_year_id: str,
    existing: Optional[SubmissionRecord],
    bands: Sequence[GradingBand],
) -> SubmissionRecord:
    if existing and existing.status == "approved":
        raise ValidationError("Marks for this student have been approved and can no longer be edited")

    base = existing or SubmissionRecord(
        student_id=entry.student_id,
        subject_id=entry.subject_id,
        academic_year_id=academic_year_id,
        term=entry.term,
    )
    record = apply_scores(base, entry, bands)
    record.submitted_by = context.profile_id
    record.teacher_initials = context.initials or record.teacher_initials
    return record


def _mark_draft(record: SubmissionRecord) -> SubmissionRecord:
    # A rejected row keeps its reason while the teacher reworks it
    record.status = "draft"
    return record


def _mark_pending(record: SubmissionRecord) -> SubmissionRecord:
    if record.total is None:
        raise ValidationError("Cannot submit incomplete marks: assessment and exam scores are required")
    record.status = "pending"
    record.submitted_at = _now()
    record.rejection_reason = None
    record.approved_by = None
    record.approved_at = None
    return record


def _preview_total(entry: ScoreInput) -> Optional[float]:
    return compute_derived(
        entry.assessment_1, entry.assessment_2, entry.assessment_3, entry.exam_score, []
    ).total


def _upsert(client, records: List[SubmissionRecord], action: str) -> List[SubmissionRecord]:
    rows = run_query(
        client.table("subject_submissions").upsert(
            [r.to_row() for r in records], on_conflict=SUBMISSION_CONFLICT_KEYS
        ),
        action,
    )
    return [SubmissionRecord(**row) for row in rows]


def _save(client, context: SessionContext, entry: MarksEntry,
          bands: Sequence[GradingBand], submit: bool) -> SubmissionRecord:
    _check_term(entry.term)
    year_id = context.require_academic_year()
    if submit and _preview_total(entry) is None:
        raise ValidationError("Cannot submit incomplete marks: assessment and exam scores are required")

    existing = _load_submissions(client, entry.subject_id, year_id, entry.term, [entry.student_id])
    record = _build_record(context, entry, year_id, existing.get(entry.student_id), bands)
    record = _mark_pending(record) if submit else _mark_draft(record)

    saved = _upsert(client, [record], "submit marks" if submit else "save marks")
    logger.info(
        "%s marks for student %s subject %s (%s)",
        "Submitted" if submit else "Saved draft", entry.student_id, entry.subject_id, entry.term,
    )
    return saved[0] if saved else record


def save_draft(client, context: SessionContext, entry: MarksEntry,
               bands: Sequence[GradingBand]) -> SubmissionRecord:
    """Upsert the entry as a draft. Missing scores are allowed."""
    return _save(client, context, entry, bands, submit=False)


def submit_for_approval(client, context: SessionContext, entry: MarksEntry,
                        bands: Sequence[GradingBand]) -> SubmissionRecord:
    """
    Upsert the entry with status 'pending'.

    Raises:
        ValidationError: if the total cannot be computed (checked before any
        network call) or the stored row is already approved
    """
    return _save(client, context, entry, bands, submit=True)


def save_roster(
    client,
    context: SessionContext,
    subject_id: str,
    term: str,
    entries: Sequence[RosterEntry],
    bands: Sequence[GradingBand],
    submit: bool = False,
) -> List[SubmissionRecord]:
    """
    Save a whole class roster in one upsert.

    Entries with no scores at all are skipped. Everything is validated
    before the write: approved rows are refused, and when submitting every
    remaining entry must have a total.
    """
    _check_term(term)
    year_id = context.require_academic_year()

    entered = [e for e in entries if e.has_scores()]
    if not entered:
        raise ValidationError("No marks entered")

    if submit:
        incomplete = [e.student_id for e in entered if _preview_total(e) is None]
        if incomplete:
            raise ValidationError(f"Cannot submit incomplete marks for: {', '.join(incomplete)}")

    existing = _load_submissions(client, subject_id, year_id, term, [e.student_id for e in entered])
    locked = [e.student_id for e in entered if e.student_id in existing and existing[e.student_id].status == "approved"]
    if locked:
        raise ValidationError(f"Marks already approved for: {', '.join(locked)}")

    records = []
    for e in entered:
        entry = MarksEntry(subject_id=subject_id, term=term, **e.model_dump(include=SCORE_FIELDS))
        record = _build_record(context, entry, year_id, existing.get(e.student_id), bands)
        records.append(_mark_pending(record) if submit else _mark_draft(record))

    saved = _upsert(client, records, "submit marks" if submit else "save marks")
    logger.info("%s %d marks for subject %s (%s)", "Submitted" if submit else "Saved", len(records), subject_id, term)
    return saved


class MarksEntrySession:
    """
    One teacher working through a class for a subject and term.

    Keeps the eligible students in admission-number order with a cursor.
    Navigation wraps at both ends and a successful submit moves on to the
    next student.
    """

    def __init__(self, client, context: SessionContext, subject_id: str, term: str,
                 students: Sequence[EligibleStudent], bands: Sequence[GradingBand]):
        self.client = client
        self.context = context
        self.subject_id = subject_id
        self.term = term
        self.bands = list(bands)
        self.students = sorted(students, key=lambda s: s.admission_no)
        self.index = 0

    @classmethod
    def load(cls, client, context: SessionContext, class_id: str, subject_id: str, term: str):
        bands = load_grading_bands(client)
        students = load_eligible_students(client, context, class_id, subject_id, term)
        return cls(client, context, subject_id, term, students, bands)

    @property
    def current(self) -> Optional[EligibleStudent]:
        if not self.students:
            return None
        return self.students[self.index]

    def navigate(self, direction: str) -> Optional[EligibleStudent]:
        if direction not in ("next", "prev"):
            raise ValueError(f"direction must be 'next' or 'prev', got {direction!r}")
        if not self.students:
            return None
        step = 1 if direction == "next" else -1
        self.index = (self.index + step) % len(self.students)
        return self.current

    def _entry_for_current(self, scores: ScoreInput) -> MarksEntry:
        student = self.current
        if student is None:
            raise ValidationError("No student selected")
        if not student.editable:
            raise ValidationError("Marks for this student have been approved and can no longer be edited")
        return MarksEntry(
            student_id=student.student_id, subject_id=self.subject_id, term=self.term,
            **scores.model_dump(include=SCORE_FIELDS),
        )

    def save_current(self, scores: ScoreInput) -> SubmissionRecord:
        entry = self._entry_for_current(scores)
        record = save_draft(self.client, self.context, entry, self.bands)
        self.current.submission = record
        return record

    def submit_current(self, scores: ScoreInput) -> SubmissionRecord:
        entry = self._entry_for_current(scores)
        record = submit_for_approval(self.client, self.context, entry, self.bands)
        self.current.submission = record
        self.navigate("next")
        return record
