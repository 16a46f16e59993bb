"""
Head-teacher review of submitted marks.

Pending rows are grouped by (subject, submitting teacher, status): a teacher
hands in a whole class for a subject at once and it is reviewed as one
batch. Approve and reject are single filtered updates that only ever touch
rows still in 'pending'.
"""
import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence

from gradeflow.core.context import SessionContext
from gradeflow.core.exceptions import ValidationError
from gradeflow.db.lookup import batch_lookup
from gradeflow.db.models import ClassEnrollment, Profile, SchoolClass, Subject, SubmissionRecord
from gradeflow.db.supabase import run_query
from gradeflow.schemas.approval import (
    ApprovalFilters,
    GroupAction,
    StatusSummary,
    SubmissionGroup,
    TransitionResult,
)

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# -------------------------
# LOADING
# -------------------------
def load_submissions(client, filters: ApprovalFilters) -> List[SubmissionRecord]:
    query = client.table("subject_submissions").select("*")
    if filters.status:
        query = query.eq("status", filters.status)
    if filters.subject_id:
        query = query.eq("subject_id", filters.subject_id)
    if filters.academic_year_id:
        query = query.eq("academic_year_id", filters.academic_year_id)
    if filters.term:
        query = query.eq("term", filters.term)

    rows = run_query(query.order("submitted_at", desc=True), "load submissions for approval")
    records = [SubmissionRecord(**row) for row in rows]

    if filters.class_id:
        query = (
            client.table("student_enrollments")
            .select("student_id, class_id, status")
            .eq("class_id", filters.class_id)
            .eq("status", "active")
        )
        if filters.academic_year_id:
            query = query.eq("academic_year_id", filters.academic_year_id)
        enrolled = {ClassEnrollment(**row).student_id for row in run_query(query, "load class enrollments")}
        records = [r for r in records if r.student_id in enrolled]

    return records


def _class_names_by_student(client, student_ids: Sequence[str],
                            academic_year_id: Optional[str]) -> Dict[str, str]:
    if not student_ids:
        return {}
    query = (
        client.table("student_enrollments")
        .select("student_id, class_id, academic_year_id, status")
        .in_("student_id", list(student_ids))
        .eq("status", "active")
    )
    if academic_year_id:
        query = query.eq("academic_year_id", academic_year_id)
    enrollments = [ClassEnrollment(**row) for row in run_query(query, "load class enrollments")]

    classes = {
        cid: SchoolClass(**row)
        for cid, row in batch_lookup(client, "classes", [e.class_id for e in enrollments], "id, name").items()
    }
    return {
        e.student_id: classes[e.class_id].name
        for e in enrollments
        if e.class_id in classes
    }


def group_submissions(
    records: Iterable[SubmissionRecord],
    subjects: Dict[str, Subject],
    teachers: Dict[str, Profile],
    class_names: Dict[str, str],
) -> List[SubmissionGroup]:
    """
    Collapse rows into one group per (subject, teacher, status) with the
    member count, mean total over members that have one, and the earliest
    submission time. Newest groups come first.
    """
    groups: Dict[tuple, SubmissionGroup] = {}
    totals: Dict[tuple, List[float]] = {}

    for record in records:
        key = (record.subject_id, record.submitted_by, record.status)
        group = groups.get(key)
        if group is None:
            subject = subjects.get(record.subject_id)
            teacher = teachers.get(record.submitted_by) if record.submitted_by else None
            group = SubmissionGroup(
                subject_id=record.subject_id,
                subject_name=subject.name if subject else "",
                teacher_id=record.submitted_by,
                teacher_name=teacher.full_name if teacher else "",
                status=record.status,
            )
            groups[key] = group
            totals[key] = []

        group.student_count += 1
        if record.id:
            group.submission_ids.append(record.id)
        if record.total is not None:
            totals[key].append(record.total)
        if record.submitted_at and (group.submitted_at is None or record.submitted_at < group.submitted_at):
            group.submitted_at = record.submitted_at
        class_name = class_names.get(record.student_id)
        if class_name and class_name not in group.class_names:
            group.class_names.append(class_name)

    for key, group in groups.items():
        if totals[key]:
            group.average_score = round(sum(totals[key]) / len(totals[key]), 1)

    oldest = datetime.min.replace(tzinfo=timezone.utc)
    return sorted(groups.values(), key=lambda g: g.submitted_at or oldest, reverse=True)


def matches_search(group: SubmissionGroup, search: Optional[str]) -> bool:
    """Case-insensitive substring match on subject, class or teacher name."""
    if not search:
        return True
    needle = search.strip().lower()
    haystacks = [group.subject_name, group.teacher_name] + group.class_names
    return any(needle in (h or "").lower() for h in haystacks)


def load_groups(client, filters: ApprovalFilters) -> List[SubmissionGroup]:
    records = load_submissions(client, filters)
    if not records:
        return []

    subjects = {
        sid: Subject(**row)
        for sid, row in batch_lookup(client, "subjects", [r.subject_id for r in records], "id, name, code").items()
    }
    teachers = {
        pid: Profile(**row)
        for pid, row in batch_lookup(
            client, "profiles", [r.submitted_by for r in records], "id, first_name, last_name, role"
        ).items()
    }
    class_names = _class_names_by_student(
        client, list(dict.fromkeys(r.student_id for r in records)), filters.academic_year_id
    )

    groups = group_submissions(records, subjects, teachers, class_names)
    return [g for g in groups if matches_search(g, filters.search)]


def summarize_statuses(records: Iterable[SubmissionRecord]) -> StatusSummary:
    counts = Counter(r.status for r in records)
    return StatusSummary(**counts)


# -------------------------
# TRANSITIONS
# -------------------------
def _group_update(client, context: SessionContext, action: GroupAction, payload: dict,
                  verb: str) -> TransitionResult:
    # Groups are listed per academic year, so a batch never reaches past it
    if not action.academic_year_id:
        action = action.model_copy(update={"academic_year_id": context.require_academic_year()})

    query = (
        client.table("subject_submissions")
        .update(payload)
        .eq("subject_id", action.subject_id)
        .eq("submitted_by", action.teacher_id)
        .eq("status", "pending")
        .eq("academic_year_id", action.academic_year_id)
    )
    if action.term:
        query = query.eq("term", action.term)

    rows = run_query(query, f"{verb} submissions")
    logger.info(
        "%s %d pending submission(s) for subject %s by teacher %s",
        verb.capitalize(), len(rows), action.subject_id, action.teacher_id,
    )
    return TransitionResult(
        status=payload["status"],
        updated=len(rows),
        submission_ids=[row["id"] for row in rows if row.get("id")],
    )


def _require_reason(reason: Optional[str]) -> str:
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("A rejection reason is required")
    return reason


def approve_group(client, context: SessionContext, action: GroupAction) -> TransitionResult:
    """Approve every pending row of the teacher's subject batch."""
    payload = {
        "status": "approved",
        "approved_by": context.profile_id,
        "approved_at": _now_iso(),
    }
    return _group_update(client, context, action, payload, "approve")


def reject_group(client, context: SessionContext, action: GroupAction, reason: str) -> TransitionResult:
    """
    Reject every pending row of the teacher's subject batch.

    Raises:
        ValidationError: if `reason` is blank; nothing is sent to Supabase
    """
    payload = {
        "status": "rejected",
        "rejection_reason": _require_reason(reason),
        "approved_by": context.profile_id,
        "approved_at": _now_iso(),
    }
    return _group_update(client, context, action, payload, "reject")


def _ids_update(client, ids: Sequence[str], payload: dict, verb: str) -> TransitionResult:
    if not ids:
        raise ValidationError("No submissions selected")
    rows = run_query(
        client.table("subject_submissions")
        .update(payload)
        .in_("id", list(ids))
        .eq("status", "pending"),
        f"{verb} submissions",
    )
    logger.info("%s %d of %d selected submission(s)", verb.capitalize(), len(rows), len(ids))
    return TransitionResult(
        status=payload["status"],
        updated=len(rows),
        submission_ids=[row["id"] for row in rows if row.get("id")],
    )


def approve_ids(client, context: SessionContext, ids: Sequence[str]) -> TransitionResult:
    payload = {
        "status": "approved",
        "approved_by": context.profile_id,
        "approved_at": _now_iso(),
    }
    return _ids_update(client, ids, payload, "approve")


def reject_ids(client, context: SessionContext, ids: Sequence[str], reason: str) -> TransitionResult:
    if not ids:
        raise ValidationError("No submissions selected")
    payload = {
        "status": "rejected",
        "rejection_reason": _require_reason(reason),
        "approved_by": context.profile_id,
        "approved_at": _now_iso(),
    }
    return _ids_update(client, ids, payload, "reject")
