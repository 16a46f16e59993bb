import os
import itertools

import pytest

os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "service-role-key")

from fastapi.testclient import TestClient

from gradeflow.core.context import SessionContext
from gradeflow.db.models import GradingBand
from gradeflow.db.supabase import get_supabase
from gradeflow.main import app

YEAR = "year-2024"
TERM = "Term 1"
CLASS_ID = "class-10a"
OTHER_CLASS_ID = "class-10b"
MATHS = "subj-maths"
ENGLISH = "subj-english"
PHYSICS = "subj-physics"

TEACHER_ID = "11111111-1111-1111-1111-111111111111"
OTHER_TEACHER_ID = "11111111-1111-1111-1111-111111111112"
HEAD_TEACHER_ID = "22222222-2222-2222-2222-222222222222"
ADMIN_ID = "33333333-3333-3333-3333-333333333333"


class FakeResponse:
    def __init__(self, data):
        self.data = data
        self.count = len(data)


class FakeQuery:
    """Just enough of the postgrest query builder for the workflows."""

    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.op = "select"
        self.payload = None
        self.on_conflict = ""
        self.filters = []
        self.order_by = None
        self.limit_n = None

    def select(self, columns="*", count=None):
        self.op = "select"
        return self

    def insert(self, payload):
        self.op, self.payload = "insert", payload
        return self

    def update(self, payload):
        self.op, self.payload = "update", payload
        return self

    def upsert(self, payload, on_conflict="", **kwargs):
        self.op, self.payload, self.on_conflict = "upsert", payload, on_conflict
        return self

    def delete(self):
        self.op = "delete"
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column, values):
        values = list(values)
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def limit(self, n):
        self.limit_n = n
        return self

    def _matches(self, row):
        return all(f(row) for f in self.filters)

    def execute(self):
        self.db.calls.append((self.table, self.op))
        if self.table in self.db.fail_tables:
            raise Exception(f"relation {self.table} is unavailable")

        rows = self.db.tables.setdefault(self.table, [])

        if self.op == "select":
            result = [dict(r) for r in rows if self._matches(r)]
            if self.order_by:
                column, desc = self.order_by
                result.sort(key=lambda r: (r.get(column) is None, r.get(column) or 0), reverse=desc)
            if self.limit_n is not None:
                result = result[: self.limit_n]
            return FakeResponse(result)

        if self.op == "insert":
            payload = self.payload if isinstance(self.payload, list) else [self.payload]
            created = [self.db.add(self.table, p) for p in payload]
            return FakeResponse([dict(r) for r in created])

        if self.op == "update":
            updated = []
            for row in rows:
                if self._matches(row):
                    row.update(self.payload)
                    updated.append(dict(row))
            return FakeResponse(updated)

        if self.op == "delete":
            removed = [r for r in rows if self._matches(r)]
            self.db.tables[self.table] = [r for r in rows if not self._matches(r)]
            return FakeResponse([dict(r) for r in removed])

        if self.op == "upsert":
            keys = [k.strip() for k in self.on_conflict.split(",") if k.strip()] or ["id"]
            payload = self.payload if isinstance(self.payload, list) else [self.payload]
            saved = []
            for item in payload:
                existing = next(
                    (r for r in rows if all(r.get(k) == item.get(k) for k in keys)), None
                )
                if existing is not None:
                    existing.update(item)
                    saved.append(dict(existing))
                else:
                    saved.append(dict(self.db.add(self.table, item)))
            return FakeResponse(saved)

        raise AssertionError(f"unsupported operation {self.op}")


class FakeFunctions:
    def __init__(self):
        self.calls = []
        self.fail_students = set()

    def invoke(self, function_name, invoke_options=None):
        body = (invoke_options or {}).get("body", {})
        self.calls.append((function_name, body))
        if body.get("studentId") in self.fail_students:
            raise Exception("Edge Function returned a non-2xx status code")
        return {"ok": True}


class FakeSupabase:
    def __init__(self):
        self.tables = {}
        self.calls = []
        self.fail_tables = set()
        self.functions = FakeFunctions()
        self._ids = itertools.count(1)

    def table(self, name):
        return FakeQuery(self, name)

    def add(self, table, row):
        row = dict(row)
        row.setdefault("id", f"{table}-{next(self._ids)}")
        self.tables.setdefault(table, []).append(row)
        return row

    def rows(self, table, **where):
        return [r for r in self.tables.get(table, []) if all(r.get(k) == v for k, v in where.items())]

    def writes(self, table):
        return [c for c in self.calls if c[0] == table and c[1] != "select"]


BANDS = [
    {"id": "band-a", "name": "Excellent", "min_marks": 75, "max_marks": 100, "grade": "A", "grade_points": 1, "remark": "Excellent", "is_active": True},
    {"id": "band-b", "name": "Very good", "min_marks": 65, "max_marks": 74, "grade": "B", "grade_points": 2, "remark": "Very good", "is_active": True},
    {"id": "band-c", "name": "Good", "min_marks": 45, "max_marks": 64, "grade": "C", "grade_points": 3, "remark": "Good", "is_active": True},
    {"id": "band-d", "name": "Satisfactory", "min_marks": 30, "max_marks": 44, "grade": "D", "grade_points": 4, "remark": "Satisfactory", "is_active": True},
    {"id": "band-f", "name": "Fail", "min_marks": 0, "max_marks": 29, "grade": "F", "grade_points": 5, "remark": "Fail", "is_active": True},
]


def seed(db):
    db.tables["academic_years"] = [
        {"id": "year-2023", "name": "2023", "is_current": False},
        {"id": YEAR, "name": "2024", "is_current": True},
    ]
    db.tables["grading_config"] = [dict(b) for b in BANDS]
    db.tables["profiles"] = [
        {"id": TEACHER_ID, "first_name": "Grace", "last_name": "Mwangi", "role": "teacher"},
        {"id": OTHER_TEACHER_ID, "first_name": "Peter", "last_name": "Otieno", "role": "teacher"},
        {"id": HEAD_TEACHER_ID, "first_name": "Ruth", "last_name": "Njeri", "role": "head_teacher"},
        {"id": ADMIN_ID, "first_name": "Sam", "last_name": "Kamau", "role": "admin"},
        {"id": "p-s1", "first_name": "Amina", "last_name": "Ali", "role": "student"},
        {"id": "p-s2", "first_name": "Brian", "last_name": "Kip", "role": "student"},
        {"id": "p-s3", "first_name": "Cynthia", "last_name": "Wambui", "role": "student"},
        {"id": "p-s4", "first_name": "David", "last_name": "Ochieng", "role": "student"},
    ]
    # admission numbers deliberately out of id order
    db.tables["students"] = [
        {"id": "s1", "student_id": "ADM003", "profile_id": "p-s1"},
        {"id": "s2", "student_id": "ADM001", "profile_id": "p-s2"},
        {"id": "s3", "student_id": "ADM002", "profile_id": "p-s3"},
        {"id": "s4", "student_id": "ADM004", "profile_id": "p-s4"},
    ]
    db.tables["classes"] = [
        {"id": CLASS_ID, "name": "Form 2 East"},
        {"id": OTHER_CLASS_ID, "name": "Form 2 West"},
    ]
    db.tables["subjects"] = [
        {"id": MATHS, "name": "Mathematics", "code": "MAT", "is_active": True},
        {"id": ENGLISH, "name": "English", "code": "ENG", "is_active": True},
        {"id": PHYSICS, "name": "Physics", "code": "PHY", "is_active": True},
        {"id": "subj-latin", "name": "Latin", "code": "LAT", "is_active": False},
    ]
    db.tables["student_enrollments"] = [
        {"student_id": "s1", "class_id": CLASS_ID, "stream_id": "east", "academic_year_id": YEAR, "status": "active"},
        {"student_id": "s2", "class_id": CLASS_ID, "stream_id": "east", "academic_year_id": YEAR, "status": "active"},
        {"student_id": "s3", "class_id": CLASS_ID, "stream_id": "east", "academic_year_id": YEAR, "status": "active"},
        {"student_id": "s4", "class_id": OTHER_CLASS_ID, "stream_id": "west", "academic_year_id": YEAR, "status": "active"},
    ]
    db.tables["student_subject_enrollments"] = [
        {"student_id": "s1", "subject_id": MATHS, "academic_year_id": YEAR, "status": "active"},
        {"student_id": "s2", "subject_id": MATHS, "academic_year_id": YEAR, "status": "active"},
        {"student_id": "s3", "subject_id": MATHS, "academic_year_id": YEAR, "status": "dropped"},
        {"student_id": "s4", "subject_id": MATHS, "academic_year_id": YEAR, "status": "active"},
    ]
    db.tables["subject_submissions"] = []
    db.tables["generated_reports"] = []
    return db


@pytest.fixture
def db():
    return seed(FakeSupabase())


@pytest.fixture
def bands():
    return [GradingBand(**b) for b in BANDS]


@pytest.fixture
def teacher_context():
    return SessionContext(
        profile_id=TEACHER_ID, role="teacher", full_name="Grace Mwangi", initials="GM", academic_year_id=YEAR
    )


@pytest.fixture
def head_context():
    return SessionContext(
        profile_id=HEAD_TEACHER_ID, role="head_teacher", full_name="Ruth Njeri", initials="RN", academic_year_id=YEAR
    )


@pytest.fixture
def client(db):
    app.dependency_overrides[get_supabase] = lambda: db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def submission(student_id, subject_id=MATHS, teacher_id=TEACHER_ID, status="pending", total=None,
               submitted_at="2024-03-01T08:00:00+00:00", **extra):
    row = {
        "student_id": student_id,
        "subject_id": subject_id,
        "academic_year_id": YEAR,
        "term": TERM,
        "total": total,
        "status": status,
        "submitted_by": teacher_id,
        "submitted_at": submitted_at,
    }
    row.update(extra)
    return row
