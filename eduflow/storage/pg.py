"""Small SQL building helpers shared by the Postgres repositories."""
from __future__ import annotations

from typing import Iterable, Sequence, Tuple

from psycopg import sql


def iso_ts(column: str) -> str:
    """Render a timestamptz column as `YYYY-MM-DDTHH:MM:SS+00:00` (or null)."""
    return f"""to_char({column} at time zone 'utc', 'YYYY-MM-DD"T"HH24:MI:SS"+00:00"')"""


def update_statement(
    table: str,
    alias: str,
    sets: Sequence[Tuple[str, object]],
    returning: str,
) -> Tuple[sql.Composed, list]:
    """Build `update <table> as <alias> set a = %s, ... where id = %s returning ...`.

    Column names are composed as identifiers; the caller appends the row id to
    the returned parameter list.
    """
    schema, name = table.split(".", 1)
    assignments = [sql.SQL("{} = %s").format(sql.Identifier(col)) for col, _ in sets]
    stmt = sql.SQL("update {table} as {alias} set {assign} where {alias}.id = %s returning {returning}").format(
        table=sql.Identifier(schema, name),
        alias=sql.Identifier(alias),
        assign=sql.SQL(", ").join(assignments),
        returning=sql.SQL(returning),
    )
    return stmt, [value for _, value in sets]


def collect_sets(fields: Iterable[Tuple[str, object]], unset: object) -> list[Tuple[str, object]]:
    return [(col, value) for col, value in fields if value is not unset]


# --- Column lists and row mappers ------------------------------------------------

COURSE_COLUMNS = "c.id, c.title, c.description, c.teacher_id, c.status, c.enrollment_count, c.thumbnail"
CONTENT_COLUMNS = 'ct.id, ct.title, ct.description, ct.type, ct.course_id, ct.teacher_id, ct.body, ct."order"'
ASSIGNMENT_COLUMNS = (
    "a.id, a.title, a.description, a.course_id, a.teacher_id, "
    + iso_ts("a.due_date")
    + ", a.max_points, a.instructions"
)
SUBMISSION_COLUMNS = (
    "s.id, s.assignment_id, s.student_id, s.content, "
    + iso_ts("s.submitted_at")
    + ", s.grade, s.feedback, s.status"
)
ENROLLMENT_COLUMNS = "e.id, e.student_id, e.course_id, " + iso_ts("e.enrolled_at") + ", e.progress"


def course_row(row) -> dict:
    return {
        "id": int(row[0]),
        "title": row[1],
        "description": row[2],
        "teacher_id": int(row[3]),
        "status": row[4],
        "enrollment_count": int(row[5]),
        "thumbnail": row[6],
    }


def content_row(row) -> dict:
    return {
        "id": int(row[0]),
        "title": row[1],
        "description": row[2],
        "type": row[3],
        "course_id": int(row[4]),
        "teacher_id": int(row[5]),
        "body": row[6],
        "order": int(row[7]),
    }


def assignment_row(row) -> dict:
    return {
        "id": int(row[0]),
        "title": row[1],
        "description": row[2],
        "course_id": int(row[3]),
        "teacher_id": int(row[4]),
        "due_date": row[5],
        "max_points": int(row[6]),
        "instructions": row[7],
    }


def submission_row(row) -> dict:
    return {
        "id": int(row[0]),
        "assignment_id": int(row[1]),
        "student_id": int(row[2]),
        "content": row[3],
        "submitted_at": row[4],
        "grade": int(row[5]) if row[5] is not None else None,
        "feedback": row[6],
        "status": row[7],
    }


def enrollment_row(row) -> dict:
    return {
        "id": int(row[0]),
        "student_id": int(row[1]),
        "course_id": int(row[2]),
        "enrolled_at": row[3],
        "progress": int(row[4]),
    }
