"""
Postgres-backed repository for Teaching (courses, content, assignments, grading).

Design:
- Minimal psycopg3 usage; each call opens a short-lived connection and runs
  in its own transaction.
- Returns plain dicts to keep the services independent of any ORM.
- Ownership is decided by the services on freshly loaded rows; the repository
  only reads and writes.
- Grading locks the submission row and refuses to write over content that
  changed after the grader loaded it.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

import psycopg

from eduflow.errors import ConflictError
from eduflow.storage.config import require_dsn
from eduflow.storage.pg import (
    ASSIGNMENT_COLUMNS,
    CONTENT_COLUMNS,
    COURSE_COLUMNS,
    SUBMISSION_COLUMNS,
    assignment_row,
    collect_sets,
    content_row,
    course_row,
    submission_row,
    update_statement,
)

_UNSET = object()


class DBTeachingRepo:
    def __init__(self, dsn: Optional[str] = None) -> None:
        self._dsn = require_dsn(dsn)

    def _fetch_one(self, query: str, params) -> Optional[tuple]:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(query, params)
                return cur.fetchone()

    def _fetch_all(self, query: str, params) -> List[tuple]:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(query, params)
                return cur.fetchall()

    def _update(self, table: str, alias: str, row_id: int, sets, returning: str) -> Optional[tuple]:
        stmt, params = update_statement(table, alias, sets, returning)
        params.append(int(row_id))
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(stmt, params)
                row = cur.fetchone()
            conn.commit()
        return row

    # --- Courses ----------------------------------------------------------------

    def create_course(
        self,
        *,
        title: str,
        teacher_id: int,
        description: Optional[str] = None,
        status: str = "draft",
        thumbnail: Optional[str] = None,
    ) -> dict:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    insert into public.courses as c (title, description, teacher_id, status, thumbnail)
                    values (%s, %s, %s, %s, %s)
                    returning {COURSE_COLUMNS}
                    """,
                    (title, description, int(teacher_id), status, thumbnail),
                )
                row = cur.fetchone()
            conn.commit()
        return course_row(row)

    def get_course(self, course_id: int) -> Optional[dict]:
        row = self._fetch_one(f"select {COURSE_COLUMNS} from public.courses c where c.id = %s", (int(course_id),))
        return course_row(row) if row else None

    def list_courses_for_teacher(self, teacher_id: int) -> List[dict]:
        rows = self._fetch_all(
            f"select {COURSE_COLUMNS} from public.courses c where c.teacher_id = %s order by c.id",
            (int(teacher_id),),
        )
        return [course_row(r) for r in rows]

    def update_course(
        self,
        course_id: int,
        *,
        title=_UNSET,
        description=_UNSET,
        status=_UNSET,
        thumbnail=_UNSET,
    ) -> Optional[dict]:
        sets = collect_sets(
            (("title", title), ("description", description), ("status", status), ("thumbnail", thumbnail)),
            _UNSET,
        )
        if not sets:
            return self.get_course(course_id)
        row = self._update("public.courses", "c", course_id, sets, COURSE_COLUMNS)
        return course_row(row) if row else None

    # --- Content ----------------------------------------------------------------

    def create_content(
        self,
        *,
        course_id: int,
        teacher_id: int,
        title: str,
        type: str,
        description: Optional[str] = None,
        body: Optional[str] = None,
        order: int = 0,
    ) -> dict:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    insert into public.content as ct (title, description, type, course_id, teacher_id, body, "order")
                    values (%s, %s, %s, %s, %s, %s, %s)
                    returning {CONTENT_COLUMNS}
                    """,
                    (title, description, type, int(course_id), int(teacher_id), body, int(order)),
                )
                row = cur.fetchone()
            conn.commit()
        return content_row(row)

    def get_content(self, content_id: int) -> Optional[dict]:
        row = self._fetch_one(f"select {CONTENT_COLUMNS} from public.content ct where ct.id = %s", (int(content_id),))
        return content_row(row) if row else None

    def list_content_for_course(self, course_id: int) -> List[dict]:
        rows = self._fetch_all(
            f'select {CONTENT_COLUMNS} from public.content ct where ct.course_id = %s order by ct."order", ct.id',
            (int(course_id),),
        )
        return [content_row(r) for r in rows]

    def update_content(
        self,
        content_id: int,
        *,
        title=_UNSET,
        description=_UNSET,
        type=_UNSET,
        body=_UNSET,
        order=_UNSET,
    ) -> Optional[dict]:
        sets = collect_sets(
            (("title", title), ("description", description), ("type", type), ("body", body), ("order", order)),
            _UNSET,
        )
        if not sets:
            return self.get_content(content_id)
        row = self._update("public.content", "ct", content_id, sets, CONTENT_COLUMNS)
        return content_row(row) if row else None

    def delete_content(self, content_id: int) -> bool:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute("delete from public.content where id = %s", (int(content_id),))
                deleted = cur.rowcount > 0
            conn.commit()
        return deleted

    # --- Assignments ------------------------------------------------------------

    def create_assignment(
        self,
        *,
        course_id: int,
        teacher_id: int,
        title: str,
        description: Optional[str] = None,
        due_date: Optional[datetime] = None,
        max_points: int = 100,
        instructions: Optional[str] = None,
    ) -> dict:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    insert into public.assignments as a
                           (title, description, course_id, teacher_id, due_date, max_points, instructions)
                    values (%s, %s, %s, %s, %s, %s, %s)
                    returning {ASSIGNMENT_COLUMNS}
                    """,
                    (title, description, int(course_id), int(teacher_id), due_date, int(max_points), instructions),
                )
                row = cur.fetchone()
            conn.commit()
        return assignment_row(row)

    def get_assignment(self, assignment_id: int) -> Optional[dict]:
        row = self._fetch_one(
            f"select {ASSIGNMENT_COLUMNS} from public.assignments a where a.id = %s", (int(assignment_id),)
        )
        return assignment_row(row) if row else None

    def list_assignments_for_teacher(self, teacher_id: int) -> List[dict]:
        rows = self._fetch_all(
            f"select {ASSIGNMENT_COLUMNS} from public.assignments a where a.teacher_id = %s order by a.id",
            (int(teacher_id),),
        )
        return [assignment_row(r) for r in rows]

    def list_assignments_for_course(self, course_id: int) -> List[dict]:
        rows = self._fetch_all(
            f"""
            select {ASSIGNMENT_COLUMNS}
              from public.assignments a
             where a.course_id = %s
             order by a.due_date asc nulls last, a.id asc
            """,
            (int(course_id),),
        )
        return [assignment_row(r) for r in rows]

    def update_assignment(
        self,
        assignment_id: int,
        *,
        title=_UNSET,
        description=_UNSET,
        due_date=_UNSET,
        max_points=_UNSET,
        instructions=_UNSET,
    ) -> Optional[dict]:
        sets = collect_sets(
            (
                ("title", title),
                ("description", description),
                ("due_date", due_date),
                ("max_points", max_points),
                ("instructions", instructions),
            ),
            _UNSET,
        )
        if not sets:
            return self.get_assignment(assignment_id)
        row = self._update("public.assignments", "a", assignment_id, sets, ASSIGNMENT_COLUMNS)
        return assignment_row(row) if row else None

    # --- Submissions & grading --------------------------------------------------

    def get_submission(self, submission_id: int) -> Optional[dict]:
        row = self._fetch_one(
            f"select {SUBMISSION_COLUMNS} from public.submissions s where s.id = %s", (int(submission_id),)
        )
        return submission_row(row) if row else None

    def list_submissions_for_assignment(self, assignment_id: int) -> List[dict]:
        """Submissions of an assignment with the student's public identity."""
        rows = self._fetch_all(
            f"""
            select {SUBMISSION_COLUMNS}, u.id, u.username, u.name, u.avatar
              from public.submissions s
              join public.users u on u.id = s.student_id
             where s.assignment_id = %s
             order by s.id
            """,
            (int(assignment_id),),
        )
        items: List[dict] = []
        for row in rows:
            item = submission_row(row[:8])
            item["student"] = {"id": int(row[8]), "username": row[9], "name": row[10], "avatar": row[11]}
            items.append(item)
        return items

    def highest_grade_for_assignment(self, assignment_id: int) -> Optional[int]:
        row = self._fetch_one(
            "select max(grade) from public.submissions where assignment_id = %s", (int(assignment_id),)
        )
        return int(row[0]) if row and row[0] is not None else None

    def grade_submission(
        self,
        submission_id: int,
        *,
        grade: int,
        feedback: Optional[str],
        seen: Optional[dict] = None,
    ) -> Optional[dict]:
        """Grade a submission; with `seen`, only if the locked row still matches it."""
        with psycopg.connect(self._dsn) as conn:
            with conn.transaction():
                with conn.cursor() as cur:
                    cur.execute(
                        f"select {SUBMISSION_COLUMNS} from public.submissions s where s.id = %s for update",
                        (int(submission_id),),
                    )
                    current = cur.fetchone()
                    if current is None:
                        return None
                    if seen is not None:
                        loaded = submission_row(current)
                        if any(loaded[k] != seen.get(k) for k in ("content", "submitted_at", "status")):
                            raise ConflictError("Submission changed since it was loaded; reload before grading")
                    cur.execute(
                        f"""
                        update public.submissions as s
                           set grade = %s, feedback = %s, status = 'graded'
                         where s.id = %s
                        returning {SUBMISSION_COLUMNS}
                        """,
                        (int(grade), feedback, int(submission_id)),
                    )
                    row = cur.fetchone()
        return submission_row(row)

    # --- Dashboard --------------------------------------------------------------

    def teacher_dashboard_stats(self, teacher_id: int) -> Dict[str, Any]:
        row = self._fetch_one(
            """
            select
              (select count(distinct e.student_id)
                 from public.enrollments e join public.courses c on c.id = e.course_id
                where c.teacher_id = %(t)s),
              (select count(*) from public.courses c where c.teacher_id = %(t)s and c.status = 'active'),
              (select count(*)
                 from public.submissions s
                 join public.assignments a on a.id = s.assignment_id
                 join public.courses c on c.id = a.course_id
                where c.teacher_id = %(t)s and s.status <> 'graded'),
              (select coalesce(round(avg(e.progress)), 0)
                 from public.enrollments e join public.courses c on c.id = e.course_id
                where c.teacher_id = %(t)s)
            """,
            {"t": int(teacher_id)},
        )
        return {
            "total_students": int(row[0]),
            "active_courses": int(row[1]),
            "pending_reviews": int(row[2]),
            "completion_rate": int(row[3]),
        }
