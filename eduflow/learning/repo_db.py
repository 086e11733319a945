"""Postgres-backed repository for the Learning context.

Enrollment and submission writes run inside one explicit transaction each;
any domain error raised inside the block rolls the transaction back.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional
import logging

import psycopg

from eduflow.errors import (
    ConflictError,
    EduflowError,
    ForbiddenError,
    InternalError,
    InvalidStateError,
    NotFoundError,
)
from eduflow.storage.config import require_dsn
from eduflow.storage.pg import (
    ASSIGNMENT_COLUMNS,
    CONTENT_COLUMNS,
    COURSE_COLUMNS,
    ENROLLMENT_COLUMNS,
    SUBMISSION_COLUMNS,
    assignment_row,
    content_row,
    course_row,
    enrollment_row,
    iso_ts,
    submission_row,
)

logger = logging.getLogger("eduflow.learning.repo")


class DBLearningRepo:
    """Persistence adapter used by Learning use cases."""

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

    # --- Enrollment -------------------------------------------------------------

    def enroll(self, student_id: int, course_id: int) -> dict:
        """Insert the enrollment and increment the course counter in one transaction.

        The course row is locked first, so concurrent calls for the same course
        serialize; the unique (student_id, course_id) constraint decides the
        winner and every other caller receives ConflictError.
        """
        try:
            with psycopg.connect(self._dsn) as conn:
                with conn.transaction():
                    with conn.cursor() as cur:
                        cur.execute("select status from public.courses where id = %s for update", (int(course_id),))
                        course = cur.fetchone()
                        if course is None:
                            raise NotFoundError("Course not found")
                        if course[0] != "active":
                            raise InvalidStateError("Course is not active and cannot be enrolled in")
                        cur.execute(
                            f"""
                            insert into public.enrollments as e (student_id, course_id, enrolled_at, progress)
                            values (%s, %s, now(), 0)
                            on conflict (student_id, course_id) do nothing
                            returning {ENROLLMENT_COLUMNS}
                            """,
                            (int(student_id), int(course_id)),
                        )
                        row = cur.fetchone()
                        if row is None:
                            raise ConflictError("Student is already enrolled in this course")
                        cur.execute(
                            "update public.courses set enrollment_count = enrollment_count + 1 where id = %s",
                            (int(course_id),),
                        )
                        if cur.rowcount != 1:
                            raise InternalError("Failed to update course enrollment count")
        except EduflowError:
            raise
        except psycopg.Error as exc:
            logger.exception("enroll failed course=%s", course_id)
            raise InternalError("Failed to enroll student in course") from exc
        enrollment = enrollment_row(row)
        logger.info("enrollment created id=%s course=%s", enrollment["id"], course_id)
        return enrollment

    def get_enrollment(self, student_id: int, course_id: int) -> Optional[dict]:
        row = self._fetch_one(
            f"select {ENROLLMENT_COLUMNS} from public.enrollments e where e.student_id = %s and e.course_id = %s",
            (int(student_id), int(course_id)),
        )
        return enrollment_row(row) if row else None

    def update_enrollment_progress(self, student_id: int, course_id: int, progress: int) -> Optional[dict]:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    update public.enrollments as e set progress = %s
                     where e.student_id = %s and e.course_id = %s
                    returning {ENROLLMENT_COLUMNS}
                    """,
                    (int(progress), int(student_id), int(course_id)),
                )
                row = cur.fetchone()
            conn.commit()
        return enrollment_row(row) if row else None

    # --- Courses & content ------------------------------------------------------

    def get_course(self, course_id: int) -> Optional[dict]:
        row = self._fetch_one(f"select {COURSE_COLUMNS} from public.courses c where c.id = %s", (int(course_id),))
        return course_row(row) if row else None

    def list_available_courses(self, student_id: int) -> List[dict]:
        """Active courses the student is not enrolled in (single snapshot)."""
        rows = self._fetch_all(
            f"""
            select {COURSE_COLUMNS}
              from public.courses c
             where c.status = 'active'
               and not exists (
                   select 1 from public.enrollments e where e.course_id = c.id and e.student_id = %s
               )
             order by c.id
            """,
            (int(student_id),),
        )
        return [course_row(r) for r in rows]

    def list_courses_for_student(self, student_id: int) -> List[dict]:
        rows = self._fetch_all(
            f"""
            select {COURSE_COLUMNS}, e.progress, {iso_ts("e.enrolled_at")}
              from public.courses c
              join public.enrollments e on e.course_id = c.id
             where e.student_id = %s
             order by e.id
            """,
            (int(student_id),),
        )
        items: List[dict] = []
        for row in rows:
            item = course_row(row[:7])
            item["progress"] = int(row[7])
            item["enrolled_at"] = row[8]
            items.append(item)
        return items

    def list_content_for_course(self, course_id: int) -> List[dict]:
        rows = self._fetch_all(
            f'select {CONTENT_COLUMNS} from public.content ct where ct.course_id = %s order by ct."order", ct.id',
            (int(course_id),),
        )
        return [content_row(r) for r in rows]

    # --- Assignments ------------------------------------------------------------

    def get_assignment(self, assignment_id: int) -> Optional[dict]:
        row = self._fetch_one(
            f"select {ASSIGNMENT_COLUMNS} from public.assignments a where a.id = %s", (int(assignment_id),)
        )
        return assignment_row(row) if row else None

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

    def list_assignments_for_student(self, student_id: int) -> List[dict]:
        rows = self._fetch_all(
            f"""
            select {ASSIGNMENT_COLUMNS}, c.title
              from public.assignments a
              join public.courses c on c.id = a.course_id
              join public.enrollments e on e.course_id = a.course_id
             where e.student_id = %s
             order by a.due_date asc nulls last, a.id asc
            """,
            (int(student_id),),
        )
        items: List[dict] = []
        for row in rows:
            item = assignment_row(row[:8])
            item["course_title"] = row[8]
            items.append(item)
        return items

    # --- Submissions ------------------------------------------------------------

    def submit(
        self,
        *,
        assignment_id: int,
        student_id: int,
        content: str,
        existing_submission_id: Optional[int] = None,
    ) -> dict:
        """Insert or update the single submission of a student for an assignment.

        Without an explicit id the unique (assignment_id, student_id) pair is
        resolved by an upsert, so concurrent first submissions converge on one
        row instead of failing.
        """
        try:
            with psycopg.connect(self._dsn) as conn:
                with conn.transaction():
                    with conn.cursor() as cur:
                        cur.execute("select course_id from public.assignments where id = %s", (int(assignment_id),))
                        assignment = cur.fetchone()
                        if assignment is None:
                            raise NotFoundError("Assignment not found")
                        course_id = int(assignment[0])
                        cur.execute("select 1 from public.courses where id = %s", (course_id,))
                        if cur.fetchone() is None:
                            raise InternalError("Course for assignment not found")
                        cur.execute(
                            "select 1 from public.enrollments where student_id = %s and course_id = %s",
                            (int(student_id), course_id),
                        )
                        if cur.fetchone() is None:
                            raise ForbiddenError("Student not enrolled in the course for this assignment")
                        if existing_submission_id is not None:
                            row = self._update_existing(
                                cur, int(existing_submission_id), int(assignment_id), int(student_id), content
                            )
                        else:
                            cur.execute(
                                f"""
                                insert into public.submissions as s
                                       (assignment_id, student_id, content, submitted_at, status)
                                values (%s, %s, %s, now(), 'submitted')
                                on conflict (assignment_id, student_id) do update
                                   set content = excluded.content,
                                       submitted_at = now(),
                                       status = 'resubmitted',
                                       grade = null
                                returning {SUBMISSION_COLUMNS}
                                """,
                                (int(assignment_id), int(student_id), content),
                            )
                            row = cur.fetchone()
        except EduflowError:
            raise
        except psycopg.Error as exc:
            logger.exception("submit failed assignment=%s", assignment_id)
            raise InternalError("Failed to store submission") from exc
        submission = submission_row(row)
        logger.info("submission stored id=%s assignment=%s status=%s", submission["id"], assignment_id, submission["status"])
        return submission

    @staticmethod
    def _update_existing(cur, submission_id: int, assignment_id: int, student_id: int, content: str) -> tuple:
        cur.execute(
            "select assignment_id, student_id from public.submissions where id = %s for update",
            (submission_id,),
        )
        current = cur.fetchone()
        if current is None or int(current[0]) != assignment_id:
            raise NotFoundError("Submission to update not found or access denied")
        if int(current[1]) != student_id:
            raise ForbiddenError("Submission to update not found or access denied")
        cur.execute(
            f"""
            update public.submissions as s
               set content = %s, submitted_at = now(), status = 'resubmitted', grade = null
             where s.id = %s
            returning {SUBMISSION_COLUMNS}
            """,
            (content, submission_id),
        )
        return cur.fetchone()

    def get_submission(self, submission_id: int) -> Optional[dict]:
        row = self._fetch_one(
            f"select {SUBMISSION_COLUMNS} from public.submissions s where s.id = %s", (int(submission_id),)
        )
        return submission_row(row) if row else None

    def get_submission_for_student(self, assignment_id: int, student_id: int) -> Optional[dict]:
        row = self._fetch_one(
            f"select {SUBMISSION_COLUMNS} from public.submissions s where s.assignment_id = %s and s.student_id = %s",
            (int(assignment_id), int(student_id)),
        )
        return submission_row(row) if row else None

    def list_submissions_for_student(self, student_id: int) -> List[dict]:
        rows = self._fetch_all(
            f"select {SUBMISSION_COLUMNS} from public.submissions s where s.student_id = %s order by s.id",
            (int(student_id),),
        )
        return [submission_row(r) for r in rows]

    def get_user_public(self, user_id: int) -> Optional[dict]:
        row = self._fetch_one("select id, username, name, avatar from public.users where id = %s", (int(user_id),))
        if row is None:
            return None
        return {"id": int(row[0]), "username": row[1], "name": row[2], "avatar": row[3]}

    # --- Dashboard --------------------------------------------------------------

    def student_dashboard_stats(self, student_id: int) -> Dict[str, Any]:
        row = self._fetch_one(
            """
            with mine as (
                select a.id
                  from public.assignments a
                  join public.enrollments e on e.course_id = a.course_id
                 where e.student_id = %(s)s
            ), done as (
                select s.grade
                  from public.submissions s
                 where s.student_id = %(s)s and s.assignment_id in (select id from mine)
            )
            select
              (select count(*) from public.enrollments e where e.student_id = %(s)s),
              (select count(*) from done),
              (select count(*) from mine) - (select count(*) from done),
              (select round(avg(grade)::numeric, 1) from done where grade is not null)
            """,
            {"s": int(student_id)},
        )
        return {
            "enrolled_courses": int(row[0]),
            "completed_assignments": int(row[1]),
            "pending_assignments": int(row[2]),
            "average_grade": float(row[3]) if row[3] is not None else None,
        }
