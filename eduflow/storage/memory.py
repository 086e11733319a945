"""
In-memory store implementing the Identity, Teaching and Learning repositories.

Why:
    Local development and the API test-suite run without Postgres. One object
    implements every repository protocol so cross-context reads (enrollment
    checks inside submit, dashboard aggregates) see the same data.

Concurrency:
    A single re-entrant lock guards all tables. Multi-step operations such as
    `enroll` and `submit` hold it for their whole duration, which gives them the
    same all-or-nothing behaviour the Postgres adapter gets from a transaction.
    Returned rows are copies; callers never mutate stored state.
"""
from __future__ import annotations

from datetime import datetime, timezone
from itertools import count
from typing import Any, Dict, List, Optional
import logging
import threading

from eduflow.errors import ConflictError, ForbiddenError, InternalError, InvalidStateError, NotFoundError

logger = logging.getLogger("eduflow.storage.memory")

_UNSET = object()


def _now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def _iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.astimezone(timezone.utc).replace(microsecond=0).isoformat()


class InMemoryStore:
    """Lock-guarded dictionaries standing in for the relational schema."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._users: Dict[int, dict] = {}
        self._courses: Dict[int, dict] = {}
        self._content: Dict[int, dict] = {}
        self._assignments: Dict[int, dict] = {}
        self._enrollments: Dict[int, dict] = {}
        self._submissions: Dict[int, dict] = {}
        self._ids = {
            name: count(1)
            for name in ("users", "courses", "content", "assignments", "enrollments", "submissions")
        }

    def _next_id(self, table: str) -> int:
        return next(self._ids[table])

    # --- Identity ---------------------------------------------------------------

    def create_user(
        self,
        *,
        username: str,
        password_hash: str,
        role: str,
        name: str,
        avatar: Optional[str] = None,
    ) -> dict:
        with self._lock:
            if any(u["username"] == username for u in self._users.values()):
                raise ConflictError("Username already exists")
            user = {
                "id": self._next_id("users"),
                "username": username,
                "password_hash": password_hash,
                "role": role,
                "name": name,
                "avatar": avatar,
            }
            self._users[user["id"]] = user
            return dict(user)

    def get_user(self, user_id: int) -> Optional[dict]:
        with self._lock:
            user = self._users.get(int(user_id))
            return dict(user) if user else None

    def get_user_by_username(self, username: str) -> Optional[dict]:
        with self._lock:
            for user in self._users.values():
                if user["username"] == username:
                    return dict(user)
            return None

    def update_user(self, user_id: int, *, name=_UNSET, avatar=_UNSET) -> Optional[dict]:
        with self._lock:
            user = self._users.get(int(user_id))
            if user is None:
                return None
            if name is not _UNSET:
                user["name"] = name
            if avatar is not _UNSET:
                user["avatar"] = avatar
            return dict(user)

    def get_user_public(self, user_id: int) -> Optional[dict]:
        with self._lock:
            user = self._users.get(int(user_id))
            if user is None:
                return None
            return {k: user[k] for k in ("id", "username", "name", "avatar")}

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
        with self._lock:
            course = {
                "id": self._next_id("courses"),
                "title": title,
                "description": description,
                "teacher_id": int(teacher_id),
                "status": status,
                "enrollment_count": 0,
                "thumbnail": thumbnail,
            }
            self._courses[course["id"]] = course
            return dict(course)

    def get_course(self, course_id: int) -> Optional[dict]:
        with self._lock:
            course = self._courses.get(int(course_id))
            return dict(course) if course else None

    def list_courses_for_teacher(self, teacher_id: int) -> List[dict]:
        with self._lock:
            return [dict(c) for c in sorted(self._courses.values(), key=lambda c: c["id"]) if c["teacher_id"] == int(teacher_id)]

    def update_course(
        self,
        course_id: int,
        *,
        title=_UNSET,
        description=_UNSET,
        status=_UNSET,
        thumbnail=_UNSET,
    ) -> Optional[dict]:
        with self._lock:
            course = self._courses.get(int(course_id))
            if course is None:
                return None
            for key, value in (("title", title), ("description", description), ("status", status), ("thumbnail", thumbnail)):
                if value is not _UNSET:
                    course[key] = value
            return dict(course)

    def list_available_courses(self, student_id: int) -> List[dict]:
        with self._lock:
            enrolled = {e["course_id"] for e in self._enrollments.values() if e["student_id"] == int(student_id)}
            return [
                dict(c)
                for c in sorted(self._courses.values(), key=lambda c: c["id"])
                if c["status"] == "active" and c["id"] not in enrolled
            ]

    def list_courses_for_student(self, student_id: int) -> List[dict]:
        with self._lock:
            items: List[dict] = []
            for enrollment in sorted(self._enrollments.values(), key=lambda e: e["id"]):
                if enrollment["student_id"] != int(student_id):
                    continue
                course = self._courses.get(enrollment["course_id"])
                if course is None:
                    continue
                item = dict(course)
                item["progress"] = enrollment["progress"]
                item["enrolled_at"] = enrollment["enrolled_at"]
                items.append(item)
            return items

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
        with self._lock:
            item = {
                "id": self._next_id("content"),
                "title": title,
                "description": description,
                "type": type,
                "course_id": int(course_id),
                "teacher_id": int(teacher_id),
                "body": body,
                "order": int(order),
            }
            self._content[item["id"]] = item
            return dict(item)

    def get_content(self, content_id: int) -> Optional[dict]:
        with self._lock:
            item = self._content.get(int(content_id))
            return dict(item) if item else None

    def list_content_for_course(self, course_id: int) -> List[dict]:
        with self._lock:
            items = [c for c in self._content.values() if c["course_id"] == int(course_id)]
            return [dict(c) for c in sorted(items, key=lambda c: (c["order"], c["id"]))]

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
        with self._lock:
            item = self._content.get(int(content_id))
            if item is None:
                return None
            for key, value in (("title", title), ("description", description), ("type", type), ("body", body), ("order", order)):
                if value is not _UNSET:
                    item[key] = value
            return dict(item)

    def delete_content(self, content_id: int) -> bool:
        with self._lock:
            return self._content.pop(int(content_id), None) is not None

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
        with self._lock:
            assignment = {
                "id": self._next_id("assignments"),
                "title": title,
                "description": description,
                "course_id": int(course_id),
                "teacher_id": int(teacher_id),
                "due_date": _iso(due_date),
                "max_points": int(max_points),
                "instructions": instructions,
            }
            self._assignments[assignment["id"]] = assignment
            return dict(assignment)

    def get_assignment(self, assignment_id: int) -> Optional[dict]:
        with self._lock:
            assignment = self._assignments.get(int(assignment_id))
            return dict(assignment) if assignment else None

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
        with self._lock:
            assignment = self._assignments.get(int(assignment_id))
            if assignment is None:
                return None
            if due_date is not _UNSET:
                assignment["due_date"] = _iso(due_date)
            for key, value in (("title", title), ("description", description), ("max_points", max_points), ("instructions", instructions)):
                if value is not _UNSET:
                    assignment[key] = value
            return dict(assignment)

    def list_assignments_for_teacher(self, teacher_id: int) -> List[dict]:
        with self._lock:
            items = [a for a in self._assignments.values() if a["teacher_id"] == int(teacher_id)]
            return [dict(a) for a in sorted(items, key=lambda a: a["id"])]

    def list_assignments_for_course(self, course_id: int) -> List[dict]:
        """Assignments of a course by due date (undated last), then id."""
        with self._lock:
            items = [a for a in self._assignments.values() if a["course_id"] == int(course_id)]
            items.sort(key=lambda a: (a["due_date"] is None, a["due_date"] or "", a["id"]))
            return [dict(a) for a in items]

    def list_assignments_for_student(self, student_id: int) -> List[dict]:
        with self._lock:
            course_ids = {e["course_id"] for e in self._enrollments.values() if e["student_id"] == int(student_id)}
            items = [a for a in self._assignments.values() if a["course_id"] in course_ids]
            items.sort(key=lambda a: (a["due_date"] is None, a["due_date"] or "", a["id"]))
            result: List[dict] = []
            for assignment in items:
                row = dict(assignment)
                row["course_title"] = self._courses[assignment["course_id"]]["title"]
                result.append(row)
            return result

    # --- Enrollments ------------------------------------------------------------

    def get_enrollment(self, student_id: int, course_id: int) -> Optional[dict]:
        with self._lock:
            found = self._find_enrollment(int(student_id), int(course_id))
            return dict(found) if found else None

    def _find_enrollment(self, student_id: int, course_id: int) -> Optional[dict]:
        for enrollment in self._enrollments.values():
            if enrollment["student_id"] == student_id and enrollment["course_id"] == course_id:
                return enrollment
        return None

    def _increment_enrollment_count(self, course_id: int) -> bool:
        course = self._courses.get(course_id)
        if course is None:
            return False
        course["enrollment_count"] += 1
        return True

    def enroll(self, student_id: int, course_id: int) -> dict:
        """Create the enrollment and bump the course counter atomically.

        Raises NotFoundError, InvalidStateError, ConflictError or InternalError;
        on any failure no enrollment remains and the counter is unchanged.
        """
        student_id, course_id = int(student_id), int(course_id)
        with self._lock:
            course = self._courses.get(course_id)
            if course is None:
                raise NotFoundError("Course not found")
            if course["status"] != "active":
                raise InvalidStateError("Course is not active and cannot be enrolled in")
            if self._find_enrollment(student_id, course_id) is not None:
                raise ConflictError("Student is already enrolled in this course")
            enrollment = {
                "id": self._next_id("enrollments"),
                "student_id": student_id,
                "course_id": course_id,
                "enrolled_at": _now_iso(),
                "progress": 0,
            }
            self._enrollments[enrollment["id"]] = enrollment
            if not self._increment_enrollment_count(course_id):
                del self._enrollments[enrollment["id"]]
                raise InternalError("Failed to update course enrollment count")
            logger.info("enrollment created id=%s course=%s", enrollment["id"], course_id)
            return dict(enrollment)

    def update_enrollment_progress(self, student_id: int, course_id: int, progress: int) -> Optional[dict]:
        with self._lock:
            enrollment = self._find_enrollment(int(student_id), int(course_id))
            if enrollment is None:
                return None
            enrollment["progress"] = int(progress)
            return dict(enrollment)

    # --- Submissions ------------------------------------------------------------

    def _find_submission(self, assignment_id: int, student_id: int) -> Optional[dict]:
        for submission in self._submissions.values():
            if submission["assignment_id"] == assignment_id and submission["student_id"] == student_id:
                return submission
        return None

    def submit(
        self,
        *,
        assignment_id: int,
        student_id: int,
        content: str,
        existing_submission_id: Optional[int] = None,
    ) -> dict:
        """Insert or update the single submission of a student for an assignment."""
        assignment_id, student_id = int(assignment_id), int(student_id)
        with self._lock:
            assignment = self._assignments.get(assignment_id)
            if assignment is None:
                raise NotFoundError("Assignment not found")
            if assignment["course_id"] not in self._courses:
                raise InternalError("Course for assignment not found")
            if self._find_enrollment(student_id, assignment["course_id"]) is None:
                raise ForbiddenError("Student not enrolled in the course for this assignment")
            if existing_submission_id is not None:
                current = self._submissions.get(int(existing_submission_id))
                if current is None or current["assignment_id"] != assignment_id:
                    raise NotFoundError("Submission to update not found or access denied")
                if current["student_id"] != student_id:
                    raise ForbiddenError("Submission to update not found or access denied")
            else:
                current = self._find_submission(assignment_id, student_id)
            if current is not None:
                current.update(
                    content=content,
                    submitted_at=_now_iso(),
                    status="resubmitted",
                    grade=None,
                )
                logger.info("submission updated id=%s assignment=%s", current["id"], assignment_id)
                return dict(current)
            submission = {
                "id": self._next_id("submissions"),
                "assignment_id": assignment_id,
                "student_id": student_id,
                "content": content,
                "submitted_at": _now_iso(),
                "grade": None,
                "feedback": None,
                "status": "submitted",
            }
            self._submissions[submission["id"]] = submission
            logger.info("submission created id=%s assignment=%s", submission["id"], assignment_id)
            return dict(submission)

    def get_submission(self, submission_id: int) -> Optional[dict]:
        with self._lock:
            submission = self._submissions.get(int(submission_id))
            return dict(submission) if submission else None

    def get_submission_for_student(self, assignment_id: int, student_id: int) -> Optional[dict]:
        with self._lock:
            found = self._find_submission(int(assignment_id), int(student_id))
            return dict(found) if found else None

    def list_submissions_for_student(self, student_id: int) -> List[dict]:
        with self._lock:
            items = [s for s in self._submissions.values() if s["student_id"] == int(student_id)]
            return [dict(s) for s in sorted(items, key=lambda s: s["id"])]

    def list_submissions_for_assignment(self, assignment_id: int) -> List[dict]:
        with self._lock:
            items = [s for s in self._submissions.values() if s["assignment_id"] == int(assignment_id)]
            result: List[dict] = []
            for submission in sorted(items, key=lambda s: s["id"]):
                row = dict(submission)
                row["student"] = self.get_user_public(submission["student_id"])
                result.append(row)
            return result

    def highest_grade_for_assignment(self, assignment_id: int) -> Optional[int]:
        with self._lock:
            grades = [
                s["grade"]
                for s in self._submissions.values()
                if s["assignment_id"] == int(assignment_id) and s["grade"] is not None
            ]
            return max(grades) if grades else None

    def grade_submission(
        self,
        submission_id: int,
        *,
        grade: int,
        feedback: Optional[str],
        seen: Optional[dict] = None,
    ) -> Optional[dict]:
        """Grade a submission; with `seen`, only if it still matches that loaded row."""
        with self._lock:
            submission = self._submissions.get(int(submission_id))
            if submission is None:
                return None
            if seen is not None and any(submission[k] != seen.get(k) for k in ("content", "submitted_at", "status")):
                raise ConflictError("Submission changed since it was loaded; reload before grading")
            submission.update(grade=int(grade), feedback=feedback, status="graded")
            return dict(submission)

    # --- Dashboard aggregates ---------------------------------------------------

    def teacher_dashboard_stats(self, teacher_id: int) -> Dict[str, Any]:
        with self._lock:
            course_ids = {c["id"] for c in self._courses.values() if c["teacher_id"] == int(teacher_id)}
            active = sum(1 for c in self._courses.values() if c["id"] in course_ids and c["status"] == "active")
            enrollments = [e for e in self._enrollments.values() if e["course_id"] in course_ids]
            assignment_ids = {a["id"] for a in self._assignments.values() if a["course_id"] in course_ids}
            pending = sum(
                1 for s in self._submissions.values() if s["assignment_id"] in assignment_ids and s["status"] != "graded"
            )
            completion = round(sum(e["progress"] for e in enrollments) / len(enrollments)) if enrollments else 0
            return {
                "total_students": len({e["student_id"] for e in enrollments}),
                "active_courses": active,
                "pending_reviews": pending,
                "completion_rate": completion,
            }

    def student_dashboard_stats(self, student_id: int) -> Dict[str, Any]:
        with self._lock:
            student_id = int(student_id)
            course_ids = {e["course_id"] for e in self._enrollments.values() if e["student_id"] == student_id}
            assignment_ids = {a["id"] for a in self._assignments.values() if a["course_id"] in course_ids}
            own = [s for s in self._submissions.values() if s["student_id"] == student_id and s["assignment_id"] in assignment_ids]
            grades = [s["grade"] for s in own if s["grade"] is not None]
            return {
                "enrolled_courses": len(course_ids),
                "completed_assignments": len(own),
                "pending_assignments": len(assignment_ids) - len(own),
                "average_grade": round(sum(grades) / len(grades), 1) if grades else None,
            }


__all__ = ["InMemoryStore"]
