from __future__ import annotations

from dataclasses import dataclass
from typing import List, Protocol

from eduflow.errors import Result, capture
from eduflow.identity_access.domain import require_role


class EnrollmentRepoProtocol(Protocol):
    def enroll(self, student_id: int, course_id: int) -> dict:
        ...

    def list_available_courses(self, student_id: int) -> List[dict]:
        ...


@dataclass
class EnrollInput:
    student_id: int
    course_id: int
    role: str


class EnrollUseCase:
    def __init__(self, repo: EnrollmentRepoProtocol) -> None:
        self._repo = repo

    def execute(self, req: EnrollInput) -> Result[dict]:
        """Enroll the calling student in an active course.

        Behavior:
            - Role check first: only students may enroll.
            - The repository performs load/status/duplicate checks, the insert
              and the counter increment as one atomic unit.

        Errors:
            forbidden (role), not_found (course), invalid_state (course not
            active), conflict (already enrolled), internal (counter update).
        """

        def _enroll() -> dict:
            require_role(req.role, "student", "Only students can enroll in courses")
            return self._repo.enroll(req.student_id, req.course_id)

        return capture(_enroll)


@dataclass
class ListAvailableCoursesInput:
    student_id: int
    role: str


class ListAvailableCoursesUseCase:
    def __init__(self, repo: EnrollmentRepoProtocol) -> None:
        self._repo = repo

    def execute(self, req: ListAvailableCoursesInput) -> Result[List[dict]]:
        """Return active courses the student is not yet enrolled in."""

        def _list() -> List[dict]:
            require_role(req.role, "student", "Only students can browse available courses")
            return self._repo.list_available_courses(req.student_id)

        return capture(_list)
