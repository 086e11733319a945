from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Protocol

from eduflow.errors import ForbiddenError, NotFoundError, Result, ValidationError, capture
from eduflow.identity_access.domain import require_role


class CoursesRepoProtocol(Protocol):
    def get_course(self, course_id: int) -> Optional[dict]:
        ...

    def get_enrollment(self, student_id: int, course_id: int) -> Optional[dict]:
        ...

    def list_courses_for_student(self, student_id: int) -> List[dict]:
        ...

    def list_content_for_course(self, course_id: int) -> List[dict]:
        ...

    def update_enrollment_progress(self, student_id: int, course_id: int, progress: int) -> Optional[dict]:
        ...


def require_enrollment(repo: CoursesRepoProtocol, student_id: int, course_id: int) -> dict:
    """Return the course row; NotFound when absent, Forbidden when the student is not enrolled."""
    course = repo.get_course(course_id)
    if course is None:
        raise NotFoundError("Course not found")
    if repo.get_enrollment(student_id, course_id) is None:
        raise ForbiddenError("Student not enrolled in this course")
    return course


@dataclass
class ListMyCoursesInput:
    student_id: int
    role: str


class ListMyCoursesUseCase:
    def __init__(self, repo: CoursesRepoProtocol) -> None:
        self._repo = repo

    def execute(self, req: ListMyCoursesInput) -> Result[List[dict]]:
        """Return only the courses the student is enrolled in, with progress."""

        def _list() -> List[dict]:
            require_role(req.role, "student", "Only students can list enrolled courses")
            return self._repo.list_courses_for_student(req.student_id)

        return capture(_list)


@dataclass
class GetCourseInput:
    student_id: int
    course_id: int
    role: str


class GetCourseWithContentUseCase:
    def __init__(self, repo: CoursesRepoProtocol) -> None:
        self._repo = repo

    def execute(self, req: GetCourseInput) -> Result[dict]:
        """Return the course, its content ordered by position and the caller's enrollment.

        Permissions:
            Caller must be a student enrolled in the course.
        """

        def _get() -> dict:
            require_role(req.role, "student", "Only students can view enrolled courses")
            course = require_enrollment(self._repo, req.student_id, req.course_id)
            return {
                "course": course,
                "content": self._repo.list_content_for_course(req.course_id),
                "enrollment": self._repo.get_enrollment(req.student_id, req.course_id),
            }

        return capture(_get)


@dataclass
class UpdateProgressInput:
    student_id: int
    course_id: int
    role: str
    progress: object


class UpdateProgressUseCase:
    def __init__(self, repo: CoursesRepoProtocol) -> None:
        self._repo = repo

    def execute(self, req: UpdateProgressInput) -> Result[dict]:
        def _update() -> dict:
            require_role(req.role, "student", "Only students can update course progress")
            value = req.progress
            if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 100:
                raise ValidationError("invalid_progress")
            require_enrollment(self._repo, req.student_id, req.course_id)
            updated = self._repo.update_enrollment_progress(req.student_id, req.course_id, value)
            if updated is None:
                raise ForbiddenError("Student not enrolled in this course")
            return updated

        return capture(_update)
