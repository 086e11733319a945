"""Teaching course use cases (create, list, read, update).

Why:
    Role and ownership checks run here against rows loaded in the same call,
    so the web adapter stays a thin translator between HTTP and `Result`s.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Protocol
import logging

from eduflow.errors import ForbiddenError, NotFoundError, Result, capture
from eduflow.identity_access.domain import require_role
from eduflow.teaching.services.fields import COURSE_STATUSES, choice, normalize_title, optional_text

logger = logging.getLogger("eduflow.teaching")

_UNSET = object()


class CoursesRepoProtocol(Protocol):
    def create_course(
        self,
        *,
        title: str,
        teacher_id: int,
        description: Optional[str] = None,
        status: str = "draft",
        thumbnail: Optional[str] = None,
    ) -> dict:
        ...

    def get_course(self, course_id: int) -> Optional[dict]:
        ...

    def list_courses_for_teacher(self, teacher_id: int) -> List[dict]:
        ...

    def update_course(self, course_id: int, **fields) -> Optional[dict]:
        ...


def load_owned_course(repo: CoursesRepoProtocol, course_id: int, teacher_id: int, message: str) -> dict:
    """Return the course or raise NotFound/Forbidden when the caller does not own it."""
    course = repo.get_course(course_id)
    if course is None:
        raise NotFoundError("Course not found")
    if int(course["teacher_id"]) != int(teacher_id):
        raise ForbiddenError(message)
    return course


@dataclass
class CoursesService:
    repo: CoursesRepoProtocol

    def create_course(
        self,
        teacher_id: int,
        role: str,
        *,
        title: object,
        description: object = None,
        status: object = None,
        thumbnail: object = None,
    ) -> Result[dict]:
        def _create() -> dict:
            require_role(role, "teacher", "Only teachers can create courses")
            course = self.repo.create_course(
                title=normalize_title(title),
                teacher_id=teacher_id,
                description=optional_text(description, "invalid_description"),
                status="draft" if status is None else choice(status, COURSE_STATUSES, "invalid_status"),
                thumbnail=optional_text(thumbnail, "invalid_thumbnail"),
            )
            logger.info("course created id=%s teacher=%s", course["id"], teacher_id)
            return course

        return capture(_create)

    def list_courses(self, teacher_id: int, role: str) -> Result[List[dict]]:
        def _list() -> List[dict]:
            require_role(role, "teacher", "Only teachers can list their courses")
            return self.repo.list_courses_for_teacher(teacher_id)

        return capture(_list)

    def get_course(self, course_id: int, teacher_id: int, role: str) -> Result[dict]:
        def _get() -> dict:
            require_role(role, "teacher", "Only teachers can manage courses")
            return load_owned_course(self.repo, course_id, teacher_id, "Not authorized to view this course")

        return capture(_get)

    def update_course(
        self,
        course_id: int,
        teacher_id: int,
        role: str,
        *,
        title: object = _UNSET,
        description: object = _UNSET,
        status: object = _UNSET,
        thumbnail: object = _UNSET,
    ) -> Result[dict]:
        def _update() -> dict:
            require_role(role, "teacher", "Only teachers can update courses")
            load_owned_course(self.repo, course_id, teacher_id, "Not authorized to update this course")
            fields = {}
            if title is not _UNSET:
                fields["title"] = normalize_title(title)
            if description is not _UNSET:
                fields["description"] = optional_text(description, "invalid_description")
            if status is not _UNSET:
                fields["status"] = choice(status, COURSE_STATUSES, "invalid_status")
            if thumbnail is not _UNSET:
                fields["thumbnail"] = optional_text(thumbnail, "invalid_thumbnail")
            updated = self.repo.update_course(course_id, **fields)
            if updated is None:
                raise NotFoundError("Course not found")
            return updated

        return capture(_update)
