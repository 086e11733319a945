"""Teaching content use cases: create, list, update and hard delete."""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Protocol
import logging

from eduflow.errors import ForbiddenError, NotFoundError, Result, capture
from eduflow.identity_access.domain import require_role
from eduflow.teaching.services.courses import CoursesRepoProtocol, load_owned_course
from eduflow.teaching.services.fields import CONTENT_TYPES, choice, non_negative_int, normalize_title, optional_text

logger = logging.getLogger("eduflow.teaching")

_UNSET = object()


class ContentRepoProtocol(CoursesRepoProtocol, Protocol):
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
        ...

    def get_content(self, content_id: int) -> Optional[dict]:
        ...

    def list_content_for_course(self, course_id: int) -> List[dict]:
        ...

    def update_content(self, content_id: int, **fields) -> Optional[dict]:
        ...

    def delete_content(self, content_id: int) -> bool:
        ...


@dataclass
class ContentService:
    repo: ContentRepoProtocol

    def _load_owned_content(self, content_id: int, teacher_id: int, message: str) -> dict:
        item = self.repo.get_content(content_id)
        if item is None:
            raise NotFoundError("Content not found")
        course = self.repo.get_course(item["course_id"])
        if course is None or int(course["teacher_id"]) != int(teacher_id):
            raise ForbiddenError(message)
        return item

    def list_content(self, course_id: int, teacher_id: int, role: str) -> Result[List[dict]]:
        def _list() -> List[dict]:
            require_role(role, "teacher", "Only teachers can manage content")
            load_owned_course(self.repo, course_id, teacher_id, "Not authorized to view content for this course")
            return self.repo.list_content_for_course(course_id)

        return capture(_list)

    def create_content(
        self,
        course_id: int,
        teacher_id: int,
        role: str,
        *,
        title: object,
        type: object,
        description: object = None,
        body: object = None,
        order: object = 0,
    ) -> Result[dict]:
        def _create() -> dict:
            require_role(role, "teacher", "Only teachers can create content")
            load_owned_course(self.repo, course_id, teacher_id, "Not authorized to add content to this course")
            item = self.repo.create_content(
                course_id=course_id,
                teacher_id=teacher_id,
                title=normalize_title(title),
                type=choice(type, CONTENT_TYPES, "invalid_type"),
                description=optional_text(description, "invalid_description"),
                body=optional_text(body, "invalid_body"),
                order=0 if order is None else non_negative_int(order, "invalid_order"),
            )
            logger.info("content created id=%s course=%s", item["id"], course_id)
            return item

        return capture(_create)

    def update_content(
        self,
        content_id: int,
        teacher_id: int,
        role: str,
        *,
        title: object = _UNSET,
        type: object = _UNSET,
        description: object = _UNSET,
        body: object = _UNSET,
        order: object = _UNSET,
    ) -> Result[dict]:
        def _update() -> dict:
            require_role(role, "teacher", "Only teachers can update content")
            self._load_owned_content(content_id, teacher_id, "Not authorized to update this content")
            fields = {}
            if title is not _UNSET:
                fields["title"] = normalize_title(title)
            if type is not _UNSET:
                fields["type"] = choice(type, CONTENT_TYPES, "invalid_type")
            if description is not _UNSET:
                fields["description"] = optional_text(description, "invalid_description")
            if body is not _UNSET:
                fields["body"] = optional_text(body, "invalid_body")
            if order is not _UNSET:
                fields["order"] = non_negative_int(order, "invalid_order")
            updated = self.repo.update_content(content_id, **fields)
            if updated is None:
                raise NotFoundError("Content not found")
            return updated

        return capture(_update)

    def delete_content(self, content_id: int, teacher_id: int, role: str) -> Result[None]:
        def _delete() -> None:
            require_role(role, "teacher", "Only teachers can delete content")
            self._load_owned_content(content_id, teacher_id, "Not authorized to delete this content")
            if not self.repo.delete_content(content_id):
                raise NotFoundError("Content not found")
            logger.info("content deleted id=%s", content_id)

        return capture(_delete)
