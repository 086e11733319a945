"""Teaching assignment use cases, including the submissions review and grading."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Protocol
import logging

from eduflow.errors import ForbiddenError, InternalError, NotFoundError, Result, ValidationError, capture
from eduflow.identity_access.domain import require_role
from eduflow.teaching.services.courses import CoursesRepoProtocol, load_owned_course
from eduflow.teaching.services.fields import non_negative_int, normalize_title, optional_text, parse_due_date

logger = logging.getLogger("eduflow.teaching")

_UNSET = object()

DEFAULT_MAX_POINTS = 100


class AssignmentsRepoProtocol(CoursesRepoProtocol, Protocol):
    def create_assignment(
        self,
        *,
        course_id: int,
        teacher_id: int,
        title: str,
        description: Optional[str] = None,
        due_date: Optional[datetime] = None,
        max_points: int = DEFAULT_MAX_POINTS,
        instructions: Optional[str] = None,
    ) -> dict:
        ...

    def get_assignment(self, assignment_id: int) -> Optional[dict]:
        ...

    def list_assignments_for_teacher(self, teacher_id: int) -> List[dict]:
        ...

    def update_assignment(self, assignment_id: int, **fields) -> Optional[dict]:
        ...

    def get_submission(self, submission_id: int) -> Optional[dict]:
        ...

    def list_submissions_for_assignment(self, assignment_id: int) -> List[dict]:
        ...

    def highest_grade_for_assignment(self, assignment_id: int) -> Optional[int]:
        ...

    def grade_submission(
        self,
        submission_id: int,
        *,
        grade: int,
        feedback: Optional[str],
        seen: Optional[dict] = None,
    ) -> Optional[dict]:
        ...


def _max_points(value: object) -> int:
    return non_negative_int(value, "invalid_max_points", minimum=1)


@dataclass
class AssignmentsService:
    repo: AssignmentsRepoProtocol

    def _load_owned_assignment(self, assignment_id: int, teacher_id: int, message: str) -> dict:
        assignment = self.repo.get_assignment(assignment_id)
        if assignment is None:
            raise NotFoundError("Assignment not found")
        course = self.repo.get_course(assignment["course_id"])
        if course is None:
            raise InternalError("Course for assignment not found")
        if int(course["teacher_id"]) != int(teacher_id):
            raise ForbiddenError(message)
        return assignment

    def list_assignments(self, teacher_id: int, role: str) -> Result[List[dict]]:
        def _list() -> List[dict]:
            require_role(role, "teacher", "Only teachers can list their assignments")
            return self.repo.list_assignments_for_teacher(teacher_id)

        return capture(_list)

    def create_assignment(
        self,
        course_id: int,
        teacher_id: int,
        role: str,
        *,
        title: object,
        description: object = None,
        due_date: object = None,
        max_points: object = None,
        instructions: object = None,
    ) -> Result[dict]:
        def _create() -> dict:
            require_role(role, "teacher", "Only teachers can create assignments")
            load_owned_course(self.repo, course_id, teacher_id, "Not authorized to add assignments to this course")
            assignment = self.repo.create_assignment(
                course_id=course_id,
                teacher_id=teacher_id,
                title=normalize_title(title),
                description=optional_text(description, "invalid_description"),
                due_date=parse_due_date(due_date),
                max_points=DEFAULT_MAX_POINTS if max_points is None else _max_points(max_points),
                instructions=optional_text(instructions, "invalid_instructions"),
            )
            logger.info("assignment created id=%s course=%s", assignment["id"], course_id)
            return assignment

        return capture(_create)

    def update_assignment(
        self,
        assignment_id: int,
        teacher_id: int,
        role: str,
        *,
        title: object = _UNSET,
        description: object = _UNSET,
        due_date: object = _UNSET,
        max_points: object = _UNSET,
        instructions: object = _UNSET,
    ) -> Result[dict]:
        def _update() -> dict:
            require_role(role, "teacher", "Only teachers can update assignments")
            self._load_owned_assignment(assignment_id, teacher_id, "Not authorized to update this assignment")
            fields = {}
            if title is not _UNSET:
                fields["title"] = normalize_title(title)
            if description is not _UNSET:
                fields["description"] = optional_text(description, "invalid_description")
            if due_date is not _UNSET:
                fields["due_date"] = parse_due_date(due_date)
            if max_points is not _UNSET:
                points = _max_points(max_points)
                highest = self.repo.highest_grade_for_assignment(assignment_id)
                if highest is not None and highest > points:
                    # Existing grades must stay within 0..max_points.
                    raise ValidationError("invalid_max_points")
                fields["max_points"] = points
            if instructions is not _UNSET:
                fields["instructions"] = optional_text(instructions, "invalid_instructions")
            updated = self.repo.update_assignment(assignment_id, **fields)
            if updated is None:
                raise NotFoundError("Assignment not found")
            return updated

        return capture(_update)

    def list_submissions(self, assignment_id: int, teacher_id: int, role: str) -> Result[List[dict]]:
        def _list() -> List[dict]:
            require_role(role, "teacher", "Only teachers can review submissions")
            self._load_owned_assignment(
                assignment_id, teacher_id, "Not authorized to view submissions for this assignment"
            )
            return self.repo.list_submissions_for_assignment(assignment_id)

        return capture(_list)

    def grade_submission(
        self,
        submission_id: int,
        teacher_id: int,
        role: str,
        *,
        grade: object,
        feedback: object = None,
    ) -> Result[dict]:
        """Record a teacher-entered grade (0..max_points) and mark the submission graded."""

        def _grade() -> dict:
            require_role(role, "teacher", "Only teachers can grade submissions")
            submission = self.repo.get_submission(submission_id)
            if submission is None:
                raise NotFoundError("Submission not found")
            assignment = self._load_owned_assignment(
                submission["assignment_id"], teacher_id, "Not authorized to grade this submission"
            )
            if grade is None:
                raise ValidationError("invalid_grade")
            points = non_negative_int(grade, "invalid_grade", maximum=int(assignment["max_points"]))
            graded = self.repo.grade_submission(
                submission_id,
                grade=points,
                feedback=optional_text(feedback, "invalid_feedback"),
                seen=submission,
            )
            if graded is None:
                raise NotFoundError("Submission not found")
            logger.info("submission graded id=%s assignment=%s", submission_id, assignment["id"])
            return graded

        return capture(_grade)
