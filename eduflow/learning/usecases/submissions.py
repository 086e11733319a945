from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Protocol

from eduflow.errors import ForbiddenError, InternalError, NotFoundError, Result, ValidationError, capture
from eduflow.identity_access.domain import require_role

NOT_SUBMITTED = "not-submitted"


class SubmissionsRepoProtocol(Protocol):
    def submit(
        self,
        *,
        assignment_id: int,
        student_id: int,
        content: str,
        existing_submission_id: Optional[int] = None,
    ) -> dict:
        ...

    def get_course(self, course_id: int) -> Optional[dict]:
        ...

    def get_enrollment(self, student_id: int, course_id: int) -> Optional[dict]:
        ...

    def get_assignment(self, assignment_id: int) -> Optional[dict]:
        ...

    def list_assignments_for_course(self, course_id: int) -> List[dict]:
        ...

    def list_assignments_for_student(self, student_id: int) -> List[dict]:
        ...

    def get_submission(self, submission_id: int) -> Optional[dict]:
        ...

    def get_submission_for_student(self, assignment_id: int, student_id: int) -> Optional[dict]:
        ...

    def list_submissions_for_student(self, student_id: int) -> List[dict]:
        ...

    def get_user_public(self, user_id: int) -> Optional[dict]:
        ...


def _annotate(assignment: dict, submission: Optional[dict]) -> dict:
    item = dict(assignment)
    item["submission_status"] = submission["status"] if submission else NOT_SUBMITTED
    item["submission_id"] = submission["id"] if submission else None
    item["grade"] = submission["grade"] if submission else None
    return item


@dataclass
class SubmitAssignmentInput:
    assignment_id: int
    student_id: int
    role: str
    content: object
    existing_submission_id: Optional[int] = None


class SubmitAssignmentUseCase:
    def __init__(self, repo: SubmissionsRepoProtocol) -> None:
        self._repo = repo

    def execute(self, req: SubmitAssignmentInput) -> Result[dict]:
        """Create the student's submission or update it in place.

        Behavior:
            - Only students submit; content must contain non-whitespace text.
            - The repository enforces enrollment and keeps exactly one row per
              (assignment, student): a first submission is `submitted`, any
              later one flips the same row to `resubmitted`.
        """

        def _submit() -> dict:
            require_role(req.role, "student", "Only students can submit assignments")
            if not isinstance(req.content, str) or not req.content.strip():
                raise ValidationError("invalid_content")
            return self._repo.submit(
                assignment_id=req.assignment_id,
                student_id=req.student_id,
                content=req.content,
                existing_submission_id=req.existing_submission_id,
            )

        return capture(_submit)


@dataclass
class CourseAssignmentsInput:
    course_id: int
    user_id: int
    role: str


class GetAssignmentsForCourseUseCase:
    def __init__(self, repo: SubmissionsRepoProtocol) -> None:
        self._repo = repo

    def execute(self, req: CourseAssignmentsInput) -> Result[List[dict]]:
        """List a course's assignments by due date (undated last), then id.

        Students must be enrolled and receive each assignment annotated with
        `submission_status`, `submission_id` and `grade`. Teachers must own the
        course and receive the plain assignments.
        """

        def _list() -> List[dict]:
            course = self._repo.get_course(req.course_id)
            if course is None:
                raise NotFoundError("Course not found")
            assignments = self._repo.list_assignments_for_course(req.course_id)
            if req.role == "student":
                if self._repo.get_enrollment(req.user_id, req.course_id) is None:
                    raise ForbiddenError("Student not enrolled in this course")
                return [
                    _annotate(a, self._repo.get_submission_for_student(a["id"], req.user_id)) for a in assignments
                ]
            if req.role == "teacher":
                if int(course["teacher_id"]) != int(req.user_id):
                    raise ForbiddenError("Teacher not authorized for this course")
                return assignments
            raise ForbiddenError("Not authorized to view assignments for this course")

        return capture(_list)


@dataclass
class StudentAssignmentsInput:
    student_id: int
    role: str


class ListStudentAssignmentsUseCase:
    def __init__(self, repo: SubmissionsRepoProtocol) -> None:
        self._repo = repo

    def execute(self, req: StudentAssignmentsInput) -> Result[List[dict]]:
        """Assignments across all enrolled courses, annotated with the caller's submission."""

        def _list() -> List[dict]:
            require_role(req.role, "student", "Only students can list their assignments")
            by_assignment = {s["assignment_id"]: s for s in self._repo.list_submissions_for_student(req.student_id)}
            return [
                _annotate(a, by_assignment.get(a["id"]))
                for a in self._repo.list_assignments_for_student(req.student_id)
            ]

        return capture(_list)


@dataclass
class OwnSubmissionInput:
    assignment_id: int
    student_id: int
    role: str


class GetOwnSubmissionUseCase:
    def __init__(self, repo: SubmissionsRepoProtocol) -> None:
        self._repo = repo

    def execute(self, req: OwnSubmissionInput) -> Result[Optional[dict]]:
        """Return the caller's submission for an assignment, or None when there is none yet."""

        def _get() -> Optional[dict]:
            require_role(req.role, "student", "Only students can view their submissions")
            assignment = self._repo.get_assignment(req.assignment_id)
            if assignment is None:
                raise NotFoundError("Assignment not found")
            if self._repo.get_enrollment(req.student_id, assignment["course_id"]) is None:
                raise ForbiddenError("Student not enrolled in the course for this assignment")
            return self._repo.get_submission_for_student(req.assignment_id, req.student_id)

        return capture(_get)


@dataclass
class SubmissionDetailsInput:
    submission_id: int
    user_id: int
    role: str


class GetSubmissionDetailsUseCase:
    def __init__(self, repo: SubmissionsRepoProtocol) -> None:
        self._repo = repo

    def execute(self, req: SubmissionDetailsInput) -> Result[dict]:
        """Return a submission with its assignment and course.

        Permissions:
            - Students see only their own submissions (enrollment is not
              re-checked).
            - Teachers see submissions of courses they own and additionally get
              the student's public identity.
        """

        def _get() -> dict:
            submission = self._repo.get_submission(req.submission_id)
            if submission is None:
                raise NotFoundError("Submission not found")
            assignment = self._repo.get_assignment(submission["assignment_id"])
            if assignment is None:
                raise InternalError("Assignment for submission not found")
            course = self._repo.get_course(assignment["course_id"])
            if course is None:
                raise InternalError("Course for assignment not found")
            details = {"submission": submission, "assignment": assignment, "course": course}
            if req.role == "student":
                if int(submission["student_id"]) != int(req.user_id):
                    raise ForbiddenError("Not authorized to view this submission")
                return details
            if req.role == "teacher":
                if int(course["teacher_id"]) != int(req.user_id):
                    raise ForbiddenError("Not authorized to view this submission")
                details["student"] = self._repo.get_user_public(submission["student_id"])
                return details
            raise ForbiddenError("Not authorized to view this submission")

        return capture(_get)
