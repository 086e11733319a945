"""
Learning API routes: browse, enroll, read course content and submit work.

Security:
    Student-only endpoints reject other roles with 403 in the use cases. The
    shared read endpoints at the bottom (`/api/courses/{id}/assignments`,
    `/api/submissions/{id}`) serve both roles with role-specific visibility.
"""
from __future__ import annotations

from typing import Optional
import asyncio
import logging

from fastapi import APIRouter, Request
from pydantic import BaseModel

from eduflow.learning.usecases.courses import (
    GetCourseInput,
    GetCourseWithContentUseCase,
    ListMyCoursesInput,
    ListMyCoursesUseCase,
    UpdateProgressInput,
    UpdateProgressUseCase,
)
from eduflow.learning.usecases.enrollment import (
    EnrollInput,
    EnrollUseCase,
    ListAvailableCoursesInput,
    ListAvailableCoursesUseCase,
)
from eduflow.learning.usecases.submissions import (
    CourseAssignmentsInput,
    GetAssignmentsForCourseUseCase,
    GetOwnSubmissionUseCase,
    GetSubmissionDetailsUseCase,
    ListStudentAssignmentsUseCase,
    OwnSubmissionInput,
    StudentAssignmentsInput,
    SubmissionDetailsInput,
    SubmitAssignmentInput,
    SubmitAssignmentUseCase,
)
from eduflow.storage.wiring import get_repos
from eduflow.web.routes.responses import invalid_id, parse_id, result_response
from eduflow.web.routes.security import caller_identity, csrf_guard

learning_router = APIRouter(tags=["Learning"])
logger = logging.getLogger("eduflow.web.learning")


def _repo():
    return get_repos().learning


class ProgressPayload(BaseModel):
    progress: Optional[int] = None


class SubmissionPayload(BaseModel):
    content: Optional[str] = None
    submission_id: Optional[int] = None


# --- Courses & enrollment ------------------------------------------------------------


@learning_router.get("/api/learning/courses/available")
async def list_available_courses(request: Request):
    """Active courses the caller is not enrolled in (student only)."""
    user_id, role = caller_identity(request)
    uc = ListAvailableCoursesUseCase(_repo())
    result = await asyncio.to_thread(uc.execute, ListAvailableCoursesInput(student_id=user_id, role=role))
    return result_response(result)


@learning_router.post("/api/learning/courses/{course_id}/enroll")
async def enroll(request: Request, course_id: str):
    """Enroll the calling student in an active course.

    Responses:
        201 with the enrollment; 403 for non-students; 404 unknown course;
        409 when already enrolled or the course is not active; 500 when the
        enrollment counter cannot be updated (nothing is persisted then).
    """
    csrf = csrf_guard(request)
    if csrf:
        return csrf
    cid = parse_id(course_id)
    if cid is None:
        return invalid_id()
    user_id, role = caller_identity(request)
    uc = EnrollUseCase(_repo())
    result = await asyncio.to_thread(uc.execute, EnrollInput(student_id=user_id, course_id=cid, role=role))
    if not result.ok:
        logger.warning("enroll rejected course=%s kind=%s", cid, result.kind.value)
    return result_response(result, status_code=201)


@learning_router.get("/api/learning/courses")
async def list_my_courses(request: Request):
    """Courses the caller is enrolled in, with progress and enrollment date."""
    user_id, role = caller_identity(request)
    uc = ListMyCoursesUseCase(_repo())
    result = await asyncio.to_thread(uc.execute, ListMyCoursesInput(student_id=user_id, role=role))
    return result_response(result)


@learning_router.get("/api/learning/courses/{course_id}")
async def get_course(request: Request, course_id: str):
    cid = parse_id(course_id)
    if cid is None:
        return invalid_id()
    user_id, role = caller_identity(request)
    uc = GetCourseWithContentUseCase(_repo())
    result = await asyncio.to_thread(uc.execute, GetCourseInput(student_id=user_id, course_id=cid, role=role))
    return result_response(result)


@learning_router.patch("/api/learning/courses/{course_id}/progress")
async def update_progress(request: Request, course_id: str, payload: ProgressPayload):
    csrf = csrf_guard(request)
    if csrf:
        return csrf
    cid = parse_id(course_id)
    if cid is None:
        return invalid_id()
    user_id, role = caller_identity(request)
    uc = UpdateProgressUseCase(_repo())
    result = await asyncio.to_thread(
        uc.execute, UpdateProgressInput(student_id=user_id, course_id=cid, role=role, progress=payload.progress)
    )
    return result_response(result)


# --- Assignments & submissions ---------------------------------------------------------


@learning_router.get("/api/learning/assignments")
async def list_my_assignments(request: Request):
    user_id, role = caller_identity(request)
    uc = ListStudentAssignmentsUseCase(_repo())
    result = await asyncio.to_thread(uc.execute, StudentAssignmentsInput(student_id=user_id, role=role))
    return result_response(result)


@learning_router.post("/api/learning/assignments/{assignment_id}/submissions")
async def submit_assignment(request: Request, assignment_id: str, payload: SubmissionPayload):
    """Submit or resubmit work for an assignment.

    Behavior:
        - Exactly one submission exists per (assignment, student); a repeated
          call updates it in place with status `resubmitted`.
        - `submission_id` optionally names the row to update; it must belong
          to the caller and to this assignment.
    """
    csrf = csrf_guard(request)
    if csrf:
        return csrf
    aid = parse_id(assignment_id)
    if aid is None:
        return invalid_id()
    user_id, role = caller_identity(request)
    uc = SubmitAssignmentUseCase(_repo())
    result = await asyncio.to_thread(
        uc.execute,
        SubmitAssignmentInput(
            assignment_id=aid,
            student_id=user_id,
            role=role,
            content=payload.content,
            existing_submission_id=payload.submission_id,
        ),
    )
    if not result.ok:
        logger.warning("submission rejected assignment=%s kind=%s", aid, result.kind.value)
    return result_response(result, status_code=201)


@learning_router.get("/api/learning/assignments/{assignment_id}/submission")
async def get_own_submission(request: Request, assignment_id: str):
    """The caller's submission for an assignment, or null when none exists yet."""
    aid = parse_id(assignment_id)
    if aid is None:
        return invalid_id()
    user_id, role = caller_identity(request)
    uc = GetOwnSubmissionUseCase(_repo())
    result = await asyncio.to_thread(uc.execute, OwnSubmissionInput(assignment_id=aid, student_id=user_id, role=role))
    return result_response(result)


# --- Shared (teacher + student) ------------------------------------------------------------


@learning_router.get("/api/courses/{course_id}/assignments")
async def course_assignments(request: Request, course_id: str):
    """Assignments of a course; students get their submission status per item."""
    cid = parse_id(course_id)
    if cid is None:
        return invalid_id()
    user_id, role = caller_identity(request)
    uc = GetAssignmentsForCourseUseCase(_repo())
    result = await asyncio.to_thread(uc.execute, CourseAssignmentsInput(course_id=cid, user_id=user_id, role=role))
    return result_response(result)


@learning_router.get("/api/submissions/{submission_id}")
async def submission_details(request: Request, submission_id: str):
    sid = parse_id(submission_id)
    if sid is None:
        return invalid_id()
    user_id, role = caller_identity(request)
    uc = GetSubmissionDetailsUseCase(_repo())
    result = await asyncio.to_thread(uc.execute, SubmissionDetailsInput(submission_id=sid, user_id=user_id, role=role))
    return result_response(result)
