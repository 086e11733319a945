"""
Teaching API routes: courses, content, assignments and grading (teacher side).

Why:
    Thin HTTP adapter over the Teaching services. Role and ownership checks
    live in the services; this module validates path ids, applies the CSRF
    guard on writes and maps results to JSON.
"""
from __future__ import annotations

from typing import Optional
import asyncio
import logging

from fastapi import APIRouter, Request
from fastapi.responses import Response
from pydantic import BaseModel, Field

from eduflow.storage.wiring import get_repos
from eduflow.teaching.services.assignments import AssignmentsService
from eduflow.teaching.services.content import ContentService
from eduflow.teaching.services.courses import CoursesService
from eduflow.web.routes.responses import error_response, invalid_id, parse_id, private_error, result_response
from eduflow.web.routes.security import caller_identity, csrf_guard

teaching_router = APIRouter(tags=["Teaching"])
logger = logging.getLogger("eduflow.web.teaching")


def _courses() -> CoursesService:
    return CoursesService(get_repos().teaching)


def _content() -> ContentService:
    return ContentService(get_repos().teaching)


def _assignments() -> AssignmentsService:
    return AssignmentsService(get_repos().teaching)


def _empty_update() -> Response:
    return private_error("bad_request", status_code=400, detail="empty_update")


# --- Request models ----------------------------------------------------------------
# Values are checked in the services; wrongly typed fields map to 400 in web.main.


class CourseCreate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    thumbnail: Optional[str] = None


class CourseUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    thumbnail: Optional[str] = None


class ContentCreate(BaseModel):
    title: Optional[str] = None
    type: Optional[str] = None
    description: Optional[str] = None
    body: Optional[str] = None
    order: Optional[int] = None


class ContentUpdate(BaseModel):
    title: Optional[str] = None
    type: Optional[str] = None
    description: Optional[str] = None
    body: Optional[str] = None
    order: Optional[int] = None


class AssignmentCreate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[str] = None
    max_points: Optional[int] = None
    instructions: Optional[str] = None


class AssignmentUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[str] = None
    max_points: Optional[int] = None
    instructions: Optional[str] = None


class GradePayload(BaseModel):
    grade: Optional[int] = Field(default=None)
    feedback: Optional[str] = None


# --- Courses ---------------------------------------------------------------------


@teaching_router.get("/api/teaching/courses")
async def list_courses(request: Request):
    """List the caller's own courses (teacher only)."""
    user_id, role = caller_identity(request)
    result = await asyncio.to_thread(_courses().list_courses, user_id, role)
    return result_response(result)


@teaching_router.post("/api/teaching/courses")
async def create_course(request: Request, payload: CourseCreate):
    """Create a course owned by the caller; status defaults to `draft`."""
    csrf = csrf_guard(request)
    if csrf:
        return csrf
    user_id, role = caller_identity(request)
    result = await asyncio.to_thread(
        _courses().create_course,
        user_id,
        role,
        title=payload.title,
        description=payload.description,
        status=payload.status,
        thumbnail=payload.thumbnail,
    )
    return result_response(result, status_code=201)


@teaching_router.get("/api/teaching/courses/{course_id}")
async def get_course(request: Request, course_id: str):
    cid = parse_id(course_id)
    if cid is None:
        return invalid_id()
    user_id, role = caller_identity(request)
    result = await asyncio.to_thread(_courses().get_course, cid, user_id, role)
    return result_response(result)


@teaching_router.patch("/api/teaching/courses/{course_id}")
async def update_course(request: Request, course_id: str, payload: CourseUpdate):
    """Update title, description, status or thumbnail of an owned course.

    Permissions:
        Caller must be a teacher (403 otherwise) and own the course (403);
        unknown course ids yield 404.
    """
    csrf = csrf_guard(request)
    if csrf:
        return csrf
    cid = parse_id(course_id)
    if cid is None:
        return invalid_id()
    fields = payload.model_dump(exclude_unset=True)
    if not fields:
        return _empty_update()
    user_id, role = caller_identity(request)
    result = await asyncio.to_thread(_courses().update_course, cid, user_id, role, **fields)
    return result_response(result)


# --- Content ---------------------------------------------------------------------


@teaching_router.get("/api/teaching/courses/{course_id}/content")
async def list_content(request: Request, course_id: str):
    cid = parse_id(course_id)
    if cid is None:
        return invalid_id()
    user_id, role = caller_identity(request)
    result = await asyncio.to_thread(_content().list_content, cid, user_id, role)
    return result_response(result)


@teaching_router.post("/api/teaching/courses/{course_id}/content")
async def create_content(request: Request, course_id: str, payload: ContentCreate):
    csrf = csrf_guard(request)
    if csrf:
        return csrf
    cid = parse_id(course_id)
    if cid is None:
        return invalid_id()
    user_id, role = caller_identity(request)
    result = await asyncio.to_thread(
        _content().create_content,
        cid,
        user_id,
        role,
        title=payload.title,
        type=payload.type,
        description=payload.description,
        body=payload.body,
        order=payload.order,
    )
    return result_response(result, status_code=201)


@teaching_router.patch("/api/teaching/content/{content_id}")
async def update_content(request: Request, content_id: str, payload: ContentUpdate):
    csrf = csrf_guard(request)
    if csrf:
        return csrf
    item_id = parse_id(content_id)
    if item_id is None:
        return invalid_id()
    fields = payload.model_dump(exclude_unset=True)
    if not fields:
        return _empty_update()
    user_id, role = caller_identity(request)
    result = await asyncio.to_thread(_content().update_content, item_id, user_id, role, **fields)
    return result_response(result)


@teaching_router.delete("/api/teaching/content/{content_id}")
async def delete_content(request: Request, content_id: str):
    """Hard-delete a content item of an owned course (204)."""
    csrf = csrf_guard(request)
    if csrf:
        return csrf
    item_id = parse_id(content_id)
    if item_id is None:
        return invalid_id()
    user_id, role = caller_identity(request)
    result = await asyncio.to_thread(_content().delete_content, item_id, user_id, role)
    if not result.ok:
        return error_response(result)
    return Response(status_code=204, headers={"Cache-Control": "private, no-store"})


# --- Assignments -------------------------------------------------------------------


@teaching_router.get("/api/teaching/assignments")
async def list_assignments(request: Request):
    user_id, role = caller_identity(request)
    result = await asyncio.to_thread(_assignments().list_assignments, user_id, role)
    return result_response(result)


@teaching_router.post("/api/teaching/courses/{course_id}/assignments")
async def create_assignment(request: Request, course_id: str, payload: AssignmentCreate):
    """Create an assignment for an owned course.

    Validation:
        - `title` 1..200 characters
        - `due_date` ISO-8601 with timezone offset (stored as UTC)
        - `max_points` positive integer (default 100)
    """
    csrf = csrf_guard(request)
    if csrf:
        return csrf
    cid = parse_id(course_id)
    if cid is None:
        return invalid_id()
    user_id, role = caller_identity(request)
    result = await asyncio.to_thread(
        _assignments().create_assignment,
        cid,
        user_id,
        role,
        title=payload.title,
        description=payload.description,
        due_date=payload.due_date,
        max_points=payload.max_points,
        instructions=payload.instructions,
    )
    return result_response(result, status_code=201)


@teaching_router.patch("/api/teaching/assignments/{assignment_id}")
async def update_assignment(request: Request, assignment_id: str, payload: AssignmentUpdate):
    csrf = csrf_guard(request)
    if csrf:
        return csrf
    aid = parse_id(assignment_id)
    if aid is None:
        return invalid_id()
    fields = payload.model_dump(exclude_unset=True)
    if not fields:
        return _empty_update()
    user_id, role = caller_identity(request)
    result = await asyncio.to_thread(_assignments().update_assignment, aid, user_id, role, **fields)
    return result_response(result)


@teaching_router.get("/api/teaching/assignments/{assignment_id}/submissions")
async def list_submissions(request: Request, assignment_id: str):
    """List submissions for an owned assignment, each with the student's public identity."""
    aid = parse_id(assignment_id)
    if aid is None:
        return invalid_id()
    user_id, role = caller_identity(request)
    result = await asyncio.to_thread(_assignments().list_submissions, aid, user_id, role)
    return result_response(result)


@teaching_router.post("/api/teaching/submissions/{submission_id}/grade")
async def grade_submission(request: Request, submission_id: str, payload: GradePayload):
    csrf = csrf_guard(request)
    if csrf:
        return csrf
    sid = parse_id(submission_id)
    if sid is None:
        return invalid_id()
    user_id, role = caller_identity(request)
    result = await asyncio.to_thread(
        _assignments().grade_submission, sid, user_id, role, grade=payload.grade, feedback=payload.feedback
    )
    return result_response(result)
