"""Dashboard statistics endpoint (both roles)."""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, Request

from eduflow.learning.usecases.dashboard import DashboardStatsInput, DashboardStatsUseCase
from eduflow.storage.wiring import get_repos
from eduflow.web.routes.responses import result_response
from eduflow.web.routes.security import caller_identity

dashboard_router = APIRouter(tags=["Dashboard"])


@dashboard_router.get("/api/dashboard/stats")
async def dashboard_stats(request: Request):
    """Return role-specific figures.

    Teacher: total_students, active_courses, pending_reviews, completion_rate.
    Student: enrolled_courses, completed_assignments, pending_assignments, average_grade.
    """
    user_id, role = caller_identity(request)
    repos = get_repos()
    uc = DashboardStatsUseCase(repos.teaching, repos.learning)
    result = await asyncio.to_thread(uc.execute, DashboardStatsInput(user_id=user_id, role=role))
    return result_response(result)
