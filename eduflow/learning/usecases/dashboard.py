from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Protocol

from eduflow.errors import ForbiddenError, Result, capture


class TeacherStatsRepoProtocol(Protocol):
    def teacher_dashboard_stats(self, teacher_id: int) -> Dict[str, Any]:
        ...


class StudentStatsRepoProtocol(Protocol):
    def student_dashboard_stats(self, student_id: int) -> Dict[str, Any]:
        ...


@dataclass
class DashboardStatsInput:
    user_id: int
    role: str


class DashboardStatsUseCase:
    """Role-dependent dashboard figures computed from stored data."""

    def __init__(self, teaching: TeacherStatsRepoProtocol, learning: StudentStatsRepoProtocol) -> None:
        self._teaching = teaching
        self._learning = learning

    def execute(self, req: DashboardStatsInput) -> Result[Dict[str, Any]]:
        def _stats() -> Dict[str, Any]:
            if req.role == "teacher":
                return self._teaching.teacher_dashboard_stats(req.user_id)
            if req.role == "student":
                return self._learning.student_dashboard_stats(req.user_id)
            raise ForbiddenError("Unknown role")

        return capture(_stats)
