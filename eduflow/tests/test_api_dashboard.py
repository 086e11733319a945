"""
Dashboard API: role-specific statistics derived from stored rows.
"""
from __future__ import annotations

import pytest

from utils.api import client, login_as, make_course, make_user

pytestmark = pytest.mark.anyio("asyncio")


def _seed(store):
    teacher = make_user(store, "teacher1", "teacher")
    alice = make_user(store, "alice", "student")
    bob = make_user(store, "bob", "student")
    algebra = make_course(store, teacher, title="Algebra")
    geometry = make_course(store, teacher, title="Geometry")
    make_course(store, teacher, title="Draft", status="draft")
    quiz = store.create_assignment(course_id=algebra["id"], teacher_id=teacher["id"], title="Quiz")
    essay = store.create_assignment(course_id=algebra["id"], teacher_id=teacher["id"], title="Essay")
    store.create_assignment(course_id=geometry["id"], teacher_id=teacher["id"], title="Proof")
    store.enroll(alice["id"], algebra["id"])
    store.enroll(alice["id"], geometry["id"])
    store.enroll(bob["id"], algebra["id"])
    store.update_enrollment_progress(alice["id"], algebra["id"], 50)
    store.update_enrollment_progress(bob["id"], algebra["id"], 100)
    graded = store.submit(assignment_id=quiz["id"], student_id=alice["id"], content="a")
    store.grade_submission(graded["id"], grade=85, feedback=None)
    store.submit(assignment_id=essay["id"], student_id=alice["id"], content="b")
    store.submit(assignment_id=quiz["id"], student_id=bob["id"], content="c")
    return teacher, alice, bob


async def test_teacher_stats(store):
    teacher, _, _ = _seed(store)
    async with client() as c:
        login_as(c, teacher)
        r = await c.get("/api/dashboard/stats")
    assert r.status_code == 200
    # progress values: 50, 0, 100
    assert r.json() == {"total_students": 2, "active_courses": 2, "pending_reviews": 2, "completion_rate": 50}


async def test_student_stats(store):
    _, alice, bob = _seed(store)
    async with client() as c:
        login_as(c, alice)
        r_alice = await c.get("/api/dashboard/stats")
        login_as(c, bob)
        r_bob = await c.get("/api/dashboard/stats")
    assert r_alice.json() == {
        "enrolled_courses": 2,
        "completed_assignments": 2,
        "pending_assignments": 1,
        "average_grade": 85.0,
    }
    assert r_bob.json() == {
        "enrolled_courses": 1,
        "completed_assignments": 1,
        "pending_assignments": 1,
        "average_grade": None,
    }


async def test_empty_dashboards(store):
    teacher = make_user(store, "teacher1", "teacher")
    student = make_user(store, "student1", "student")
    async with client() as c:
        login_as(c, teacher)
        r_teacher = await c.get("/api/dashboard/stats")
        login_as(c, student)
        r_student = await c.get("/api/dashboard/stats")
    assert r_teacher.json() == {"total_students": 0, "active_courses": 0, "pending_reviews": 0, "completion_rate": 0}
    assert r_student.json()["enrolled_courses"] == 0
    assert r_student.json()["average_grade"] is None
