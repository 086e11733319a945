"""
Learning API: submissions and assignment views.

Requirements:
- Exactly one submission row per (assignment, student); resubmitting updates it.
- First submission is `submitted`; every later one is `resubmitted` with grade cleared.
- Only enrolled students submit; content must contain non-whitespace text.
- Students see their own submissions only; teachers see those of courses they own.
"""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from utils.api import client, login_as, make_course, make_user

pytestmark = pytest.mark.anyio("asyncio")


def _setup(store):
    teacher = make_user(store, "teacher1", "teacher")
    student = make_user(store, "student1", "student")
    course = make_course(store, teacher)
    assignment = store.create_assignment(course_id=course["id"], teacher_id=teacher["id"], title="Essay", max_points=100)
    store.enroll(student["id"], course["id"])
    return teacher, student, course, assignment


async def test_submit_resubmit_grade_resubmit_lifecycle(store):
    teacher, student, _, assignment = _setup(store)
    url = f"/api/learning/assignments/{assignment['id']}/submissions"

    async with client() as c:
        login_as(c, student)
        first = await c.post(url, json={"content": "draft1"})
        assert first.status_code == 201
        assert first.json()["status"] == "submitted"
        assert first.json()["grade"] is None
        sub_id = first.json()["id"]

        second = await c.post(url, json={"content": "final"})
        assert second.status_code == 201
        assert second.json()["id"] == sub_id
        assert second.json()["status"] == "resubmitted"
        assert second.json()["content"] == "final"

        login_as(c, teacher)
        graded = await c.post(f"/api/teaching/submissions/{sub_id}/grade", json={"grade": 90, "feedback": "Good"})
        assert graded.status_code == 200
        assert graded.json()["status"] == "graded"
        assert graded.json()["grade"] == 90

        login_as(c, student)
        third = await c.post(url, json={"content": "v3"})
        assert third.status_code == 201
        body = third.json()
        assert body["id"] == sub_id
        assert body["status"] == "resubmitted"
        assert body["grade"] is None
        assert body["content"] == "v3"

    assert len(store.list_submissions_for_assignment(assignment["id"])) == 1


async def test_submit_with_explicit_own_submission_id_updates_row(store):
    _, student, _, assignment = _setup(store)
    existing = store.submit(assignment_id=assignment["id"], student_id=student["id"], content="first")

    async with client() as c:
        login_as(c, student)
        r = await c.post(
            f"/api/learning/assignments/{assignment['id']}/submissions",
            json={"content": "second", "submission_id": existing["id"]},
        )

    assert r.status_code == 201
    assert r.json()["id"] == existing["id"]
    assert r.json()["status"] == "resubmitted"


async def test_submit_with_foreign_submission_id_is_rejected(store):
    teacher, student, course, assignment = _setup(store)
    other = make_user(store, "student2", "student")
    store.enroll(other["id"], course["id"])
    foreign = store.submit(assignment_id=assignment["id"], student_id=other["id"], content="theirs")

    async with client() as c:
        login_as(c, student)
        r = await c.post(
            f"/api/learning/assignments/{assignment['id']}/submissions",
            json={"content": "mine", "submission_id": foreign["id"]},
        )

    assert r.status_code == 403
    assert r.json()["detail"] == "Submission to update not found or access denied"
    assert store.get_submission(foreign["id"])["content"] == "theirs"
    assert store.get_submission_for_student(assignment["id"], student["id"]) is None


async def test_submit_with_unknown_submission_id_returns_404(store):
    _, student, _, assignment = _setup(store)
    async with client() as c:
        login_as(c, student)
        r = await c.post(
            f"/api/learning/assignments/{assignment['id']}/submissions",
            json={"content": "mine", "submission_id": 777},
        )
    assert r.status_code == 404
    assert r.json()["detail"] == "Submission to update not found or access denied"


async def test_submit_not_enrolled_returns_403(store):
    teacher = make_user(store, "teacher1", "teacher")
    outsider = make_user(store, "outsider", "student")
    course = make_course(store, teacher)
    assignment = store.create_assignment(course_id=course["id"], teacher_id=teacher["id"], title="Quiz")

    async with client() as c:
        login_as(c, outsider)
        r = await c.post(f"/api/learning/assignments/{assignment['id']}/submissions", json={"content": "hi"})

    assert r.status_code == 403
    assert r.json()["detail"] == "Student not enrolled in the course for this assignment"
    assert store.list_submissions_for_assignment(assignment["id"]) == []


async def test_submit_unknown_assignment_returns_404(store):
    student = make_user(store, "student1", "student")
    async with client() as c:
        login_as(c, student)
        r = await c.post("/api/learning/assignments/55/submissions", json={"content": "x"})
    assert r.status_code == 404
    assert r.json()["detail"] == "Assignment not found"


@pytest.mark.parametrize("payload", [{"content": "   \n\t "}, {"content": ""}, {}])
async def test_submit_blank_content_returns_400(store, payload):
    _, student, _, assignment = _setup(store)
    async with client() as c:
        login_as(c, student)
        r = await c.post(f"/api/learning/assignments/{assignment['id']}/submissions", json=payload)
    assert r.status_code == 400
    assert r.json()["detail"] == "invalid_content"
    assert store.get_submission_for_student(assignment["id"], student["id"]) is None


async def test_teacher_cannot_submit(store):
    teacher, _, _, assignment = _setup(store)
    async with client() as c:
        login_as(c, teacher)
        r = await c.post(f"/api/learning/assignments/{assignment['id']}/submissions", json={"content": "x"})
    assert r.status_code == 403
    assert r.json()["detail"] == "Only students can submit assignments"


async def test_course_assignments_annotated_and_ordered_for_student(store):
    teacher, student, course, undated = _setup(store)
    late = store.create_assignment(
        course_id=course["id"],
        teacher_id=teacher["id"],
        title="Late",
        due_date=datetime(2030, 6, 1, tzinfo=timezone.utc),
    )
    early = store.create_assignment(
        course_id=course["id"],
        teacher_id=teacher["id"],
        title="Early",
        due_date=datetime(2030, 1, 1, tzinfo=timezone.utc),
    )
    sub = store.submit(assignment_id=late["id"], student_id=student["id"], content="done")

    async with client() as c:
        login_as(c, student)
        r = await c.get(f"/api/courses/{course['id']}/assignments")

    assert r.status_code == 200
    items = r.json()
    assert [a["id"] for a in items] == [early["id"], late["id"], undated["id"]]
    by_id = {a["id"]: a for a in items}
    assert by_id[late["id"]]["submission_status"] == "submitted"
    assert by_id[late["id"]]["submission_id"] == sub["id"]
    assert by_id[early["id"]]["submission_status"] == "not-submitted"
    assert by_id[early["id"]]["submission_id"] is None
    assert by_id[early["id"]]["grade"] is None


async def test_course_assignments_for_owner_teacher_are_plain(store):
    teacher, _, course, assignment = _setup(store)
    async with client() as c:
        login_as(c, teacher)
        r = await c.get(f"/api/courses/{course['id']}/assignments")
    assert r.status_code == 200
    assert [a["id"] for a in r.json()] == [assignment["id"]]
    assert "submission_status" not in r.json()[0]


async def test_course_assignments_forbidden_for_outsiders(store):
    _, _, course, _ = _setup(store)
    other_teacher = make_user(store, "teacher2", "teacher")
    outsider = make_user(store, "student2", "student")
    async with client() as c:
        login_as(c, other_teacher)
        r_teacher = await c.get(f"/api/courses/{course['id']}/assignments")
        login_as(c, outsider)
        r_student = await c.get(f"/api/courses/{course['id']}/assignments")
        r_missing = await c.get("/api/courses/999/assignments")
    assert r_teacher.status_code == 403
    assert r_student.status_code == 403
    assert r_missing.status_code == 404


async def test_my_assignments_span_enrolled_courses(store):
    teacher, student, course, assignment = _setup(store)
    other = make_course(store, teacher, title="Not joined")
    store.create_assignment(course_id=other["id"], teacher_id=teacher["id"], title="Hidden")

    async with client() as c:
        login_as(c, student)
        r = await c.get("/api/learning/assignments")

    assert r.status_code == 200
    items = r.json()
    assert [a["id"] for a in items] == [assignment["id"]]
    assert items[0]["course_title"] == course["title"]
    assert items[0]["submission_status"] == "not-submitted"


async def test_own_submission_is_null_before_first_submit(store):
    _, student, _, assignment = _setup(store)
    async with client() as c:
        login_as(c, student)
        before = await c.get(f"/api/learning/assignments/{assignment['id']}/submission")
        await c.post(f"/api/learning/assignments/{assignment['id']}/submissions", json={"content": "x"})
        after = await c.get(f"/api/learning/assignments/{assignment['id']}/submission")
    assert before.status_code == 200
    assert before.json() is None
    assert after.json()["content"] == "x"


async def test_submission_details_visibility(store):
    teacher, student, course, assignment = _setup(store)
    sub = store.submit(assignment_id=assignment["id"], student_id=student["id"], content="answer")
    other_student = make_user(store, "student2", "student")
    store.enroll(other_student["id"], course["id"])
    other_teacher = make_user(store, "teacher2", "teacher")

    async with client() as c:
        login_as(c, student)
        own = await c.get(f"/api/submissions/{sub['id']}")
        login_as(c, other_student)
        peer = await c.get(f"/api/submissions/{sub['id']}")
        login_as(c, teacher)
        owner = await c.get(f"/api/submissions/{sub['id']}")
        login_as(c, other_teacher)
        stranger = await c.get(f"/api/submissions/{sub['id']}")
        missing = await c.get("/api/submissions/999")

    assert own.status_code == 200
    assert own.json()["submission"]["id"] == sub["id"]
    assert own.json()["assignment"]["id"] == assignment["id"]
    assert own.json()["course"]["id"] == course["id"]
    assert "student" not in own.json()
    assert peer.status_code == 403
    assert owner.status_code == 200
    assert owner.json()["student"]["username"] == "student1"
    assert "password_hash" not in owner.json()["student"]
    assert stranger.status_code == 403
    assert missing.status_code == 404


async def test_course_with_content_requires_enrollment(store):
    teacher, student, course, _ = _setup(store)
    store.create_content(course_id=course["id"], teacher_id=teacher["id"], title="Second", type="lesson", order=2)
    store.create_content(course_id=course["id"], teacher_id=teacher["id"], title="First", type="video", order=1)
    outsider = make_user(store, "student2", "student")

    async with client() as c:
        login_as(c, student)
        r = await c.get(f"/api/learning/courses/{course['id']}")
        login_as(c, outsider)
        denied = await c.get(f"/api/learning/courses/{course['id']}")

    assert r.status_code == 200
    body = r.json()
    assert body["course"]["id"] == course["id"]
    assert [item["title"] for item in body["content"]] == ["First", "Second"]
    assert body["enrollment"]["student_id"] == student["id"]
    assert denied.status_code == 403


async def test_update_progress_validates_range(store):
    _, student, course, _ = _setup(store)
    url = f"/api/learning/courses/{course['id']}/progress"
    async with client() as c:
        login_as(c, student)
        ok = await c.patch(url, json={"progress": 40})
        too_high = await c.patch(url, json={"progress": 101})
        missing = await c.patch(url, json={})
    assert ok.status_code == 200
    assert ok.json()["progress"] == 40
    assert too_high.status_code == 400
    assert too_high.json()["detail"] == "invalid_progress"
    assert missing.status_code == 400
    assert store.get_enrollment(student["id"], course["id"])["progress"] == 40


@pytest.mark.parametrize("payload", [{"content": 123}, {"content": ["a"]}, {"content": {"text": "x"}}])
async def test_submit_non_text_content_returns_400(store, payload):
    _, student, _, assignment = _setup(store)
    async with client() as c:
        login_as(c, student)
        r = await c.post(f"/api/learning/assignments/{assignment['id']}/submissions", json=payload)
    assert r.status_code == 400
    assert r.json() == {"error": "bad_request", "detail": "invalid_content"}
    assert r.headers.get("Cache-Control") == "private, no-store"
    assert store.get_submission_for_student(assignment["id"], student["id"]) is None


@pytest.mark.parametrize("value", ["abc", 50.5, [40]])
async def test_update_progress_rejects_non_integer_values(store, value):
    _, student, course, _ = _setup(store)
    async with client() as c:
        login_as(c, student)
        r = await c.patch(f"/api/learning/courses/{course['id']}/progress", json={"progress": value})
    assert r.status_code == 400
    assert r.json() == {"error": "bad_request", "detail": "invalid_progress"}
    assert r.headers.get("Cache-Control") == "private, no-store"
    assert store.get_enrollment(student["id"], course["id"])["progress"] == 0


async def test_submit_malformed_json_returns_400(store):
    _, student, _, assignment = _setup(store)
    async with client() as c:
        login_as(c, student)
        r = await c.post(
            f"/api/learning/assignments/{assignment['id']}/submissions",
            content=b'{"content": ',
            headers={"Content-Type": "application/json"},
        )
    assert r.status_code == 400
    assert r.json() == {"error": "bad_request", "detail": "malformed_body"}
    assert r.headers.get("Cache-Control") == "private, no-store"
