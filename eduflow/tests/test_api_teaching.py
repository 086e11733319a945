"""
Teaching API: courses, content, assignments and grading.

Requirements:
- Teacher-only endpoints answer 403 for students before looking at any row.
- Ownership is checked against freshly loaded rows; foreign courses → 403.
- Unknown ids → 404; malformed ids → 400; invalid fields → 400 with a code.
"""
from __future__ import annotations

import pytest

from utils.api import client, login_as, make_course, make_user

pytestmark = pytest.mark.anyio("asyncio")


async def test_create_course_defaults_to_draft_and_lists_own_only(store):
    teacher = make_user(store, "teacher1", "teacher")
    other = make_user(store, "teacher2", "teacher")
    make_course(store, other, title="Not mine")

    async with client() as c:
        login_as(c, teacher)
        created = await c.post("/api/teaching/courses", json={"title": "  Chemistry  ", "description": "Intro"})
        listed = await c.get("/api/teaching/courses")

    assert created.status_code == 201
    body = created.json()
    assert body["title"] == "Chemistry"
    assert body["status"] == "draft"
    assert body["teacher_id"] == teacher["id"]
    assert body["enrollment_count"] == 0
    assert [c["id"] for c in listed.json()] == [body["id"]]


async def test_student_cannot_create_course(store):
    student = make_user(store, "student1", "student")
    async with client() as c:
        login_as(c, student)
        r = await c.post("/api/teaching/courses", json={"title": "Hack"})
    assert r.status_code == 403
    assert r.json()["detail"] == "Only teachers can create courses"


@pytest.mark.parametrize(
    "payload,detail",
    [
        ({"title": ""}, "invalid_title"),
        ({"title": "x" * 201}, "invalid_title"),
        ({}, "invalid_title"),
        ({"title": "Ok", "status": "published"}, "invalid_status"),
    ],
)
async def test_create_course_validation(store, payload, detail):
    teacher = make_user(store, "teacher1", "teacher")
    async with client() as c:
        login_as(c, teacher)
        r = await c.post("/api/teaching/courses", json=payload)
    assert r.status_code == 400
    assert r.json() == {"error": "bad_request", "detail": detail}


async def test_update_course_ownership_and_not_found(store):
    owner = make_user(store, "teacher1", "teacher")
    other = make_user(store, "teacher2", "teacher")
    course = make_course(store, owner, status="draft")

    async with client() as c:
        login_as(c, other)
        foreign = await c.patch(f"/api/teaching/courses/{course['id']}", json={"title": "Mine now"})
        missing = await c.patch("/api/teaching/courses/999", json={"title": "Ghost"})
        login_as(c, owner)
        empty = await c.patch(f"/api/teaching/courses/{course['id']}", json={})
        ok = await c.patch(f"/api/teaching/courses/{course['id']}", json={"status": "archived"})

    assert foreign.status_code == 403
    assert foreign.json()["detail"] == "Not authorized to update this course"
    assert missing.status_code == 404
    assert empty.status_code == 400
    assert empty.json()["detail"] == "empty_update"
    assert ok.status_code == 200
    assert ok.json()["status"] == "archived"
    assert ok.json()["title"] == course["title"]


async def test_get_course_for_owner_only(store):
    owner = make_user(store, "teacher1", "teacher")
    other = make_user(store, "teacher2", "teacher")
    course = make_course(store, owner)
    async with client() as c:
        login_as(c, owner)
        mine = await c.get(f"/api/teaching/courses/{course['id']}")
        login_as(c, other)
        theirs = await c.get(f"/api/teaching/courses/{course['id']}")
    assert mine.status_code == 200
    assert theirs.status_code == 403


async def test_content_crud_orders_by_position(store):
    teacher = make_user(store, "teacher1", "teacher")
    course = make_course(store, teacher)
    base = f"/api/teaching/courses/{course['id']}/content"

    async with client() as c:
        login_as(c, teacher)
        second = await c.post(base, json={"title": "Part 2", "type": "lesson", "order": 2})
        first = await c.post(base, json={"title": "Part 1", "type": "Video", "order": 1, "body": "watch"})
        bad_type = await c.post(base, json={"title": "Part 3", "type": "podcast"})
        listed = await c.get(base)
        updated = await c.patch(f"/api/teaching/content/{second.json()['id']}", json={"order": 0})
        relisted = await c.get(base)
        deleted = await c.delete(f"/api/teaching/content/{first.json()['id']}")
        deleted_again = await c.delete(f"/api/teaching/content/{first.json()['id']}")
        final = await c.get(base)

    assert second.status_code == 201
    assert first.status_code == 201
    assert first.json()["type"] == "video"
    assert bad_type.status_code == 400
    assert bad_type.json()["detail"] == "invalid_type"
    assert [i["title"] for i in listed.json()] == ["Part 1", "Part 2"]
    assert updated.status_code == 200
    assert [i["title"] for i in relisted.json()] == ["Part 2", "Part 1"]
    assert deleted.status_code == 204
    assert deleted_again.status_code == 404
    assert [i["title"] for i in final.json()] == ["Part 2"]


async def test_content_of_foreign_course_is_forbidden(store):
    owner = make_user(store, "teacher1", "teacher")
    other = make_user(store, "teacher2", "teacher")
    course = make_course(store, owner)
    item = store.create_content(course_id=course["id"], teacher_id=owner["id"], title="Secret", type="document")

    async with client() as c:
        login_as(c, other)
        create = await c.post(f"/api/teaching/courses/{course['id']}/content", json={"title": "X", "type": "lesson"})
        update = await c.patch(f"/api/teaching/content/{item['id']}", json={"title": "Changed"})
        delete = await c.delete(f"/api/teaching/content/{item['id']}")

    assert create.status_code == 403
    assert update.status_code == 403
    assert delete.status_code == 403
    assert store.get_content(item["id"])["title"] == "Secret"


async def test_create_assignment_normalises_due_date_and_defaults_points(store):
    teacher = make_user(store, "teacher1", "teacher")
    course = make_course(store, teacher)
    base = f"/api/teaching/courses/{course['id']}/assignments"

    async with client() as c:
        login_as(c, teacher)
        created = await c.post(base, json={"title": "Lab report", "due_date": "2030-03-01T10:00:00+02:00"})
        naive = await c.post(base, json={"title": "Bad", "due_date": "2030-03-01T10:00:00"})
        zero_points = await c.post(base, json={"title": "Bad", "max_points": 0})
        listed = await c.get("/api/teaching/assignments")

    assert created.status_code == 201
    assert created.json()["due_date"] == "2030-03-01T08:00:00+00:00"
    assert created.json()["max_points"] == 100
    assert naive.status_code == 400
    assert naive.json()["detail"] == "invalid_due_date"
    assert zero_points.status_code == 400
    assert zero_points.json()["detail"] == "invalid_max_points"
    assert [a["id"] for a in listed.json()] == [created.json()["id"]]


async def test_update_assignment_requires_owner(store):
    owner = make_user(store, "teacher1", "teacher")
    other = make_user(store, "teacher2", "teacher")
    course = make_course(store, owner)
    assignment = store.create_assignment(course_id=course["id"], teacher_id=owner["id"], title="Quiz")

    async with client() as c:
        login_as(c, other)
        denied = await c.patch(f"/api/teaching/assignments/{assignment['id']}", json={"title": "Mine"})
        login_as(c, owner)
        ok = await c.patch(f"/api/teaching/assignments/{assignment['id']}", json={"max_points": 20, "due_date": None})

    assert denied.status_code == 403
    assert ok.status_code == 200
    assert ok.json()["max_points"] == 20
    assert ok.json()["due_date"] is None


async def test_list_submissions_includes_student_identity(store):
    teacher = make_user(store, "teacher1", "teacher")
    student = make_user(store, "student1", "student", name="Ada Lovelace")
    course = make_course(store, teacher)
    assignment = store.create_assignment(course_id=course["id"], teacher_id=teacher["id"], title="Quiz")
    store.enroll(student["id"], course["id"])
    store.submit(assignment_id=assignment["id"], student_id=student["id"], content="42")

    async with client() as c:
        login_as(c, teacher)
        r = await c.get(f"/api/teaching/assignments/{assignment['id']}/submissions")

    assert r.status_code == 200
    items = r.json()
    assert len(items) == 1
    assert items[0]["student"] == {"id": student["id"], "username": "student1", "name": "Ada Lovelace", "avatar": None}


async def test_grade_validates_range_and_owner(store):
    teacher = make_user(store, "teacher1", "teacher")
    other = make_user(store, "teacher2", "teacher")
    student = make_user(store, "student1", "student")
    course = make_course(store, teacher)
    assignment = store.create_assignment(course_id=course["id"], teacher_id=teacher["id"], title="Quiz", max_points=10)
    store.enroll(student["id"], course["id"])
    sub = store.submit(assignment_id=assignment["id"], student_id=student["id"], content="42")
    url = f"/api/teaching/submissions/{sub['id']}/grade"

    async with client() as c:
        login_as(c, other)
        foreign = await c.post(url, json={"grade": 5})
        login_as(c, student)
        as_student = await c.post(url, json={"grade": 10})
        login_as(c, teacher)
        too_high = await c.post(url, json={"grade": 11})
        negative = await c.post(url, json={"grade": -1})
        missing = await c.post(url, json={})
        ok = await c.post(url, json={"grade": 10, "feedback": "Perfect"})
        unknown = await c.post("/api/teaching/submissions/999/grade", json={"grade": 1})

    assert foreign.status_code == 403
    assert as_student.status_code == 403
    assert too_high.status_code == 400
    assert too_high.json()["detail"] == "invalid_grade"
    assert negative.status_code == 400
    assert missing.status_code == 400
    assert ok.status_code == 200
    assert ok.json()["status"] == "graded"
    assert ok.json()["feedback"] == "Perfect"
    assert unknown.status_code == 404


async def test_teaching_writes_reject_cross_origin(store):
    teacher = make_user(store, "teacher1", "teacher")
    async with client() as c:
        login_as(c, teacher)
        r = await c.post("/api/teaching/courses", json={"title": "X"}, headers={"Origin": "http://evil.example"})
    assert r.status_code == 403
    assert r.json()["detail"] == "csrf_violation"
    assert store.list_courses_for_teacher(teacher["id"]) == []


async def test_teaching_writes_require_origin_when_strict(store, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("STRICT_CSRF", "true")
    teacher = make_user(store, "teacher1", "teacher")
    async with client() as c:
        login_as(c, teacher)
        missing = await c.post("/api/teaching/courses", json={"title": "X"})
        same = await c.post("/api/teaching/courses", json={"title": "Y"}, headers={"Origin": "http://test"})
    assert missing.status_code == 403
    assert same.status_code == 201


async def test_max_points_cannot_drop_below_recorded_grades(store):
    teacher = make_user(store, "teacher1", "teacher")
    student = make_user(store, "student1", "student")
    course = make_course(store, teacher)
    assignment = store.create_assignment(course_id=course["id"], teacher_id=teacher["id"], title="Quiz")
    store.enroll(student["id"], course["id"])
    sub = store.submit(assignment_id=assignment["id"], student_id=student["id"], content="42")
    url = f"/api/teaching/assignments/{assignment['id']}"

    async with client() as c:
        login_as(c, teacher)
        graded = await c.post(f"/api/teaching/submissions/{sub['id']}/grade", json={"grade": 90})
        lowered = await c.patch(url, json={"max_points": 10})
        at_grade = await c.patch(url, json={"max_points": 90})

    assert graded.status_code == 200
    assert lowered.status_code == 400
    assert lowered.json() == {"error": "bad_request", "detail": "invalid_max_points"}
    assert at_grade.status_code == 200
    assert at_grade.json()["max_points"] == 90
    assert store.get_submission(sub["id"])["grade"] == 90


@pytest.mark.parametrize(
    "path_suffix,payload,detail",
    [
        ("content", {"title": "Intro", "type": "lesson", "order": "first"}, "invalid_order"),
        ("assignments", {"title": "Quiz", "max_points": "lots"}, "invalid_max_points"),
        ("assignments", {"title": 7}, "invalid_title"),
    ],
)
async def test_wrongly_typed_fields_return_400(store, path_suffix, payload, detail):
    teacher = make_user(store, "teacher1", "teacher")
    course = make_course(store, teacher)
    async with client() as c:
        login_as(c, teacher)
        r = await c.post(f"/api/teaching/courses/{course['id']}/{path_suffix}", json=payload)
    assert r.status_code == 400
    assert r.json() == {"error": "bad_request", "detail": detail}
    assert r.headers.get("Cache-Control") == "private, no-store"


async def test_grade_with_text_value_returns_400(store):
    teacher = make_user(store, "teacher1", "teacher")
    student = make_user(store, "student1", "student")
    course = make_course(store, teacher)
    assignment = store.create_assignment(course_id=course["id"], teacher_id=teacher["id"], title="Quiz")
    store.enroll(student["id"], course["id"])
    sub = store.submit(assignment_id=assignment["id"], student_id=student["id"], content="42")

    async with client() as c:
        login_as(c, teacher)
        r = await c.post(f"/api/teaching/submissions/{sub['id']}/grade", json={"grade": "abc"})

    assert r.status_code == 400
    assert r.json()["detail"] == "invalid_grade"
    assert store.get_submission(sub["id"])["status"] == "submitted"
