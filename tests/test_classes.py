from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from schoolbridge.infrastructure.models import AssignmentORM, ClassORM, SubmissionORM, class_students

CLASS = {
    "name": "Algebra I",
    "subject": "Mathematics",
    "description": "Linear equations and inequalities",
    "schedule": {"days": ["Mon", "Wed"], "startTime": "09:00", "endTime": "10:00"},
    "room": "B12",
}


@pytest.fixture
def other_teacher(make_user, school):
    return make_user("rival@school.edu", "Teacher", school_id=school.id)


@pytest.fixture
def algebra(client, teacher, headers_for):
    response = client.post("/api/classes", json=CLASS, headers=headers_for(teacher))
    assert response.status_code == 201
    return response.json()["data"]["class"]


def count(db, model):
    db.expire_all()
    return db.execute(select(func.count()).select_from(model)).scalar_one()


def test_create_class_stamps_owner(client, teacher, other_teacher, headers_for):
    """The owner is the caller, whatever the body says"""
    response = client.post(
        "/api/classes",
        json={**CLASS, "teacher": other_teacher.id, "teacherId": other_teacher.id},
        headers=headers_for(teacher),
    )
    assert response.status_code == 201
    created = response.json()["data"]["class"]
    assert created["teacherId"] == teacher.id
    assert created["schedule"]["start_time"] == "09:00"
    assert created["isActive"] is True


def test_only_teachers_create_classes(client, admin, student, headers_for):
    for user in (admin, student):
        assert client.post("/api/classes", json=CLASS, headers=headers_for(user)).status_code == 403


def test_class_validation(client, teacher, headers_for):
    response = client.post("/api/classes", json={**CLASS, "name": "x" * 51}, headers=headers_for(teacher))
    assert response.status_code == 400
    assert response.json()["error"]["details"][0]["field"] == "name"


def test_read_class(client, algebra, student, headers_for):
    response = client.get(f"/api/classes/{algebra['id']}", headers=headers_for(student))
    assert response.status_code == 200
    assert response.json()["data"]["class"]["name"] == "Algebra I"
    assert client.get("/api/classes/999", headers=headers_for(student)).status_code == 404


def test_non_owner_cannot_update_or_delete(client, db, algebra, other_teacher, headers_for):
    headers = headers_for(other_teacher)
    response = client.put(f"/api/classes/{algebra['id']}", json={"name": "Hijacked"}, headers=headers)
    assert response.status_code == 403
    assert client.delete(f"/api/classes/{algebra['id']}", headers=headers).status_code == 403
    db.expire_all()
    assert db.get(ClassORM, algebra["id"]).name == "Algebra I"


def test_owner_updates_class(client, algebra, teacher, headers_for):
    response = client.put(
        f"/api/classes/{algebra['id']}",
        json={"room": "C3", "isActive": False},
        headers=headers_for(teacher),
    )
    assert response.status_code == 200
    updated = response.json()["data"]["class"]
    assert updated["room"] == "C3"
    assert updated["isActive"] is False
    assert updated["name"] == "Algebra I"


def test_roster(client, db, algebra, teacher, student, other_teacher, headers_for):
    headers = headers_for(teacher)
    url = f"/api/classes/{algebra['id']}/students"

    assert client.post(url, json={"email": student.email}, headers=headers_for(other_teacher)).status_code == 403
    assert client.post(url, json={"email": "nobody@school.edu"}, headers=headers).status_code == 404
    assert client.post(url, json={"studentId": teacher.id}, headers=headers).status_code == 404
    assert client.post(url, json={}, headers=headers).status_code == 400

    assert client.post(url, json={"email": student.email}, headers=headers).status_code == 201
    # enrolling twice is harmless
    assert client.post(url, json={"studentId": student.id}, headers=headers).status_code == 201

    roster = client.get(url, headers=headers).json()["data"]["students"]
    assert [s["id"] for s in roster] == [student.id]

    mine = client.get(f"/api/students/{student.id}/classes", headers=headers_for(student)).json()["data"]
    assert [c["id"] for c in mine["classes"]] == [algebra["id"]]

    assert client.delete(f"{url}/{student.id}", headers=headers).status_code == 200
    assert client.delete(f"{url}/{student.id}", headers=headers).status_code == 404
    assert count(db, class_students) == 0


def test_list_classes_by_role(client, algebra, teacher, student, admin, headers_for):
    client.post(f"/api/classes/{algebra['id']}/students", json={"email": student.email}, headers=headers_for(teacher))
    for user in (teacher, student, admin):
        classes = client.get("/api/classes", headers=headers_for(user)).json()["data"]["classes"]
        assert [c["id"] for c in classes] == [algebra["id"]]

    listed = client.get(f"/api/teachers/{teacher.id}/classes", headers=headers_for(student)).json()["data"]
    assert [c["name"] for c in listed["classes"]] == ["Algebra I"]


def test_visitor_cannot_read_classes(client, make_user, algebra, headers_for):
    visitor = make_user("guest@example.com", "Visitor")
    assert client.get("/api/classes", headers=headers_for(visitor)).status_code == 403


def test_delete_class_cascades(client, db, algebra, teacher, student, headers_for):
    """Deleting a class removes its assignments, submissions and enrolments together"""
    headers = headers_for(teacher)
    client.post(f"/api/classes/{algebra['id']}/students", json={"email": student.email}, headers=headers)
    assignment = client.post(
        f"/api/teachers/{teacher.id}/assignments",
        json={
            "title": "Worksheet 1",
            "description": "Solve for x",
            "dueDate": (datetime.now(timezone.utc) + timedelta(days=3)).isoformat(),
            "classId": algebra["id"],
            "isPublished": True,
        },
        headers=headers,
    ).json()["data"]["assignment"]
    submitted = client.post(
        f"/api/assignments/{assignment['id']}/submissions",
        json={"content": "x = 4"},
        headers=headers_for(student),
    )
    assert submitted.status_code == 201

    assert client.delete(f"/api/classes/{algebra['id']}", headers=headers).status_code == 200
    assert count(db, ClassORM) == 0
    assert count(db, AssignmentORM) == 0
    assert count(db, SubmissionORM) == 0
    assert count(db, class_students) == 0


@pytest.mark.parametrize("field", ["name", "subject", "schedule", "isActive"])
def test_update_rejects_null_for_required_fields(client, algebra, teacher, headers_for, field):
    response = client.put(f"/api/classes/{algebra['id']}", json={field: None}, headers=headers_for(teacher))
    assert response.status_code == 400
    assert response.json()["error"]["details"][0]["message"] == "Field cannot be null"


def test_update_can_clear_optional_fields(client, algebra, teacher, headers_for):
    response = client.put(
        f"/api/classes/{algebra['id']}", json={"room": None, "description": None}, headers=headers_for(teacher)
    )
    assert response.status_code == 200
    assert response.json()["data"]["class"]["room"] is None
