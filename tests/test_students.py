import pytest

from schoolbridge.application.use_cases.students import StudentService
from schoolbridge.infrastructure.models import ClassORM, SchoolORM, UserORM


@pytest.fixture
def far_student(db, make_user):
    other = SchoolORM(name="Faraway", grade_system="letter", timezone="UTC")
    db.add(other)
    db.commit()
    return make_user("far@faraway.edu", "Student", school_id=other.id)


def test_admin_lists_own_school_students(client, admin, student, far_student, headers_for):
    response = client.get("/api/students", headers=headers_for(admin))
    assert response.status_code == 200
    assert [s["id"] for s in response.json()["data"]["students"]] == [student.id]


def test_superadmin_lists_everyone(client, superadmin, student, far_student, headers_for):
    students = client.get("/api/students", headers=headers_for(superadmin)).json()["data"]["students"]
    assert {s["id"] for s in students} == {student.id, far_student.id}


def test_search_students(client, teacher, student, make_user, school, headers_for):
    make_user("bart@school.edu", "Student", school_id=school.id, full_name="Bart Simpson")
    students = client.get("/api/students", params={"search": "bart"}, headers=headers_for(teacher)).json()["data"]
    assert [s["email"] for s in students["students"]] == ["bart@school.edu"]


def test_students_cannot_list_students(client, student, headers_for):
    assert client.get("/api/students", headers=headers_for(student)).status_code == 403


def test_get_student_visibility(client, admin, student, far_student, headers_for):
    assert client.get(f"/api/students/{student.id}", headers=headers_for(student)).status_code == 200
    assert client.get(f"/api/students/{student.id}", headers=headers_for(admin)).status_code == 200
    assert client.get(f"/api/students/{far_student.id}", headers=headers_for(admin)).status_code == 403
    assert client.get(f"/api/students/{far_student.id}", headers=headers_for(student)).status_code == 403
    assert client.get(f"/api/students/{admin.id}", headers=headers_for(admin)).status_code == 404


def test_parent_sees_own_child(client, db, make_user, student, far_student, headers_for):
    parent = make_user("mom@school.edu", "Parent", school_id=student.school_id)
    parent.children.append(student)
    db.commit()
    assert client.get(f"/api/students/{student.id}", headers=headers_for(parent)).status_code == 200
    assert client.get(f"/api/students/{far_student.id}", headers=headers_for(parent)).status_code == 403


def test_update_student(client, db, admin, teacher, student, headers_for):
    response = client.put(f"/api/students/{student.id}", json={"grade": "5", "section": "B"}, headers=headers_for(student))
    assert response.status_code == 200
    assert response.json()["data"]["student"]["section"] == "B"

    by_admin = client.put(f"/api/students/{student.id}", json={"studentId": "S-900"}, headers=headers_for(admin))
    assert by_admin.status_code == 200
    assert by_admin.json()["data"]["student"]["studentId"] == "S-900"

    # teachers can view but not edit
    assert client.put(f"/api/students/{student.id}", json={"grade": "6"}, headers=headers_for(teacher)).status_code == 403


def test_student_classes(client, teacher, student, headers_for):
    created = client.post(
        "/api/classes", json={"name": "Biology", "subject": "Science"}, headers=headers_for(teacher)
    ).json()["data"]["class"]
    client.post(f"/api/classes/{created['id']}/students", json={"email": student.email}, headers=headers_for(teacher))

    response = client.get(f"/api/students/{student.id}/classes", headers=headers_for(student))
    assert response.status_code == 200
    assert [c["name"] for c in response.json()["data"]["classes"]] == ["Biology"]


def test_service_annotations_resolve_to_builtins():
    assert StudentService.list_students.__annotations__["return"] == list[UserORM]
    assert StudentService.classes_of.__annotations__["return"] == list[ClassORM]


def test_student_update_rejects_null_name(client, student, headers_for):
    response = client.put(f"/api/students/{student.id}", json={"fullName": None}, headers=headers_for(student))
    assert response.status_code == 400
