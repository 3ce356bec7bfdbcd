from sqlalchemy import func, select

from schoolbridge.infrastructure.models import SessionORM, UserORM

PASSWORD = "Secret123"

SIGNUP = {
    "email": "Visitor@Example.com",
    "password": "Visit0rPass",
    "fullName": "Val Visitor",
    "signupType": "visitor",
}

FORBIDDEN_PROFILE_KEYS = {"password", "passwordHash", "password_hash", "refreshTokens", "tokenVersion", "token_version"}


def session_count(db, user_id):
    db.expire_all()
    return db.execute(
        select(func.count()).select_from(SessionORM).where(SessionORM.user_id == user_id)
    ).scalar_one()


def test_visitor_signup_creates_visitor(client, db):
    """Visitor signup always produces a Visitor, whatever role is sent"""
    response = client.post("/api/auth/signup", json={**SIGNUP, "role": "Admin"})
    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Account created successfully"
    assert body["data"]["user"]["role"] == "Visitor"
    assert body["data"]["user"]["email"] == "visitor@example.com"
    assert body["data"]["accessToken"]
    assert body["data"]["refreshToken"]
    assert body["data"]["expiresIn"] == 24 * 60 * 60
    assert "timestamp" in body

    user = db.execute(select(UserORM).where(UserORM.email == "visitor@example.com")).scalar_one()
    assert user.role == "Visitor"
    assert user.last_login is not None
    assert session_count(db, user.id) == 1


def test_non_visitor_signup_is_rejected_before_persisting(client, db):
    """Platform roles cannot self-register"""
    for signup_type in ("platform", "teacher", ""):
        response = client.post("/api/auth/signup", json={**SIGNUP, "signupType": signup_type})
        assert response.status_code == 403
        assert response.json()["message"] == "Platform users must be invited"
    assert db.execute(select(func.count()).select_from(UserORM)).scalar_one() == 0


def test_signup_duplicate_email(client):
    """A second signup with the same email conflicts"""
    assert client.post("/api/auth/signup", json=SIGNUP).status_code == 201
    response = client.post("/api/auth/signup", json={**SIGNUP, "email": "visitor@EXAMPLE.com"})
    assert response.status_code == 409
    assert response.json()["message"] == "User with this email already exists"


def test_signup_weak_password(client):
    """Password needs upper, lower and a digit"""
    response = client.post("/api/auth/signup", json={**SIGNUP, "password": "alllowercase1"})
    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "Validation failed"
    fields = [d["field"] for d in body["error"]["details"]]
    assert "password" in fields


def test_signup_invalid_email(client):
    response = client.post("/api/auth/signup", json={**SIGNUP, "email": "not-an-email"})
    assert response.status_code == 400


def test_login_success(client, db, teacher):
    """Correct credentials and role sign the user in"""
    response = client.post(
        "/api/auth/login",
        json={"email": "TEACHER@school.edu", "password": PASSWORD, "role": "Teacher"},
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert response.json()["message"] == "Login successful"
    assert data["user"]["id"] == teacher.id
    assert data["user"]["school_id"] == teacher.school_id
    assert session_count(db, teacher.id) == 1


def test_login_unknown_email(client, tables):
    response = client.post(
        "/api/auth/login",
        json={"email": "ghost@school.edu", "password": PASSWORD, "role": "Teacher"},
    )
    assert response.status_code == 404
    assert response.json()["message"] == "No account found with this email address"


def test_login_deactivated(client, make_user):
    make_user("gone@school.edu", "Teacher", is_active=False)
    response = client.post(
        "/api/auth/login",
        json={"email": "gone@school.edu", "password": PASSWORD, "role": "Teacher"},
    )
    assert response.status_code == 403


def test_login_role_mismatch_creates_no_session(client, db, teacher):
    """Right password, wrong role: 400 and no session"""
    response = client.post(
        "/api/auth/login",
        json={"email": "teacher@school.edu", "password": PASSWORD, "role": "Student"},
    )
    assert response.status_code == 400
    assert "Please select Teacher role" in response.json()["message"]
    assert session_count(db, teacher.id) == 0


def test_login_wrong_password(client, db, teacher):
    response = client.post(
        "/api/auth/login",
        json={"email": "teacher@school.edu", "password": "Wrong1234", "role": "Teacher"},
    )
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid email or password"
    assert session_count(db, teacher.id) == 0


def test_login_account_without_password(client, make_user):
    """Google-only accounts cannot use password login"""
    make_user("oauth@school.edu", "Parent", password=None)
    response = client.post(
        "/api/auth/login",
        json={"email": "oauth@school.edu", "password": PASSWORD, "role": "Parent"},
    )
    assert response.status_code == 401


def test_google_creates_new_user(client, db):
    payload = {
        "user": {"email": "Parent@Gmail.com", "googleId": "g-123", "name": "Pat Parent", "avatar": "http://img"},
        "role": "Parent",
    }
    response = client.post("/api/auth/google", json=payload)
    assert response.status_code == 200
    user = response.json()["data"]["user"]
    assert user["role"] == "Parent"
    assert user["provider"] == "google"
    assert user["fullName"] == "Pat Parent"
    assert user["isVerified"] is True

    row = db.execute(select(UserORM).where(UserORM.email == "parent@gmail.com")).scalar_one()
    assert row.password_hash is None
    assert row.google_id == "g-123"


def test_google_existing_user_role_mismatch(client, teacher):
    payload = {"user": {"email": teacher.email, "googleId": "g-9"}, "role": "Student"}
    response = client.post("/api/auth/google", json=payload)
    assert response.status_code == 400
    assert response.json()["message"] == "Account exists as Teacher. Please select Teacher role."


def test_google_links_existing_account(client, db, teacher):
    payload = {"user": {"email": teacher.email, "googleId": "g-55", "avatar": "http://a"}, "role": "Teacher"}
    response = client.post("/api/auth/google", json=payload)
    assert response.status_code == 200
    db.refresh(teacher)
    assert teacher.google_id == "g-55"
    assert teacher.provider == "google"
    assert teacher.avatar == "http://a"
    assert teacher.last_login is not None


def test_google_deactivated_account(client, make_user):
    make_user("off@school.edu", "Student", is_active=False)
    payload = {"user": {"email": "off@school.edu", "googleId": "g-1"}, "role": "Student"}
    assert client.post("/api/auth/google", json=payload).status_code == 403


def test_google_cannot_self_create_admin(client, db):
    payload = {"user": {"email": "boss@gmail.com", "googleId": "g-2"}, "role": "SuperAdmin"}
    response = client.post("/api/auth/google", json=payload)
    assert response.status_code == 403
    assert db.execute(select(func.count()).select_from(UserORM)).scalar_one() == 0


def test_me_returns_sanitized_profile(client, teacher, headers_for):
    """Profile responses never carry secrets or token bookkeeping"""
    for path in ("/api/auth/me", "/api/auth/validate", "/api/users/profile"):
        response = client.get(path, headers=headers_for(teacher))
        assert response.status_code == 200
        user = response.json()["data"]["user"]
        assert user["email"] == teacher.email
        assert not FORBIDDEN_PROFILE_KEYS & set(user)

    response = client.get("/api/auth/validate", headers=headers_for(teacher))
    assert response.json()["data"]["valid"] is True
    assert response.json()["message"] == "Session is valid"


def test_me_requires_token(client, tables):
    response = client.get("/api/auth/me")
    assert response.status_code == 401
    assert response.json()["success"] is False


def test_me_rejects_garbage_token(client, tables):
    response = client.get("/api/auth/me", headers={"Authorization": "Bearer not.a.jwt"})
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid or expired token"


def test_me_rejects_refresh_token(client, teacher):
    login = client.post(
        "/api/auth/login",
        json={"email": teacher.email, "password": PASSWORD, "role": "Teacher"},
    ).json()["data"]
    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {login['refreshToken']}"})
    assert response.status_code == 401


def test_me_rejects_deactivated_user(client, db, teacher, headers_for):
    headers = headers_for(teacher)
    teacher.is_active = False
    db.commit()
    assert client.get("/api/auth/me", headers=headers).status_code == 401
