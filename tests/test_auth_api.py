import pytest

from tests.conftest import SIGNUP


def test_signup_creates_user_without_password(api, db):
    r = api.post("/api/auth/signup", json=SIGNUP)
    assert r.status_code == 201
    body = r.json()
    assert body["message"] == "Account created successfully"
    assert body["user"]["email"] == SIGNUP["email"]
    assert "password" not in body["user"] and "password_hash" not in body["user"]

    stored = db["user"].find_one({"email": SIGNUP["email"]})
    assert stored["password_hash"] != SIGNUP["password"]
    assert "password" not in stored


@pytest.mark.parametrize("change,message", [
    ({"fullName": ""}, "Please fill in all fields"),
    ({"password": ""}, "Please fill in all fields"),
    ({"email": "asha.celestial.edu"}, "Please enter a valid email"),
    ({"mobileNo": "98765"}, "Please enter a valid mobile number"),
    ({"mobileNo": "   12345678"}, "Please enter a valid mobile number"),
    ({"email": "  asha  "}, "Please enter a valid email"),
    ({"password": "abc"}, "Password must be at least 6 characters"),
])
def test_signup_validation(api, db, change, message):
    r = api.post("/api/auth/signup", json={**SIGNUP, **change})
    assert r.status_code == 400
    assert r.json() == {"error": message}
    assert db["user"].count_documents({}) == 0


def test_signup_duplicate_email_keeps_original(api, db, registered_user):
    r = api.post("/api/auth/signup", json={**SIGNUP, "fullName": "Someone Else", "email": "ASHA@celestial.edu"})
    assert r.status_code == 400
    assert "already registered" in r.json()["error"]
    assert db["user"].count_documents({}) == 1
    assert db["user"].find_one({})["fullName"] == "Asha Verma"


def test_login_success_issues_token(api, registered_user):
    r = api.post("/api/auth/login", json={"email": SIGNUP["email"], "password": SIGNUP["password"]})
    assert r.status_code == 200
    body = r.json()
    assert body["message"] == "Login successful"
    assert body["user"]["id"] == registered_user["id"]
    assert body["token_type"] == "bearer"
    assert body["access_token"]


def test_login_wrong_password(api, registered_user):
    r = api.post("/api/auth/login", json={"email": SIGNUP["email"], "password": "wrong-pass"})
    assert r.status_code == 401
    assert r.json() == {"error": "Incorrect password"}


def test_login_unknown_email(api):
    r = api.post("/api/auth/login", json={"email": "nobody@celestial.edu", "password": "whatever"})
    assert r.status_code == 401
    assert r.json()["error"].startswith("Email not found")


@pytest.mark.parametrize("payload,message", [
    ({"email": "", "password": "x"}, "Please fill in all fields"),
    ({"email": "asha", "password": "secret123"}, "Please enter a valid email"),
])
def test_login_validation(api, payload, message):
    r = api.post("/api/auth/login", json=payload)
    assert r.status_code == 400
    assert r.json() == {"error": message}


def _token(api, password=SIGNUP["password"]):
    return api.post("/api/auth/login", json={"email": SIGNUP["email"], "password": password}).json()["access_token"]


def test_me_requires_valid_token(api, registered_user):
    assert api.get("/api/auth/me").status_code == 401
    r = api.get("/api/auth/me", headers={"Authorization": "Bearer garbage"})
    assert r.status_code == 401
    assert r.json() == {"error": "Invalid token"}

    r = api.get("/api/auth/me", headers={"Authorization": f"Bearer {_token(api)}"})
    assert r.status_code == 200
    assert r.json()["user"]["email"] == SIGNUP["email"]


def test_change_password(api, registered_user):
    headers = {"Authorization": f"Bearer {_token(api)}"}
    r = api.post("/api/auth/change-password", headers=headers, json={
        "currentPassword": SIGNUP["password"], "newPassword": "newpass1", "confirmPassword": "other1",
    })
    assert r.status_code == 400
    assert r.json()["error"] == "New passwords do not match"

    r = api.post("/api/auth/change-password", headers=headers, json={
        "currentPassword": "nope", "newPassword": "newpass1", "confirmPassword": "newpass1",
    })
    assert r.status_code == 401

    r = api.post("/api/auth/change-password", headers=headers, json={
        "currentPassword": SIGNUP["password"], "newPassword": "newpass1", "confirmPassword": "newpass1",
    })
    assert r.status_code == 200
    assert _token(api, "newpass1")
    old = api.post("/api/auth/login", json={"email": SIGNUP["email"], "password": SIGNUP["password"]})
    assert old.status_code == 401


def test_get_user_by_email(api, registered_user):
    r = api.get(f"/api/users/{SIGNUP['email']}")
    assert r.status_code == 200
    assert r.json()["user"]["fullName"] == "Asha Verma"
    assert api.get("/api/users/ghost@celestial.edu").status_code == 404
