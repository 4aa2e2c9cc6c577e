from datetime import date

from fastapi.testclient import TestClient
from pymongo.errors import PyMongoError

import database
from main import app


def test_health_without_database(no_db_api):
    r = no_db_api.get("/api/health")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "Server is running"
    assert body["database"] == "not configured"


def test_unknown_route_uses_error_body(api):
    r = api.get("/api/nowhere")
    assert r.status_code == 404
    assert r.json() == {"error": "Not Found"}


def test_dashboard_counts_and_attendance_rate(api):
    today = date.today().isoformat()
    api.post("/api/students", json={
        "firstName": "Arjun", "lastName": "Kumar", "email": "arjun@school.org", "enrollmentNo": "ENR001",
    })
    api.post("/api/events", json={"eventName": "PTM", "date": today, "category": "meeting"})
    for i, status in enumerate(["present", "present", "present", "absent"]):
        api.post("/api/attendance/students", json={
            "studentName": f"S{i}", "enrollmentNo": f"E{i}", "date": today, "status": status,
        })
    api.post("/api/attendance/students", json={
        "studentName": "Old", "enrollmentNo": "E9", "date": "2001-01-01", "status": "absent",
    })

    body = api.get("/api/dashboard").json()
    assert body["totalStudents"] == 1
    assert body["totalTeachers"] == 0
    assert body["totalEvents"] == 1
    assert body["attendanceRate"] == 75.0
    assert body["date"] == today


def test_dashboard_rate_is_zero_without_attendance(api):
    assert api.get("/api/dashboard").json()["attendanceRate"] == 0


def test_settings_defaults_and_merge(api):
    body = api.get("/api/settings").json()
    assert body["notifications"]["emailNotifications"] is True
    assert body["organization"]["schoolName"] == ""

    r = api.put("/api/settings", json={"organization": {"schoolName": "Celestial High School"}})
    assert r.status_code == 200
    assert r.json()["organization"]["schoolName"] == "Celestial High School"

    r = api.put("/api/settings", json={"notifications": {"smsNotifications": False}})
    body = r.json()
    assert body["notifications"]["smsNotifications"] is False
    assert body["organization"]["schoolName"] == "Celestial High School"
    assert api.get("/api/settings").json() == body


def test_health_with_database(api):
    r = api.get("/api/health")
    assert r.status_code == 200
    assert r.json()["database"] == "connected"


class BrokenDb:
    def __getitem__(self, name):
        raise PyMongoError("connection reset")


def test_storage_error_uses_error_envelope():
    app.dependency_overrides[database.get_db] = lambda: BrokenDb()
    try:
        r = TestClient(app, raise_server_exceptions=False).get("/api/students")
    finally:
        app.dependency_overrides.clear()
    assert r.status_code == 500
    assert r.json() == {"error": "Internal server error", "details": "connection reset"}
