# tests/conftest.py
"""
Shared fixtures.

- `db`: a fresh mongomock database per test with the unique indexes applied
- `api`: FastAPI TestClient whose database dependency points at `db`
- `fake_api`: in-memory stand-in for client.ApiClient used by the listing
  and CLI tests
"""

from __future__ import annotations

import os
import uuid
from typing import Any, Dict, List

os.environ.pop("DATABASE_URL", None)

import mongomock
import pytest
from fastapi.testclient import TestClient

import database
from client import ApiError, Session
from main import app


@pytest.fixture
def db():
    database_ = mongomock.MongoClient()["school_records_test"]
    database.ensure_indexes(database_)
    return database_


@pytest.fixture
def api(db):
    app.dependency_overrides[database.get_db] = lambda: db
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture
def no_db_api():
    app.dependency_overrides[database.get_db] = lambda: None
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


SIGNUP = {
    "fullName": "Asha Verma",
    "organizationName": "Celestial High School",
    "email": "asha@celestial.edu",
    "mobileNo": "9876543210",
    "password": "secret123",
}


@pytest.fixture
def registered_user(api) -> Dict[str, Any]:
    r = api.post("/api/auth/signup", json=SIGNUP)
    assert r.status_code == 201
    return r.json()["user"]


class FakeApi:
    """Collections keyed by path; raises ApiError when `fail` names the operation."""

    def __init__(self, records: Dict[str, List[Dict[str, Any]]] | None = None):
        self.records = {path: [dict(r) for r in rows] for path, rows in (records or {}).items()}
        self.session = Session()
        self.fail: set[str] = set()
        self.calls: List[tuple] = []
        self.stored_settings: Dict[str, Dict[str, Any]] = {
            "organization": {"schoolName": "", "principalName": ""},
            "academic": {"academicYear": "", "totalClasses": 0},
            "notifications": {"emailNotifications": True},
        }

    def _check(self, op: str) -> None:
        if op in self.fail:
            raise ApiError(f"{op} failed", status_code=500)

    def list(self, path):
        self.calls.append(("list", path))
        self._check("list")
        return [dict(r) for r in self.records.get(path, [])]

    def create(self, path, data):
        self.calls.append(("create", path, dict(data)))
        self._check("create")
        saved = {**data, "id": uuid.uuid4().hex[:24]}
        self.records.setdefault(path, []).append(saved)
        return dict(saved)

    def update(self, path, record_id, data):
        self.calls.append(("update", path, record_id, dict(data)))
        self._check("update")
        for row in self.records.get(path, []):
            if row["id"] == record_id:
                row.update(data)
                return dict(row)
        raise ApiError("Not found", status_code=404)

    def delete(self, path, record_id):
        self.calls.append(("delete", path, record_id))
        self._check("delete")
        rows = self.records.get(path, [])
        self.records[path] = [r for r in rows if r["id"] != record_id]
        return {"message": "deleted"}

    def change_password(self, current, new, confirm):
        self.calls.append(("change_password", current, new, confirm))
        self._check("change_password")
        return {"message": "Password changed successfully"}

    def user(self, email):
        self.calls.append(("user", email))
        self._check("user")
        return {"id": "u1", "email": email, "fullName": "Asha Verma"}

    def settings(self):
        self.calls.append(("settings",))
        self._check("settings")
        return {section: dict(values) for section, values in self.stored_settings.items()}

    def update_settings(self, data):
        self.calls.append(("update_settings", data))
        self._check("update_settings")
        for section, values in data.items():
            self.stored_settings[section] = dict(values)
        return {section: dict(values) for section, values in self.stored_settings.items()}

    def close(self):
        pass


STUDENTS = [
    {"id": "s1", "firstName": "Arjun", "lastName": "Kumar", "enrollmentNo": "ENR001",
     "class": "10-A", "email": "arjun@school.org", "status": "active"},
    {"id": "s2", "firstName": "Priya", "lastName": "Singh", "enrollmentNo": "ENR002",
     "class": "10-B", "email": "priya@school.org", "status": "active"},
]


@pytest.fixture
def fake_api() -> FakeApi:
    return FakeApi({"/api/students": STUDENTS})
