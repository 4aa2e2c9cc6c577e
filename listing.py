"""
Client-side list, filter and form handling for each record module.

A module fetches its whole collection once, keeps it in memory and filters
it locally. The add/edit form runs the same pre-submit checks the web form
did before any request goes out.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from client import ApiClient, ApiError
from logging_setup import get_logger

logger = get_logger("listing")

ALL = "all"

Record = Dict[str, Any]
Check = Callable[[Record], Optional[str]]


# ----------------------- Filtering -----------------------
def _text(value: Any) -> str:
    return "" if value is None else str(value)


def matches_text(record: Record, query: str, fields: Iterable[str]) -> bool:
    if not query:
        return True
    needle = query.lower()
    return any(needle in _text(record.get(f)).lower() for f in fields)


def matches_choice(record: Record, field_name: str, value: Optional[str]) -> bool:
    if not value or value == ALL:
        return True
    return record.get(field_name) == value


@dataclass
class Filter:
    text: str = ""
    choices: Dict[str, str] = field(default_factory=dict)
    date: Optional[str] = None

    def matches(self, record: Record, search_fields: Sequence[str], date_field: Optional[str] = None) -> bool:
        if not matches_text(record, self.text, search_fields):
            return False
        for name, value in self.choices.items():
            if not matches_choice(record, name, value):
                return False
        if self.date and date_field:
            return record.get(date_field) == self.date
        return True

    def apply(self, records: Iterable[Record], search_fields: Sequence[str], date_field: Optional[str] = None):
        return [r for r in records if self.matches(r, search_fields, date_field)]


# ----------------------- Form checks -----------------------
def marks_within_total(record: Record) -> Optional[str]:
    if record.get("passingMarks", 0) > record.get("totalMarks", 0):
        return "Passing marks cannot exceed total marks"
    return None


def students_within_capacity(record: Record) -> Optional[str]:
    if record.get("totalStudents", 0) > record.get("capacity", 0):
        return "Total students cannot exceed class capacity"
    return None


@dataclass(frozen=True)
class ModuleDefinition:
    name: str
    path: str
    label: str
    search_fields: Tuple[str, ...]
    required_fields: Tuple[str, ...]
    defaults: Dict[str, Any]
    choice_fields: Tuple[str, ...] = ()
    date_field: Optional[str] = None
    status_field: Optional[str] = "status"
    status_values: Tuple[str, ...] = ("active", "inactive")
    checks: Tuple[Check, ...] = ()
    columns: Tuple[str, ...] = ()

    @property
    def form_fields(self) -> Tuple[str, ...]:
        extra = tuple(k for k in self.defaults if k not in self.required_fields)
        return self.required_fields + extra


MODULES: Dict[str, ModuleDefinition] = {
    m.name: m
    for m in (
        ModuleDefinition(
            name="students",
            path="/api/students",
            label="Student",
            search_fields=("firstName", "lastName", "enrollmentNo"),
            choice_fields=("class",),
            required_fields=("firstName", "lastName", "email", "enrollmentNo"),
            defaults={"mobileNo": "", "class": "10-A", "dateOfBirth": "", "address": "", "status": "active"},
            columns=("enrollmentNo", "firstName", "lastName", "class", "email", "status"),
        ),
        ModuleDefinition(
            name="teachers",
            path="/api/teachers",
            label="Teacher",
            search_fields=("firstName", "lastName", "employeeId"),
            choice_fields=("subject",),
            required_fields=("firstName", "lastName", "email", "employeeId"),
            defaults={
                "mobileNo": "",
                "subject": "Mathematics",
                "qualification": "",
                "dateOfBirth": "",
                "address": "",
                "status": "active",
            },
            columns=("employeeId", "firstName", "lastName", "subject", "email", "status"),
        ),
        ModuleDefinition(
            name="classes",
            path="/api/classes",
            label="Class",
            search_fields=("className", "classTeacher", "roomNumber"),
            choice_fields=("status",),
            required_fields=("className", "classTeacher", "roomNumber"),
            defaults={
                "section": "",
                "totalStudents": 0,
                "startTime": "08:00",
                "endTime": "01:00",
                "capacity": 50,
                "description": "",
                "status": "active",
            },
            checks=(students_within_capacity,),
            columns=("className", "section", "classTeacher", "roomNumber", "totalStudents", "capacity", "status"),
        ),
        ModuleDefinition(
            name="subjects",
            path="/api/subjects",
            label="Subject",
            search_fields=("subjectName", "subjectCode"),
            choice_fields=("category",),
            required_fields=("subjectName", "subjectCode"),
            defaults={
                "category": "Core",
                "creditHours": 0,
                "passingMarks": 0,
                "totalMarks": 100,
                "description": "",
                "status": "active",
            },
            checks=(marks_within_total,),
            columns=("subjectCode", "subjectName", "category", "passingMarks", "totalMarks", "status"),
        ),
        ModuleDefinition(
            name="student-attendance",
            path="/api/attendance/students",
            label="Student attendance",
            search_fields=("studentName", "enrollmentNo"),
            choice_fields=("className",),
            date_field="date",
            required_fields=("studentName", "enrollmentNo", "date"),
            defaults={"className": "", "status": "present"},
            status_values=("present", "absent", "leave"),
            columns=("date", "studentName", "enrollmentNo", "className", "status"),
        ),
        ModuleDefinition(
            name="staff-attendance",
            path="/api/attendance/staff",
            label="Staff attendance",
            search_fields=("staffName", "employeeId"),
            choice_fields=("role",),
            date_field="date",
            required_fields=("staffName", "employeeId", "date"),
            defaults={"role": "Teacher", "status": "present"},
            status_values=("present", "absent", "leave", "on-duty"),
            columns=("date", "staffName", "employeeId", "role", "status"),
        ),
        ModuleDefinition(
            name="events",
            path="/api/events",
            label="Event",
            search_fields=("eventName",),
            choice_fields=("category",),
            required_fields=("eventName", "date"),
            defaults={
                "category": "school-event",
                "description": "",
                "startTime": "",
                "endTime": "",
                "location": "",
            },
            status_field=None,
            status_values=(),
            columns=("date", "eventName", "category", "location"),
        ),
    )
}


# ----------------------- Module state -----------------------
class ModuleState(str, Enum):
    LOADING = "loading"
    IDLE = "idle"
    FORM_OPEN = "form_open"
    SUBMITTING = "submitting"


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class RecordModule:
    """In-memory view of one collection plus its add/edit form."""

    def __init__(self, client: ApiClient, definition: ModuleDefinition):
        self.client = client
        self.definition = definition
        self.records: List[Record] = []
        self.filter = Filter()
        self.state = ModuleState.LOADING
        self.editing_id: Optional[str] = None
        self.form_data: Record = {}
        self.form_error: Optional[str] = None
        self.alert: Optional[str] = None

    @property
    def plural(self) -> str:
        return self.definition.name.replace("-", " ")

    def load(self) -> List[Record]:
        self.state = ModuleState.LOADING
        try:
            self.records = self.client.list(self.definition.path)
        except ApiError as e:
            logger.warning("Loading %s failed: %s", self.plural, e)
            self.alert = f"Failed to load {self.plural}"
        self.state = ModuleState.IDLE
        return self.records

    def visible(self) -> List[Record]:
        return self.filter.apply(self.records, self.definition.search_fields, self.definition.date_field)

    def options(self, field_name: str) -> List[str]:
        return sorted({_text(r.get(field_name)) for r in self.records if not _is_blank(r.get(field_name))})

    def find(self, record_id: str) -> Optional[Record]:
        return next((r for r in self.records if r.get("id") == record_id), None)

    # ----------------------- Form -----------------------
    def open_form(self, record: Optional[Record] = None) -> Record:
        fields = self.definition.form_fields
        if record is None:
            self.editing_id = None
            self.form_data = {f: self.definition.defaults.get(f, "") for f in fields}
        else:
            self.editing_id = record.get("id")
            self.form_data = {f: record.get(f, self.definition.defaults.get(f, "")) for f in fields}
        self.form_error = None
        self.state = ModuleState.FORM_OPEN
        return self.form_data

    def close_form(self) -> None:
        self.editing_id = None
        self.form_data = {}
        self.form_error = None
        self.state = ModuleState.IDLE

    def _coerce(self, data: Record) -> Record:
        out = dict(data)
        for name, default in self.definition.defaults.items():
            if isinstance(default, int) and isinstance(out.get(name), str):
                try:
                    out[name] = int(out[name])
                except ValueError:
                    raise ValueError(f"{name} must be a number")
        return out

    def validate(self, data: Record) -> Optional[str]:
        if any(_is_blank(data.get(f)) for f in self.definition.required_fields):
            return "Please fill all required fields"
        for check in self.definition.checks:
            problem = check(data)
            if problem:
                return problem
        return None

    def submit(self, changes: Optional[Record] = None) -> bool:
        if self.state != ModuleState.FORM_OPEN:
            raise RuntimeError("No form is open")
        self.form_data.update(changes or {})
        try:
            data = self._coerce(self.form_data)
        except ValueError as e:
            self.form_error = str(e)
            return False
        problem = self.validate(data)
        if problem:
            self.form_error = problem
            return False

        self.state = ModuleState.SUBMITTING
        try:
            if self.editing_id:
                saved = self.client.update(self.definition.path, self.editing_id, data)
                self._replace(saved)
            else:
                saved = self.client.create(self.definition.path, data)
                self.records.append(saved)
        except ApiError as e:
            self.form_error = e.message
            self.state = ModuleState.FORM_OPEN
            return False
        self.close_form()
        return True

    # ----------------------- Row actions -----------------------
    def _replace(self, saved: Record) -> None:
        self.records = [saved if r.get("id") == saved.get("id") else r for r in self.records]

    def toggle_status(self, record_id: str, value: Optional[str] = None) -> bool:
        status_field = self.definition.status_field
        if not status_field:
            raise ValueError(f"{self.definition.label} records have no status")
        if value is None:
            record = self.find(record_id)
            if record is None:
                self.alert = f"{self.definition.label} not found"
                return False
            values = self.definition.status_values
            current = record.get(status_field)
            i = values.index(current) if current in values else -1
            value = values[(i + 1) % len(values)]
        if value not in self.definition.status_values:
            raise ValueError(f"Status must be one of: {', '.join(self.definition.status_values)}")
        try:
            saved = self.client.update(self.definition.path, record_id, {status_field: value})
        except ApiError as e:
            logger.warning("Status update failed for %s: %s", record_id, e)
            self.alert = "Failed to update status"
            return False
        self._replace(saved)
        return True

    def delete(self, record_id: str, confirm: Callable[[str], bool]) -> bool:
        if not confirm(f"Are you sure you want to delete this {self.definition.label.lower()}?"):
            return False
        try:
            self.client.delete(self.definition.path, record_id)
        except ApiError as e:
            logger.warning("Delete failed for %s: %s", record_id, e)
            self.alert = f"Failed to delete {self.definition.label.lower()}"
            return False
        self.records = [r for r in self.records if r.get("id") != record_id]
        return True
