"""
Database Schemas for the School Records API (MongoDB via Pydantic models)

Each create model describes one collection. Update models are derived from
the create models with every field optional so PUT can merge a subset.
Relationships between records (a student's class, an attendance row's
student name) are plain copied strings, not references.
"""

from typing import Annotated, Literal, Optional, Type

from pydantic import BaseModel, EmailStr, Field, StringConstraints, create_model

RequiredStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]

RecordStatus = Literal["active", "inactive"]
StudentAttendanceStatus = Literal["present", "absent", "leave"]
StaffAttendanceStatus = Literal["present", "absent", "leave", "on-duty"]
EventCategory = Literal["holiday", "school-event", "exam", "meeting", "other"]


# Core Users
class SignupRequest(BaseModel):
    # Checked by hand in auth.validate_signup so each failure gets its own message
    fullName: str = ""
    organizationName: str = ""
    email: str = ""
    mobileNo: str = ""
    password: str = ""


class LoginRequest(BaseModel):
    email: str = ""
    password: str = ""


class ChangePasswordRequest(BaseModel):
    currentPassword: str = ""
    newPassword: str = ""
    confirmPassword: str = ""


class PublicUser(BaseModel):
    id: str
    fullName: str
    organizationName: str
    email: str
    mobileNo: str


# Records
class Student(BaseModel):
    firstName: RequiredStr
    lastName: RequiredStr
    email: EmailStr
    enrollmentNo: RequiredStr
    mobileNo: str = ""
    class_: str = Field("10-A", alias="class")
    dateOfBirth: str = ""
    address: str = ""
    status: RecordStatus = "active"


class Teacher(BaseModel):
    firstName: RequiredStr
    lastName: RequiredStr
    email: EmailStr
    employeeId: RequiredStr
    mobileNo: str = ""
    subject: str = "Mathematics"
    qualification: str = ""
    dateOfBirth: str = ""
    address: str = ""
    status: RecordStatus = "active"


class ClassRoom(BaseModel):
    className: RequiredStr
    classTeacher: RequiredStr
    roomNumber: RequiredStr
    section: str = ""
    totalStudents: int = 0
    startTime: str = "08:00"
    endTime: str = "01:00"
    capacity: int = 50
    description: str = ""
    status: RecordStatus = "active"


class Subject(BaseModel):
    subjectName: RequiredStr
    subjectCode: RequiredStr
    category: str = "Core"
    creditHours: int = 0
    passingMarks: int = 0
    totalMarks: int = 100
    description: str = ""
    status: RecordStatus = "active"


class StudentAttendance(BaseModel):
    studentName: RequiredStr
    enrollmentNo: RequiredStr
    date: RequiredStr
    className: str = ""
    status: StudentAttendanceStatus = "present"


class StaffAttendance(BaseModel):
    staffName: RequiredStr
    employeeId: RequiredStr
    date: RequiredStr
    role: str = "Teacher"
    status: StaffAttendanceStatus = "present"


class Event(BaseModel):
    eventName: RequiredStr
    date: RequiredStr
    category: EventCategory = "school-event"
    description: str = ""
    startTime: str = ""
    endTime: str = ""
    location: str = ""


def make_partial(model: Type[BaseModel]) -> Type[BaseModel]:
    """Build the PUT body model: same fields and constraints, all optional."""
    fields = {}
    for name, info in model.model_fields.items():
        annotation = info.annotation
        if info.metadata:
            annotation = Annotated[(annotation, *info.metadata)]
        fields[name] = (Optional[annotation], Field(None, alias=info.alias))
    return create_model(f"{model.__name__}Update", __base__=BaseModel, **fields)


# Settings (single document)
class OrganizationSettings(BaseModel):
    schoolName: str = ""
    schoolAddress: str = ""
    contactEmail: str = ""
    contactPhone: str = ""
    principalName: str = ""


class AcademicSettings(BaseModel):
    academicYear: str = ""
    schoolStartTime: str = "08:00"
    schoolEndTime: str = "02:00"
    gradingSystem: str = ""
    totalClasses: int = 0


class NotificationSettings(BaseModel):
    emailNotifications: bool = True
    smsNotifications: bool = True
    attendanceAlerts: bool = True
    examinationReminders: bool = True
    eventNotifications: bool = True
    parentNotifications: bool = True


class Settings(BaseModel):
    organization: OrganizationSettings = Field(default_factory=OrganizationSettings)
    academic: AcademicSettings = Field(default_factory=AcademicSettings)
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)


class SettingsUpdate(BaseModel):
    organization: Optional[OrganizationSettings] = None
    academic: Optional[AcademicSettings] = None
    notifications: Optional[NotificationSettings] = None
