import os
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone

from fastapi import FastAPI, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

import auth
import database
from crud import Resource, build_crud_router, require_db, now
from logging_setup import get_logger
from schemas import (
    Student,
    Teacher,
    ClassRoom,
    Subject,
    StudentAttendance,
    StaffAttendance,
    Event,
    Settings,
    SettingsUpdate,
)

logger = get_logger("api")

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
SETTINGS_ID = "school"

RESOURCES = [
    Resource("/api/students", "student", "Student", Student, unique_fields=["enrollmentNo"]),
    Resource("/api/teachers", "teacher", "Teacher", Teacher, unique_fields=["employeeId"]),
    Resource("/api/classes", "class", "Class", ClassRoom),
    Resource("/api/subjects", "subject", "Subject", Subject, unique_fields=["subjectCode"]),
    Resource("/api/attendance/students", "student_attendance", "Student attendance", StudentAttendance),
    Resource("/api/attendance/staff", "staff_attendance", "Staff attendance", StaffAttendance),
    Resource("/api/events", "event", "Event", Event),
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    if database.db is not None:
        database.ensure_indexes(database.db)
        logger.info("Connected to database %s", database.DATABASE_NAME)
    yield


app = FastAPI(title="School Records API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ----------------------- Error Handlers -----------------------
@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    body = exc.detail if isinstance(exc.detail, dict) else {"error": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=body, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()) if p != 'body')}: {err.get('msg')}"
        for err in exc.errors()
    )
    return JSONResponse(
        status_code=400,
        content={"error": "Please fill all required fields", "details": details},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error", "details": str(exc)})


# ----------------------- Routers -----------------------
app.include_router(auth.router)
for resource in RESOURCES:
    app.include_router(build_crud_router(resource))


# ----------------------- Health -----------------------
@app.get("/")
def read_root():
    return {"message": "School Records API running"}


@app.get("/api/health")
def health(db=Depends(database.get_db)):
    if db is None:
        db_status = "not configured"
    elif database.ping(db):
        db_status = "connected"
    else:
        db_status = "unreachable"
    return {
        "status": "Server is running",
        "database": db_status,
        "time": datetime.now(timezone.utc).isoformat(),
    }


# ----------------------- Dashboard -----------------------
@app.get("/api/dashboard")
def dashboard(db=Depends(require_db)):
    counts = {r.collection: db[r.collection].count_documents({}) for r in RESOURCES}
    today = date.today().isoformat()
    marked = db["student_attendance"].count_documents({"date": today})
    present = db["student_attendance"].count_documents({"date": today, "status": "present"})
    rate = round(present * 100 / marked, 1) if marked else 0
    return {
        "totalStudents": counts["student"],
        "totalTeachers": counts["teacher"],
        "totalClasses": counts["class"],
        "totalSubjects": counts["subject"],
        "totalEvents": counts["event"],
        "attendanceRate": rate,
        "date": today,
    }


# ----------------------- Settings -----------------------
def load_settings(db) -> dict:
    doc = db["settings"].find_one({"_id": SETTINGS_ID}) or {}
    doc.pop("_id", None)
    doc.pop("updatedAt", None)
    return Settings(**doc).model_dump()


@app.get("/api/settings")
def get_settings(db=Depends(require_db)):
    return load_settings(db)


@app.put("/api/settings")
def update_settings(payload: SettingsUpdate, db=Depends(require_db)):
    data = payload.model_dump(exclude_none=True)
    data["updatedAt"] = now()
    db["settings"].update_one({"_id": SETTINGS_ID}, {"$set": data}, upsert=True)
    logger.info("Settings updated: %s", ", ".join(k for k in data if k != "updatedAt") or "none")
    return load_settings(db)


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
