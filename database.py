"""
MongoDB connection for the school records API.

`db` is None when DATABASE_URL is not set so the app can still boot and
report the problem through /api/health.
"""

import os
from typing import Optional

from pymongo import MongoClient, ASCENDING
from pymongo.database import Database
from pymongo.errors import PyMongoError

from logging_setup import get_logger

logger = get_logger("database")

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "school_records")

# collection -> fields that must be unique
UNIQUE_FIELDS = {
    "user": ["email"],
    "student": ["enrollmentNo"],
    "teacher": ["employeeId"],
    "subject": ["subjectCode"],
}


def connect(url: Optional[str] = DATABASE_URL, name: str = DATABASE_NAME) -> Optional[Database]:
    if not url:
        logger.warning("DATABASE_URL not set, running without a database")
        return None
    client = MongoClient(url, serverSelectionTimeoutMS=5000)
    return client[name]


def ensure_indexes(database: Database) -> None:
    for collection, fields in UNIQUE_FIELDS.items():
        for field in fields:
            database[collection].create_index([(field, ASCENDING)], unique=True)


def ping(database: Optional[Database]) -> bool:
    if database is None:
        return False
    try:
        database.client.admin.command("ping")
        return True
    except PyMongoError as e:
        logger.warning("Database ping failed: %s", e)
        return False


db = connect()


def get_db() -> Optional[Database]:
    return db
