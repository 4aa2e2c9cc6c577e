"""
Generic list/create/read/update/delete routes over one MongoDB collection.

Every record resource in the API is an instance of `Resource` turned into an
APIRouter by `build_crud_router`; the handlers differ only by collection,
schemas and unique fields.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Type

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from pymongo import ReturnDocument
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError

from database import get_db
from logging_setup import get_logger
from schemas import make_partial

logger = get_logger("crud")


@dataclass
class Resource:
    path: str
    collection: str
    label: str
    create_schema: Type[BaseModel]
    unique_fields: Sequence[str] = ()
    update_schema: Optional[Type[BaseModel]] = field(default=None)

    def __post_init__(self):
        if self.update_schema is None:
            self.update_schema = make_partial(self.create_schema)


# ----------------------- Helpers -----------------------
def require_db(database=Depends(get_db)):
    if database is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    return database


def now() -> datetime:
    return datetime.now(timezone.utc)


def parse_object_id(value: str) -> ObjectId:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise HTTPException(status_code=400, detail="Invalid ID")


def serialize(doc: Dict[str, Any]) -> Dict[str, Any]:
    doc["id"] = str(doc.pop("_id"))
    return doc


def conflict_message(label: str, field_name: str) -> str:
    return f"{label} with this {field_name} already exists"


def check_unique(
    collection: Collection,
    resource: Resource,
    data: Dict[str, Any],
    exclude_id: Optional[ObjectId] = None,
) -> None:
    for name in resource.unique_fields:
        if name not in data:
            continue
        query: Dict[str, Any] = {name: data[name]}
        if exclude_id is not None:
            query["_id"] = {"$ne": exclude_id}
        if collection.find_one(query):
            raise HTTPException(status_code=400, detail=conflict_message(resource.label, name))


def _duplicate_field(resource: Resource, exc: DuplicateKeyError) -> str:
    key_pattern = (exc.details or {}).get("keyPattern") or {}
    for name in resource.unique_fields:
        if name in key_pattern:
            return name
    return resource.unique_fields[0] if resource.unique_fields else "value"


# ----------------------- Router -----------------------
def build_crud_router(resource: Resource, tags: Optional[List[str]] = None) -> APIRouter:
    router = APIRouter(prefix=resource.path, tags=tags or [resource.label])
    create_schema = resource.create_schema
    update_schema = resource.update_schema
    label = resource.label

    def list_items(database=Depends(require_db)):
        docs = database[resource.collection].find({}).sort("_id", 1)
        return [serialize(d) for d in docs]

    def get_item(item_id: str, database=Depends(require_db)):
        oid = parse_object_id(item_id)
        doc = database[resource.collection].find_one({"_id": oid})
        if not doc:
            raise HTTPException(status_code=404, detail=f"{label} not found")
        return serialize(doc)

    def create_item(payload: create_schema, database=Depends(require_db)):
        collection = database[resource.collection]
        data = payload.model_dump(by_alias=True)
        check_unique(collection, resource, data)
        data.update({"createdAt": now(), "updatedAt": now()})
        try:
            res = collection.insert_one(data)
        except DuplicateKeyError as e:
            raise HTTPException(status_code=400, detail=conflict_message(label, _duplicate_field(resource, e)))
        logger.info("Created %s %s", label.lower(), res.inserted_id)
        return serialize(data)

    def update_item(item_id: str, payload: update_schema, database=Depends(require_db)):
        oid = parse_object_id(item_id)
        collection = database[resource.collection]
        data = {k: v for k, v in payload.model_dump(by_alias=True, exclude_unset=True).items() if v is not None}
        check_unique(collection, resource, data, exclude_id=oid)
        data["updatedAt"] = now()
        try:
            doc = collection.find_one_and_update(
                {"_id": oid}, {"$set": data}, return_document=ReturnDocument.AFTER
            )
        except DuplicateKeyError as e:
            raise HTTPException(status_code=400, detail=conflict_message(label, _duplicate_field(resource, e)))
        if not doc:
            raise HTTPException(status_code=404, detail=f"{label} not found")
        logger.info("Updated %s %s", label.lower(), item_id)
        return serialize(doc)

    def delete_item(item_id: str, database=Depends(require_db)):
        oid = parse_object_id(item_id)
        res = database[resource.collection].delete_one({"_id": oid})
        if res.deleted_count == 0:
            raise HTTPException(status_code=404, detail=f"{label} not found")
        logger.info("Deleted %s %s", label.lower(), item_id)
        return {"message": f"{label} deleted successfully"}

    router.add_api_route("", list_items, methods=["GET"], summary=f"List {label} records")
    router.add_api_route("/{item_id}", get_item, methods=["GET"], summary=f"Get {label}")
    router.add_api_route(
        "", create_item, methods=["POST"], status_code=status.HTTP_201_CREATED, summary=f"Create {label}"
    )
    router.add_api_route("/{item_id}", update_item, methods=["PUT"], summary=f"Update {label}")
    router.add_api_route("/{item_id}", delete_item, methods=["DELETE"], summary=f"Delete {label}")
    return router
