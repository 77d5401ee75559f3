"""
MongoDB access for the portfolio service.

The connection is configured from the environment (DATABASE_URL and
DATABASE_NAME). When either is missing `db` stays None and every store call
raises StoreUnavailable instead of failing at import time.

DocumentStore is the only way the rest of the code talks to MongoDB. It speaks
in collection names and string ids, and returns plain dicts with the Mongo
`_id` replaced by a string `id`.
"""
import logging
import os
from typing import Any, Dict, List, Optional, Tuple

from bson.objectid import ObjectId
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.errors import PyMongoError
from starlette.concurrency import run_in_threadpool

from errors import FetchFailure, StoreUnavailable, WriteFailure

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")

client = None
db = None

if DATABASE_URL and DATABASE_NAME:
    client = MongoClient(DATABASE_URL, serverSelectionTimeoutMS=5000)
    db = client[DATABASE_NAME]

# Collection names are shared with the frontend and must not change.
PROJECTS = "projects"
SKILLS = "skills"
MESSAGES = "messages"
SETTINGS = "settings"
ABOUT = "about"

SETTINGS_ID = "general"


def to_public(doc: Optional[dict]):
    if not doc:
        return doc
    doc = {**doc}
    if "_id" in doc:
        doc["id"] = str(doc.pop("_id"))
    return doc


def document_key(doc_id: str):
    """Store-assigned ids are ObjectIds, fixed ids (like "general") are plain strings."""
    if isinstance(doc_id, str) and ObjectId.is_valid(doc_id):
        return ObjectId(doc_id)
    return doc_id


class DocumentStore:
    """Async facade over a pymongo database.

    pymongo is blocking, so every call is pushed to the threadpool and the
    caller simply awaits it. Reads raise FetchFailure, writes raise
    WriteFailure. There is no retry and no caching: each call is a single
    independent round-trip.
    """

    def __init__(self, database=None):
        self.db = database

    def _collection(self, name: str):
        if self.db is None:
            raise StoreUnavailable("Database not available")
        return self.db[name]

    async def _read(self, action: str, fn, *args):
        try:
            return await run_in_threadpool(fn, *args)
        except FetchFailure:
            raise
        except PyMongoError as e:
            logger.warning("Store read failed (%s): %s", action, e)
            raise FetchFailure(f"{action} failed: {e}") from e

    async def _write(self, action: str, fn, *args):
        try:
            return await run_in_threadpool(fn, *args)
        except WriteFailure:
            raise
        except StoreUnavailable as e:
            raise WriteFailure(f"{action} failed: {e}") from e
        except PyMongoError as e:
            logger.warning("Store write failed (%s): %s", action, e)
            raise WriteFailure(f"{action} failed: {e}") from e

    # Reads

    async def get(self, collection_name: str, doc_id: str) -> Optional[Dict[str, Any]]:
        def _get():
            return to_public(self._collection(collection_name).find_one({"_id": document_key(doc_id)}))

        return await self._read(f"get {collection_name}/{doc_id}", _get)

    async def list(
        self,
        collection_name: str,
        filter_dict: Optional[Dict[str, Any]] = None,
        order_by: Optional[Tuple[str, str]] = None,
    ) -> List[Dict[str, Any]]:
        def _list():
            cursor = self._collection(collection_name).find(filter_dict or {})
            if order_by:
                field, direction = order_by
                cursor = cursor.sort(field, DESCENDING if direction == "desc" else ASCENDING)
            return [to_public(d) for d in cursor]

        return await self._read(f"list {collection_name}", _list)

    async def count(self, collection_name: str, filter_dict: Optional[Dict[str, Any]] = None) -> int:
        def _count():
            return self._collection(collection_name).count_documents(filter_dict or {})

        return await self._read(f"count {collection_name}", _count)

    # Writes

    async def create(self, collection_name: str, fields: Dict[str, Any]) -> str:
        def _create():
            data = {k: v for k, v in fields.items() if k not in ("id", "_id")}
            result = self._collection(collection_name).insert_one(data)
            return str(result.inserted_id)

        return await self._write(f"create in {collection_name}", _create)

    async def update(self, collection_name: str, doc_id: str, fields: Dict[str, Any]) -> None:
        def _update():
            data = {k: v for k, v in fields.items() if k not in ("id", "_id")}
            if not data:
                return
            res = self._collection(collection_name).update_one({"_id": document_key(doc_id)}, {"$set": data})
            if res.matched_count == 0:
                raise WriteFailure(f"No document to update: {collection_name}/{doc_id}")

        await self._write(f"update {collection_name}/{doc_id}", _update)

    async def delete(self, collection_name: str, doc_id: str) -> None:
        def _delete():
            self._collection(collection_name).delete_one({"_id": document_key(doc_id)})

        await self._write(f"delete {collection_name}/{doc_id}", _delete)

    async def set_with_merge(self, collection_name: str, doc_id: str, fields: Dict[str, Any]) -> None:
        def _set():
            data = {k: v for k, v in fields.items() if k not in ("id", "_id")}
            self._collection(collection_name).update_one(
                {"_id": document_key(doc_id)}, {"$set": data}, upsert=True
            )

        await self._write(f"set {collection_name}/{doc_id}", _set)

    def list_collection_names(self) -> List[str]:
        if self.db is None:
            raise StoreUnavailable("Database not available")
        return self.db.list_collection_names()


store = DocumentStore(db)


def get_store() -> DocumentStore:
    return store
