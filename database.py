"""
JSON Document Database

A single JSON file holds every collection of the storefront (products, users,
orders, admins). The document is loaded lazily, kept in memory and written
back after each change. Records are plain dicts matched on their "id" field,
compared as strings so that 1 and "1" address the same record.
"""

import json
import logging
import os
import tempfile
import threading
from copy import deepcopy
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Union

from pydantic import BaseModel

logger = logging.getLogger(__name__)

DATABASE_PATH = os.getenv("DATABASE_PATH", "db.json")
COLLECTIONS = ("products", "users", "orders", "admins")


class DatabaseError(Exception):
    pass


class UnknownCollection(DatabaseError):
    pass


class DuplicateIdError(DatabaseError):
    pass


def same_id(a: Any, b: Any) -> bool:
    return a is not None and b is not None and str(a) == str(b)


def _query_str(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return str(value)


class JsonDatabase:
    """In-memory view of a JSON file, flushed to disk on every write."""

    def __init__(self, path: str, collections: Iterable[str] = COLLECTIONS):
        self.path = path
        self.collections = tuple(collections)
        self._data: Optional[Dict[str, List[dict]]] = None
        self._lock = threading.RLock()

    @property
    def name(self) -> str:
        return os.path.basename(self.path)

    def _load(self) -> Dict[str, List[dict]]:
        if self._data is not None:
            return self._data
        data: Dict[str, Any] = {}
        if os.path.exists(self.path):
            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    data = json.load(f)
            except json.JSONDecodeError as e:
                raise DatabaseError("invalid json") from e
            if not isinstance(data, dict):
                raise DatabaseError("invalid json")
            logger.info("Loaded database from %s", self.path)
        for name in self.collections:
            data.setdefault(name, [])
        self._data = data
        return data

    def _save(self, data: Dict[str, List[dict]]) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        tmp_path = None
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except (OSError, TypeError, ValueError) as e:
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)
            logger.error("Could not write %s: %s", self.path, e)
            raise DatabaseError("could not write database") from e

    def _commit(self, collection: str, records: List[dict]) -> None:
        # memory only changes once the file write has succeeded
        data = {**self._load(), collection: records}
        self._save(data)
        self._data = data

    def _collection(self, name: str) -> List[dict]:
        if name not in self.collections:
            raise UnknownCollection(name)
        return self._load()[name]

    def _index(self, records: List[dict], doc_id: Any) -> Optional[int]:
        for i, rec in enumerate(records):
            if same_id(rec.get("id"), doc_id):
                return i
        return None

    def _next_id(self, records: List[dict]) -> int:
        numeric = []
        for rec in records:
            try:
                numeric.append(int(rec.get("id")))
            except (TypeError, ValueError):
                continue
        return max(numeric) + 1 if numeric else 1

    # -------------------- Reads --------------------

    def list_collection_names(self) -> List[str]:
        with self._lock:
            return list(self._load().keys())

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return deepcopy(self._load())

    def find(self, collection: str, filters: Optional[Dict[str, str]] = None, q: Optional[str] = None) -> List[dict]:
        with self._lock:
            records = self._collection(collection)
            out = []
            for rec in records:
                if filters and any(_query_str(rec.get(k)) != str(v) for k, v in filters.items()):
                    continue
                if q:
                    needle = q.lower()
                    if not any(isinstance(v, str) and needle in v.lower() for v in rec.values()):
                        continue
                out.append(deepcopy(rec))
            return out

    def find_one(self, collection: str, doc_id: Any) -> Optional[dict]:
        with self._lock:
            records = self._collection(collection)
            idx = self._index(records, doc_id)
            return deepcopy(records[idx]) if idx is not None else None

    # -------------------- Writes --------------------

    def insert_one(self, collection: str, doc: Dict[str, Any]) -> dict:
        with self._lock:
            records = self._collection(collection)
            doc = deepcopy(doc)
            if doc.get("id") is None:
                doc["id"] = self._next_id(records)
            elif self._index(records, doc["id"]) is not None:
                raise DuplicateIdError(f"Duplicate id {doc['id']} in {collection}")
            self._commit(collection, records + [doc])
            return deepcopy(doc)

    def update_one(self, collection: str, doc_id: Any, changes: Dict[str, Any]) -> Optional[dict]:
        with self._lock:
            records = self._collection(collection)
            idx = self._index(records, doc_id)
            if idx is None:
                return None
            changes = {k: v for k, v in changes.items() if k != "id"}
            new_doc = {**records[idx], **deepcopy(changes)}
            self._commit(collection, records[:idx] + [new_doc] + records[idx + 1:])
            return deepcopy(new_doc)

    def replace_one(self, collection: str, doc_id: Any, doc: Dict[str, Any]) -> Optional[dict]:
        with self._lock:
            records = self._collection(collection)
            idx = self._index(records, doc_id)
            if idx is None:
                return None
            new_doc = deepcopy(doc)
            new_doc["id"] = records[idx]["id"]
            self._commit(collection, records[:idx] + [new_doc] + records[idx + 1:])
            return deepcopy(new_doc)

    def delete_one(self, collection: str, doc_id: Any) -> bool:
        with self._lock:
            records = self._collection(collection)
            idx = self._index(records, doc_id)
            if idx is None:
                return False
            self._commit(collection, records[:idx] + records[idx + 1:])
            return True


db = JsonDatabase(DATABASE_PATH)


def create_document(collection_name: str, data: Union[BaseModel, dict]) -> dict:
    """Insert a record, stamping createdAt/updatedAt if the caller did not."""
    doc = data.model_dump() if isinstance(data, BaseModel) else dict(data)
    now = datetime.now(timezone.utc).isoformat()
    doc.setdefault("createdAt", now)
    doc.setdefault("updatedAt", now)
    return db.insert_one(collection_name, doc)


def get_documents(collection_name: str, filter_dict: Optional[Dict[str, str]] = None, limit: Optional[int] = None,
                  q: Optional[str] = None) -> List[dict]:
    docs = db.find(collection_name, filter_dict, q=q)
    if limit is not None:
        docs = docs[:limit]
    return docs
