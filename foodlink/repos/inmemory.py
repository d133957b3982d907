# foodlink/repos/inmemory.py
import copy
from typing import Any, Dict, Iterable, List, Optional, Tuple

from bson import ObjectId

from foodlink.core.errors import ConflictError
from foodlink.core.states import ACTIVE_ASSIGNMENT

Sort = List[Tuple[str, int]]


def new_id() -> str:
    return str(ObjectId())


def _lookup(doc: dict, path: str):
    cur: Any = doc
    for part in path.split("."):
        if not isinstance(cur, dict):
            return None
        cur = cur.get(part)
    return cur


def _match_value(value, cond) -> bool:
    if isinstance(cond, dict) and cond and all(k.startswith("$") for k in cond):
        for op, arg in cond.items():
            if op == "$in" and value not in arg:
                return False
            if op == "$nin" and value in arg:
                return False
            if op == "$ne" and value == arg:
                return False
            if op not in ("$in", "$nin", "$ne"):
                raise ValueError(f"Unsupported operator {op}")
        return True
    return value == cond


def matches(doc: dict, flt: Optional[dict]) -> bool:
    for key, cond in (flt or {}).items():
        if not _match_value(_lookup(doc, key), cond):
            return False
    return True


class InMemoryCollection:
    """Dict-backed collection with the subset of Mongo semantics the services use."""

    def __init__(self, name: str, unique: Iterable[Tuple[Tuple[str, ...], Optional[dict]]] = ()):
        self.name = name
        self.docs: Dict[str, dict] = {}
        # (fields, partial filter) pairs
        self._unique = list(unique)

    def _check_unique(self, doc: dict, skip_id: Optional[str] = None):
        for fields, partial in self._unique:
            if partial and not matches(doc, partial):
                continue
            key = tuple(_lookup(doc, f) for f in fields)
            for other in self.docs.values():
                if other["_id"] == skip_id:
                    continue
                if partial and not matches(other, partial):
                    continue
                if tuple(_lookup(other, f) for f in fields) == key:
                    raise ConflictError(f"Duplicate {self.name[:-1]} for {', '.join(fields)}")

    async def get(self, doc_id: str) -> Optional[dict]:
        doc = self.docs.get(doc_id)
        return copy.deepcopy(doc) if doc else None

    async def find(self, flt: Optional[dict] = None, sort: Optional[Sort] = None,
                   skip: int = 0, limit: int = 0) -> List[dict]:
        out = [d for d in self.docs.values() if matches(d, flt)]
        for field, direction in reversed(sort or []):
            present = [d for d in out if _lookup(d, field) is not None]
            missing = [d for d in out if _lookup(d, field) is None]
            present.sort(key=lambda d: _lookup(d, field), reverse=direction < 0)
            out = present + missing if direction < 0 else missing + present
        out = out[skip:]
        if limit:
            out = out[:limit]
        return [copy.deepcopy(d) for d in out]

    async def find_one(self, flt: dict) -> Optional[dict]:
        found = await self.find(flt, limit=1)
        return found[0] if found else None

    async def insert(self, doc: dict) -> dict:
        doc = copy.deepcopy(doc)
        doc.setdefault("_id", new_id())
        if doc["_id"] in self.docs:
            raise ConflictError(f"Duplicate {self.name[:-1]} id")
        self._check_unique(doc)
        self.docs[doc["_id"]] = doc
        return copy.deepcopy(doc)

    async def update(self, doc_id: str, fields: dict, expect: Optional[dict] = None) -> Optional[dict]:
        doc = self.docs.get(doc_id)
        if doc is None or not matches(doc, expect):
            return None
        updated = {**doc, **copy.deepcopy(fields)}
        self._check_unique(updated, skip_id=doc_id)
        self.docs[doc_id] = updated
        return copy.deepcopy(updated)

    async def update_where(self, flt: dict, fields: dict) -> Optional[dict]:
        doc = await self.find_one(flt)
        if doc is None:
            return None
        return await self.update(doc["_id"], fields)

    async def update_many(self, flt: dict, fields: dict) -> int:
        ids = [d["_id"] for d in self.docs.values() if matches(d, flt)]
        for doc_id in ids:
            await self.update(doc_id, fields)
        return len(ids)

    async def delete(self, doc_id: str) -> bool:
        return self.docs.pop(doc_id, None) is not None

    async def count(self, flt: Optional[dict] = None) -> int:
        return sum(1 for d in self.docs.values() if matches(d, flt))


class InMemoryStore:
    def __init__(self):
        self.users = InMemoryCollection("users", unique=[(("email",), None)])
        self.donations = InMemoryCollection("donations")
        self.requests = InMemoryCollection("requests", unique=[(("donation_id", "ngo_id"), None)])
        self.assignments = InMemoryCollection(
            "assignments",
            unique=[(("donation_id",), {"status": {"$in": ACTIVE_ASSIGNMENT}})],
        )
        self.notifications = InMemoryCollection("notifications")

    async def ensure_indexes(self):
        return None

    def close(self):
        return None
