"""In-process stand-ins for pymongo's async collection and database."""

import asyncio
import copy
from types import SimpleNamespace
from typing import Any

import pytest
from pymongo.errors import DuplicateKeyError


def matches(doc: dict[str, Any], query: dict[str, Any]) -> bool:
    for key, condition in query.items():
        value = doc.get(key)
        if isinstance(condition, dict):
            if "$lte" in condition and not (value is not None and value <= condition["$lte"]):
                return False
        elif value != condition:
            return False
    return True


class FakeAsyncCollection:
    """Subset of AsyncCollection used by the stores.

    Every call yields to the event loop once, so concurrent callers interleave
    between calls the way they would against a server. `delays` holds
    per-method sleeps for simulating a slow round trip.
    """

    def __init__(self) -> None:
        self.docs: dict[Any, dict[str, Any]] = {}
        self.delays: dict[str, float] = {}

    async def _round_trip(self, method: str) -> None:
        await asyncio.sleep(self.delays.get(method, 0))

    async def create_index(self, keys: list[tuple[str, int]], **kwargs: Any) -> str:
        await self._round_trip("create_index")
        return "_".join(f"{name}_{direction}" for name, direction in keys)

    async def insert_one(self, doc: dict[str, Any]) -> SimpleNamespace:
        await self._round_trip("insert_one")
        if doc["_id"] in self.docs:
            raise DuplicateKeyError("E11000 duplicate key error")
        self.docs[doc["_id"]] = copy.deepcopy(doc)
        return SimpleNamespace(inserted_id=doc["_id"])

    async def find_one(self, query: dict[str, Any]) -> dict[str, Any] | None:
        await self._round_trip("find_one")
        return next((copy.deepcopy(doc) for doc in self.docs.values() if matches(doc, query)), None)

    async def find_one_and_delete(self, query: dict[str, Any]) -> dict[str, Any] | None:
        await self._round_trip("find_one_and_delete")
        doc = next((doc for doc in self.docs.values() if matches(doc, query)), None)
        if doc is None:
            return None
        return self.docs.pop(doc["_id"])

    async def delete_one(self, query: dict[str, Any]) -> SimpleNamespace:
        await self._round_trip("delete_one")
        doc = next((doc for doc in self.docs.values() if matches(doc, query)), None)
        if doc is None:
            return SimpleNamespace(deleted_count=0)
        del self.docs[doc["_id"]]
        return SimpleNamespace(deleted_count=1)

    async def delete_many(self, query: dict[str, Any]) -> SimpleNamespace:
        await self._round_trip("delete_many")
        ids = [doc_id for doc_id, doc in self.docs.items() if matches(doc, query)]
        for doc_id in ids:
            del self.docs[doc_id]
        return SimpleNamespace(deleted_count=len(ids))

    async def find(self, query: dict[str, Any], projection: dict[str, int] | None = None):
        await self._round_trip("find")
        for doc in [d for d in self.docs.values() if matches(d, query)]:
            if projection:
                yield {key: doc[key] for key in projection if key in doc}
            else:
                yield copy.deepcopy(doc)

    async def count_documents(self, query: dict[str, Any]) -> int:
        await self._round_trip("count_documents")
        return sum(1 for doc in self.docs.values() if matches(doc, query))


class FakeAsyncDatabase:
    def __init__(self) -> None:
        self.collections: dict[str, FakeAsyncCollection] = {}

    def get_collection(self, name: str) -> FakeAsyncCollection:
        return self.collections.setdefault(name, FakeAsyncCollection())


@pytest.fixture
def fake_database():
    return FakeAsyncDatabase()
