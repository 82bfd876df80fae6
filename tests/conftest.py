import copy
import re
import sys
import uuid
from pathlib import Path
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from pymongo.errors import DuplicateKeyError


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from database import get_db
from main import app
from models.user import UserRecord
from routes.auth import create_access_token, hash_password
from routes.exams import get_clock


UNIQUE_KEYS = {"users": ("id", "email")}


def _matches_condition(value, condition):
    if isinstance(condition, dict) and any(k.startswith("$") for k in condition):
        for op, arg in condition.items():
            if op == "$in" and value not in arg:
                return False
            if op == "$ne" and value == arg:
                return False
            if op == "$gte" and (value is None or value < arg):
                return False
            if op == "$lte" and (value is None or value > arg):
                return False
            if op == "$regex":
                flags = re.IGNORECASE if "i" in condition.get("$options", "") else 0
                if not isinstance(value, str) or not re.search(arg, value, flags):
                    return False
        return True
    return value == condition


def matches(doc, query):
    for key, condition in (query or {}).items():
        if key == "$or":
            if not any(matches(doc, sub) for sub in condition):
                return False
        elif not _matches_condition(doc.get(key), condition):
            return False
    return True


class FakeCursor:
    def __init__(self, docs):
        self._docs = docs

    def sort(self, key, direction=None):
        keys = key if isinstance(key, list) else [(key, direction or 1)]
        for field, order in reversed(keys):
            self._docs.sort(key=lambda d: (d.get(field) is not None, d.get(field) if d.get(field) is not None else 0), reverse=order < 0)
        return self

    def limit(self, n):
        if n:
            self._docs = self._docs[:n]
        return self

    async def to_list(self, length=None):
        return self._docs if length is None else self._docs[:length]


class FakeCollection:
    def __init__(self, name):
        self.name = name
        self.docs = []
        self.fail_writes = False
        self.fail_reads = False
        self.indexes = []

    def _check_write(self):
        if self.fail_writes:
            raise RuntimeError(f"{self.name} is unavailable")

    def _check_unique(self, doc):
        for key in UNIQUE_KEYS.get(self.name, ("id",)):
            if key in doc and any(d.get(key) == doc[key] for d in self.docs):
                raise DuplicateKeyError(f"duplicate {key}: {doc[key]}")

    def find(self, query=None, projection=None):
        if self.fail_reads:
            raise RuntimeError(f"{self.name} is unavailable")
        docs = [copy.deepcopy(d) for d in self.docs if matches(d, query)]
        if projection and projection.get("_id") == 0:
            for d in docs:
                d.pop("_id", None)
        return FakeCursor(docs)

    async def find_one(self, query=None):
        for d in self.docs:
            if matches(d, query):
                return copy.deepcopy(d)
        return None

    async def insert_one(self, doc):
        self._check_write()
        self._check_unique(doc)
        stored = copy.deepcopy(doc)
        stored["_id"] = uuid.uuid4().hex
        self.docs.append(stored)
        return SimpleNamespace(inserted_id=stored["_id"])

    async def insert_many(self, docs):
        self._check_write()
        for doc in docs:
            self._check_unique(doc)
        ids = []
        for doc in docs:
            ids.append((await self.insert_one(doc)).inserted_id)
        return SimpleNamespace(inserted_ids=ids)

    async def update_one(self, query, update):
        self._check_write()
        for d in self.docs:
            if matches(d, query):
                d.update(copy.deepcopy(update.get("$set", {})))
                return SimpleNamespace(matched_count=1, modified_count=1)
        return SimpleNamespace(matched_count=0, modified_count=0)

    async def delete_one(self, query):
        self._check_write()
        for i, d in enumerate(self.docs):
            if matches(d, query):
                del self.docs[i]
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)

    async def delete_many(self, query):
        self._check_write()
        before = len(self.docs)
        self.docs = [d for d in self.docs if not matches(d, query)]
        return SimpleNamespace(deleted_count=before - len(self.docs))

    async def count_documents(self, query):
        return sum(1 for d in self.docs if matches(d, query))

    async def create_index(self, keys, **kwargs):
        self.indexes.append((keys, kwargs))
        return str(keys)


class FakeDB:
    def __init__(self):
        self._collections = {}

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)
        return self[name]

    def __getitem__(self, name):
        if name not in self._collections:
            self._collections[name] = FakeCollection(name)
        return self._collections[name]


class FakeClock:
    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def db():
    return FakeDB()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def client(db, clock):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_clock] = lambda: clock
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    """Insert a user straight into the fake store and return (user, auth headers)."""
    def _make(role="student", name=None, email=None, password="secret123"):
        record = UserRecord(
            id=str(uuid.uuid4()),
            name=name or f"{role} user",
            email=email or f"{uuid.uuid4().hex[:8]}@example.com",
            role=role,
            password=hash_password(password),
            createdAt="2024-01-01T00:00:00+00:00",
        )
        db.users.docs.append(record.model_dump())
        user = record.public()
        return user, {"Authorization": f"Bearer {create_access_token(user)}"}
    return _make


def question_doc(qid, text="What is the powerhouse of the cell?", correct=0, subject="Biology", topic="Cell", created_at="2024-01-01T00:00:00+00:00"):
    return {
        "id": qid,
        "subject": subject,
        "topic": topic,
        "text": text,
        "options": ["A", "B", "C", "D"],
        "correctAnswerIndex": correct,
        "explanation": "Because.",
        "normalizedText": text.lower(),
        "createdBy": "seed",
        "createdAt": created_at,
    }


def mock_test_doc(tid, sections, duration=600, approved=True, paused=False, allow_retake=True, max_attempts=None):
    return {
        "id": tid,
        "name": f"Mock {tid}",
        "description": "",
        "sections": [
            {"id": f"s{i}", "name": name, "questionIds": qids, "marksPerQuestion": marks}
            for i, (name, qids, marks) in enumerate(sections)
        ],
        "totalDurationSeconds": duration,
        "allowRetake": allow_retake,
        "maxAttempts": max_attempts,
        "isApproved": approved,
        "isPaused": paused,
        "createdBy": "seed",
        "creatorName": "Seed",
        "createdAt": "2024-01-01T00:00:00+00:00",
    }
