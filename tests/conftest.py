import copy
from types import SimpleNamespace

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient
from pymongo import ReturnDocument

from citybuilder.core.config import settings
from citybuilder.db import mongo
from citybuilder.main import app


# ============================================================
# In-memory stand-in for the Motor collections the services use
# ============================================================

def _matches(document, query):
    for key, expected in (query or {}).items():
        actual = document.get(key)
        if isinstance(expected, dict) and "$in" in expected:
            if actual not in expected["$in"]:
                return False
        elif actual != expected:
            return False
    return True


def _project(document, projection):
    if not projection:
        return copy.deepcopy(document)
    if any(projection.values()):
        keep = {key for key, flag in projection.items() if flag}
        keep.add("_id")
        return {k: copy.deepcopy(v) for k, v in document.items() if k in keep}
    return {k: copy.deepcopy(v) for k, v in document.items() if k not in projection}


def _apply_update(document, update):
    for key, value in update.get("$set", {}).items():
        document[key] = copy.deepcopy(value)
    for key, value in update.get("$inc", {}).items():
        document[key] = document.get(key, 0) + value


class FakeCursor:
    def __init__(self, documents):
        self._documents = documents

    def sort(self, key, direction=1):
        self._documents = sorted(
            self._documents,
            key=lambda d: d.get(key),
            reverse=direction == -1
        )
        return self

    async def to_list(self, length=None):
        return self._documents if length is None else self._documents[:length]


class FakeCollection:
    def __init__(self, name):
        self.name = name
        self.documents = []
        self.indexes = []

    async def insert_one(self, document):
        document.setdefault("_id", ObjectId())
        self.documents.append(copy.deepcopy(document))
        return SimpleNamespace(inserted_id=document["_id"])

    async def find_one(self, query=None, projection=None):
        for document in self.documents:
            if _matches(document, query):
                return _project(document, projection)
        return None

    def find(self, query=None, projection=None):
        return FakeCursor([_project(d, projection) for d in self.documents if _matches(d, query)])

    async def update_one(self, query, update):
        for document in self.documents:
            if _matches(document, query):
                _apply_update(document, update)
                return SimpleNamespace(matched_count=1, modified_count=1)
        return SimpleNamespace(matched_count=0, modified_count=0)

    async def find_one_and_update(self, query, update, return_document=ReturnDocument.BEFORE):
        for document in self.documents:
            if _matches(document, query):
                before = copy.deepcopy(document)
                _apply_update(document, update)
                return copy.deepcopy(document) if return_document == ReturnDocument.AFTER else before
        return None

    async def create_index(self, keys, **kwargs):
        self.indexes.append((keys, kwargs))
        return kwargs.get("name")

    async def index_information(self):
        info = {"_id_": {"key": [("_id", 1)]}}
        for keys, kwargs in self.indexes:
            info[kwargs.get("name")] = {"key": keys, "unique": kwargs.get("unique", False)}
        return info

    async def drop_indexes(self):
        self.indexes = []


class FakeDatabase:
    def __init__(self):
        self._collections = {}

    def __getitem__(self, name):
        if name not in self._collections:
            self._collections[name] = FakeCollection(name)
        return self._collections[name]


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture(autouse=True)
def fake_db(monkeypatch):
    db = FakeDatabase()
    monkeypatch.setattr(mongo, "_database", db)
    monkeypatch.setattr(settings, "BCRYPT_ROUNDS", 4)
    monkeypatch.setattr(settings, "IMAGEKIT_PRIVATE_KEY", "private_test_key")
    monkeypatch.setattr(settings, "SMTP_HOST", None)
    return db


@pytest.fixture
def client():
    return TestClient(app)


def register_user(client, name="Jane Builder", email="jane@example.com", password="secret1"):
    return client.post("/api/auth/register", json={"name": name, "email": email, "password": password})


def login_headers(client, email="jane@example.com", password="secret1"):
    response = client.post("/api/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.fixture
def auth_headers(client):
    register_user(client)
    return login_headers(client)


def lot_photo(n=1):
    return {
        "imageKitFileId": f"file_{n}",
        "url": f"https://ik.imagekit.io/demo/lot-photos/{n}.jpg",
        "thumbnailUrl": f"https://ik.imagekit.io/demo/tr:n-ik_ml_thumbnail/lot-photos/{n}.jpg",
        "name": f"{n}.jpg",
    }


def create_build(client, headers, **metadata):
    body = {
        "metadata": {
            "lotAddress": "12 Cedar Lane",
            "lotSizeDimensions": "50x120",
            "lotPrice": 185000,
            **metadata,
        },
        "photos": [lot_photo(1), lot_photo(2)],
    }
    response = client.post("/api/builds/create", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()
