"""
Utilidades compartidas por las pruebas: una base de datos en memoria con la
parte de la API de pymongo que usan los servicios, y ayudas para crear la
aplicación y tokens de prueba.
"""

import copy
from contextlib import ExitStack
from types import SimpleNamespace
from unittest.mock import patch

from flask_jwt_extended import create_access_token
from pymongo import ASCENDING
from pymongo.errors import DuplicateKeyError


def _get_path(document, path):
    value = document
    for part in path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def _set_path(document, path, value):
    *parents, last = path.split(".")
    for part in parents:
        document = document.setdefault(part, {})
    document[last] = value


def _matches(document, query):
    for key, condition in (query or {}).items():
        value = _get_path(document, key)
        if isinstance(condition, dict) and any(op.startswith("$") for op in condition):
            if "$in" in condition and value not in condition["$in"]:
                return False
            if "$ne" in condition and value == condition["$ne"]:
                return False
        elif value != condition:
            return False
    return True


def _sort_key(field):
    def key(document):
        value = _get_path(document, field)
        return (value is None, value)
    return key


class InMemoryCursor:
    def __init__(self, documents):
        self._documents = documents

    def sort(self, key_or_list, direction=ASCENDING):
        keys = [(key_or_list, direction)] if isinstance(key_or_list, str) else list(key_or_list)
        for field, field_direction in reversed(keys):
            self._documents.sort(key=_sort_key(field), reverse=field_direction != ASCENDING)
        return self

    def skip(self, amount):
        self._documents = self._documents[amount:]
        return self

    def limit(self, amount):
        if amount:
            self._documents = self._documents[:amount]
        return self

    def __iter__(self):
        return iter(self._documents)


class InMemoryCollection:
    def __init__(self, name, unique_fields=()):
        self.name = name
        self.documents = {}
        self.unique_fields = unique_fields

    def _check_unique(self, document):
        for field in self.unique_fields:
            for other in self.documents.values():
                if other["_id"] != document["_id"] and other.get(field) == document.get(field):
                    raise DuplicateKeyError(f"E11000 duplicate key error index: {field}")

    def find(self, query=None, *args, **kwargs):
        return InMemoryCursor([copy.deepcopy(doc) for doc in self.documents.values() if _matches(doc, query)])

    def find_one(self, query=None, sort=None, **kwargs):
        cursor = self.find(query)
        if sort:
            cursor.sort(sort)
        return next(iter(cursor), None)

    def insert_one(self, document):
        if document["_id"] in self.documents:
            raise DuplicateKeyError(f"E11000 duplicate key error _id: {document['_id']}")
        self._check_unique(document)
        self.documents[document["_id"]] = copy.deepcopy(document)
        return SimpleNamespace(inserted_id=document["_id"])

    def insert_many(self, documents):
        return SimpleNamespace(inserted_ids=[self.insert_one(doc).inserted_id for doc in documents])

    def replace_one(self, query, document, upsert=False):
        current = self.find_one(query)
        if current is None and not upsert:
            return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=None)
        _id = current["_id"] if current else query.get("_id")
        stored = {**copy.deepcopy(document), "_id": _id}
        self._check_unique(stored)
        self.documents[_id] = stored
        return SimpleNamespace(
            matched_count=1 if current else 0,
            modified_count=1 if current else 0,
            upserted_id=None if current else _id
        )

    def update_one(self, query, update, upsert=False):
        current = self.find_one(query)
        if current is None:
            if not upsert:
                return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=None)
            current = {key: value for key, value in query.items() if not isinstance(value, dict)}
            for path, value in update.get("$setOnInsert", {}).items():
                _set_path(current, path, copy.deepcopy(value))
        for path, value in update.get("$set", {}).items():
            _set_path(current, path, copy.deepcopy(value))
        self.documents[current["_id"]] = current
        return SimpleNamespace(matched_count=1, modified_count=1, upserted_id=None)

    def delete_one(self, query):
        current = self.find_one(query)
        if current is None:
            return SimpleNamespace(deleted_count=0)
        del self.documents[current["_id"]]
        return SimpleNamespace(deleted_count=1)

    def delete_many(self, query):
        ids = [doc["_id"] for doc in self.documents.values() if _matches(doc, query)]
        for _id in ids:
            del self.documents[_id]
        return SimpleNamespace(deleted_count=len(ids))

    def count_documents(self, query):
        return sum(1 for doc in self.documents.values() if _matches(doc, query))

    def index_information(self):
        return {"_id_": {"key": [("_id", 1)]}}


class InMemoryDB:
    """Colecciones en memoria creadas al primer acceso."""
    UNIQUE_FIELDS = {
        "profiles": ("email",),
        "institutions": ("cod_local", "cod_modular"),
    }

    def __init__(self):
        self.collections = {}

    def __getitem__(self, name):
        if name not in self.collections:
            self.collections[name] = InMemoryCollection(name, self.UNIQUE_FIELDS.get(name, ()))
        return self.collections[name]


def patch_db(db):
    """Sustituye get_db en los servicios y en el decorador de autenticación."""
    stack = ExitStack()
    stack.enter_context(patch('monitoreo.shared.standardization.get_db', return_value=db))
    stack.enter_context(patch('monitoreo.shared.decorators.get_db', return_value=db))
    return stack


def auth_headers(profile_id, role="user", email="usuario@ugel.gob.pe"):
    """Cabecera Authorization para el perfil indicado (requiere contexto de app)."""
    token = create_access_token(identity=profile_id, additional_claims={"role": role, "email": email})
    return {"Authorization": f"Bearer {token}"}


ADMIN = {"id": "admin-1", "role": "admin", "email": "admin@ugel.gob.pe", "is_admin": True}
SPECIALIST = {"id": "user-1", "role": "user", "email": "especialista@ugel.gob.pe", "is_admin": False}
OTHER_SPECIALIST = {"id": "user-2", "role": "user", "email": "otro@ugel.gob.pe", "is_admin": False}


def seed_profiles(db):
    """Perfiles activos para ADMIN, SPECIALIST y OTHER_SPECIALIST."""
    for user, name in ((ADMIN, "Ana Admin"), (SPECIALIST, "Sara Especialista"), (OTHER_SPECIALIST, "Otto Otro")):
        first_name, last_name = name.split(" ")
        db["profiles"].insert_one({
            "_id": user["id"],
            "email": user["email"],
            "first_name": first_name,
            "last_name": last_name,
            "full_name": name,
            "role": user["role"],
            "status": "active",
        })
