"""
Shared fixtures: an in-memory document store and a controllable clock.
"""
import copy
import os
import sys
import uuid
from datetime import datetime, timedelta, timezone

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from shared.errors import StoreError, DocumentNotFoundError  # noqa: E402
from shared.store import DocumentStore, EQ, NE, get_path  # noqa: E402

NOW = datetime(2025, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def _matches(document, filters):
    for field, op, expected in filters:
        actual = get_path(document, field)
        if op == EQ and actual != expected:
            return False
        if op == NE and actual == expected:
            return False
    return True


class MemoryDocumentStore(DocumentStore):
    """
    Dict-backed store. `fail_on` holds operation names (or
    `(operation, collection)` pairs) that raise StoreError; `calls` records
    every operation for assertions.
    """

    def __init__(self):
        self.collections = {}
        self.fail_on = set()
        self.calls = []

    def _check(self, operation, collection):
        self.calls.append((operation, collection))
        if operation in self.fail_on or (operation, collection) in self.fail_on:
            raise StoreError(f"{operation} on {collection} failed")

    def seed(self, collection, doc_id, **fields):
        self.collections.setdefault(collection, {})[doc_id] = {'id': doc_id, **fields}
        return self.collections[collection][doc_id]

    def doc(self, collection, doc_id):
        return self.collections.get(collection, {}).get(doc_id)

    def count(self, operation, collection=None):
        return len([c for c in self.calls if c[0] == operation and (collection is None or c[1] == collection)])

    def query(self, collection, filters=(), order_by=None, limit=None):
        self._check('query', collection)
        docs = [copy.deepcopy(d) for d in self.collections.get(collection, {}).values() if _matches(d, filters)]
        return docs[:limit] if limit else docs

    def get_by_id(self, collection, doc_id):
        self._check('get_by_id', collection)
        document = self.doc(collection, doc_id)
        if document is None:
            raise DocumentNotFoundError(f"{collection}/{doc_id} not found")
        return copy.deepcopy(document)

    def update_fields(self, collection, doc_id, fields):
        self._check('update_fields', collection)
        document = self.doc(collection, doc_id)
        if document is None:
            raise DocumentNotFoundError(f"{collection}/{doc_id} not found")
        document.update(copy.deepcopy(fields))

    def create_document(self, collection, fields):
        self._check('create_document', collection)
        doc_id = str(uuid.uuid4())
        self.seed(collection, doc_id, **copy.deepcopy(fields))
        return doc_id

    def delete_document(self, collection, doc_id):
        self._check('delete_document', collection)
        self.collections.get(collection, {}).pop(doc_id, None)

    def increment_field(self, collection, doc_id, field_path, delta=1):
        self._check('increment_field', collection)
        target = self.collections.setdefault(collection, {}).setdefault(doc_id, {'id': doc_id})
        *parents, leaf = field_path.split('.')
        for part in parents:
            target = target.setdefault(part, {})
        target[leaf] = target.get(leaf, 0) + delta


class Clock:
    """Callable clock that tests can move forward."""

    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


def iso_ago(**kwargs):
    return (NOW - timedelta(**kwargs)).isoformat()


@pytest.fixture
def store():
    return MemoryDocumentStore()


@pytest.fixture
def clock():
    return Clock()
