"""In-memory stand-in for the Supabase table builder chain used in tests."""

import itertools
import re
import uuid
from datetime import datetime, timedelta, timezone

from postgrest.exceptions import APIError

_EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)
_SEQ = itertools.count(1)


def _stamp():
    return (_EPOCH + timedelta(seconds=next(_SEQ))).isoformat()


class FakeResponse:
    def __init__(self, data, count=None):
        self.data = data
        self.count = count


class FakeQuery:
    def __init__(self, client, name):
        self._client = client
        self.name = name
        self._rows = client.db.setdefault(name, [])
        self._mode = "select"
        self._payload = None
        self._filters = []
        self._orders = []
        self._limit = None

    # builders
    def select(self, *args, **kwargs):
        self._mode = "select"
        return self

    def insert(self, data):
        self._mode = "insert"
        self._payload = data
        return self

    def update(self, data):
        self._mode = "update"
        self._payload = dict(data)
        return self

    def delete(self):
        self._mode = "delete"
        return self

    def eq(self, column, value):
        self._filters.append(lambda r: r.get(column) == value)
        return self

    def neq(self, column, value):
        self._filters.append(lambda r: r.get(column) != value)
        return self

    def in_(self, column, values):
        allowed = list(values)
        self._filters.append(lambda r: r.get(column) in allowed)
        return self

    def gte(self, column, value):
        self._filters.append(lambda r: r.get(column) is not None and r.get(column) >= value)
        return self

    def lte(self, column, value):
        self._filters.append(lambda r: r.get(column) is not None and r.get(column) <= value)
        return self

    def ilike(self, column, pattern):
        regex = re.compile(
            "".join(".*" if ch == "%" else re.escape(ch) for ch in pattern), re.IGNORECASE
        )
        self._filters.append(lambda r: regex.fullmatch(str(r.get(column) or "")) is not None)
        return self

    def order(self, column, desc=False):
        self._orders.append((column, bool(desc)))
        return self

    def limit(self, n):
        self._limit = n
        return self

    # execution
    def _matching(self):
        return [r for r in self._rows if all(f(r) for f in self._filters)]

    def execute(self):
        self._client.calls.append((self.name, self._mode))
        error = self._client.failures.get((self.name, self._mode))
        if error is not None:
            raise error

        if self._mode == "insert":
            items = self._payload if isinstance(self._payload, list) else [self._payload]
            created = []
            for item in items:
                row = dict(item)
                row.setdefault("id", str(uuid.uuid4()))
                row.setdefault("created_at", _stamp())
                self._rows.append(row)
                created.append(dict(row))
            return FakeResponse(created)

        if self._mode == "update":
            changed = []
            for row in self._matching():
                row.update(self._payload)
                changed.append(dict(row))
            return FakeResponse(changed)

        if self._mode == "delete":
            removed = self._matching()
            self._rows[:] = [r for r in self._rows if not any(r is x for x in removed)]
            return FakeResponse([dict(r) for r in removed])

        data = [dict(r) for r in self._matching()]
        for column, desc in reversed(self._orders):
            present = [r for r in data if r.get(column) is not None]
            missing = [r for r in data if r.get(column) is None]
            present.sort(key=lambda r: r[column], reverse=desc)
            data = present + missing
        if self._limit is not None:
            data = data[: self._limit]
        return FakeResponse(data, count=len(data))


class FakeClient:
    def __init__(self, db=None):
        self.db = db if db is not None else {}
        self.calls = []
        self.failures = {}

    def table(self, name):
        return FakeQuery(self, name)

    def seed(self, name, rows):
        table = self.db.setdefault(name, [])
        for row in rows:
            item = dict(row)
            item.setdefault("id", str(uuid.uuid4()))
            item.setdefault("created_at", _stamp())
            table.append(item)
        return [dict(r) for r in table[-len(rows):]] if rows else []

    def fail(self, name, mode, message="boom"):
        self.failures[(name, mode)] = APIError(
            {"message": message, "code": "500", "hint": "", "details": ""}
        )

    def rows(self, name):
        return self.db.get(name, [])
