"""
Pytest configuration and shared fixtures.
"""

import re
import threading
import time

import pytest
from gspread.exceptions import WorksheetNotFound

from timetrack.config import CLIENTS_TAB, EVENTS_TAB
from timetrack.repositories.local_cache import LocalCache
from timetrack.services.tracker_store import TrackerStore


class FakeRemoteStore:
    """In-memory stand-in for the hosted table service."""

    def __init__(self):
        self.tables = {CLIENTS_TAB: {}, EVENTS_TAB: {}}
        self.calls = []
        self._failures = {}
        self._gates = {}
        self._delays = {}

    def fail(self, op: str, table: str, exc: Exception) -> None:
        self._failures[(op, table)] = exc

    def slow(self, op: str, table: str, seconds: float) -> None:
        """Delay the next `op` on `table` by `seconds`."""
        self._delays[(op, table)] = seconds

    def gate(self, table: str) -> threading.Event:
        """Hold select() on `table` until the returned event is set."""
        gate = threading.Event()
        self._gates[table] = gate
        return gate

    def _check(self, op, table):
        delay = self._delays.pop((op, table), None)
        if delay:
            time.sleep(delay)
        self.calls.append((op, table))
        exc = self._failures.get((op, table))
        if exc is not None:
            raise exc

    def select(self, table, order_by=None, ascending=True):
        gate = self._gates.get(table)
        if gate is not None:
            gate.wait(timeout=5)
        self._check("select", table)
        rows = [dict(r) for r in self.tables[table].values()]
        if order_by:
            rows.sort(key=lambda r: str(r.get(order_by, "")), reverse=not ascending)
        return rows

    def upsert(self, table, row):
        self._check("upsert", table)
        self.tables[table][row["id"]] = dict(row)

    def delete(self, table, row_id):
        self._check("delete", table)
        self.tables[table].pop(row_id, None)


class Notices(list):
    """Collecting notifier: notices(level, title, message)."""

    def __call__(self, level, title, message):
        self.append((level, title, message))

    def levels(self):
        return [n[0] for n in self]

    def titles(self):
        return [n[1] for n in self]


class FakeWorksheet:
    def __init__(self, title, rows=None):
        self.title = title
        self.rows = [list(r) for r in (rows or [])]

    def get_all_values(self):
        return [list(r) for r in self.rows]

    def get_all_records(self):
        if not self.rows:
            return []
        headers = self.rows[0]
        return [dict(zip(headers, r)) for r in self.rows[1:]]

    def col_values(self, col):
        return [str(r[col - 1]) if len(r) >= col else "" for r in self.rows]

    def update(self, range_name=None, values=None, **kwargs):
        start = int(re.match(r"A(\d+)", range_name).group(1)) - 1
        for offset, row in enumerate(values):
            i = start + offset
            while len(self.rows) <= i:
                self.rows.append([])
            self.rows[i] = list(row)

    def append_row(self, values, value_input_option=None):
        self.rows.append(list(values))

    def delete_rows(self, index):
        del self.rows[index - 1]


class FakeSpreadsheet:
    id = "sheet-1"

    def __init__(self):
        self.sheets = {}

    def worksheet(self, title):
        try:
            return self.sheets[title]
        except KeyError:
            raise WorksheetNotFound(title) from None

    def add_worksheet(self, title, rows, cols):
        ws = FakeWorksheet(title)
        self.sheets[title] = ws
        return ws


@pytest.fixture
def remote():
    return FakeRemoteStore()


@pytest.fixture
def notices():
    return Notices()


@pytest.fixture
def local_cache(tmp_path):
    return LocalCache(tmp_path / "local_cache.json")


@pytest.fixture
def store(local_cache, remote, notices):
    s = TrackerStore(local_cache=local_cache, remote=remote, notify=notices)
    yield s
    s.close()


@pytest.fixture
def spreadsheet():
    return FakeSpreadsheet()
