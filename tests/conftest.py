"""
Shared fixtures: an in-memory stand-in for the Supabase client and helpers
to build services on top of it.
"""

import os
import sys
from datetime import date
from unittest.mock import MagicMock

import pytest

# Add the project root to the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Set test environment before the app module reads it
os.environ["ENVIRONMENT"] = "test"
os.environ.pop("SUPABASE_URL", None)
os.environ.pop("NEXT_PUBLIC_SUPABASE_URL", None)

from notice_tracker.config import Settings
from notice_tracker.services import build_services

TODAY = date(2024, 6, 10)


class FakeQuery:
    """Chainable query over one in-memory table."""

    def __init__(self, db, table_name):
        self.db = db
        self.table_name = table_name
        self.filters = []
        self.limit_count = None
        self.action = "select"
        self.payload = None

    def select(self, *args, **kwargs):
        self.action = "select"
        return self

    def insert(self, data):
        self.action = "insert"
        self.payload = data
        return self

    def update(self, data):
        self.action = "update"
        self.payload = data
        return self

    def delete(self):
        self.action = "delete"
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def limit(self, count):
        self.limit_count = count
        return self

    def _matches(self, row):
        return all(row.get(column) == value for column, value in self.filters)

    def execute(self):
        if self.table_name in self.db.failing_tables:
            raise ConnectionError(f"{self.table_name} unavailable")

        rows = self.db.tables.setdefault(self.table_name, [])
        result = MagicMock()

        if self.action == "insert":
            rows.append(dict(self.payload))
            result.data = [dict(self.payload)]
        elif self.action == "update":
            matched = [row for row in rows if self._matches(row)]
            for row in matched:
                row.update(self.payload)
                self.db.updates.append((self.table_name, row["id"], dict(self.payload)))
            result.data = [dict(row) for row in matched]
        elif self.action == "delete":
            self.db.tables[self.table_name] = [row for row in rows if not self._matches(row)]
            result.data = []
        else:
            matched = [dict(row) for row in rows if self._matches(row)]
            if self.limit_count is not None:
                matched = matched[:self.limit_count]
            result.data = matched

        return result


class FakeSupabase:
    def __init__(self, tables=None):
        self.tables = {name: [dict(row) for row in rows] for name, rows in (tables or {}).items()}
        self.updates = []
        self.failing_tables = set()

    def table(self, name):
        return FakeQuery(self, name)


@pytest.fixture
def fake_supabase():
    return FakeSupabase({"clients": [], "notices": [], "calls": [], "poa_records": []})


@pytest.fixture
def settings():
    return Settings(supabase_url="https://test.supabase.co", supabase_key="test-key", environment="test")


@pytest.fixture
def services(fake_supabase, settings):
    return build_services(fake_supabase, settings, clock=lambda: TODAY)


def make_notice(**overrides):
    row = {
        "id": "n1",
        "client_id": "c1",
        "notice_number": "CP2000",
        "notice_issue": "Underreported income",
        "form_number": "1040",
        "tax_period": "202212",
        "date_received": "2024-06-01",
        "days_to_respond": 30,
        "status": "Open",
        "escalated": False,
        "days_remaining": None,
        "response_deadline": None,
        "poa_on_file": False,
    }
    row.update(overrides)
    return row


def make_call(**overrides):
    row = {
        "id": "r1",
        "notice_id": "n1",
        "client_id": "c1",
        "date": "2024-06-02T10:00:00",
        "response_method": "Phone",
        "duration_minutes": 20,
        "hourly_rate": None,
        "billable": True,
        "billing": "Unbilled",
        "outcome": None,
        "follow_up_date": None,
    }
    row.update(overrides)
    return row
