"""
Pytest fixtures for the freezer log API.

Provides:
- A fresh workbook store per test (tmp_path)
- Test client with the store dependency overridden
- JSONP helpers
"""

import json

import pytest
from fastapi.testclient import TestClient

from freezer_server.app.api import app
from freezer_server.app.db import WorkbookStore, get_store
from freezer_server.app.models import FREEZERS_SHEET, SHEET_HEADERS, STATUS_READY, USERS_SHEET


SAMPLE_FREEZERS = [
    {"ID": "F01", "Name": "ตู้ 1", "Details": "Blast freezer", "Status": STATUS_READY,
     "RefreezeCount": 0, "TotalFreezeTime": 0, "STD.time (hours)": "08:00"},
    {"ID": "F02", "Name": "ตู้ 2", "Details": "Plate freezer", "Status": STATUS_READY,
     "RefreezeCount": 0, "TotalFreezeTime": 0, "STD.time (hours)": "48:30"},
]


@pytest.fixture
def empty_store(tmp_path):
    """Workbook with every sheet and header row, but no data."""
    store = WorkbookStore(tmp_path / "test.xlsx")
    store.ensure_tables(SHEET_HEADERS)
    return store


@pytest.fixture
def store(empty_store):
    """Workbook seeded with two freezers and one user."""
    for f in SAMPLE_FREEZERS:
        empty_store.append_row(FREEZERS_SHEET, f)
    empty_store.append_row(USERS_SHEET, {"Email": "somchai@example.com", "StaffCode": "S001",
                                         "Name": "สมชาย", "Role": "admin"})
    return empty_store


@pytest.fixture
def client(store):
    """Test client bound to the seeded store."""
    app.dependency_overrides[get_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def client_for():
    """Build a test client for an arbitrary store."""
    def _make(s):
        app.dependency_overrides[get_store] = lambda: s
        return TestClient(app)
    yield _make
    app.dependency_overrides.clear()


# ============================================================
# Helper Functions
# ============================================================

def unwrap_jsonp(text, callback="cb"):
    """Strip ``cb(...)`` and decode the JSON inside."""
    assert text.startswith(f"{callback}(") and text.endswith(")"), text
    return json.loads(text[len(callback) + 1:-1])


def call(client, command, callback="cb", **params):
    """Run one command through the GET endpoint and return the decoded payload."""
    response = client.get("/api", params={"command": command, "callback": callback, **params})
    assert response.status_code == 200
    return unwrap_jsonp(response.text, callback)
