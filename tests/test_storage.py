"""
Unit tests for the storage module.

Tests the SyncDatabase class and the resource registries using
in-memory SQLite databases.
"""

from datetime import datetime, timedelta

import pytest

from session_signup.storage.db import RUN_FAILED, RUN_SUCCESS, SyncDatabase
from session_signup.storage.registry import (
    CALENDAR_ID_KEY,
    FORM_ID_KEY,
    ConfigMissing,
    DatabaseRegistry,
    InMemoryRegistry,
    require,
)


@pytest.fixture
def db():
    """Create an initialized in-memory database."""
    database = SyncDatabase(":memory:")
    database.initialize()
    return database


class TestInitialization:
    """Tests for schema creation."""

    def test_tables_created(self, db):
        with db.connection() as conn:
            names = {
                row["name"]
                for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
            }
        assert {"properties", "processed_responses", "sync_runs"} <= names

    def test_initialize_is_idempotent(self, db):
        db.set_property("k", "v")
        db.initialize()
        assert db.get_property("k") == "v"

    def test_file_database_persists(self, tmp_path):
        path = str(tmp_path / "state.db")
        first = SyncDatabase(path)
        first.initialize()
        first.set_property(CALENDAR_ID_KEY, "cal1")

        second = SyncDatabase(path)
        second.initialize()
        assert second.get_property(CALENDAR_ID_KEY) == "cal1"

    def test_failed_transaction_rolls_back(self, db):
        with pytest.raises(RuntimeError):
            with db.connection() as conn:
                conn.execute(
                    "INSERT INTO properties (key, value) VALUES ('a', '1')"
                )
                raise RuntimeError("boom")

        assert db.get_property("a") is None


class TestProperties:
    """Tests for property operations."""

    def test_set_get_overwrite(self, db):
        db.set_property(FORM_ID_KEY, "f1")
        db.set_property(FORM_ID_KEY, "f2")

        assert db.get_property(FORM_ID_KEY) == "f2"
        assert db.get_all_properties() == {FORM_ID_KEY: "f2"}

    def test_delete(self, db):
        db.set_property("k", "v")

        assert db.delete_property("k") is True
        assert db.delete_property("k") is False
        assert db.get_property("k") is None

    def test_clear(self, db):
        db.set_property("a", "1")
        db.set_property("b", "2")

        assert db.clear_properties() == 2
        assert db.get_all_properties() == {}


class TestProcessedResponses:
    """Tests for processed response tracking."""

    def test_mark_and_check(self, db):
        assert db.is_response_processed("f1", "r1") is False

        db.mark_response_processed("f1", "r1", "ada@example.com", 2)

        assert db.is_response_processed("f1", "r1") is True
        assert db.is_response_processed("f2", "r1") is False

    def test_marking_twice_is_ignored(self, db):
        db.mark_response_processed("f1", "r1")
        db.mark_response_processed("f1", "r1")

        assert db.get_processed_count() == 1

    def test_count_and_clear_per_form(self, db):
        db.mark_response_processed("f1", "r1")
        db.mark_response_processed("f1", "r2")
        db.mark_response_processed("f2", "r1")

        assert db.get_processed_count("f1") == 2
        assert db.clear_processed_responses("f1") == 2
        assert db.get_processed_count() == 1
        assert db.clear_processed_responses() == 1


class TestRunHistory:
    """Tests for run recording."""

    def test_last_run_is_most_recent(self, db):
        start = datetime(2026, 10, 18, 9, 0)
        db.record_run("Conference Setup", start, RUN_SUCCESS, created=3)
        db.record_run(
            "Conference Setup",
            start + timedelta(hours=1),
            RUN_FAILED,
            updated=1,
            error="Calendar unavailable",
        )

        run = db.get_last_run("Conference Setup")

        assert run["status"] == RUN_FAILED
        assert run["updated"] == 1
        assert run["error"] == "Calendar unavailable"
        assert run["finished_at"] is not None

    def test_never_run(self, db):
        assert db.get_last_run("Conference Setup") is None

    def test_vacuum_keeps_state(self, db):
        db.set_property("k", "v")
        db.record_run("S", datetime(2026, 1, 1), RUN_SUCCESS)

        db.vacuum()

        assert db.get_all_properties() == {"k": "v"}
        assert db.get_last_run("S") is not None


class TestRegistries:
    """Tests shared by both registry implementations."""

    @pytest.fixture(params=["database", "memory"])
    def registry(self, request, db):
        if request.param == "database":
            return DatabaseRegistry(db)
        return InMemoryRegistry()

    def test_set_get_delete(self, registry):
        assert registry.get(CALENDAR_ID_KEY) is None

        registry.set(CALENDAR_ID_KEY, "cal1")
        assert registry.get(CALENDAR_ID_KEY) == "cal1"

        assert registry.delete(CALENDAR_ID_KEY) is True
        assert registry.delete(CALENDAR_ID_KEY) is False

    def test_clear(self, registry):
        registry.set(CALENDAR_ID_KEY, "cal1")
        registry.set(FORM_ID_KEY, "f1")

        registry.clear()

        assert registry.items() == {}

    def test_require(self, registry):
        registry.set(FORM_ID_KEY, "f1")

        assert require(registry, FORM_ID_KEY) == "f1"
        with pytest.raises(ConfigMissing, match="No calendar"):
            require(registry, CALENDAR_ID_KEY, "No calendar has been set up yet.")

    def test_in_memory_initial_values_are_copied(self):
        initial = {FORM_ID_KEY: "f1"}
        registry = InMemoryRegistry(initial)

        registry.delete(FORM_ID_KEY)

        assert initial == {FORM_ID_KEY: "f1"}
