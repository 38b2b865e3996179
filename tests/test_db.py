"""Tests for the local settings DB and persisted role lookup."""

import pytest

from db import get_acting_role, get_setting, init_settings_db, state_conn
from models import Role


@pytest.fixture
def settings_path(tmp_path):
    path = str(tmp_path / "settings.db")
    init_settings_db(path)
    return path


def put(path, key, value):
    conn = state_conn(path)
    conn.execute(
        "INSERT OR REPLACE INTO app_settings (key, value, updated_ts) VALUES (?, ?, ?)",
        (key, value, "2026-01-01T00:00:00Z"),
    )
    conn.commit()
    conn.close()


class TestActingRole:

    def test_persisted_role(self, settings_path):
        put(settings_path, "user_role", "KITCHEN_STAFF")
        assert get_acting_role(settings_path) is Role.KITCHEN_STAFF

    def test_case_insensitive(self, settings_path):
        put(settings_path, "user_role", " admin ")
        assert get_acting_role(settings_path) is Role.ADMIN

    def test_unknown_role(self, settings_path):
        put(settings_path, "user_role", "DRIVER")
        assert get_acting_role(settings_path) is None

    def test_nothing_stored(self, settings_path):
        assert get_acting_role(settings_path) is None

    def test_table_missing(self, tmp_path):
        assert get_setting("user_role", str(tmp_path / "empty.db")) is None


class TestInit:

    def test_init_is_idempotent(self, settings_path):
        init_settings_db(settings_path)
        put(settings_path, "k", "v")
        init_settings_db(settings_path)
        assert get_setting("k", settings_path) == "v"
