from __future__ import annotations

import json

import pytest

from rowgate.db.driver import DatabaseDriver
from rowgate.services.passwords import PasswordHasher
from rowgate.table import InvalidDateError, UserTable


@pytest.fixture()
def hasher() -> PasswordHasher:
    return PasswordHasher(iterations=1000)


@pytest.fixture()
def alice(sqlite_db: DatabaseDriver, hasher: PasswordHasher) -> UserTable:
    user = UserTable(sqlite_db, hasher=hasher)
    ok = user.save(
        {
            "name": "Alice",
            "username": "alice",
            "email": "alice@example.com",
            "password": "s3cret",
            "profile": {"city": "Oslo", "prefs": {"lang": "nb"}},
        }
    )
    assert ok, user.get_errors()
    return user


def _profile_rows(db: DatabaseDriver, user_id: int) -> list[tuple[str, str]]:
    return db.connection.execute(
        "SELECT profile_key, profile_value FROM app_user_profiles WHERE user_id = ? ORDER BY profile_key",
        (user_id,),
    ).fetchall()


def test_new_user_is_hashed_and_registered(alice: UserTable, hasher: PasswordHasher):
    assert alice.get_property("id") == 1
    password = alice.get_property("password")
    assert password != "s3cret"
    assert hasher.verify("s3cret", password)
    assert alice.get_property("registerDate")


def test_profile_rows_are_stored_separately(sqlite_db: DatabaseDriver, alice: UserTable):
    rows = _profile_rows(sqlite_db, 1)
    assert rows == [("city", "Oslo"), ("prefs", json.dumps({"lang": "nb"}))]


def test_load_replaces_profile_with_stored_rows(sqlite_db: DatabaseDriver, alice: UserTable, hasher):
    user = UserTable(sqlite_db, hasher=hasher)
    user.set_property("profile", {"stale": "x"})
    assert user.load(1)
    assert user.get_property("profile") == {"city": "Oslo", "prefs": '{"lang": "nb"}'}
    assert user.get_property("username") == "alice"


def test_duplicate_username_is_rejected(sqlite_db: DatabaseDriver, alice: UserTable, hasher):
    bob = UserTable(sqlite_db, hasher=hasher)
    assert bob.save({"name": "Bob", "username": "alice"}) is False
    assert bob.get_errors() == ["The username 'alice' is already in use."]
    count = sqlite_db.connection.execute("SELECT COUNT(*) FROM app_users").fetchone()[0]
    assert count == 1


def test_resave_with_same_username_and_new_profile(sqlite_db: DatabaseDriver, alice: UserTable, hasher):
    user = UserTable(sqlite_db, hasher=hasher)
    assert user.load(1)
    stored_hash = user.get_property("password")
    user.set_property("profile", {"city": "Bergen"})
    assert user.save({"email": "a@example.org"})
    assert user.get_property("password") == stored_hash
    assert _profile_rows(sqlite_db, 1) == [("city", "Bergen")]


def test_update_without_profile_keeps_profile_rows(sqlite_db: DatabaseDriver, alice: UserTable, hasher):
    user = UserTable(sqlite_db, hasher=hasher)
    user.bind({"id": 1, "username": "alice", "name": "Alice A."})
    assert user.save()
    assert len(_profile_rows(sqlite_db, 1)) == 2


def test_missing_password_gets_random_hash(sqlite_db: DatabaseDriver, hasher):
    user = UserTable(sqlite_db, hasher=hasher)
    assert user.save({"username": "nopass"})
    assert hasher.is_hashed(user.get_property("password"))


def test_username_is_truncated(sqlite_db: DatabaseDriver, hasher):
    user = UserTable(sqlite_db, hasher=hasher, username_max_length=5)
    assert user.save({"username": "abcdefgh"})
    assert user.get_property("username") == "abcde"


def test_block_toggle(sqlite_db: DatabaseDriver, alice: UserTable):
    assert alice.block()
    assert alice.get_property("block") == 1
    assert alice.block([1], 0)
    row = sqlite_db.connection.execute("SELECT block FROM app_users WHERE id = 1").fetchone()
    assert row == (0,)


@pytest.mark.parametrize(
    "date,expected",
    [
        (86400, "1970-01-02 00:00:00"),
        ("86400", "1970-01-02 00:00:00"),
        ("2024-01-02T03:04:05+02:00", "2024-01-02 01:04:05"),
        ("2024-01-02 03:04:05", "2024-01-02 03:04:05"),
    ],
)
def test_set_last_visit(sqlite_db: DatabaseDriver, alice: UserTable, date, expected):
    assert alice.set_last_visit(date)
    row = sqlite_db.connection.execute("SELECT lastvisitDate FROM app_users WHERE id = 1").fetchone()
    assert row == (expected,)


def test_set_last_visit_rejects_bad_dates(alice: UserTable):
    with pytest.raises(InvalidDateError):
        alice.set_last_visit("next tuesday")
    with pytest.raises(InvalidDateError):
        alice.set_last_visit(object())


def test_set_last_visit_without_key(sqlite_db: DatabaseDriver):
    assert UserTable(sqlite_db).set_last_visit() is False


def test_failed_save_reports_only_its_own_stage(sqlite_db: DatabaseDriver, alice: UserTable, hasher):
    bob = UserTable(sqlite_db, hasher=hasher)
    assert bob.load(99) is False
    assert bob.get_errors() == ["No row matches the requested key."]
    assert bob.save({"username": "alice"}) is False
    assert bob.get_errors() == ["The username 'alice' is already in use."]
    assert bob.get_error() == "The username 'alice' is already in use."


def test_username_limit_counts_characters(sqlite_db: DatabaseDriver, hasher):
    user = UserTable(sqlite_db, hasher=hasher, username_max_length=4)
    assert user.save({"username": "ÅsaÖberg"})
    assert user.get_property("username") == "ÅsaÖ"


@pytest.mark.parametrize("date", [float("inf"), 10**20, "1e20", "nan"])
def test_set_last_visit_rejects_out_of_range_timestamps(alice: UserTable, date):
    with pytest.raises(InvalidDateError):
        alice.set_last_visit(date)
