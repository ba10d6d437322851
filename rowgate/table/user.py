from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

from rowgate.db.driver import DatabaseDriver
from rowgate.models.config_models import DEFAULT_USERNAME_MAX_LENGTH
from rowgate.models.schema import Field, Schema, is_composite
from rowgate.services.messages import Text
from rowgate.services.passwords import PasswordHasher

from .table import Table, TableError, as_mapping, is_empty

"""User account rows (#__users) with key/value profile rows (#__user_profiles).

- bind: 平文パスワードはハッシュ化 (既にハッシュ済みの値はそのまま)
- check: 新規ユーザーはランダムパスワード + registerDate、username は最大長で切り詰め
- store: username の一意性確認、profile は別テーブルへ分離保存
- load: profile 行を dict として profile フィールドへ
"""

__all__ = [
    "InvalidDateError",
    "UserTable",
]


class InvalidDateError(TableError, ValueError):
    pass


class UserTable(Table):
    schema = Schema(
        table="#__users",
        fields=(
            Field("id", primary_key=True),
            Field("company_id"),
            Field("name"),
            Field("username"),
            Field("email"),
            Field("password"),
            Field("block"),
            Field("sendEmail"),
            Field("registerDate"),
            Field("lastvisitDate"),
            Field("activation"),
            Field("params", serialized=True),
            Field("lastResetTime"),
            Field("resetCount"),
            Field("otpKey"),
            Field("otep"),
            Field("requireReset"),
            Field("profile"),
        ),
    )

    PROFILE_TABLE = "#__user_profiles"
    PROFILE_COLUMNS = ("user_id", "profile_key", "profile_value")

    def __init__(
        self,
        db: DatabaseDriver,
        *,
        text: Text | None = None,
        hasher: PasswordHasher | None = None,
        username_max_length: int = DEFAULT_USERNAME_MAX_LENGTH,
    ) -> None:
        super().__init__(db, text=text)
        self.hasher = hasher or PasswordHasher()
        self.username_max_length = username_max_length

    def spawn(self) -> UserTable:
        return UserTable(
            self.db,
            text=self.text,
            hasher=self.hasher,
            username_max_length=self.username_max_length,
        )

    def bind(self, source: Any, update_nulls: bool = True, ignore: Any = ()) -> UserTable:
        data = dict(as_mapping(source))
        password = data.get("password")
        if password and isinstance(password, str) and not self.hasher.is_hashed(password):
            data["password"] = self.hasher.hash(password)
        super().bind(data, update_nulls, ignore)
        return self

    def load(self, pk: Any = None) -> bool:
        result = super().load(pk)
        if result:
            query = (
                self.db.get_query()
                .select("profile_key", "profile_value")
                .from_(self.PROFILE_TABLE)
                .where_op("user_id", "=", int(self.get_property("id")))
            )
            rows = self.db.load_assoc_list(query)
            # 前回ロード分とマージせず置き換える
            self.set_property("profile", {r["profile_key"]: r["profile_value"] for r in rows})
        return result

    def check(self) -> bool:
        now = self.db.now()

        if is_empty(self.get_property("id")):
            if is_empty(self.get_property("password")):
                self.set_property("password", self.hasher.hash(self.hasher.random_password()))
            self.set_property("registerDate", now)

        username = self.get_property("username")
        # 上限は文字数 (UTF-8 バイト数ではない)
        if username is not None and len(str(username)) > self.username_max_length:
            self.set_property("username", str(username)[: self.username_max_length])

        return True

    def store(self, update_nulls: bool = False) -> bool:
        username = self.get_property("username")
        own_id = self.get_property("id")
        probe = self.spawn()
        if probe.load({"username": username}) and (
            is_empty(own_id) or str(probe.get_property("id")) != str(own_id)
        ):
            self.add_error(self.text.sprintf("APP_ERROR_NOT_UNIQUE_USERNAME", username))
            return False

        properties = self.dump()
        profile = properties.pop("profile")
        table = self.get_table()

        if self.has_primary_key():
            result = self.db.update_object(table, properties, "id", update_nulls)
            if profile is not None:
                self.db.execute(
                    self.db.get_query()
                    .delete(self.PROFILE_TABLE)
                    .where_op("user_id", "=", int(own_id))
                )
        else:
            properties["id"] = None
            self.set_property("id", self.db.insert_object(table, properties, "id"))
            result = True

        if profile is not None:
            user_id = self.get_property("id")
            rows = [
                (user_id, k, json.dumps(v) if is_composite(v) else v)
                for k, v in as_mapping(profile).items()
            ]
            self.db.insert_rows(self.PROFILE_TABLE, self.PROFILE_COLUMNS, rows)

        return result

    def block(self, pks: Any = None, state: int = 1) -> bool:
        """Set the access block flag for pks (default: this user)."""
        return self._set_state("block", pks, state)

    def set_last_visit(self, date: Any = None, pk: Any = None) -> bool:
        """Stamp lastvisitDate for pk (default: this user).

        date: None (now), UNIX timestamp (int / float / numeric str),
        ISO 8601 string or datetime. Anything else raises InvalidDateError.
        """
        if pk is None:
            pk = self.get_property("id")
        if is_empty(pk):
            return False

        moment = _coerce_date(date)
        if moment.tzinfo is not None:
            moment = moment.astimezone(UTC)

        self.db.execute(
            self.db.get_query()
            .update(self.get_table())
            .set("lastvisitDate", moment.strftime(self.db.date_format))
            .where_op("id", "=", pk)
        )
        return True


def _from_timestamp(value: float) -> datetime:
    try:
        return datetime.fromtimestamp(value, UTC)
    except (OverflowError, OSError, ValueError) as e:
        raise InvalidDateError(f"Bad date parameter: {value!r}") from e


def _coerce_date(date: Any) -> datetime:
    if date is None:
        return datetime.now(UTC)
    if isinstance(date, datetime):
        return date
    if isinstance(date, (int, float)) and not isinstance(date, bool):
        return _from_timestamp(date)
    if isinstance(date, str):
        try:
            timestamp = float(date)
        except ValueError:
            timestamp = None
        if timestamp is not None:
            return _from_timestamp(timestamp)
        try:
            return datetime.fromisoformat(date)
        except ValueError as e:
            raise InvalidDateError(f"Bad date parameter: {date!r}") from e
    raise InvalidDateError("Bad date parameter.")
