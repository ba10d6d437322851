from __future__ import annotations

import logging
from typing import Any

from rowgate.db.driver import DatabaseDriver
from rowgate.models.config_models import DEFAULT_ALIAS_MAX_ATTEMPTS
from rowgate.models.schema import Field, Schema
from rowgate.services.alias import Transliterator, ascii_transliterate, increment_dash, string_url_safe
from rowgate.services.messages import Text

from .table import Table, is_empty

"""Hierarchical tag rows (#__tags).

check() で alias を正規化し一意化する:
- alias を string_url_safe で正規化、空なら title から生成 (それでも空なら現在時刻)
- 別インスタンス (spawn) で alias を load し、衝突する限り "-N" サフィックスを増加
- 試行回数は max_alias_attempts で打ち切り (エラー記録して False)

Nested set columns (lft / rgt / level / path) are carried as plain fields;
tree maintenance is not done here.
"""

logger = logging.getLogger(__name__)


class TagTable(Table):
    schema = Schema(
        table="#__tags",
        fields=(
            Field("id", primary_key=True),
            Field("parent_id"),
            Field("lft"),
            Field("rgt"),
            Field("level"),
            Field("title"),
            Field("path"),
            Field("alias"),
            Field("description"),
            Field("published"),
            Field("checked_out"),
            Field("checked_out_time"),
            Field("params", serialized=True),
            Field("created"),
            Field("created_by"),
            Field("modified"),
            Field("modified_by"),
        ),
    )

    MAP_TABLE = "#__tags_map"

    def __init__(
        self,
        db: DatabaseDriver,
        *,
        text: Text | None = None,
        transliterator: Transliterator = ascii_transliterate,
        max_alias_attempts: int = DEFAULT_ALIAS_MAX_ATTEMPTS,
    ) -> None:
        super().__init__(db, text=text)
        self.transliterator = transliterator
        self.max_alias_attempts = max_alias_attempts

    def spawn(self) -> TagTable:
        return TagTable(
            self.db,
            text=self.text,
            transliterator=self.transliterator,
            max_alias_attempts=self.max_alias_attempts,
        )

    def check(self) -> bool:
        alias = string_url_safe(self.get_property("alias"), self.transliterator)
        if not alias:
            alias = string_url_safe(self.get_property("title"), self.transliterator)
        if not alias:
            alias = string_url_safe(self.db.now(), self.transliterator)

        unique = self._unique_alias(alias)
        if unique is None:
            self.add_error(self.text.sprintf("APP_ERROR_TABLE_ALIAS_EXHAUSTED", alias))
            return False
        self.set_property("alias", unique)

        now = self.db.now()
        created = self.get_property("created")
        new_row = is_empty(self.get_property("id"))
        if new_row or is_empty(created) or created == self.db.null_date:
            self.set_property("created", now)
        if not new_row:
            self.set_property("modified", now)

        return super().check()

    def _unique_alias(self, alias: str) -> str | None:
        probe = self.spawn()
        own_id = self.get_property("id")
        for _ in range(self.max_alias_attempts):
            if not probe.load({"alias": alias}):
                return alias
            if not is_empty(own_id) and str(probe.get_property("id")) == str(own_id):
                return alias
            logger.debug(f"alias collision: {alias}")
            alias = increment_dash(alias)
        return None

    def delete(self, pk: Any = None) -> bool:
        """Delete the tag row and its tag map associations."""
        if pk is None:
            pk = self.get_property("id")
        if not super().delete(pk):
            return False

        self.db.execute(
            self.db.get_query().delete(self.MAP_TABLE).where_op("tag_id", "=", int(pk or 0))
        )
        return True
