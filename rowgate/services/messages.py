from __future__ import annotations

from collections.abc import Mapping

"""Message catalogue for human readable table errors.

Tables only ever see the returned text; callers may swap the catalogue (config
`messages:` section) to localize it.
"""

__all__ = [
    "DEFAULT_MESSAGES",
    "Text",
]

DEFAULT_MESSAGES: dict[str, str] = {
    "APP_ERROR_TABLE_EMPTY_ROW": "No row matches the requested key.",
    "APP_ERROR_TABLE_NO_PUBLISHED_FIELD": "This table has no published or state field.",
    "APP_ERROR_TABLE_NO_PRIMARY_KEY": "No primary key value was given.",
    "APP_ERROR_TABLE_ALIAS_EXHAUSTED": "Could not find a free alias for '%s'.",
    "APP_ERROR_NOT_UNIQUE_USERNAME": "The username '%s' is already in use.",
}


class Text:
    def __init__(self, overrides: Mapping[str, str] | None = None) -> None:
        self._messages = dict(DEFAULT_MESSAGES)
        if overrides:
            self._messages.update(overrides)

    def translate(self, key: str) -> str:
        # 未登録キーはキー文字列そのまま返す
        return self._messages.get(key, key)

    def sprintf(self, key: str, *args: object) -> str:
        template = self.translate(key)
        try:
            return template % args
        except (TypeError, ValueError):
            return template
