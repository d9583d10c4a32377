"""Profile query repository: users enriched with their aggregated languages."""

import asyncpg
import structlog
from collections.abc import Callable
from typing import Any
from config.constants import SEARCHABLE_COLUMNS
from storage.models import (
    Criterion,
    Failure,
    FieldMatch,
    InvalidColumn,
    LanguageSet,
    UserWithLanguages,
)
from storage.repositories.language_repo import normalize_languages
from storage.repositories.user_repo import STORE_ERRORS

log = structlog.get_logger(__name__)

# Inner joins drop users without any language membership
_SELECT_USERS = """
    SELECT u.id, u.external_id, u.username, u.email, u.location, u.created_at,
           array_agg(DISTINCT l.name ORDER BY l.name) AS languages
    FROM users u
    JOIN user_languages ul ON ul.user_id = u.id
    JOIN languages l ON l.id = ul.language_id
"""

_GROUP_AND_ORDER = """
    GROUP BY u.id
    ORDER BY u.id
"""

# Allowed search columns mapped to fixed WHERE fragments and value coercers
_FIELD_FILTERS: dict[str, tuple[str, Callable[[Any], Any]]] = {
    "location": ("WHERE u.location = $1", str),
    "id": ("WHERE u.id = $1", int),
    "username": ("WHERE u.username = $1", str),
}

_LANGUAGE_FILTER = """
    WHERE u.id IN (
        SELECT ul2.user_id
        FROM user_languages ul2
        JOIN languages l2 ON l2.id = ul2.language_id
        WHERE l2.name = ANY($1::text[])
        GROUP BY ul2.user_id
        HAVING COUNT(DISTINCT l2.name) = $2
    )
"""


class ProfileRepository:
    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def query(self, criterion: Criterion = None) -> list[UserWithLanguages] | InvalidColumn | Failure:
        """Run a read-only search. Never raises for store errors."""
        if isinstance(criterion, FieldMatch):
            if criterion.column not in _FIELD_FILTERS:
                log.warning("invalid_search_column", column=criterion.column)
                return InvalidColumn(column=criterion.column, allowed=SEARCHABLE_COLUMNS)
            if criterion.value is None:
                return Failure(f"Missing value for {criterion.column}")
            where, coerce = _FIELD_FILTERS[criterion.column]
            try:
                value = coerce(criterion.value)
            except (TypeError, ValueError):
                return Failure(f"Invalid value for {criterion.column}: {criterion.value!r}")
            sql = _SELECT_USERS + where + _GROUP_AND_ORDER
            args: tuple[Any, ...] = (value,)
        elif isinstance(criterion, LanguageSet) and criterion.names:
            # Superset match: the user must be linked to every requested name
            names = normalize_languages(criterion.names)
            if not names:
                return await self.query(None)
            sql = _SELECT_USERS + _LANGUAGE_FILTER + _GROUP_AND_ORDER
            args = (names, len(names))
        else:
            sql = _SELECT_USERS + _GROUP_AND_ORDER
            args = ()

        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(sql, *args)
        except STORE_ERRORS as e:
            log.error("profile_query_failed", criterion=repr(criterion), error=str(e))
            return Failure(str(e))

        return [UserWithLanguages.from_row(r) for r in rows if r["languages"]]

    async def get_by_username(self, username: str) -> UserWithLanguages | None | Failure:
        """Single user lookup. None means no such user; store errors come back as Failure."""
        result = await self.query(FieldMatch("username", username))
        if isinstance(result, Failure):
            return result
        return result[0] if result else None
