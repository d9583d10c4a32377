"""Language catalog repository: shared, append-only vocabulary of language names."""

import asyncpg
import structlog
from collections.abc import Iterable

log = structlog.get_logger(__name__)


def normalize_languages(names: Iterable[str | None]) -> list[str]:
    """Drop empty entries and duplicates (case-sensitive), keeping first-seen order.

    Whitespace-only names such as " " are dropped as well, which is stricter
    than filtering falsy entries alone.
    """
    seen: dict[str, None] = {}
    for name in names:
        if not name or not name.strip():
            continue
        seen.setdefault(name, None)
    return list(seen)


class LanguageRepository:
    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def reconcile(self, conn: asyncpg.Connection, names: Iterable[str | None]) -> list[int]:
        """Get-or-create every name on the caller's connection. Returns their ids.

        The upsert leans on the unique constraint on languages.name, so two
        transactions racing on the same new name still end with a single row.
        Names are upserted in sorted order so concurrent ingests take the
        row locks in the same sequence and cannot deadlock.
        """
        unique = sorted(normalize_languages(names))
        if not unique:
            return []
        rows = await conn.fetch(
            """
            INSERT INTO languages (name)
            SELECT unnest($1::text[])
            ON CONFLICT (name) DO UPDATE SET name = EXCLUDED.name
            RETURNING id, name
            """,
            unique,
        )
        log.debug("languages_reconciled", count=len(rows))
        return [r["id"] for r in rows]

    async def list_all(self) -> list[dict[str, object]]:
        """All catalog entries with the number of users linked to each."""
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT l.id, l.name, COUNT(ul.user_id) AS users
                FROM languages l
                LEFT JOIN user_languages ul ON ul.language_id = l.id
                GROUP BY l.id
                ORDER BY l.name
                """
            )
        return [dict(r) for r in rows]
