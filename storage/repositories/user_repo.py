"""User repository: transactional profile ingestion."""

import asyncpg
import structlog
from collections.abc import Iterable
from config.constants import DUPLICATE_USER_CONSTRAINTS
from storage.exceptions import IngestionError
from storage.models import DuplicateUser, IngestedUser, UserRecord
from storage.repositories.language_repo import LanguageRepository, normalize_languages

log = structlog.get_logger(__name__)

STORE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


class UserRepository:
    def __init__(self, pool: asyncpg.Pool, languages: LanguageRepository | None = None) -> None:
        self._pool = pool
        self._languages = languages or LanguageRepository(pool)

    async def ingest(
        self,
        user: UserRecord,
        languages: Iterable[str | None],
    ) -> IngestedUser | DuplicateUser:
        """Insert a user and link its languages in one transaction.

        Returns DuplicateUser when the external id or username is already
        stored. Any other store error rolls the transaction back and is
        raised as IngestionError.
        """
        columns = user.to_columns()
        names = normalize_languages(languages)
        # Column names come from UserRecord fields filtered by USER_COLUMNS
        column_list = ", ".join(columns)
        placeholders = ", ".join(f"${i}" for i in range(1, len(columns) + 1))

        try:
            async with self._pool.acquire() as conn:
                async with conn.transaction():
                    row = await conn.fetchrow(
                        f"""
                        INSERT INTO users ({column_list})
                        VALUES ({placeholders})
                        RETURNING id, external_id, username, email, location, created_at
                        """,
                        *columns.values(),
                    )
                    language_ids = await self._languages.reconcile(conn, names)
                    if language_ids:
                        await conn.execute(
                            """
                            INSERT INTO user_languages (user_id, language_id)
                            SELECT $1::bigint, unnest($2::int[])
                            ON CONFLICT DO NOTHING
                            """,
                            row["id"],
                            language_ids,
                        )
        except asyncpg.UniqueViolationError as e:
            if e.constraint_name in DUPLICATE_USER_CONSTRAINTS:
                log.info(
                    "user_already_exists",
                    username=user.username,
                    external_id=user.external_id,
                    constraint=e.constraint_name,
                )
                return DuplicateUser(
                    username=user.username,
                    external_id=user.external_id,
                    constraint=e.constraint_name,
                )
            log.error("ingestion_failed", username=user.username, error=str(e))
            raise IngestionError(str(e), username=user.username) from e
        except STORE_ERRORS as e:
            log.error("ingestion_failed", username=user.username, error=str(e))
            raise IngestionError(str(e), username=user.username) from e

        log.info("user_ingested", user_id=row["id"], username=user.username, languages=names)
        return IngestedUser.from_row(row, names)
