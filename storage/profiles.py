"""Function-style entry points over the repositories.

The pool is always passed in; nothing here reaches for a global connection.
"""

import asyncpg
from collections.abc import Iterable
from storage.models import (
    Criterion,
    DuplicateUser,
    Failure,
    IngestedUser,
    InvalidColumn,
    UserRecord,
    UserWithLanguages,
)
from storage.repositories.profile_repo import ProfileRepository
from storage.repositories.user_repo import UserRepository


async def ingest(
    user: UserRecord,
    languages: Iterable[str | None],
    pool: asyncpg.Pool,
) -> IngestedUser | DuplicateUser:
    return await UserRepository(pool).ingest(user, languages)


async def query(
    criterion: Criterion,
    pool: asyncpg.Pool,
) -> list[UserWithLanguages] | InvalidColumn | Failure:
    return await ProfileRepository(pool).query(criterion)
