"""Tests for storage/repositories/profile_repo.py: read-only profile search."""

import asyncpg
import pytest
from datetime import UTC, datetime
from storage.models import Failure, FieldMatch, InvalidColumn, LanguageSet, UserWithLanguages
from storage.repositories.profile_repo import ProfileRepository


def _row(id_, username, languages, location="Los Angeles, CA"):
    return {
        "id": id_,
        "external_id": id_ * 10,
        "username": username,
        "email": f"{username}@example.com",
        "location": location,
        "created_at": datetime(2024, 1, 1, tzinfo=UTC),
        "languages": languages,
    }


class TestProfileRepositoryQuery:
    @pytest.fixture
    def repo(self, fake_pool):
        return ProfileRepository(fake_pool)

    async def test_no_criterion_lists_everyone_with_languages(self, repo, fake_conn):
        fake_conn.fetch_results = [[
            _row(1, "user1", ["C++", "Python", "TypeScript"]),
            _row(2, "user2", ["C++", "Java", "TypeScript"]),
        ]]
        result = await repo.query(None)

        assert [u.username for u in result] == ["user1", "user2"]
        assert all(isinstance(u, UserWithLanguages) for u in result)
        query, args = fake_conn._fetch_calls[0]
        assert "WHERE" not in query
        assert "ORDER BY u.id" in query
        assert args == ()

    async def test_users_without_languages_are_excluded(self, repo, fake_conn):
        fake_conn.fetch_results = [[
            _row(1, "user1", []),
            _row(2, "user2", None),
            _row(3, "user3", ["Scala"]),
        ]]
        result = await repo.query(None)
        assert [u.username for u in result] == ["user3"]

    async def test_join_drops_users_without_memberships(self, repo, fake_conn):
        await repo.query(None)
        query, _ = fake_conn._fetch_calls[0]
        assert "JOIN user_languages" in query
        assert "LEFT JOIN" not in query

    async def test_field_match_username(self, repo, fake_conn):
        fake_conn.fetch_results = [[_row(1, "user1", ["TypeScript"])]]
        result = await repo.query(FieldMatch("username", "user1"))

        assert len(result) == 1
        query, args = fake_conn._fetch_calls[0]
        assert "WHERE u.username = $1" in query
        assert args == ("user1",)

    async def test_field_match_location_is_bound_not_interpolated(self, repo, fake_conn):
        value = "Portugal'; DROP TABLE users; --"
        await repo.query(FieldMatch("location", value))
        query, args = fake_conn._fetch_calls[0]
        assert value not in query
        assert args == (value,)

    async def test_field_match_id_coerced_to_int(self, repo, fake_conn):
        await repo.query(FieldMatch("id", "5"))
        _, args = fake_conn._fetch_calls[0]
        assert args == (5,)

    async def test_field_match_bad_id_is_failure(self, repo, fake_pool, fake_conn):
        result = await repo.query(FieldMatch("id", "abc"))
        assert isinstance(result, Failure)
        assert "abc" in result.message
        assert fake_pool.acquired == 0

    @pytest.mark.parametrize("column", ["location", "username", "id"])
    async def test_field_match_none_value_is_failure(self, repo, fake_pool, fake_conn, column):
        result = await repo.query(FieldMatch(column, None))
        assert isinstance(result, Failure)
        assert column in result.message
        assert fake_pool.acquired == 0
        assert fake_conn._fetch_calls == []

    async def test_invalid_column_issues_no_sql(self, repo, fake_pool, fake_conn):
        result = await repo.query(FieldMatch("password", "hunter2"))

        assert isinstance(result, InvalidColumn)
        assert result.column == "password"
        assert result.allowed == ("location", "id", "username")
        assert "password" in result.message
        assert fake_pool.acquired == 0
        assert fake_conn._fetch_calls == []

    @pytest.mark.parametrize("column", ["email", "external_id", "id; DROP TABLE users", "u.username"])
    async def test_columns_outside_allow_list_rejected(self, repo, column):
        result = await repo.query(FieldMatch(column, "x"))
        assert isinstance(result, InvalidColumn)

    async def test_language_set_requires_every_language(self, repo, fake_conn):
        fake_conn.fetch_results = [[
            _row(1, "user1", ["C++", "Python", "TypeScript"]),
            _row(2, "user2", ["C++", "Java", "TypeScript"]),
        ]]
        result = await repo.query(LanguageSet(["TypeScript", "C++"]))

        assert [u.username for u in result] == ["user1", "user2"]
        query, args = fake_conn._fetch_calls[0]
        assert "HAVING COUNT(DISTINCT l2.name) = $2" in query
        assert "= ANY($1::text[])" in query
        assert args == (["TypeScript", "C++"], 2)

    async def test_language_set_duplicates_counted_once(self, repo, fake_conn):
        await repo.query(LanguageSet(["Go", "Go", "", None]))
        _, args = fake_conn._fetch_calls[0]
        assert args == (["Go"], 1)

    async def test_language_set_keeps_full_language_list(self, repo, fake_conn):
        fake_conn.fetch_results = [[_row(3, "user3", ["Dockerfile", "Scala"])]]
        result = await repo.query(LanguageSet(["Dockerfile"]))
        assert result[0].languages == ["Dockerfile", "Scala"]

    async def test_language_set_no_match(self, repo, fake_conn):
        fake_conn.fetch_results = [[]]
        result = await repo.query(LanguageSet(["Husky"]))
        assert result == []

    async def test_empty_language_set_lists_everyone(self, repo, fake_conn):
        await repo.query(LanguageSet([]))
        query, args = fake_conn._fetch_calls[0]
        assert "HAVING" not in query
        assert args == ()

    async def test_store_error_returned_as_failure(self, repo, fake_pool, fake_conn):
        fake_conn.errors["FROM users u"] = asyncpg.UndefinedTableError('relation "users" does not exist')
        result = await repo.query(FieldMatch("username", "user1"))

        assert isinstance(result, Failure)
        assert "does not exist" in result.message
        assert fake_pool.released == fake_pool.acquired

    async def test_connection_error_returned_as_failure(self, repo, fake_pool):
        fake_pool.acquire_error = ConnectionRefusedError("connection refused")
        result = await repo.query(None)
        assert isinstance(result, Failure)
        assert "refused" in result.message


class TestGetByUsername:
    @pytest.fixture
    def repo(self, fake_pool):
        return ProfileRepository(fake_pool)

    async def test_found(self, repo, fake_conn):
        fake_conn.fetch_results = [[_row(1, "user1", ["Go"])]]
        user = await repo.get_by_username("user1")
        assert user.username == "user1"
        assert user.languages == ["Go"]

    async def test_missing(self, repo, fake_conn):
        fake_conn.fetch_results = [[]]
        assert await repo.get_by_username("ghost") is None

    async def test_store_error_is_failure(self, repo, fake_pool):
        fake_pool.acquire_error = OSError("down")
        result = await repo.get_by_username("user1")
        assert isinstance(result, Failure)
        assert result.message == "down"
