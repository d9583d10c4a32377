"""Entry point: fetch GitHub profiles into PostgreSQL and list stored ones."""

import argparse
import asyncio
import sys
from dataclasses import asdict
import aiohttp
import asyncpg
import structlog
from config.constants import (
    EXIT_ERROR,
    EXIT_INVALID_INPUT,
    EXIT_SUCCESS,
    GITHUB_API_NAME,
)
from config.logging_config import setup_logging
from config.settings import settings
from data.collectors.base import NonRetryableError
from data.collectors.github import GitHubCollector, UserNotFoundError
from data.rate_limiter import RateLimiter
from storage.database import close_pool, get_pool, run_migrations
from storage.exceptions import IngestionError
from storage.models import DuplicateUser, Failure, FieldMatch, InvalidColumn, LanguageSet
from storage.repositories.language_repo import LanguageRepository
from storage.repositories.profile_repo import ProfileRepository
from storage.repositories.user_repo import STORE_ERRORS, UserRepository
from utils.formatting import format_table, validate_location, validate_username

log = structlog.get_logger(__name__)

USER_TABLE_COLUMNS = ("id", "username", "email", "location", "external_id", "created_at", "languages")


def build_collector() -> GitHubCollector:
    rate_limiter = RateLimiter(window_seconds=60.0)
    rate_limiter.configure(GITHUB_API_NAME, settings.github_requests_per_minute)
    return GitHubCollector(
        rate_limiter,
        token=settings.github_token,
        base_url=settings.github_api_url,
        api_version=settings.github_api_version,
    )


async def fetch_command(args: argparse.Namespace, pool: asyncpg.Pool, collector: GitHubCollector) -> int:
    """Fetch one GitHub profile and store it with its languages."""
    username = args.username
    print(f"Trying to fetch github profile '{username}'!")

    try:
        profile = await collector.fetch_profile(username)
    except UserNotFoundError:
        print("User not found")
        return EXIT_SUCCESS
    except (NonRetryableError, aiohttp.ClientError, TimeoutError) as e:
        log.error("github_fetch_failed", username=username, error=str(e))
        print(f"Could not fetch profile: {e}")
        return EXIT_ERROR

    if not profile.location:
        print(f"Profile '{username}' has no public location and cannot be stored.")
        return EXIT_INVALID_INPUT

    try:
        result = await UserRepository(pool).ingest(profile.to_user_record(), profile.languages)
    except IngestionError as e:
        print(f"Error storing profile: {e}")
        return EXIT_ERROR

    if isinstance(result, DuplicateUser):
        print("User already exists")
        return EXIT_SUCCESS

    print(f"User inserted successfully with id: {result.id}")
    print(format_table([asdict(result)], USER_TABLE_COLUMNS))
    return EXIT_SUCCESS


async def list_command(args: argparse.Namespace, pool: asyncpg.Pool) -> int:
    """List stored profiles, optionally filtered."""
    repo = ProfileRepository(pool)
    if args.username:
        user = await repo.get_by_username(args.username)
        if isinstance(user, Failure):
            print(format_table([{"error": user.message}], ["error"]))
            return EXIT_ERROR
        if user is None:
            print("User not found")
            return EXIT_SUCCESS
        print(format_table([asdict(user)], USER_TABLE_COLUMNS))
        return EXIT_SUCCESS

    if args.location:
        print("Fetching users by location...")
        criterion = FieldMatch("location", args.location)
    elif args.language:
        print("Fetching users by programming language...")
        criterion = LanguageSet(args.language)
    else:
        criterion = None

    result = await repo.query(criterion)

    if isinstance(result, InvalidColumn):
        print(format_table([{"error": result.message}], ["error"]))
        return EXIT_INVALID_INPUT
    if isinstance(result, Failure):
        print(format_table([{"error": result.message}], ["error"]))
        return EXIT_ERROR

    print(format_table([asdict(u) for u in result], USER_TABLE_COLUMNS))
    return EXIT_SUCCESS


async def languages_command(args: argparse.Namespace, pool: asyncpg.Pool) -> int:
    try:
        rows = await LanguageRepository(pool).list_all()
    except STORE_ERRORS as e:
        print(format_table([{"error": str(e)}], ["error"]))
        return EXIT_ERROR
    print(format_table(rows, ("id", "name", "users")))
    return EXIT_SUCCESS


async def migrate_command(args: argparse.Namespace, pool: asyncpg.Pool) -> int:
    applied = await run_migrations(pool)
    if applied:
        for name in applied:
            print(f"Migration {name} applied successfully.")
    else:
        print("Database schema is up to date.")
    return EXIT_SUCCESS


def validate_args(args: argparse.Namespace) -> str | None:
    """Return an error message for invalid input, None if the args are usable."""
    if args.command == "fetch" and not validate_username(args.username):
        return "Invalid username. Exiting..."
    if args.command == "list":
        if args.location is not None and not validate_location(args.location):
            return "Invalid location. Exiting..."
        if args.username is not None and not validate_username(args.username):
            return "Invalid username. Exiting..."
    return None


async def run(args: argparse.Namespace) -> int:
    """Acquire the pool, dispatch the command, always release the pool."""
    try:
        pool = await get_pool()
    except STORE_ERRORS as e:
        log.error("database_unavailable", error=str(e))
        print(f"Database unavailable: {e}")
        return EXIT_ERROR

    try:
        if args.command == "fetch":
            collector = build_collector()
            try:
                return await fetch_command(args, pool, collector)
            finally:
                await collector.close()
        if args.command == "list":
            return await list_command(args, pool)
        if args.command == "languages":
            return await languages_command(args, pool)
        if args.command == "migrate":
            return await migrate_command(args, pool)
        return EXIT_INVALID_INPUT
    finally:
        await close_pool()


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="github-profiler",
        description="Fetch GitHub profiles into PostgreSQL and query them by location or language.",
    )
    parser.add_argument("--version", action="version", version="%(prog)s 1.0.0")
    subparsers = parser.add_subparsers(dest="command")

    fetch = subparsers.add_parser("fetch", help="Fetch and store a GitHub profile")
    fetch.add_argument("-u", "--username", required=True, help="GitHub username")

    list_ = subparsers.add_parser("list", help="List all or filtered stored profiles")
    filters = list_.add_mutually_exclusive_group()
    filters.add_argument("-loc", "--location", help="User's location")
    filters.add_argument("--username", help="Exact username")
    filters.add_argument(
        "-lang",
        "--language",
        action="append",
        help="Programming language; repeat to require several",
    )

    subparsers.add_parser("languages", help="List the language catalog")
    subparsers.add_parser("migrate", help="Create or upgrade the database schema")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)
    setup_logging(settings.log_level, settings.log_json)

    if not args.command:
        parser.print_help()
        return EXIT_SUCCESS

    error = validate_args(args)
    if error:
        print(error)
        return EXIT_INVALID_INPUT

    return asyncio.run(run(args))


def main_cli() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    main_cli()
