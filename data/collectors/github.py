"""GitHub collector: public user profiles and the primary language of each repository."""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
import structlog
from config.constants import GITHUB_API_NAME
from data.collectors.base import BaseCollector, NonRetryableError
from data.rate_limiter import RateLimiter
from storage.models import UserRecord

log = structlog.get_logger(__name__)

BASE_URL = "https://api.github.com"
API_VERSION = "2022-11-28"
REPOS_PER_PAGE = 100


class UserNotFoundError(NonRetryableError):
    """The requested GitHub user does not exist."""

    def __init__(self, username: str) -> None:
        self.username = username
        super().__init__(404, f"GitHub user '{username}' not found")


@dataclass
class GitHubProfile:
    username: str
    external_id: int
    email: str | None = None
    location: str | None = None
    created_at: datetime | None = None
    public_repos: int = 0
    languages: list[str | None] = field(default_factory=list)  # one per repo, raw

    def to_user_record(self) -> UserRecord:
        return UserRecord(
            username=self.username,
            location=self.location,
            email=self.email,
            external_id=self.external_id,
            created_at=self.created_at,
        )


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse GitHub's ISO-8601 timestamps ("2011-01-25T18:44:36Z")."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        log.warning("unparseable_timestamp", value=value)
        return None


class GitHubCollector(BaseCollector):
    api_name = GITHUB_API_NAME

    def __init__(
        self,
        rate_limiter: RateLimiter,
        token: str = "",
        base_url: str = BASE_URL,
        api_version: str = API_VERSION,
    ) -> None:
        super().__init__(rate_limiter)
        self._token = token
        self._base_url = base_url.rstrip("/")
        self._api_version = api_version

    def default_headers(self) -> dict[str, str]:
        headers = {
            **super().default_headers(),
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": self._api_version,
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def health_check(self) -> bool:
        try:
            data = await self._request(f"{self._base_url}/rate_limit")
            return isinstance(data, dict) and "resources" in data
        except Exception:
            return False

    async def get_user(self, username: str) -> dict[str, Any]:
        """Raw /users/{username} payload."""
        try:
            data = await self._request(f"{self._base_url}/users/{username}")
        except NonRetryableError as e:
            if e.status == 404:
                raise UserNotFoundError(username) from e
            raise
        if not isinstance(data, dict):
            raise ValueError(f"Unexpected user payload for {username}")
        return data

    async def get_repo_languages(self, username: str, public_repos: int) -> list[str | None]:
        """Primary language of every public repository, nulls and repeats kept."""
        languages: list[str | None] = []
        pages = math.ceil(public_repos / REPOS_PER_PAGE)
        for page in range(1, pages + 1):
            repos = await self._request(
                f"{self._base_url}/users/{username}/repos",
                params={"per_page": REPOS_PER_PAGE, "page": page},
            )
            if not isinstance(repos, list) or not repos:
                break
            languages.extend(repo.get("language") for repo in repos)
            if len(repos) < REPOS_PER_PAGE:
                break
        return languages

    async def fetch_profile(self, username: str) -> GitHubProfile:
        data = await self.get_user(username)
        public_repos = data.get("public_repos") or 0
        languages = await self.get_repo_languages(username, public_repos) if public_repos > 0 else []
        log.info("github_profile_fetched", username=username, repos=public_repos)
        return GitHubProfile(
            username=username,
            external_id=data["id"],
            email=data.get("email"),
            location=data.get("location"),
            created_at=parse_timestamp(data.get("created_at")),
            public_repos=public_repos,
            languages=languages,
        )
