"""Records, search criteria and outcome values for the profile store."""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Union

from config.constants import USER_COLUMNS


@dataclass
class UserRecord:
    """A user row as supplied by the profile source.

    Only fields that are set are written; omitted ones fall back to the
    column default (NULL, or NOW() for created_at).
    """
    username: str
    location: str | None = None
    email: str | None = None
    external_id: int | None = None
    created_at: datetime | None = None

    def to_columns(self) -> dict[str, Any]:
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name in USER_COLUMNS and getattr(self, f.name) is not None
        }


@dataclass
class UserWithLanguages:
    """A stored user together with the distinct names of its languages."""
    id: int
    username: str
    location: str
    external_id: int | None = None
    email: str | None = None
    created_at: datetime | None = None
    languages: list[str] = field(default_factory=list)

    @classmethod
    def from_row(cls, row: Mapping[str, Any], languages: Iterable[str] | None = None) -> "UserWithLanguages":
        data = dict(row)
        if languages is None:
            languages = data.get("languages") or []
        return cls(
            id=data["id"],
            username=data["username"],
            location=data["location"],
            external_id=data.get("external_id"),
            email=data.get("email"),
            created_at=data.get("created_at"),
            languages=list(languages),
        )


# What ingest() hands back on success
IngestedUser = UserWithLanguages


@dataclass(frozen=True)
class FieldMatch:
    """Equality search on one allow-listed users column."""
    column: str
    value: Any


@dataclass(frozen=True)
class LanguageSet:
    """Users linked to every one of the given languages."""
    names: tuple[str, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "names", tuple(self.names))


Criterion = Union[FieldMatch, LanguageSet, None]


@dataclass(frozen=True)
class DuplicateUser:
    """The profile is already stored under the same external id or username."""
    username: str
    external_id: int | None = None
    constraint: str = ""


@dataclass(frozen=True)
class InvalidColumn:
    """A FieldMatch named a column outside the searchable allow-list."""
    column: str
    allowed: tuple[str, ...] = ()

    @property
    def message(self) -> str:
        return f"Cannot search by '{self.column}'. Allowed columns: {', '.join(self.allowed)}"


@dataclass(frozen=True)
class Failure:
    """A store-level error captured as a value."""
    message: str
