"""Constants used across the application."""

import re

# Columns a FieldMatch search may filter on
SEARCHABLE_COLUMNS = ("location", "id", "username")

# Columns the ingestion path is allowed to write on users
USER_COLUMNS = ("external_id", "username", "email", "location", "created_at")

# Unique constraints whose violation means the profile is already stored
DUPLICATE_USER_CONSTRAINTS = frozenset({
    "users_external_id_key",
    "users_username_key",
})

# GitHub usernames: alphanumeric or single hyphens, max 39 chars
GITHUB_USERNAME_PATTERN = re.compile(r"^[a-z\d](?:[a-z\d]|-(?=[a-z\d])){0,38}$", re.IGNORECASE)

# Free-text location filter; letters, spaces and common separators
LOCATION_PATTERN = re.compile(r"^[A-Za-z\s,.\-']+$")

GITHUB_API_NAME = "github"

# CLI exit codes
EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_INVALID_INPUT = 2
