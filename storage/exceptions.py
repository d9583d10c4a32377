"""Exceptions raised by the persistence layer."""


class ProfileStoreError(Exception):
    """Base exception for profile store operations."""

    pass


class IngestionError(ProfileStoreError):
    """Raised when a profile could not be written; the transaction was rolled back."""

    def __init__(self, message: str, username: str | None = None):
        super().__init__(message)
        self.username = username
