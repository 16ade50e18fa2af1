"""Exception hierarchy for Kennel Pedigree.

Components raise these; the sync engine is the single place that decides
which ones abort a run and which ones are tallied and skipped.
"""
from __future__ import annotations


class KennelPedigreeError(Exception):
    """Base class for all errors raised by this package."""


class InvalidPathError(KennelPedigreeError, ValueError):
    """A lineage path is empty or contains characters other than '0'/'1'."""

    def __init__(self, path: str | None, reason: str = "invalid lineage path") -> None:
        super().__init__(f"{reason}: {path!r}")
        self.path = path


class DogNotFoundError(KennelPedigreeError):
    def __init__(self, dog_id: str) -> None:
        super().__init__(f"Dog not found: {dog_id}")
        self.dog_id = dog_id


class RelationshipConflictError(KennelPedigreeError):
    """The (descendant, path) slot is already held by a different ancestor."""

    def __init__(self, descendant_id: str, path: str, existing_ancestor_id: str) -> None:
        super().__init__(
            f"Path {path!r} of {descendant_id} is already occupied by {existing_ancestor_id}"
        )
        self.descendant_id = descendant_id
        self.path = path
        self.existing_ancestor_id = existing_ancestor_id


class NoValidSessionError(KennelPedigreeError):
    """No active, unexpired registry session is available."""

    def __init__(self, session_id: str | None = None) -> None:
        if session_id:
            message = f"Session {session_id} not found or expired"
        else:
            message = "No valid session available. Please create a session first."
        super().__init__(message)
        self.session_id = session_id


class RegistryError(KennelPedigreeError):
    """Base exception for registry failures."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RegistryFetchError(RegistryError):
    """Network failure, unexpected status or unexpected response shape."""


class RegistryNotFoundError(RegistryError):
    """The registry has no record for the requested identifiers (404)."""


class RegistryAccessDeniedError(RegistryError):
    """The registry refused access to the requested record (401/403)."""


class SessionExpiredError(RegistryError):
    """The registry bounced the request to its login page."""

    def __init__(self, session_id: str, status_code: int | None = None) -> None:
        super().__init__(
            f"Session {session_id} expired. Redirect to login page detected.", status_code
        )
        self.session_id = session_id


class RegistryAuthError(RegistryError):
    """The login handshake with the registry failed."""
