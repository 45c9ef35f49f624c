"""Errors raised by the rehearsal domain and services.

Routers translate these into HTTP responses; nothing here knows about HTTP.
"""


class RehearsalError(Exception):
    """Base class for every rehearsal error."""


class SessionNotFound(RehearsalError):
    """The session record is absent or inactive."""

    def __init__(self, message: str = "No active rehearsal session."):
        super().__init__(message)


class RoleUnavailable(RehearsalError):
    """The role slot is already held by a different identity."""

    def __init__(self, role_id: str):
        self.role_id = role_id
        super().__init__(f"Role {role_id} is already taken by another participant.")


class RoleRequired(RehearsalError):
    """The action is reserved for the holder of a specific role."""

    def __init__(self, role_id: str):
        self.role_id = role_id
        super().__init__(f"Only the holder of role {role_id} may do this.")


class TransactionConflict(RehearsalError):
    """Concurrent writers kept winning until the retry budget ran out."""

    def __init__(self, key: str, attempts: int):
        self.key = key
        self.attempts = attempts
        super().__init__(f"Transaction on {key} did not commit after {attempts} attempts.")
