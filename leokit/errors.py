"""Exception taxonomy for Leo Kit.

Every error raised by the core components derives from :class:`LeoKitError`.
They are raised at the point where a precondition is violated and are never
retried; the workflow facade, the MCP tools and the CLI turn them into
user-facing messages.
"""

from __future__ import annotations


class LeoKitError(Exception):
    """Base class for all Leo Kit errors."""


class InvalidRole(LeoKitError, ValueError):
    """Raised when a role identifier is not part of the role table."""

    def __init__(self, role_id: object):
        self.role_id = role_id
        super().__init__(f"Invalid role: {role_id!r}")


class InvalidTeamSize(LeoKitError, ValueError):
    """Raised when a team size falls outside 1-4."""

    def __init__(self, team_size: object):
        self.team_size = team_size
        super().__init__(f"Team size must be 1-4 people, got {team_size!r}")


class TeamSizeMismatch(LeoKitError, ValueError):
    """Raised when a roster length does not match the declared team size."""

    def __init__(self, member_count: int, team_size: int):
        self.member_count = member_count
        self.team_size = team_size
        super().__init__(
            f"Member count ({member_count}) does not match team size ({team_size})"
        )


class UnknownColumn(LeoKitError, LookupError):
    """Raised when a column id is absent from a workflow configuration."""

    def __init__(self, column_id: str, team_size: int):
        self.column_id = column_id
        self.team_size = team_size
        super().__init__(f"Column {column_id!r} not found for team size {team_size}")


class InvalidHandoff(LeoKitError, ValueError):
    """Raised when a handoff does not follow the role sequence."""


class UnknownMember(LeoKitError, LookupError):
    """Raised when no roster member holds the role a handoff targets."""

    def __init__(self, role_id: str):
        self.role_id = role_id
        super().__init__(f"No team member assigned to role: {role_id}")


class NotFound(LeoKitError, LookupError):
    """Raised when a member, hunt or principle does not exist."""


class NoConfiguration(LeoKitError):
    """Raised when the project configuration has not been initialized or loaded."""


class ConfigurationError(LeoKitError, ValueError):
    """Raised when a configuration document or roster change is invalid."""


class RemoteError(LeoKitError):
    """Raised when an issue/board collaborator call fails."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(f"Failed to {operation}: {message}")


__all__ = [
    "LeoKitError",
    "InvalidRole",
    "InvalidTeamSize",
    "TeamSizeMismatch",
    "UnknownColumn",
    "InvalidHandoff",
    "UnknownMember",
    "NotFound",
    "NoConfiguration",
    "ConfigurationError",
    "RemoteError",
]
