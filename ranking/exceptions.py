"""
Custom exceptions for the ranking core with user-friendly error messages.
"""
from typing import Any, Dict, List, Optional


class RankingError(Exception):
    """Base exception for ranking-related errors."""
    def __init__(self, message: str, user_message: str = None):
        super().__init__(message)
        self.user_message = user_message or message


# ==================== Validation ====================

class ValidationFailed(RankingError, ValueError):
    """Rejected input (missing field, bad enum value) before any write."""
    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        super().__init__(message)
        self.field = field
        self.value = value


class InvalidTierOrPosition(ValidationFailed):
    """Raised when the points policy gets a tier/position it does not know."""
    def __init__(self, tier: Any, position: Any, reason: str = None):
        detail = reason or "unrecognized tier or finishing position"
        super().__init__(
            f"Cannot compute points for tier={tier!r}, position={position!r}: {detail}",
            field="tier" if reason is None else None,
            value={"tier": tier, "position": position},
        )
        self.tier = tier
        self.position = position


class InvalidMerge(ValidationFailed):
    """Raised when a merge request is malformed (e.g. same player twice)."""


# ==================== Lookup ====================

class PlayerNotFound(RankingError):
    """Raised when a player id does not resolve in the organization."""
    def __init__(self, player_id: str):
        super().__init__(
            f"Player '{player_id}' not found",
            "Player not found."
        )
        self.player_id = player_id


# ==================== Ambiguity ====================

class ResolutionRequired(RankingError):
    """Raised when an import commit is attempted with unresolved rows."""
    def __init__(self, row_keys: List[str]):
        super().__init__(
            f"{len(row_keys)} row(s) need a resolution before commit: {', '.join(row_keys)}",
            "Some rows still need to be resolved before the import can be committed."
        )
        self.row_keys = row_keys


# ==================== Conflict ====================

class ConflictError(RankingError):
    """Operation aborted because stored state disagrees with the request."""


class BothLinkedToAccounts(ConflictError):
    """Both merge candidates own a user login; ownership must be settled first."""
    def __init__(self, primary_id: str, duplicate_id: str):
        super().__init__(
            f"Players {primary_id} and {duplicate_id} both have linked accounts",
            "Both players have linked user accounts. Reconcile the accounts before merging."
        )
        self.primary_id = primary_id
        self.duplicate_id = duplicate_id


class StaleResolution(ConflictError):
    """An import resolution points at a player that no longer exists."""
    def __init__(self, stale: Dict[str, str]):
        rows = ", ".join(f"{row}->{pid}" for row, pid in stale.items())
        super().__init__(
            f"Resolutions reference players that no longer exist: {rows}",
            "Player data changed since the dry run. Run the import preview again."
        )
        self.stale = stale
