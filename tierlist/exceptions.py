"""
Error taxonomy shared by scoring, storage and ingestion.
"""


class TierlistError(Exception):
    """Base exception for tier list errors"""
    pass


class ValidationError(TierlistError):
    """Bad IGN, gamemode, tier or batch row. Never retried automatically."""

    def __init__(self, message: str, ign: str | None = None):
        super().__init__(message)
        self.ign = ign


class BatchFormatError(ValidationError):
    """Raised when a batch cannot be parsed into any rows at all"""
    pass


class PersistenceError(TierlistError):
    """The storage backend failed to read or write. Retryable by the caller."""
    pass


class AggregationInconsistency(TierlistError):
    """Stored global score disagrees with the sum of the player's gamemode scores"""

    def __init__(self, message: str, player_id: str, stored: int, expected: int):
        super().__init__(message)
        self.player_id = player_id
        self.stored = stored
        self.expected = expected
