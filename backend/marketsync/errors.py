"""
backend/marketsync/errors.py

Purpose:
    Exception taxonomy shared by the projection engine, the store adapter and
    the feed reconciler.
"""


class DecodeError(ValueError):
    """Raised when an event payload does not match its declared schema."""


class UnknownRuleTypeError(ValueError):
    """Raised for leaderboard rule types outside the supported set."""


class TransactionConflictError(Exception):
    """Raised when an optimistic read-modify-write exhausted its retries."""


class FeedError(Exception):
    """Raised when an external feed call fails or returns an unusable body."""

    def __init__(self, feed: str, message: str):
        super().__init__(f"[{feed}] {message}")
        self.feed = feed


class LeaseHeldError(Exception):
    """Raised when another worker currently owns a named lease."""
