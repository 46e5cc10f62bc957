class KittenServerError(Exception):
    """Base exception for the kitten server."""


class StorageError(KittenServerError):
    """Raised when the key-value store is unreachable or answers with a protocol error.

    The operation that raised it is assumed not to have been applied.
    """


class NoSessionError(KittenServerError):
    """Raised when a card is drawn before the game was started for that user."""

    def __init__(self, username: str):
        super().__init__(f"No game started for user: {username}")
        self.username = username


class EmptyDeckError(KittenServerError):
    """Raised by the deck store when there is no card left to draw."""
