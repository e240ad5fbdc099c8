"""
Error types of the replication layer.
Transport problems are RelayError (retryable); malformed intents are InvalidIntentError and are dropped.
"""


class RelayError(Exception):
    """A relay store call failed or timed out. The caller may retry."""
    pass


class NotHostError(RelayError):
    """A non-host participant tried a host-only operation."""
    pass


class IntentQueueFull(RelayError):
    """The room already holds the maximum number of unprocessed intents."""
    pass


class InvalidIntentError(ValueError):
    """An intent envelope could not be turned into a game action."""
    pass
