"""
Error types raised while reading and executing requests.

Anything derived from ProtocolError is turned into an ``-ERR <message>``
reply by the server; the message is the exception text.
"""


class KVError(Exception):
    """Base class for rdbkv errors."""


class ProtocolError(KVError):
    """Malformed or incomplete request, unknown command or bad arity."""


class InvalidExpiryError(ProtocolError, ValueError):
    """The PX argument of SET is not an integer."""

    def __init__(self, message: str = "invalid expiration time"):
        super().__init__(message)


class ConfigurationError(KVError):
    """CONFIG GET asked for a parameter that does not exist."""

    def __init__(self, message: str = "unknown parameter"):
        super().__init__(message)


class SnapshotUnavailable(KVError):
    """The snapshot file could not be opened."""
