"""Protocol module for rdbkv."""

from .commands import Command, CommandType, Response, ResponseKind
from .dispatcher import CommandDispatcher, compile_glob
from ..errors import ConfigurationError, InvalidExpiryError, KVError, ProtocolError
from .parser import ProtocolParser

__all__ = [
    "Command",
    "CommandType",
    "CommandDispatcher",
    "ConfigurationError",
    "InvalidExpiryError",
    "KVError",
    "ProtocolError",
    "ProtocolParser",
    "Response",
    "ResponseKind",
    "compile_glob",
]
