"""
Protocol Command and Response Definitions

This module defines the data structures for protocol commands and responses.
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import List, Optional, Sequence, Union

# Text encoding used between wire bytes and str; surrogateescape lets
# arbitrary bytes survive a decode/encode round trip.
ENCODING = "utf-8"
ENCODING_ERRORS = "surrogateescape"


def to_bytes(value: Union[str, bytes]) -> bytes:
    """Encode a str the same way request arguments were decoded."""
    if isinstance(value, bytes):
        return value
    return value.encode(ENCODING, ENCODING_ERRORS)


def to_str(value: bytes) -> str:
    return value.decode(ENCODING, ENCODING_ERRORS)


class CommandType(Enum):
    """Enumeration of supported command types."""
    PING = auto()
    ECHO = auto()
    SET = auto()
    GET = auto()
    CONFIG = auto()
    KEYS = auto()
    UNKNOWN = auto()


class ResponseKind(Enum):
    """Enumeration of reply encodings."""
    STATUS = auto()
    BULK = auto()
    NIL = auto()
    ARRAY = auto()
    ERROR = auto()


@dataclass
class Command:
    """
    Represents a parsed protocol command.

    Attributes:
        name: Upper-cased command name (first element of the request)
        args: Remaining request elements, in order
        has_expiry: True when SET carried a PX option
        expiry_ms: The PX value in milliseconds (0 when absent)
    """
    name: str
    args: List[str] = field(default_factory=list)
    has_expiry: bool = False
    expiry_ms: int = 0

    def __post_init__(self):
        """Normalize the command name."""
        self.name = self.name.upper()

    @property
    def type(self) -> CommandType:
        """The CommandType for this command's name."""
        try:
            return CommandType[self.name]
        except KeyError:
            return CommandType.UNKNOWN

    @property
    def is_valid(self) -> bool:
        """Check if the command has the argument count its type requires."""
        argc = len(self.args)
        if self.type == CommandType.PING:
            return argc == 0
        if self.type in (CommandType.ECHO, CommandType.GET, CommandType.KEYS):
            return argc == 1
        if self.type == CommandType.SET:
            return argc == 2 or (argc == 4 and self.has_expiry)
        if self.type == CommandType.CONFIG:
            return argc == 2 and self.args[0].upper() == "GET"
        return False


@dataclass
class Response:
    """
    Represents a protocol response.

    Attributes:
        kind: Which reply encoding to use
        value: Text of a STATUS/ERROR reply or payload of a BULK reply
        items: Elements of an ARRAY reply
    """
    kind: ResponseKind
    value: Optional[Union[str, bytes]] = None
    items: List["Response"] = field(default_factory=list)

    @classmethod
    def status(cls, text: str) -> "Response":
        """Create a simple status response."""
        return cls(kind=ResponseKind.STATUS, value=text)

    @classmethod
    def ok(cls) -> "Response":
        """Create the 'OK' response for SET."""
        return cls.status("OK")

    @classmethod
    def pong(cls) -> "Response":
        """Create the 'PONG' response for PING."""
        return cls.status("PONG")

    @classmethod
    def bulk(cls, value: Union[str, bytes]) -> "Response":
        """Create a bulk string response."""
        return cls(kind=ResponseKind.BULK, value=value)

    @classmethod
    def nil(cls) -> "Response":
        """Create a nil bulk response for missing keys."""
        return cls(kind=ResponseKind.NIL)

    @classmethod
    def array(cls, values: Sequence[Union[str, bytes]]) -> "Response":
        """Create an array response of bulk strings."""
        return cls(kind=ResponseKind.ARRAY, items=[cls.bulk(v) for v in values])

    @classmethod
    def error(cls, message: str) -> "Response":
        """Create an error response."""
        return cls(kind=ResponseKind.ERROR, value=message)

    @property
    def is_error(self) -> bool:
        return self.kind == ResponseKind.ERROR
