"""
Protocol Parser Module

This module handles decoding of RESP multi-bulk requests into Command
objects and encoding of Response objects into reply bytes.
"""

import asyncio
import re
from typing import List, Optional, Tuple

from ..errors import InvalidExpiryError, ProtocolError
from .commands import Command, CommandType, Response, ResponseKind, to_bytes, to_str

CRLF = b"\r\n"
NIL_BULK = b"$-1\r\n"

# Same ceiling Redis applies to a single bulk string
MAX_BULK_LENGTH = 512 * 1024 * 1024

# Optional sign and ASCII digits, nothing else
INTEGER_PATTERN = re.compile(r"[+-]?[0-9]+")


class ProtocolParser:
    """
    Parser for the RESP multi-bulk protocol.

    Protocol Format:
        Request:  *<N>\\r\\n followed by N x $<len>\\r\\n<data>\\r\\n
        Response: +<text>\\r\\n          status
                  $<len>\\r\\n<data>\\r\\n  bulk string
                  $-1\\r\\n              nil
                  *<count>\\r\\n...       array of the above
                  -ERR <message>\\r\\n   error

    Every element is read by its declared byte length, so data may hold
    spaces, CR/LF or any other byte.
    """

    def __init__(self, max_bulk_length: int = MAX_BULK_LENGTH):
        """Initialize the parser with the largest bulk string it accepts."""
        self.max_bulk_length = max_bulk_length

    def decode(self, buffer: bytes) -> List[bytes]:
        """
        Decode one complete request held in ``buffer``.

        Returns:
            The request elements, command name first.

        Raises:
            ProtocolError: the buffer is truncated or not multi-bulk framed

        Examples:
            >>> ProtocolParser().decode(b"*2\\r\\n$4\\r\\nECHO\\r\\n$2\\r\\nhi\\r\\n")
            [b'ECHO', b'hi']
        """
        count, pos = self._read_header(buffer, 0, b"*")
        items = []
        for _ in range(count):
            length, pos = self._read_header(buffer, pos, b"$")
            end = pos + length
            if end + len(CRLF) > len(buffer):
                raise ProtocolError("incomplete command")
            if buffer[end:end + len(CRLF)] != CRLF:
                raise ProtocolError("bulk string is not terminated by CRLF")
            items.append(buffer[pos:end])
            pos = end + len(CRLF)

        if pos != len(buffer):
            raise ProtocolError("unexpected data after command")
        return items

    def parse_request(self, buffer: bytes) -> Command:
        """
        Parse a complete raw request into a Command object.

        Examples:
            >>> cmd = ProtocolParser().parse_request(
            ...     b"*5\\r\\n$3\\r\\nSET\\r\\n$3\\r\\nfoo\\r\\n$3\\r\\nbar\\r\\n"
            ...     b"$2\\r\\nPX\\r\\n$3\\r\\n100\\r\\n")
            >>> cmd.name, cmd.args[:2], cmd.expiry_ms
            ('SET', ['foo', 'bar'], 100)
        """
        return self.build_command(self.decode(buffer))

    async def read_request(self, reader: asyncio.StreamReader) -> Optional[Command]:
        """
        Read one request from a stream, element by element.

        Returns:
            The parsed Command, or None if the client disconnected before
            a full request arrived.

        Raises:
            ProtocolError: the bytes on the stream are not multi-bulk framed.
                The stream cannot be resynchronized after this.
        """
        try:
            header = await reader.readuntil(CRLF)
            count = self._parse_header(header[:-len(CRLF)], b"*")
            items = []
            for _ in range(count):
                header = await reader.readuntil(CRLF)
                length = self._parse_header(header[:-len(CRLF)], b"$")
                data = await reader.readexactly(length + len(CRLF))
                if not data.endswith(CRLF):
                    raise ProtocolError("bulk string is not terminated by CRLF")
                items.append(data[:-len(CRLF)])
        except asyncio.IncompleteReadError:
            return None
        except asyncio.LimitOverrunError:
            raise ProtocolError("request header too long") from None

        return self.build_command(items)

    def build_command(self, items: List[bytes]) -> Command:
        """
        Turn decoded request elements into a Command.

        Raises:
            InvalidExpiryError: SET ... PX <millis> where millis is not an integer
        """
        command = Command(
            name=to_str(items[0]),
            args=[to_str(item) for item in items[1:]],
        )

        if (
            command.type == CommandType.SET
            and len(command.args) == 4
            and command.args[2].upper() == "PX"
        ):
            command.expiry_ms = self._parse_integer(command.args[3], InvalidExpiryError())
            command.has_expiry = True

        return command

    def _read_header(self, buffer: bytes, pos: int, prefix: bytes) -> Tuple[int, int]:
        """Parse the header line starting at ``pos``; return (number, next pos)."""
        end = buffer.find(CRLF, pos)
        if end == -1:
            raise ProtocolError("incomplete command")
        return self._parse_header(buffer[pos:end], prefix), end + len(CRLF)

    def _parse_header(self, line: bytes, prefix: bytes) -> int:
        """Parse a ``*<count>`` or ``$<len>`` line (without CRLF)."""
        if not line.startswith(prefix):
            raise ProtocolError(
                f"expected '{prefix.decode()}', got {line[:1].decode(errors='replace')!r}"
            )
        number = self._parse_integer(
            line[1:].decode("ascii", errors="replace"),
            ProtocolError(f"invalid length {line[1:]!r}"),
        )

        if prefix == b"*" and number < 1:
            raise ProtocolError("incomplete command")
        if number < 0 or number > self.max_bulk_length:
            raise ProtocolError(f"invalid length {number}")
        return number

    @staticmethod
    def _parse_integer(text: str, error: Exception) -> int:
        """Parse a plain decimal integer, raising ``error`` for anything else."""
        if not INTEGER_PATTERN.fullmatch(text):
            raise error
        try:
            return int(text)
        except ValueError:  # Exceeds the interpreter digit limit
            raise error from None

    def format_response(self, response: Response) -> bytes:
        """
        Format a Response object into reply bytes.

        Examples:
            >>> parser = ProtocolParser()
            >>> parser.format_response(Response.ok())
            b'+OK\\r\\n'
            >>> parser.format_response(Response.bulk("bar"))
            b'$3\\r\\nbar\\r\\n'
            >>> parser.format_response(Response.error("invalid command"))
            b'-ERR invalid command\\r\\n'
        """
        kind = response.kind

        if kind == ResponseKind.STATUS:
            return b"+" + to_bytes(response.value) + CRLF
        if kind == ResponseKind.ERROR:
            return b"-ERR " + to_bytes(response.value) + CRLF
        if kind == ResponseKind.NIL:
            return NIL_BULK
        if kind == ResponseKind.BULK:
            data = to_bytes(response.value)
            return b"$%d\r\n%s\r\n" % (len(data), data)
        if kind == ResponseKind.ARRAY:
            body = b"".join(self.format_response(item) for item in response.items)
            return b"*%d\r\n" % len(response.items) + body

        raise ValueError(f"unknown response kind: {kind}")
