"""
Snapshot Scanner Module

Lists the string keys stored in an RDB snapshot file, for KEYS queries.

This is not a general RDB decoder. It reads the leading block of the
file, takes the bytes between the hash-table marker (0xFB) and the
end-of-file marker (0xFF), and splits them on zero bytes (the string
value-type opcode). That only works for short string entries whose
lengths fit in the 6-bit size encoding. Chunks using any other size
encoding are reported as unsupported instead of being guessed at.

Layout assumed for the key region:

    FB <table size> <expires size> 00 <len><key><len><value> 00 <len><key>... FF
"""

import logging
import os
import re
import threading
from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO, Iterator, List, Optional

from ..config.settings import settings
from ..errors import SnapshotUnavailable

RESIZEDB_OPCODE = 0xFB
EOF_OPCODE = 0xFF
STRING_TYPE = 0x00

# FB is followed by two size fields before the first entry
RESIZEDB_HEADER_LEN = 3


class SizeEncoding(Enum):
    """Length encoding class, taken from the top two bits of the first byte."""
    LENGTH_6BIT = 0b00
    LENGTH_14BIT = 0b01
    LENGTH_32BIT = 0b10
    SPECIAL = 0b11

    @classmethod
    def of(cls, byte: int) -> "SizeEncoding":
        return cls(byte >> 6)


@dataclass(frozen=True)
class DecodedChunk:
    """
    Result of decoding one zero-delimited chunk of the key region.

    Attributes:
        encoding: Size encoding of the chunk's first byte
        key: The decoded key, or None when the chunk could not be decoded
        reason: Why decoding failed (empty when ``key`` is set)
        raw: The chunk bytes
    """
    encoding: SizeEncoding
    key: Optional[bytes] = None
    reason: str = ""
    raw: bytes = b""

    @property
    def ok(self) -> bool:
        return self.key is not None


def locate_key_region(block: bytes) -> bytes:
    """Return the bytes between the hash-table header and the EOF marker."""
    marker = block.find(bytes([RESIZEDB_OPCODE]))
    if marker == -1:
        return b""

    start = marker + RESIZEDB_HEADER_LEN
    end = block.find(bytes([EOF_OPCODE]), start)
    if end == -1:
        end = len(block)
    return block[start:end]


def split_chunks(region: bytes) -> List[bytes]:
    """Split the key region into per-entry chunks on zero bytes."""
    if region[:1] == bytes([STRING_TYPE]):
        region = region[1:]
    return [chunk for chunk in region.split(bytes([STRING_TYPE])) if chunk]


def decode_chunk(chunk: bytes) -> DecodedChunk:
    """Decode the length-prefixed key at the start of ``chunk``."""
    encoding = SizeEncoding.of(chunk[0])

    if encoding != SizeEncoding.LENGTH_6BIT:
        return DecodedChunk(
            encoding=encoding,
            reason=f"unsupported encoding {encoding.name}",
            raw=chunk,
        )

    length = chunk[0] & 0x3F
    key = chunk[1:1 + length]
    if len(key) < length:
        return DecodedChunk(
            encoding=encoding,
            reason=f"truncated: expected {length} bytes, got {len(key)}",
            raw=chunk,
        )
    return DecodedChunk(encoding=encoding, key=key, raw=chunk)


class SnapshotScanner:
    """
    Answers "which snapshot keys match this pattern" for KEYS.

    The file is opened once, when the scanner is created. Every query
    reads the leading block with a positional read at offset 0, so
    concurrent queries never share a file cursor. Where os.pread is
    missing (Windows) the read is a seek and read under a lock instead.

    If the file cannot be opened the scanner stays usable and reports an
    empty dataset.

    Usage:
        with SnapshotScanner("/tmp/redis-data/dump.rdb") as scanner:
            scanner.keys(re.compile(rb".*"))

    Attributes:
        path: Snapshot file path
        block_size: Number of leading bytes read per query
    """

    def __init__(
            self,
            path: str,
            block_size: int = None,
            logger: logging.Logger = None,
    ):
        self.path = path
        self.block_size = block_size if block_size is not None else settings.SNAPSHOT_BLOCK_SIZE
        self.logger = logger if logger is not None else logging.getLogger(__name__)

        self._file: Optional[BinaryIO] = None
        self._lock = threading.Lock()
        try:
            self._file = self._open(path)
        except SnapshotUnavailable as exc:
            self.logger.warning(f"Snapshot unavailable, KEYS will return nothing: {exc}")

    @staticmethod
    def _open(path: str) -> BinaryIO:
        try:
            return open(path, "rb", buffering=0)
        except OSError as exc:
            raise SnapshotUnavailable(f"cannot open {path}: {exc}") from exc

    @property
    def available(self) -> bool:
        """True if the snapshot file was opened."""
        return self._file is not None

    def read_block(self) -> bytes:
        """Read the leading block of the snapshot (empty if unavailable)."""
        if self._file is None:
            return b""
        if hasattr(os, "pread"):
            return os.pread(self._file.fileno(), self.block_size, 0)
        with self._lock:
            self._file.seek(0)
            return self._file.read(self.block_size)

    def iter_chunks(self) -> Iterator[DecodedChunk]:
        """Decode every chunk of the key region, in file order."""
        for chunk in split_chunks(locate_key_region(self.read_block())):
            result = decode_chunk(chunk)
            if not result.ok:
                self.logger.debug(f"Skipping snapshot chunk {chunk!r}: {result.reason}")
            yield result

    def scan(self) -> List[DecodedChunk]:
        """All decoded chunks, including the ones that failed."""
        return list(self.iter_chunks())

    def keys(self, pattern: "re.Pattern[bytes]") -> List[bytes]:
        """
        Keys in the snapshot that fully match ``pattern``.

        Returns:
            Matching keys in scan order (not sorted)
        """
        return [
            chunk.key for chunk in self.iter_chunks()
            if chunk.ok and pattern.fullmatch(chunk.key)
        ]

    def close(self) -> None:
        """Close the snapshot file."""
        if self._file is not None:
            self._file.close()
            self._file = None

    def __enter__(self) -> "SnapshotScanner":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
