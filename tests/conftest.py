"""
Pytest Configuration and Fixtures

This module provides shared fixtures and configuration for all tests.
"""

import asyncio
import socket
import pytest
import pytest_asyncio
from contextlib import closing
from pathlib import Path
from typing import AsyncGenerator, Iterable, Tuple

from rdbkv.cache.store import KVStore
from rdbkv.config.config_store import ConfigStore
from rdbkv.network.tcp_server import KVServer
from rdbkv.protocol.dispatcher import CommandDispatcher
from rdbkv.protocol.parser import ProtocolParser
from rdbkv.snapshot.scanner import SnapshotScanner


def find_free_port() -> int:
    """Find an available port for testing."""
    with closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
        s.bind(('', 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


def encode_command(*args) -> bytes:
    """Encode a request as a RESP multi-bulk array."""
    parts = [b"*%d\r\n" % len(args)]
    for arg in args:
        data = arg if isinstance(arg, bytes) else str(arg).encode()
        parts.append(b"$%d\r\n%s\r\n" % (len(data), data))
    return b"".join(parts)


def _rdb_string(data: bytes) -> bytes:
    """Length-prefixed string using the 6-bit size encoding."""
    assert len(data) < 64
    return bytes([len(data)]) + data


def build_rdb(entries: Iterable[Tuple[bytes, bytes]]) -> bytes:
    """
    Build a minimal RDB file holding string entries.

    Layout: header, one aux field, SELECTDB 0, RESIZEDB, entries, EOF,
    then an 8-byte checksum.
    """
    entries = list(entries)
    body = b"".join(
        b"\x00" + _rdb_string(key) + _rdb_string(value) for key, value in entries
    )
    return (
        b"REDIS0011"
        + b"\xfa" + _rdb_string(b"redis-ver") + _rdb_string(b"7.2.0")
        + b"\xfe\x00"
        + b"\xfb" + bytes([len(entries), 0])
        + body
        + b"\xff"
        + b"\x00" * 8
    )


SNAPSHOT_ENTRIES = [
    (b"apple", b"red"),
    (b"apricot", b"orange"),
    (b"banana", b"yellow"),
]


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


# ============================================================================
# KVStore Fixtures
# ============================================================================

@pytest.fixture
def clock() -> FakeClock:
    """A controllable clock for TTL tests."""
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> KVStore:
    """Create a fresh KVStore driven by the fake clock."""
    return KVStore(clock=clock)


@pytest.fixture
def real_store() -> KVStore:
    """Create a KVStore on the wall clock."""
    return KVStore()


# ============================================================================
# Config and Snapshot Fixtures
# ============================================================================

@pytest.fixture
def config() -> ConfigStore:
    """Config matching the default snapshot location."""
    return ConfigStore(dir="/tmp/redis-data", dbfilename="dump.rdb")


@pytest.fixture
def rdb_factory():
    """
    Factory fixture building RDB bytes.

    Usage:
        def test_something(rdb_factory):
            data = rdb_factory([(b"key", b"value")])
    """
    return build_rdb


@pytest.fixture
def snapshot_file(tmp_path: Path) -> Path:
    """Write a snapshot holding SNAPSHOT_ENTRIES and return its path."""
    path = tmp_path / "dump.rdb"
    path.write_bytes(build_rdb(SNAPSHOT_ENTRIES))
    return path


@pytest.fixture
def scanner(snapshot_file: Path):
    """Scanner over the default test snapshot."""
    with SnapshotScanner(str(snapshot_file)) as s:
        yield s


@pytest.fixture
def missing_scanner(tmp_path: Path):
    """Scanner whose snapshot file does not exist."""
    with SnapshotScanner(str(tmp_path / "missing.rdb")) as s:
        yield s


# ============================================================================
# Protocol Fixtures
# ============================================================================

@pytest.fixture
def parser() -> ProtocolParser:
    """Create a ProtocolParser instance."""
    return ProtocolParser()


@pytest.fixture
def resp():
    """Encoder for RESP requests, e.g. resp("SET", "foo", "bar")."""
    return encode_command


@pytest.fixture
def dispatcher(store: KVStore, config: ConfigStore, scanner: SnapshotScanner) -> CommandDispatcher:
    """Dispatcher over the fake-clock store and the test snapshot."""
    return CommandDispatcher(store, config, scanner)


# ============================================================================
# Server Fixtures
# ============================================================================

@pytest.fixture
def server_port() -> int:
    """Get a free port for server testing."""
    return find_free_port()


@pytest_asyncio.fixture
async def server(server_port: int, snapshot_file: Path) -> AsyncGenerator[KVServer, None]:
    """
    Create and start a server instance for testing.

    This fixture:
    1. Creates a KVServer on a random free port, reading the test snapshot
    2. Starts it in a background task
    3. Yields the server for testing
    4. Cleans up after the test
    """
    config = ConfigStore(dir=str(snapshot_file.parent), dbfilename=snapshot_file.name)
    srv = KVServer(host='127.0.0.1', port=server_port, config=config)

    # Start server in background task
    server_task = asyncio.create_task(srv.start())

    # Wait for server to be ready
    await asyncio.sleep(0.1)

    yield srv

    # Cleanup
    await srv.stop()
    server_task.cancel()
    try:
        await server_task
    except asyncio.CancelledError:
        pass


# ============================================================================
# Client Fixtures
# ============================================================================

class AsyncClient:
    """
    Helper class for testing server interactions.

    Provides a simple async context manager interface for
    sending commands and receiving raw RESP replies.

    Usage:
        async with AsyncClient('127.0.0.1', 6379) as client:
            response = await client.send_command("SET", "key", "value")
            assert response == b"+OK\\r\\n"
    """

    def __init__(self, host: str, port: int):
        self.host = host
        self.port = port
        self.reader = None
        self.writer = None

    async def connect(self) -> None:
        """Establish connection to server."""
        self.reader, self.writer = await asyncio.open_connection(
            self.host, self.port
        )

    async def disconnect(self) -> None:
        """Close connection to server."""
        if self.writer:
            self.writer.close()
            try:
                await self.writer.wait_closed()
            except ConnectionError:
                pass

    async def send_raw(self, data: bytes) -> bytes:
        """Send raw bytes and read one reply."""
        self.writer.write(data)
        await self.writer.drain()
        return await self.read_reply()

    async def send_command(self, *args) -> bytes:
        """
        Send a command as a multi-bulk array and receive the reply.

        Returns:
            The complete reply, exactly as sent by the server
        """
        return await self.send_raw(encode_command(*args))

    async def read_reply(self) -> bytes:
        """Read one complete RESP reply, nested arrays included."""
        line = await self.reader.readuntil(b"\r\n")
        prefix = line[:1]

        if prefix == b"$":
            length = int(line[1:-2])
            if length < 0:
                return line
            return line + await self.reader.readexactly(length + 2)

        if prefix == b"*":
            parts = [line]
            for _ in range(int(line[1:-2])):
                parts.append(await self.read_reply())
            return b"".join(parts)

        return line

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()


@pytest.fixture
def client_factory(server_port: int):
    """
    Factory fixture to create test clients.

    Usage:
        async def test_something(server, client_factory):
            async with client_factory() as client:
                response = await client.send_command("GET", "key")
    """
    def factory() -> AsyncClient:
        return AsyncClient('127.0.0.1', server_port)
    return factory


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
