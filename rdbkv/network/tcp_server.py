"""
Async TCP Server Module

This module implements the asynchronous TCP server for rdbkv.

Each accepted connection gets its own handler coroutine. A slow or
stalled client only blocks its own handler; the listener and every other
connection keep running. All handlers share one KVStore, one ConfigStore
and one SnapshotScanner.
"""

import asyncio
import logging
from asyncio import StreamReader, StreamWriter
from typing import Optional

from ..cache.store import KVStore
from ..config.config_store import ConfigStore
from ..config.settings import settings
from ..errors import InvalidExpiryError, ProtocolError
from ..protocol.commands import Command, Response
from ..protocol.dispatcher import CommandDispatcher
from ..protocol.parser import ProtocolParser
from ..snapshot.scanner import SnapshotScanner


class KVServer:
    """
    Asynchronous TCP server for the rdbkv service.

    Features:
    - Non-blocking I/O with asyncio
    - Persistent connections (multiple commands per connection)
    - Command errors are answered and the connection stays open;
      framing errors are answered and the connection is closed
    - Shared KVStore across all connections

    Usage:
        server = KVServer(host='0.0.0.0', port=6379)
        await server.start()  # Runs forever

    Attributes:
        host: Server bind address (e.g., '0.0.0.0')
        port: Server port number (e.g., 6379)
        store: The KVStore instance shared by all connections
        config: The ConfigStore answering CONFIG GET
        scanner: The SnapshotScanner answering KEYS
        parser: The ProtocolParser for decoding requests
        dispatcher: The CommandDispatcher executing commands
    """

    def __init__(
            self,
            host: str = None,
            port: int = None,
            store: KVStore = None,
            config: ConfigStore = None,
            scanner: SnapshotScanner = None,
            logger: logging.Logger = None,
    ):
        """
        Initialize the server.

        Args:
            host: Bind address (default from settings)
            port: Port number (default from settings)
            store: KVStore instance (creates new one if not provided)
            config: ConfigStore (built from settings if not provided)
            scanner: SnapshotScanner (opens config.snapshot_path if not provided)
            logger: Logger for connection events (default: module logger)
        """
        self.host = host if host is not None else settings.HOST
        self.port = port if port is not None else settings.PORT
        self.logger = logger if logger is not None else logging.getLogger(__name__)
        self.store = store if store is not None else KVStore()
        self.config = config if config is not None else ConfigStore(
            dir=settings.DIR, dbfilename=settings.DBFILENAME,
        )
        self.scanner = scanner if scanner is not None else SnapshotScanner(
            self.config.snapshot_path,
        )
        self.parser = ProtocolParser()
        self.dispatcher = CommandDispatcher(self.store, self.config, self.scanner)

        # Server state
        self._server: Optional[asyncio.Server] = None
        self._running = False
        self._connection_count = 0
        self._total_requests = 0

    async def handle_client(
            self,
            reader: StreamReader,
            writer: StreamWriter
    ) -> None:
        """
        Handle a single client connection.

        Reads requests until the client disconnects, answering each one.
        Connection I/O errors are logged and end only this connection.
        """
        addr = writer.get_extra_info('peername')
        self._connection_count += 1
        self.logger.debug(f"Client connected: {addr}")

        try:
            while True:
                try:
                    command = await self.parser.read_request(reader)
                except InvalidExpiryError as exc:
                    # Request was fully read; the connection is still in sync
                    await self._send(writer, Response.error(str(exc)))
                    continue
                except ProtocolError as exc:
                    # Framing is lost; answer and drop the connection
                    self.logger.debug(f"Protocol error from {addr}: {exc}")
                    await self._send(writer, Response.error(str(exc)))
                    break

                if command is None:
                    self.logger.debug(f"Client disconnected: {addr}")
                    break

                self._total_requests += 1
                await self._send(writer, self.execute(command))

        except ConnectionError as exc:
            self.logger.debug(f"Connection error from {addr}: {exc}")
        except Exception as exc:  # Log unexpected errors but keep server alive
            self.logger.exception(f"Error handling client {addr}: {exc}")
        finally:
            try:
                writer.close()
                await writer.wait_closed()
            except ConnectionError:
                pass

    def execute(self, command: Command) -> Response:
        """
        Execute a parsed command.

        Unknown commands and wrong argument counts become error responses.
        """
        self.logger.debug(f"Executing {command.name} {command.args!r}")
        return self.dispatcher.dispatch(command)

    def handle_request(self, data: bytes) -> bytes:
        """
        Parse, execute and encode one complete request buffer.

        Returns:
            Encoded reply bytes; malformed requests produce an -ERR reply.
        """
        try:
            command = self.parser.parse_request(data)
        except ProtocolError as exc:
            return self.parser.format_response(Response.error(str(exc)))
        return self.parser.format_response(self.execute(command))

    async def _send(self, writer: StreamWriter, response: Response) -> None:
        writer.write(self.parser.format_response(response))
        await writer.drain()

    async def start(self) -> None:
        """
        Start the server and begin accepting connections.

        Runs forever (or until cancelled). Call from asyncio.run() or
        within an existing event loop.
        """
        if self._running:
            return

        self._server = await asyncio.start_server(
            self.handle_client,
            self.host,
            self.port,
            limit=settings.READ_BUFFER_SIZE,
        )
        self._running = True

        addrs = ', '.join(str(sock.getsockname()) for sock in self._server.sockets or [])
        self.logger.info(f"Serving on {addrs}")

        try:
            async with self._server:
                await self._server.serve_forever()
        except asyncio.CancelledError:
            # Expected during shutdown/fixture cleanup
            self.logger.debug("Server start cancelled")
        finally:
            self._running = False

    async def stop(self) -> None:
        """
        Stop the server gracefully.

        Closes the listener and the snapshot file.
        """
        if self._server is None:
            return

        self._server.close()
        try:
            await self._server.wait_closed()
        finally:
            self._server = None
            self._running = False
            self.scanner.close()

    def is_running(self) -> bool:
        """Check if the server is currently running."""
        return self._running

    def get_stats(self) -> dict:
        """
        Get server statistics.

        Returns:
            Dictionary with server stats including connection counts,
            request counts, and store statistics.
        """
        return {
            "running": self._running,
            "host": self.host,
            "port": self.port,
            "snapshot_available": self.scanner.available,
            "total_connections": self._connection_count,
            "total_requests": self._total_requests,
            "store_stats": self.store.get_stats(),
        }
