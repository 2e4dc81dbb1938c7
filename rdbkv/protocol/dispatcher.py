"""
Command Dispatcher Module

Routes a parsed Command to the key-value store, the config store or the
snapshot scanner and builds the Response to send back.
"""

import logging
import re

from ..cache.store import KVStore
from ..config.config_store import ConfigStore
from ..snapshot.scanner import SnapshotScanner
from ..errors import ConfigurationError
from .commands import Command, CommandType, Response, to_bytes

INVALID_COMMAND_MESSAGE = "invalid command"


def compile_glob(pattern: str) -> "re.Pattern[bytes]":
    """
    Compile a KEYS glob into a byte regex.

    Only ``*`` is special and matches any sequence, including an empty
    one. Every other character matches itself. Use fullmatch().
    """
    parts = [re.escape(part) for part in to_bytes(pattern).split(b"*")]
    return re.compile(b".*".join(parts), re.DOTALL)


class CommandDispatcher:
    """
    Executes commands against the server's data sources.

    Commands:
        PING                        -> +PONG
        ECHO <data>                 -> $<len> <data>
        SET <key> <value> [PX <ms>] -> +OK
        GET <key>                   -> $<len> <value> | $-1
        CONFIG GET <param>          -> *2 <param> <value>
        KEYS <pattern>              -> *<n> <key>...

    The dispatcher holds no state of its own.

    Attributes:
        store: Shared KVStore
        config: ConfigStore answering CONFIG GET
        scanner: SnapshotScanner answering KEYS
    """

    def __init__(
            self,
            store: KVStore,
            config: ConfigStore,
            scanner: SnapshotScanner,
            logger: logging.Logger = None,
    ):
        self.store = store
        self.config = config
        self.scanner = scanner
        self.logger = logger if logger is not None else logging.getLogger(__name__)

        self._handlers = {
            CommandType.PING: self._ping,
            CommandType.ECHO: self._echo,
            CommandType.SET: self._set,
            CommandType.GET: self._get,
            CommandType.CONFIG: self._config,
            CommandType.KEYS: self._keys,
        }

    def dispatch(self, command: Command) -> Response:
        """
        Execute a command and return its response.

        Unknown commands and wrong argument counts produce error
        responses; nothing is raised to the caller.
        """
        handler = self._handlers.get(command.type)
        if handler is None:
            self.logger.debug(f"Invalid command: {command.name!r}")
            return Response.error(INVALID_COMMAND_MESSAGE)

        if not command.is_valid:
            self.logger.debug(f"Wrong arguments for {command.name}: {command.args!r}")
            return Response.error(f"invalid {command.name} command")

        return handler(command)

    def _ping(self, command: Command) -> Response:
        return Response.pong()

    def _echo(self, command: Command) -> Response:
        return Response.bulk(command.args[0])

    def _set(self, command: Command) -> Response:
        key, value = command.args[0], command.args[1]
        self.store.set(key, value, command.expiry_ms if command.has_expiry else 0)
        return Response.ok()

    def _get(self, command: Command) -> Response:
        key = command.args[0]
        value = self.store.get(key)
        if value is None:
            self.logger.debug(f"Key {key!r} does not exist")
            return Response.nil()
        return Response.bulk(value)

    def _config(self, command: Command) -> Response:
        param = command.args[1].lower()
        try:
            value = self._config_value(param)
        except ConfigurationError as exc:
            return Response.error(str(exc))
        return Response.array([param, value])

    def _config_value(self, param: str) -> str:
        if param not in self.config:
            raise ConfigurationError()
        return self.config.get(param)

    def _keys(self, command: Command) -> Response:
        pattern = compile_glob(command.args[0])
        matches = self.scanner.keys(pattern)
        self.logger.debug(f"KEYS {command.args[0]!r} matched {len(matches)} key(s)")
        return Response.array(matches)
