#!/usr/bin/env python3
"""
rdbkv Server Entry Point

This is the main entry point for starting the rdbkv server.

Usage:
    python -m rdbkv.server                              # Default settings (0.0.0.0:6379)
    python -m rdbkv.server --port 6380                  # Custom port
    python -m rdbkv.server --dir /data --dbfilename x.rdb
    python -m rdbkv.server --debug                      # Enable debug logging

Environment Variables:
    RDBKV_HOST          - Server bind address
    RDBKV_PORT          - Server port
    RDBKV_DIR           - Directory holding the snapshot file
    RDBKV_DBFILENAME    - Snapshot file name
    RDBKV_DEBUG         - Enable debug mode (true/false)
    RDBKV_LOG_LEVEL     - Log level when debug is off
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import List, Optional

from .cache.store import KVStore
from .config.config_store import ConfigStore
from .config.settings import settings
from .network.tcp_server import KVServer
from .snapshot.scanner import SnapshotScanner


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="rdbkv: In-Memory Key-Value Store Server",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--host",
        type=str,
        default=settings.HOST,
        help="Host address to bind to",
    )

    parser.add_argument(
        "--port",
        type=int,
        default=settings.PORT,
        help="Port number to listen on",
    )

    parser.add_argument(
        "--dir",
        type=str,
        default=settings.DIR,
        help="Directory for RDB file storage",
    )

    parser.add_argument(
        "--dbfilename",
        type=str,
        default=settings.DBFILENAME,
        help="RDB file name",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        default=settings.DEBUG,
        help="Enable debug logging",
    )

    return parser.parse_args(argv)


def setup_logging(debug: bool = False) -> None:
    """Configure logging based on debug flag."""
    level = logging.DEBUG if debug else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
        ]
    )


def build_server(args: argparse.Namespace) -> KVServer:
    """Wire the store, config and snapshot scanner into a server."""
    config = ConfigStore(dir=args.dir, dbfilename=args.dbfilename)
    return KVServer(
        host=args.host,
        port=args.port,
        store=KVStore(),
        config=config,
        scanner=SnapshotScanner(config.snapshot_path),
    )


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the server."""
    args = parse_args(argv)

    # Setup logging
    setup_logging(debug=args.debug)
    logger = logging.getLogger(__name__)

    server = build_server(args)

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    async def shutdown(sig: signal.Signals) -> None:
        """Handle shutdown signal."""
        logger.info(f"Received signal {sig.name}, initiating shutdown...")
        await server.stop()

    # Register signal handlers (Unix only)
    if sys.platform != 'win32':
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(
                sig,
                lambda s=sig: asyncio.create_task(shutdown(s))
            )

    # Log startup info
    logger.info("Starting rdbkv server")
    logger.info(f"  Host: {args.host}")
    logger.info(f"  Port: {args.port}")
    logger.info(f"  Snapshot: {server.config.snapshot_path}")
    logger.info(f"  Debug: {args.debug}")

    # Run the server
    try:
        loop.run_until_complete(server.start())
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
        loop.run_until_complete(server.stop())
    except OSError as e:
        logger.error(f"Failed to bind to {args.host}:{args.port}: {e}")
        sys.exit(1)
    finally:
        loop.run_until_complete(loop.shutdown_asyncgens())
        loop.close()
        logger.info("Server shutdown complete")


if __name__ == "__main__":
    main()
