"""
rdbkv Configuration Settings

This module contains all configuration constants for the rdbkv server.
Every value can be overridden through an RDBKV_* environment variable,
and the command line flags in rdbkv.server take precedence over both.
"""

import os
from dataclasses import dataclass


@dataclass
class Settings:
    """Server configuration settings."""

    # Network settings
    HOST: str = os.environ.get("RDBKV_HOST", "0.0.0.0")
    PORT: int = int(os.environ.get("RDBKV_PORT", "6379"))

    # Snapshot settings
    DIR: str = os.environ.get("RDBKV_DIR", "/tmp/redis-data")
    DBFILENAME: str = os.environ.get("RDBKV_DBFILENAME", "dump.rdb")
    SNAPSHOT_BLOCK_SIZE: int = 4096  # Bytes of the snapshot read per KEYS query

    # Connection settings
    READ_BUFFER_SIZE: int = 64 * 1024  # StreamReader limit for header lines

    # Logging settings
    DEBUG: bool = os.environ.get("RDBKV_DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.environ.get("RDBKV_LOG_LEVEL", "INFO")


# Global settings instance
settings = Settings()
