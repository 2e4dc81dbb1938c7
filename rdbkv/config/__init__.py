"""Configuration module for rdbkv."""

from .config_store import ConfigStore, UNKNOWN_PARAMETER
from .settings import Settings, settings

__all__ = ["ConfigStore", "Settings", "UNKNOWN_PARAMETER", "settings"]
