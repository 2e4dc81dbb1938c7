"""Cache module for rdbkv."""

from .store import KVStore

__all__ = ["KVStore"]
