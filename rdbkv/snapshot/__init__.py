"""Snapshot module for rdbkv."""

from .scanner import DecodedChunk, SizeEncoding, SnapshotScanner

__all__ = ["DecodedChunk", "SizeEncoding", "SnapshotScanner"]
