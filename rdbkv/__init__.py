"""
rdbkv: In-Memory Key-Value Store

A small Redis-compatible key-value server built with Python asyncio.
Speaks the RESP multi-bulk protocol over raw TCP sockets and answers
KEYS queries from a read-only RDB snapshot file.
"""

__version__ = "1.0.0"
