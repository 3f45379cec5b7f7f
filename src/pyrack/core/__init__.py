"""
Transport layer: the TCP plumbing under the adapter.

SocketServer    binds, listens and accepts
Connection      buffers one client's byte stream into whole requests
ThreadPool      runs connections on a bounded set of worker threads
"""

from .connection import Connection, ConnectionState
from .socket_server import SocketServer
from .thread_pool import ThreadPool

__all__ = [
    "Connection",
    "ConnectionState",
    "SocketServer",
    "ThreadPool",
]
