"""
=============================================================================
CORE NETWORKING MODULE
=============================================================================

The layer below HTTP: sockets and threads.

    socket_server.py   Listening socket and accept loop
    connection.py      One client socket: buffered reads, output sink, close
    thread_pool.py     Fixed worker threads with a bounded queue

    ┌──────────────┐  Connection  ┌────────────┐  task  ┌──────────────┐
    │ SocketServer │─────────────►│ HTTPServer │───────►│  ThreadPool  │
    │  accept()    │              │ _dispatch  │        │  Worker-N    │
    └──────────────┘              └────────────┘        └──────────────┘

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState
from .thread_pool import ThreadPool, Task, WorkerState

__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
    "ThreadPool",
    "Task",
    "WorkerState",
]
