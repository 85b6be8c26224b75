"""Transport layer - how events reach their consumers.

Transports implement the EventSink protocol (async emit(SessionEvent)).

Available:
    InProcessTransport: Queue-based delivery inside one process.
"""

from conduit.transport.in_process import InProcessTransport

__all__ = ["InProcessTransport"]
