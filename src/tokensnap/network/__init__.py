"""tokensnap network layer.

The protocol core: servers, the links between them, and the coordinator
interface a server reports to.

Components:
- queue: FIFO event queue
- link: Unidirectional channel between two servers
- coordinator: Receive-time and completion boundary
- server: Chandy-Lamport participant
"""

from .coordinator import Coordinator, InMemoryCoordinator
from .link import Link
from .queue import Queue
from .server import Server

__all__ = [
    "Coordinator",
    "InMemoryCoordinator",
    "Link",
    "Queue",
    "Server",
]
