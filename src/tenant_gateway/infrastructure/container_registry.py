"""
In-memory container IP registry.

Authoritative while the orchestrator process is alive: the orchestrator
registers a container's IP when it starts the container and forgets it
when the container goes away. The gateway only reads it.
"""

import threading
from typing import Dict, Optional


class ContainerRegistry:
    """Thread-safe container-id -> IP map."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._lock = threading.Lock()
        self._ips: Dict[str, str] = dict(initial or {})

    def get_container_ip(self, container_id: str) -> Optional[str]:
        with self._lock:
            return self._ips.get(container_id)

    def register(self, container_id: str, ip: str) -> None:
        with self._lock:
            self._ips[container_id] = ip

    def forget(self, container_id: str) -> None:
        with self._lock:
            self._ips.pop(container_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._ips)
