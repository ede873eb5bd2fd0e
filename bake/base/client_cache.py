"""
Per-build service client cache.

A build talks to four services of one provider (compute, network, block
storage, image).  Steps reach for the same client in ``run`` and again in
``cleanup``, so each :class:`~bake.builder.ImageBuilder` owns one cache
that creates every client on first use and hands back that instance
afterwards.  Nothing is shared between builds running in the same
process.
"""

from __future__ import annotations

import threading
from typing import Any, Callable

ServiceFactory = Callable[[str, str, Any], Any]


class ClientCache:
    """Lazily created service clients bound to one provider configuration.

    Args:
        cloud_provider: Cloud provider name (e.g. ``"aws"``).
        config: Provider access configuration handed to *factory*, a raw
            dict or a validated model.
        factory: Callable ``(service_name, cloud_provider, config)`` that
            creates a client, usually :func:`bake.factory.universal_factory`.
    """

    def __init__(self, cloud_provider: str, config: Any, factory: ServiceFactory) -> None:
        self.cloud_provider = cloud_provider
        self.config = config
        self._factory = factory
        self._clients: dict[str, Any] = {}
        self._lock = threading.Lock()

    def get(self, service_name: str) -> Any:
        """Return the client for *service_name*, creating it on first use."""
        with self._lock:
            if service_name not in self._clients:
                self._clients[service_name] = self._factory(
                    service_name, self.cloud_provider, self.config
                )
            return self._clients[service_name]

    def __contains__(self, service_name: str) -> bool:
        return service_name in self._clients

    def __len__(self) -> int:
        return len(self._clients)

    def clear(self) -> None:
        """Drop every client so the next :meth:`get` builds a fresh one."""
        with self._lock:
            self._clients.clear()
