"""Storage hooks and the scheme-based store factory.

Connection addresses are URLs; the scheme selects the store implementation.
Only ``memory://`` ships with docknobs. Other stores are plugged in with
:func:`register_store`.

Example:
    ```python
    from docknobs.storage import register_store

    async def connect_mongo(address, options):
        return MyMongoHook(address, timeout_ms=options.connect_timeout_ms)

    register_store("mongodb", connect_mongo)
    ```
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING
from urllib.parse import urlparse

from docknobs.exceptions import ConfigurationError

from .base import StorageHook
from .memory import MemoryStore

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from docknobs.config import ConnectionOptions

    StoreFactory = Callable[[str, ConnectionOptions], Awaitable[StorageHook]]

logger = logging.getLogger(__name__)

_factories: dict[str, StoreFactory] = {"memory": MemoryStore.connect}
_factories_lock = threading.Lock()


def register_store(scheme: str, factory: StoreFactory) -> None:
    """Register an async store factory for a URL scheme.

    Args:
        scheme: URL scheme such as "mongodb"
        factory: Coroutine function ``(address, options) -> StorageHook``
    """
    with _factories_lock:
        _factories[scheme.lower()] = factory
    logger.debug("Registered store factory for scheme '%s'", scheme)


def unregister_store(scheme: str) -> None:
    """Remove the store factory for a URL scheme, if one is registered."""
    with _factories_lock:
        _factories.pop(scheme.lower(), None)


def available_schemes() -> list[str]:
    with _factories_lock:
        return sorted(_factories)


async def create_store(address: str, options: ConnectionOptions) -> StorageHook:
    """Create a storage hook for an address.

    Raises:
        ConfigurationError: If no factory is registered for the address scheme
    """
    scheme = urlparse(address).scheme.lower()
    with _factories_lock:
        factory = _factories.get(scheme)
    if factory is None:
        raise ConfigurationError(
            f"No store registered for scheme '{scheme}' in address '{address}'. "
            f"Available schemes: {', '.join(available_schemes())}",
            context={"address": address, "scheme": scheme},
        )
    return await factory(address, options)


__all__ = [
    "StorageHook",
    "MemoryStore",
    "register_store",
    "unregister_store",
    "available_schemes",
    "create_store",
]
