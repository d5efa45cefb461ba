"""Connection lifecycle management with ordered state-change notification.

A :class:`ConnectionManager` owns the connection to one backing store. It
moves through the states of :class:`~docknobs.transitions.ConnectionState`,
one transition at a time, and notifies subscribers of every transition in
subscription order.

Example:
    ```python
    from docknobs import ConnectionManager, ConnectionState

    connection = ConnectionManager()
    connection.subscribe(lambda change: print(change.current), once=True,
                         state=ConnectionState.CONNECTED)

    await connection.open("memory://localhost")
    assert connection.ready_state == 1
    await connection.close()
    ```

Concurrent ``open()`` calls share a single connection attempt. ``close()``
waits for an attempt in progress, then aborts in-flight store operations,
which fail with :class:`~docknobs.exceptions.ConnectionClosedError`.

Transitions are applied synchronously and queued; one dispatcher task
delivers them in order, and ``open()``/``close()`` return once their
transitions have been delivered. The lock is never held while a subscriber
runs.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from docknobs.config import DEFAULT_ADDRESS, ConnectionOptions
from docknobs.exceptions import (
    ConnectionClosedError,
    ConnectionFailedError,
    NotConnectedError,
)
from docknobs.storage import create_store
from docknobs.transitions import CONNECTION_TRANSITIONS, ConnectionState

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from docknobs.config import Settings
    from docknobs.model import ModelHandle
    from docknobs.schema import Schema, SchemaRegistry
    from docknobs.storage import StorageHook

    Connector = Callable[[str, ConnectionOptions], Awaitable[StorageHook]]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StateChange:
    """A single state transition delivered to subscribers.

    Attributes:
        previous: State before the transition
        current: State after the transition
        address: Address of the connection
        error: The failure that caused a transition to ERROR, if any
        timestamp: When the transition was applied
    """

    previous: ConnectionState
    current: ConnectionState
    address: str | None = None
    error: BaseException | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class Subscription:
    """Handle for a state-change subscription.

    Attributes:
        subscription_id: Unique identifier for this subscription
        handler: Callable (sync or async) invoked with each StateChange
        state: Only deliver transitions into this state, when set
        once: Cancel automatically after the first delivery
    """

    subscription_id: str
    handler: Any  # Callable[[StateChange], Any]
    state: ConnectionState | None = None
    once: bool = False

    # Set by the manager that creates the subscription
    _cancel_callback: Any = field(default=None, repr=False)

    def matches(self, change: StateChange) -> bool:
        return self.state is None or self.state is change.current

    def cancel(self) -> None:
        """Stop delivering state changes to this handler."""
        if self._cancel_callback:
            self._cancel_callback(self.subscription_id)


class ConnectionManager:
    """Manages connection establishment and teardown for a backing store.

    Args:
        address: Default address used by ``open()`` when none is given
        options: Default connection options
        connector: Coroutine function ``(address, options) -> StorageHook``;
            defaults to the scheme-based store factory
        name: Name used in log messages
    """

    def __init__(
        self,
        address: str | None = None,
        options: ConnectionOptions | dict[str, Any] | None = None,
        connector: Connector | None = None,
        name: str = "connection",
    ):
        self.name = name
        self._address = address
        self._options = self._resolve_options(options)
        self._connector = connector or create_store
        self._state = ConnectionState.DISCONNECTED
        self._lock = asyncio.Lock()
        self._opening: asyncio.Future | None = None
        self._store: StorageHook | None = None
        self._subscriptions: dict[str, Subscription] = {}
        self._changes: asyncio.Queue[StateChange] = asyncio.Queue()
        self._dispatcher: asyncio.Future | None = None
        self._pending: set[asyncio.Future] = set()
        self._aborted: set[asyncio.Future] = set()
        self._closed = False
        self.last_error: BaseException | None = None
        self.connect_attempts = 0

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> ConnectionManager:
        """Create a manager from loaded settings."""
        return cls(address=settings.address, options=settings.options, **kwargs)

    @staticmethod
    def _resolve_options(options: ConnectionOptions | dict[str, Any] | None) -> ConnectionOptions:
        if isinstance(options, ConnectionOptions):
            return options
        return ConnectionOptions.from_dict(options)

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def ready_state(self) -> int:
        return self._state.ready_state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def address(self) -> str | None:
        return self._address

    @property
    def options(self) -> ConnectionOptions:
        return self._options

    @property
    def store(self) -> StorageHook | None:
        """The storage hook of the current connection, if connected."""
        return self._store

    @property
    def pending_operations(self) -> int:
        return len(self._pending)

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(
        self,
        handler: Callable[[StateChange], Any],
        state: ConnectionState | None = None,
        once: bool = False,
    ) -> Subscription:
        """Subscribe to state transitions.

        Handlers are called in subscription order, once per transition. A
        handler may be a plain function or a coroutine function.
        Handlers run on a single dispatcher task, one transition at a time, so
        a handler may itself await ``open()`` or ``close()``; the transitions
        that causes are delivered after the current one.

        Args:
            handler: Called with a StateChange for each transition
            state: Only deliver transitions into this state
            once: Cancel the subscription after its first delivery

        Returns:
            Subscription handle that can be used to cancel the subscription
        """
        subscription = Subscription(
            subscription_id=str(uuid.uuid4()),
            handler=handler,
            state=state,
            once=once,
            _cancel_callback=self._unsubscribe,
        )
        self._subscriptions[subscription.subscription_id] = subscription
        logger.debug("Subscribed %s to %s", subscription.subscription_id[:8], self.name)
        return subscription

    def _unsubscribe(self, subscription_id: str) -> None:
        if self._subscriptions.pop(subscription_id, None) is not None:
            logger.debug("Unsubscribed %s", subscription_id[:8])

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)

    async def wait_for(self, state: ConnectionState) -> StateChange | None:
        """Wait until the manager transitions into ``state``.

        Returns None immediately when the manager is already in ``state``.
        Must not be awaited from inside a subscriber.
        """
        if self._state is state:
            return None

        future: asyncio.Future[StateChange] = asyncio.get_running_loop().create_future()

        def _resolve(change: StateChange) -> None:
            if not future.done():
                future.set_result(change)

        subscription = self.subscribe(_resolve, state=state, once=True)
        try:
            return await future
        finally:
            subscription.cancel()

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _transition(
        self,
        target: ConnectionState,
        error: BaseException | None = None,
    ) -> None:
        """Apply a validated transition and queue it for delivery.

        Transitions are applied synchronously, so two can never interleave.
        Subscribers are notified by a single dispatcher task, in the order
        the transitions were applied.
        """
        CONNECTION_TRANSITIONS.validate(self._state, target)
        change = StateChange(
            previous=self._state,
            current=target,
            address=self._address,
            error=error,
        )
        self._state = target
        logger.debug("%s: %s -> %s", self.name, change.previous.value, target.value)
        self._changes.put_nowait(change)
        if self._dispatcher is None or self._dispatcher.done():
            self._dispatcher = asyncio.ensure_future(self._dispatch())

    async def _dispatch(self) -> None:
        while not self._changes.empty():
            change = self._changes.get_nowait()
            try:
                await self._notify(change)
            finally:
                self._changes.task_done()

    async def _flush(self) -> None:
        """Wait until every applied transition has been delivered.

        A no-op inside a subscriber, which runs on the dispatcher itself.
        """
        if asyncio.current_task() is self._dispatcher:
            return
        await self._changes.join()

    async def _notify(self, change: StateChange) -> None:
        # Snapshot so handlers may subscribe or cancel during delivery
        for subscription in list(self._subscriptions.values()):
            if not subscription.matches(change):
                continue
            if subscription.once:
                self._unsubscribe(subscription.subscription_id)
            try:
                result = subscription.handler(change)
                if asyncio.iscoroutine(result):
                    await result
            except Exception:
                logger.exception(
                    "Error in state handler for subscription %s",
                    subscription.subscription_id,
                )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(
        self,
        address: str | None = None,
        options: ConnectionOptions | dict[str, Any] | None = None,
    ) -> None:
        """Open the connection.

        A no-op when already connected. When a connection attempt is in
        progress, waits for that attempt instead of starting another.

        Args:
            address: Store address; defaults to the manager's address
            options: Connection options; defaults to the manager's options

        Raises:
            ConnectionFailedError: If the connection attempt fails
        """
        async with self._lock:
            if self._state is ConnectionState.CONNECTED:
                logger.debug("%s already connected", self.name)
                opening = None
            else:
                if self._state is not ConnectionState.CONNECTING:
                    self._address = address or self._address or DEFAULT_ADDRESS
                    if options is not None:
                        self._options = self._resolve_options(options)
                    self._transition(ConnectionState.CONNECTING)
                    self._opening = asyncio.ensure_future(self._establish())
                opening = self._opening

        # Subscribers are never awaited while the lock is held
        try:
            if opening is not None:
                await asyncio.shield(opening)
        finally:
            await self._flush()

    async def _establish(self) -> None:
        address = self._address or DEFAULT_ADDRESS
        self.connect_attempts += 1
        try:
            store = await self._connector(address, self._options)
        except Exception as e:
            logger.warning("%s: connection to %s failed: %s", self.name, address, e)
            self.last_error = e
            self._transition(ConnectionState.ERROR, error=e)
            raise ConnectionFailedError(address, str(e)) from e

        self._store = store
        self._closed = False
        self.last_error = None
        self._transition(ConnectionState.CONNECTED)

    async def close(self) -> None:
        """Close the connection.

        A no-op, emitting no transitions, when already disconnected. Store
        operations still in flight fail with ConnectionClosedError.
        """
        try:
            async with self._lock:
                await self._teardown()
        finally:
            await self._flush()

    async def _teardown(self) -> None:
        if self._state is ConnectionState.CONNECTING and self._opening is not None:
            # The failure is reported to the callers of open()
            with contextlib.suppress(ConnectionFailedError):
                await asyncio.shield(self._opening)

        if self._state not in (ConnectionState.CONNECTED, ConnectionState.ERROR):
            return

        self._transition(ConnectionState.DISCONNECTING)
        self._closed = True

        pending = list(self._pending)
        for task in pending:
            self._aborted.add(task)
            task.cancel()
        if pending:
            logger.debug("%s: aborting %d in-flight operations", self.name, len(pending))
            await asyncio.gather(*pending, return_exceptions=True)

        store, self._store = self._store, None
        try:
            close = getattr(store, "close", None)
            if close is not None:
                await close()
        finally:
            self._opening = None
            self._transition(ConnectionState.DISCONNECTED)

    async def __aenter__(self) -> ConnectionManager:
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Store operations
    # ------------------------------------------------------------------

    async def execute(self, operation: str, *args: Any) -> Any:
        """Run a storage hook operation through this connection.

        Args:
            operation: Name of the storage hook method ("persist", "delete", "lookup")
            *args: Arguments passed to the method

        Returns:
            The result of the storage hook call

        Raises:
            NotConnectedError: If the connection is not open
            ConnectionClosedError: If the connection is closing or closed,
                including when it closes while the operation is in flight
        """
        if self._state is not ConnectionState.CONNECTED or self._store is None:
            if self._state is ConnectionState.DISCONNECTING or (
                self._state is ConnectionState.DISCONNECTED and self._closed
            ):
                raise ConnectionClosedError(operation)
            raise NotConnectedError(self._state.value, operation)

        method = getattr(self._store, operation)
        task = asyncio.ensure_future(method(*args))
        self._pending.add(task)
        try:
            return await task
        except asyncio.CancelledError:
            if task in self._aborted:
                raise ConnectionClosedError(operation) from None
            raise
        finally:
            self._pending.discard(task)
            self._aborted.discard(task)

    def model(
        self,
        kind: str,
        schema: Schema | None = None,
        registry: SchemaRegistry | None = None,
    ) -> ModelHandle:
        """Bind a document kind to this connection.

        When ``schema`` is given it is registered under ``kind`` first.
        """
        from docknobs.model import ModelHandle
        from docknobs.schema import default_registry

        registry = registry if registry is not None else default_registry
        if schema is not None:
            registry.register(kind, schema)
        return ModelHandle.bind(kind, self, registry=registry)

    def __repr__(self) -> str:
        return f"ConnectionManager({self.name!r}, state={self._state.value}, address={self._address!r})"


_default_connection: ConnectionManager | None = None


def get_default_connection() -> ConnectionManager:
    """Return the process-wide default connection, creating it on first use."""
    global _default_connection
    if _default_connection is None:
        _default_connection = ConnectionManager(name="default")
    return _default_connection


async def connect(
    address: str | None = None,
    options: ConnectionOptions | dict[str, Any] | None = None,
) -> None:
    """Open the default connection.

    Returns nothing; use :func:`get_default_connection` to reach the manager.
    """
    await get_default_connection().open(address, options)
