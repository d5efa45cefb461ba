"""Connection states and the graph of allowed transitions between them.

The graph is declarative and stateless: :class:`TransitionValidator` only
answers whether a move is allowed. The connection manager owns the current
state and applies transitions one at a time.

Example:
    ```python
    from docknobs.transitions import CONNECTION_TRANSITIONS, ConnectionState

    CONNECTION_TRANSITIONS.validate(ConnectionState.DISCONNECTED, ConnectionState.CONNECTING)
    CONNECTION_TRANSITIONS.validate(ConnectionState.CONNECTED, ConnectionState.CONNECTING)
    # raises InvalidTransitionError
    ```
"""

from __future__ import annotations

from enum import Enum

from docknobs.exceptions import OperationError


class ConnectionState(Enum):
    """Lifecycle states of a connection manager."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTING = "disconnecting"
    ERROR = "error"

    @property
    def ready_state(self) -> int:
        """Numeric ready state as reported by mongoose-style connections."""
        return _READY_STATES[self]


_READY_STATES = {
    ConnectionState.DISCONNECTED: 0,
    ConnectionState.CONNECTED: 1,
    ConnectionState.CONNECTING: 2,
    ConnectionState.DISCONNECTING: 3,
    ConnectionState.ERROR: 99,
}


class InvalidTransitionError(OperationError):
    """Raised when a state transition is not allowed.

    Attributes:
        entity: Name of the transition graph
        current: The state that was being transitioned from
        target: The target state that was rejected
        allowed: Valid targets from ``current``
    """

    def __init__(
        self,
        entity: str,
        current: ConnectionState,
        target: ConnectionState,
        allowed: set[ConnectionState],
    ) -> None:
        self.entity = entity
        self.current = current
        self.target = target
        self.allowed = allowed

        allowed_str = ", ".join(sorted(state.value for state in allowed)) or "(none)"
        super().__init__(
            f"{entity}: cannot transition from '{current.value}' to '{target.value}'. "
            f"Allowed targets: {allowed_str}",
            context={
                "entity": entity,
                "current": current.value,
                "target": target.value,
                "allowed": sorted(state.value for state in allowed),
            },
        )


class TransitionValidator:
    """Stateless validator for a declarative transition graph.

    Args:
        name: Name of the graph, used in error messages
        transitions: Mapping from each state to the states it may move to
    """

    def __init__(
        self,
        name: str,
        transitions: dict[ConnectionState, set[ConnectionState]],
    ) -> None:
        self._name = name
        self._transitions = {k: set(v) for k, v in transitions.items()}

    @property
    def name(self) -> str:
        return self._name

    def allowed_from(self, current: ConnectionState) -> set[ConnectionState]:
        """Return a copy of the targets reachable in one step."""
        return set(self._transitions.get(current, set()))

    def can_transition(self, current: ConnectionState, target: ConnectionState) -> bool:
        return target in self._transitions.get(current, set())

    def validate(self, current: ConnectionState, target: ConnectionState) -> None:
        """Validate a proposed transition.

        Raises:
            InvalidTransitionError: If the transition is not allowed
        """
        if not self.can_transition(current, target):
            raise InvalidTransitionError(
                entity=self._name,
                current=current,
                target=target,
                allowed=self.allowed_from(current),
            )

    def __repr__(self) -> str:
        return f"TransitionValidator({self._name!r}, {len(self._transitions)} states)"


CONNECTION_TRANSITIONS = TransitionValidator(
    "connection",
    {
        ConnectionState.DISCONNECTED: {ConnectionState.CONNECTING},
        ConnectionState.CONNECTING: {ConnectionState.CONNECTED, ConnectionState.ERROR},
        ConnectionState.CONNECTED: {ConnectionState.DISCONNECTING},
        ConnectionState.ERROR: {ConnectionState.DISCONNECTING, ConnectionState.CONNECTING},
        ConnectionState.DISCONNECTING: {ConnectionState.DISCONNECTED},
    },
)
