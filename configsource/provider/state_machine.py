"""Resolving provider lifecycle state machine."""

from enum import Enum, auto
from typing import ClassVar


class ProviderState(Enum):
    """Resolving provider lifecycle states.

    State transitions:
        READY -> SHUTTING_DOWN: Shutdown requested, waiting for retrievals
        SHUTTING_DOWN -> SHUT_DOWN: Sources released, hooks notified
        SHUT_DOWN -> SHUTTING_DOWN: Repeated shutdown call
    """

    READY = auto()
    SHUTTING_DOWN = auto()
    SHUT_DOWN = auto()


class ProviderStateError(Exception):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_state: ProviderState, to_state: ProviderState) -> None:
        """Initialize the error.

        Args:
            from_state: The current state.
            to_state: The attempted target state.
        """
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Invalid state transition: {from_state.name} -> {to_state.name}"
        )


class ProviderStateMachine:
    """State machine for the resolving provider lifecycle.

    There is no way back to READY: a shut down provider cannot be
    reinitialized.
    """

    VALID_TRANSITIONS: ClassVar[dict[ProviderState, set[ProviderState]]] = {
        ProviderState.READY: {ProviderState.SHUTTING_DOWN},
        ProviderState.SHUTTING_DOWN: {ProviderState.SHUT_DOWN},
        ProviderState.SHUT_DOWN: {ProviderState.SHUTTING_DOWN},
    }

    def __init__(self) -> None:
        """Initialize the state machine in READY state."""
        self._state = ProviderState.READY

    @property
    def state(self) -> ProviderState:
        """Get the current state."""
        return self._state

    def can_transition(self, to_state: ProviderState) -> bool:
        """Check if a transition to the given state is valid.

        Args:
            to_state: The target state.

        Returns:
            True if the transition is valid, False otherwise.
        """
        return to_state in self.VALID_TRANSITIONS.get(self._state, set())

    def transition(self, to_state: ProviderState) -> None:
        """Transition to a new state.

        Args:
            to_state: The target state.

        Raises:
            ProviderStateError: If the transition is invalid.
        """
        if not self.can_transition(to_state):
            raise ProviderStateError(self._state, to_state)
        self._state = to_state

    def is_ready(self) -> bool:
        """Check if the provider accepts retrievals."""
        return self._state == ProviderState.READY
