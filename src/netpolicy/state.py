"""
Operating state holder for netpolicy.

The engine never computes its own state. An external classifier watches
telemetry and calls set_state(); decisions read the current value.

A StateHolder is single-writer, multi-reader. Reads and writes go through a
lock so a reader always sees one complete State value.

Usage:
    holder = StateHolder()
    holder.set_state("degraded")
    holder.current_state()  # State.DEGRADED

The module-level set_state() / current_state() functions act on a
process-wide default holder.
"""

import logging
import threading

from netpolicy.schema import State

logger = logging.getLogger(__name__)


class StateHolder:
    """
    Holds the current operating state.

    Any state may follow any other; transitions are not validated.

    Attributes:
        _state: The current state (guarded by _lock)
    """

    def __init__(self, initial: State | str = State.NORMAL) -> None:
        self._lock = threading.Lock()
        self._state = State.parse(initial)

    def current_state(self) -> State:
        """Return the current state."""
        with self._lock:
            return self._state

    def set_state(self, new_state: State | str) -> State:
        """
        Replace the current state.

        Args:
            new_state: A State or a state name (case-insensitive)

        Returns:
            The previous state

        Raises:
            InvalidStateError: If new_state is not a known state name
        """
        state = State.parse(new_state)
        with self._lock:
            previous = self._state
            self._state = state

        if previous != state:
            logger.info("state transition %s -> %s", previous.value, state.value)
        return previous

    def __repr__(self) -> str:
        return f"StateHolder(state={self.current_state().value})"


_default_holder = StateHolder()


def get_state_holder() -> StateHolder:
    """Return the process-wide default holder."""
    return _default_holder


def current_state() -> State:
    """Current state of the process-wide holder."""
    return _default_holder.current_state()


def set_state(new_state: State | str) -> State:
    """Set the state of the process-wide holder; returns the previous state."""
    return _default_holder.set_state(new_state)
