"""
Unit tests for the operating state holder.
"""

import logging
import threading

import pytest

from netpolicy import state as state_module
from netpolicy.errors import InvalidStateError
from netpolicy.schema import State
from netpolicy.state import StateHolder


class TestStateHolder:
    """Tests for StateHolder."""

    def test_default_is_normal(self) -> None:
        assert StateHolder().current_state() == State.NORMAL

    def test_initial_by_name(self) -> None:
        assert StateHolder("failover").current_state() == State.FAILOVER

    def test_set_returns_previous(self) -> None:
        holder = StateHolder()
        assert holder.set_state(State.DEGRADED) == State.NORMAL
        assert holder.set_state("recovery") == State.DEGRADED
        assert holder.current_state() == State.RECOVERY

    def test_any_transition_allowed(self) -> None:
        holder = StateHolder()
        for target in (State.RECOVERY, State.NORMAL, State.FAILOVER, State.DEGRADED, State.NORMAL):
            holder.set_state(target)
            assert holder.current_state() == target

    def test_invalid_state_leaves_current(self) -> None:
        holder = StateHolder(State.DEGRADED)
        with pytest.raises(InvalidStateError):
            holder.set_state("meltdown")
        assert holder.current_state() == State.DEGRADED

    def test_invalid_initial_state(self) -> None:
        with pytest.raises(InvalidStateError):
            StateHolder("unknown")

    def test_transition_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        holder = StateHolder()
        with caplog.at_level(logging.INFO, logger="netpolicy.state"):
            holder.set_state(State.FAILOVER)
            holder.set_state(State.FAILOVER)
        messages = [r.getMessage() for r in caplog.records]
        assert messages == ["state transition NORMAL -> FAILOVER"]

    def test_repr(self) -> None:
        assert repr(StateHolder("degraded")) == "StateHolder(state=DEGRADED)"


class TestConcurrentAccess:
    """Readers always see a complete State value."""

    def test_readers_and_writer(self) -> None:
        holder = StateHolder()
        states = list(State)
        seen: list[object] = []
        errors: list[BaseException] = []
        stop = threading.Event()

        def writer() -> None:
            for i in range(2000):
                holder.set_state(states[i % len(states)])
            stop.set()

        def reader() -> None:
            try:
                while not stop.is_set():
                    seen.append(holder.current_state())
            except Exception as e:  # pragma: no cover
                errors.append(e)

        readers = [threading.Thread(target=reader) for _ in range(4)]
        for t in readers:
            t.start()
        writer_thread = threading.Thread(target=writer)
        writer_thread.start()
        writer_thread.join()
        for t in readers:
            t.join()

        assert errors == []
        assert all(isinstance(s, State) for s in seen)
        assert holder.current_state() == states[(2000 - 1) % len(states)]


class TestDefaultHolder:
    """Tests for the module-level helpers."""

    @pytest.fixture(autouse=True)
    def restore_default(self):
        previous = state_module.current_state()
        yield
        state_module.set_state(previous)

    def test_module_functions_share_holder(self) -> None:
        state_module.set_state("degraded")
        assert state_module.current_state() == State.DEGRADED
        assert state_module.get_state_holder().current_state() == State.DEGRADED
