"""Small finite-state machine used to guard pipeline stage transitions."""

from __future__ import annotations

from typing import Protocol

from core.errors import PipelineError


class InvalidTransitionError(PipelineError):
    """Raised when a trigger has no transition from the current state."""


class StateMachineBackend(Protocol):
    """What the orchestrator needs from an FSM: states, triggered transitions, current state."""

    def add_state(self, name: str) -> None: ...
    def add_transition(self, trigger: str, source: str, dest: str) -> None: ...
    def set_state(self, name: str) -> None: ...
    def can_trigger(self, trigger: str) -> bool: ...
    def trigger(self, trigger: str) -> None: ...
    @property
    def state(self) -> str: ...


class SimpleStateMachine(StateMachineBackend):
    """
    In-process FSM; one instance per job run, not shared across tasks.
    Transitions are keyed by (trigger, source), so a trigger has at most one
    destination from any given state. ``history`` lists the states visited.
    """

    def __init__(self) -> None:
        self._states: set[str] = set()
        self._edges: dict[tuple[str, str], str] = {}
        self._state: str | None = None
        self.history: list[str] = []

    def _require_state(self, name: str) -> None:
        if name not in self._states:
            raise ValueError(f"Unknown state: {name}")

    def add_state(self, name: str) -> None:
        self._states.add(name)

    def add_transition(self, trigger: str, source: str, dest: str) -> None:
        self._require_state(source)
        self._require_state(dest)
        if (trigger, source) in self._edges:
            raise ValueError(f"Duplicate transition '{trigger}' from '{source}'")
        self._edges[(trigger, source)] = dest

    def set_state(self, name: str) -> None:
        self._require_state(name)
        self._state = name
        self.history = [name]

    def can_trigger(self, trigger: str) -> bool:
        return (trigger, self._state) in self._edges

    def trigger(self, trigger: str) -> None:
        current = self.state
        dest = self._edges.get((trigger, current))
        if dest is None:
            raise InvalidTransitionError(f"No transition for trigger '{trigger}' from state '{current}'")
        self._state = dest
        self.history.append(dest)

    @property
    def state(self) -> str:
        if self._state is None:
            raise RuntimeError("State machine not initialized; call set_state() first")
        return self._state
