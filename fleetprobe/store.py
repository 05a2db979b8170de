"""
Per-endpoint run state slots.

One immutable :class:`RunState` per endpoint, replaced atomically on every
change.  Each run claims its slot with :meth:`RunStateStore.begin`, which
bumps the slot's generation; snapshots published under an older
generation are dropped so a superseded run can never overwrite a newer
one.  Observers are called synchronously with every accepted snapshot.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable

from fleetprobe.errors import NotFoundError, WorkflowError
from fleetprobe.models import RunState, RunStatus

logger = logging.getLogger(__name__)

Observer = Callable[[str, RunState], None]


class RunStateStore:
    def __init__(self, endpoint_ids: Iterable[str]):
        self._states: dict[str, RunState] = {eid: RunState() for eid in endpoint_ids}
        self._generations: dict[str, int] = {eid: 0 for eid in self._states}
        self._observers: list[Observer] = []

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register *observer*; returns a function that unsubscribes it."""
        self._observers.append(observer)

        def _unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return _unsubscribe

    def get(self, endpoint_id: str) -> RunState:
        try:
            return self._states[endpoint_id]
        except KeyError:
            raise NotFoundError(f"Endpoint {endpoint_id} not found") from None

    def snapshot(self) -> dict[str, RunState]:
        return dict(self._states)

    def generation(self, endpoint_id: str) -> int:
        self.get(endpoint_id)
        return self._generations[endpoint_id]

    def is_current(self, endpoint_id: str, generation: int) -> bool:
        return self._generations.get(endpoint_id) == generation

    def begin(self, endpoint_id: str, initial: RunState) -> int:
        """Claim the slot for a new run, overwriting the previous state."""
        self.get(endpoint_id)
        generation = self._generations[endpoint_id] + 1
        self._generations[endpoint_id] = generation
        self._replace(endpoint_id, initial)
        return generation

    def publish(self, endpoint_id: str, generation: int, state: RunState) -> bool:
        """Replace the slot with *state* if *generation* is still current."""
        if not self.is_current(endpoint_id, generation):
            logger.debug("Dropping stale snapshot for %s (generation %d)", endpoint_id, generation)
            return False
        check_transition(self._states[endpoint_id].status, state.status)
        self._replace(endpoint_id, state)
        return True

    def _replace(self, endpoint_id: str, state: RunState) -> None:
        self._states[endpoint_id] = state
        for observer in list(self._observers):
            try:
                observer(endpoint_id, state)
            except Exception:
                logger.exception("Run state observer failed for %s", endpoint_id)


def check_transition(current: RunStatus, new: RunStatus) -> None:
    if current.is_terminal and new != current:
        raise WorkflowError(f"Run already {current.value}; cannot move to {new.value}")
    if new.rank < current.rank:
        raise WorkflowError(f"Status cannot regress from {current.value} to {new.value}")
