"""
Versioned holder of the league state.

The store is the only owner of the current ``AppState``. Writers compute a
new state from a snapshot with one of the pure engine operations and
publish it with a compare-and-swap on the version number, retrying when
another writer got there first. Subscribers (persistence, for one) are
called after each published change, in version order: publishing and
notifying happen under one lock, so a slow subscriber holds back the
next writer rather than being overtaken by it.
"""
import logging
import threading
from typing import Callable, List, Tuple

from .errors import ConflictError
from .models import AppState

logger = logging.getLogger(__name__)

MAX_RETRIES = 5


class Store:
    def __init__(self, state: AppState = None):
        self._lock = threading.Lock()
        # reentrant so a subscriber may itself dispatch
        self._publish_lock = threading.RLock()
        self._state = state if state is not None else AppState()
        self._version = 0
        self._subscribers: List[Callable] = []

    @property
    def state(self) -> AppState:
        return self._state

    @property
    def version(self) -> int:
        return self._version

    def snapshot(self) -> Tuple[int, AppState]:
        with self._lock:
            return self._version, self._state

    def subscribe(self, callback: Callable):
        """Register ``callback(version, state)`` for every published change."""
        self._subscribers.append(callback)

    def compare_and_swap(self, expected_version: int, new_state: AppState) -> bool:
        with self._publish_lock:
            with self._lock:
                if self._version != expected_version:
                    return False
                self._version += 1
                self._state = new_state
                version = self._version
            self._notify(version, new_state)
        return True

    def dispatch(self, operation: Callable, *args, **kwargs) -> Tuple[AppState, bool]:
        """
        Run ``operation(state, *args, **kwargs)`` and publish its result.

        Returns (state, changed). An operation that hands back the state it
        was given is a refusal: nothing is published and the version stays.
        """
        for _ in range(MAX_RETRIES):
            version, state = self.snapshot()
            new_state = operation(state, *args, **kwargs)
            if new_state is state:
                return state, False
            if self.compare_and_swap(version, new_state):
                return new_state, True
            logger.debug(f"State moved past version {version}, retrying {operation.__name__}")
        raise ConflictError(f"{operation.__name__} lost {MAX_RETRIES} races in a row")

    def replace(self, new_state: AppState, notify: bool = True) -> AppState:
        """
        Swap in a whole new state (document import, or a reload of a file
        another process wrote, in which case ``notify=False`` skips saving
        it straight back).
        """
        with self._publish_lock:
            with self._lock:
                self._version += 1
                self._state = new_state
                version = self._version
            if notify:
                self._notify(version, new_state)
        return new_state

    def _notify(self, version, state):
        for callback in self._subscribers:
            callback(version, state)
