"""Presentation-facing model.

Every refresh and mutation runs on one background worker, so operations
issued by the UI are applied to the config files strictly one after the
other. Results come back through ``schedule`` (``GLib.idle_add`` in the GTK
front ends) so listeners always run on the UI thread.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, List, Optional

from .errors import OperationResult
from .identity import IdentityFacade
from .manager import ProfileRepository, Snapshot
from .parser import Profile

logger = logging.getLogger(__name__)

Scheduler = Callable[[Callable[[], Any]], Any]
Listener = Callable[["ProfileModel"], None]


def call_now(callback: Callable[[], Any]) -> None:
    callback()


class ProfileModel:
    def __init__(
        self,
        repository: ProfileRepository,
        schedule: Scheduler = call_now,
        executor: Optional[ThreadPoolExecutor] = None,
    ) -> None:
        self.repository = repository
        self._schedule = schedule
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="git-switch")
        self._listeners: List[Listener] = []
        self._pending = 0
        self._lock = threading.Lock()
        self.is_loading = False
        self.snapshot = Snapshot()
        self.identity = IdentityFacade(lambda: self.snapshot)

    @property
    def profiles(self) -> List[Profile]:
        return list(self.snapshot.profiles)

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    def _begin(self) -> None:
        with self._lock:
            self._pending += 1
            self.is_loading = True
        self._notify()

    def _publish(self, snapshot: Optional[Snapshot], on_done: Optional[Callable[[Any], None]], result: Any) -> None:
        with self._lock:
            self._pending -= 1
            self.is_loading = self._pending > 0
            if snapshot is not None:
                self.snapshot = snapshot
        self._notify()
        if on_done is not None:
            on_done(result)

    def _submit(self, work: Callable[[], Any], on_done: Optional[Callable[[Any], None]] = None) -> "Future[Any]":
        self._begin()

        def task() -> Any:
            try:
                result = work()
            except Exception:
                logger.exception("Background operation failed")
                self._schedule(lambda: self._publish(None, None, None))
                raise
            snapshot = self.repository.snapshot
            self._schedule(lambda: self._publish(snapshot, on_done, result))
            return result

        return self._executor.submit(task)

    def refresh(self, on_done: Optional[Callable[[Snapshot], None]] = None) -> "Future[Snapshot]":
        return self._submit(self.repository.refresh_all, on_done)

    def create_profile(self, name: str, email: str, folder: str,
                       on_done: Optional[Callable[[OperationResult], None]] = None) -> "Future[OperationResult]":
        return self._submit(lambda: self.repository.create_profile(name, email, folder), on_done)

    def update_profile(self, profile: Profile, new_name: str, new_email: str,
                       on_done: Optional[Callable[[OperationResult], None]] = None) -> "Future[OperationResult]":
        return self._submit(lambda: self.repository.update_profile(profile, new_name, new_email), on_done)

    def delete_profile(self, profile: Profile,
                       on_done: Optional[Callable[[OperationResult], None]] = None) -> "Future[OperationResult]":
        return self._submit(lambda: self.repository.delete_profile(profile), on_done)

    def set_global_identity(self, name: str, email: str,
                            on_done: Optional[Callable[[OperationResult], None]] = None) -> "Future[OperationResult]":
        return self._submit(lambda: self.repository.set_global_identity(name, email), on_done)

    def copy_key_material(self, profile: Profile) -> OperationResult:
        return self.repository.copy_key_material(profile)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)
