"""Step-by-step state machine executing a compiled plan."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import List, Optional

from .contracts import Plan, Step, TransitionCondition
from .models import Annotation, CapturedMedia, LifecycleState, SessionState, utcnow
from .persistence import SessionStore

logger = logging.getLogger(__name__)


class SnapshotWriter:
    """Write session snapshots to a store from a single background task.

    Snapshots submitted while a write is in progress are coalesced; only the
    newest one is written next, so the store always converges on the latest
    state. Without a running event loop the snapshot is written inline.
    Store failures are logged and never reach the caller.
    """

    def __init__(self, store: SessionStore) -> None:
        self._store = store
        self._pending: Optional[SessionState] = None
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def store(self) -> SessionStore:
        return self._store

    def submit(self, snapshot: SessionState) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(self._write(snapshot))
            return
        self._pending = snapshot
        if self._task is None or self._task.done():
            self._task = loop.create_task(self._drain())

    async def flush(self) -> None:
        """Wait until every submitted snapshot has been written."""
        while self._task is not None and not self._task.done():
            await self._task

    async def _drain(self) -> None:
        while self._pending is not None:
            snapshot, self._pending = self._pending, None
            await self._write(snapshot)

    async def _write(self, snapshot: SessionState) -> None:
        try:
            await self._store.save(snapshot)
        except Exception:
            logger.exception("Failed to persist session snapshot; continuing in memory")


class CaptureSession:
    """Finite-state machine walking a plan one step at a time.

    A session has exactly one writer. Every mutating operation holds the
    session lock, so concurrent callers are serialized rather than
    interleaved, and ends by handing a snapshot to the store. Operations
    never raise: a missing plan or step is a no-op and an unresolvable
    transition falls back to sequential progression.
    """

    def __init__(
        self,
        state: Optional[SessionState] = None,
        store: Optional[SessionStore] = None,
    ) -> None:
        self._state = state or SessionState()
        self._writer = SnapshotWriter(store) if store is not None else None
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Read-only views
    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def plan(self) -> Optional[Plan]:
        return self._state.plan

    @property
    def lifecycle_state(self) -> LifecycleState:
        return self._state.lifecycle_state

    @property
    def current_step_index(self) -> int:
        return self._state.current_step_index

    @property
    def current_step(self) -> Optional[Step]:
        state = self._state
        if state.lifecycle_state is LifecycleState.COMPLETED or state.plan is None:
            return None
        if 0 <= state.current_step_index < len(state.plan.steps):
            return state.plan.steps[state.current_step_index]
        return None

    @property
    def is_complete(self) -> bool:
        return self._state.lifecycle_state is LifecycleState.COMPLETED

    @property
    def progress(self) -> float:
        """Index of the current step divided by the step count.

        The value never reaches 1.0, even after completion.
        """
        plan = self._state.plan
        if plan is None or not plan.steps:
            return 0.0
        return self._state.current_step_index / len(plan.steps)

    def media_for_step(self, step_id: str) -> List[CapturedMedia]:
        return [m for m in self._state.captured_media if m.step_id == step_id]

    def annotations_for_step(self, step_id: str) -> List[Annotation]:
        return [a for a in self._state.annotations if a.step_id == step_id]

    # ------------------------------------------------------------------
    # Lifecycle
    def start(self, plan: Plan) -> None:
        """Begin executing ``plan`` from its first step, discarding prior state."""
        with self._lock:
            self._state = SessionState(
                plan=plan,
                current_step_index=0,
                lifecycle_state=LifecycleState.ACTIVE,
                started_at=utcnow(),
            )
            logger.info(f"Started session for plan {plan.id} with {len(plan.steps)} steps")
            self._persist()

    def pause(self) -> None:
        with self._lock:
            if self._state.lifecycle_state is not LifecycleState.ACTIVE:
                logger.debug(f"Ignoring pause in state {self._state.lifecycle_state.value}")
                return
            self._state.lifecycle_state = LifecycleState.PAUSED
            self._persist()

    def resume(self) -> None:
        with self._lock:
            if self._state.lifecycle_state is not LifecycleState.PAUSED:
                logger.debug(f"Ignoring resume in state {self._state.lifecycle_state.value}")
                return
            self._state.lifecycle_state = LifecycleState.ACTIVE
            self._persist()

    def complete(self) -> None:
        """Mark the session completed. Calling it again changes nothing."""
        with self._lock:
            if self._state.lifecycle_state is LifecycleState.COMPLETED:
                return
            self._state.lifecycle_state = LifecycleState.COMPLETED
            self._state.completed_at = utcnow()
            logger.info(
                f"Session completed at step index {self._state.current_step_index}"
            )
            self._persist()

    # ------------------------------------------------------------------
    # Transitions
    def advance(self, condition: TransitionCondition = TransitionCondition.ON_SUCCESS) -> None:
        """Move past the current step according to ``condition``.

        The first transition declared for ``condition`` wins and its target is
        resolved by step id. Without a usable transition the session moves to
        the next step in plan order, or completes on the last step.
        """
        with self._lock:
            step = self.current_step
            plan = self._state.plan
            if step is None or plan is None:
                logger.debug("advance() called without a current step")
                return

            transition = step.transition_for(condition)
            target_index = plan.index_of(transition.to) if transition else None
            if transition is not None and target_index is None:
                logger.warning(
                    f"Step '{step.id}' transition {condition.value} targets unknown "
                    f"step '{transition.to}'; moving sequentially"
                )

            if target_index is not None:
                logger.debug(f"Step '{step.id}' {condition.value} -> '{transition.to}'")
                self._state.current_step_index = target_index
            elif self._state.current_step_index < plan.last_index:
                self._state.current_step_index += 1
            else:
                self.complete()
                return
            self._persist()

    def skip(self) -> None:
        self.advance(TransitionCondition.ON_SKIP)

    def fail(self) -> None:
        self.advance(TransitionCondition.ON_FAILURE)

    def retry(self) -> None:
        """Discard media captured for the current step; annotations are kept."""
        with self._lock:
            step = self.current_step
            if step is not None:
                self._state.captured_media = [
                    m for m in self._state.captured_media if m.step_id != step.id
                ]
            self._persist()

    # ------------------------------------------------------------------
    # Logs
    def add_media(self, media: CapturedMedia) -> None:
        with self._lock:
            self._state.captured_media.append(media)
            self._persist()

    def add_annotation(self, annotation: Annotation) -> None:
        with self._lock:
            self._state.annotations.append(annotation)
            self._persist()

    # ------------------------------------------------------------------
    # Persistence
    def _persist(self) -> None:
        if self._writer is None:
            return
        self._writer.submit(self._state.model_copy(deep=True))

    async def flush(self) -> None:
        """Wait for pending snapshot writes to reach the store."""
        if self._writer is not None:
            await self._writer.flush()
