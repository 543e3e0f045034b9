"""Session lifecycle coordination."""

from __future__ import annotations

import logging
from typing import Optional

from .compiler import PlanCompiler
from .config import CapflowConfig, load_config
from .loader import WorkflowLoader
from .persistence import SessionStore, get_session_store
from .session import CaptureSession

logger = logging.getLogger(__name__)


class SessionManager:
    """Compiles workflows and hands out sessions bound to the store.

    A compilation failure propagates before any session exists, so a
    session can never start with a plan that was not accepted.
    """

    def __init__(
        self,
        compiler: PlanCompiler,
        store: SessionStore,
        loader: Optional[WorkflowLoader] = None,
    ) -> None:
        self._compiler = compiler
        self._store = store
        self._loader = loader

    @classmethod
    def from_config(cls, config: Optional[CapflowConfig] = None) -> "SessionManager":
        config = config or load_config()
        compiler = PlanCompiler.from_config(config)
        return cls(
            compiler=compiler,
            store=get_session_store(config=config),
            loader=WorkflowLoader(config.workflows_dir, cache=compiler.cache),
        )

    @property
    def loader(self) -> WorkflowLoader:
        if self._loader is None:
            raise RuntimeError("SessionManager was created without a workflow loader")
        return self._loader

    async def start_session(self, document: str) -> CaptureSession:
        """Compile ``document`` and start a new session, replacing any saved one."""
        plan = await self._compiler.compile(document)
        await self._store.clear()
        session = CaptureSession(store=self._store)
        session.start(plan)
        await session.flush()
        return session

    async def start_bundled_session(self, name: str) -> CaptureSession:
        logger.info(f"Starting session with bundled workflow: {name}")
        return await self.start_session(self.loader.load_bundled(name))

    async def start_remote_session(self, url: str) -> CaptureSession:
        logger.info(f"Starting session with remote workflow: {url}")
        return await self.start_session(await self.loader.fetch_remote(url))

    async def resume_session(self) -> Optional[CaptureSession]:
        """Rebuild the saved session, or return ``None`` if nothing is saved."""
        state = await self._store.load()
        if state is None:
            return None
        logger.info(
            f"Resuming {state.lifecycle_state.value} session at step index {state.current_step_index}"
        )
        return CaptureSession(state=state, store=self._store)

    async def clear_session(self) -> None:
        await self._store.clear()
