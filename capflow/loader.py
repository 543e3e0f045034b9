"""Load workflow source documents from disk or HTTPS."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional
from urllib.parse import urlparse

import httpx

from .cache import CacheWriteError, PlanCache

logger = logging.getLogger(__name__)

_EXTENSIONS = (".yaml", ".yml")


class WorkflowLoadError(Exception):
    """Base class for workflow loading failures."""


class WorkflowNotFoundError(WorkflowLoadError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Workflow '{name}' not found")
        self.name = name


class InvalidURLError(WorkflowLoadError):
    def __init__(self, url: str) -> None:
        super().__init__(f"Invalid URL: {url}")
        self.url = url


class InsecureURLError(WorkflowLoadError):
    def __init__(self, url: str) -> None:
        super().__init__(f"Only HTTPS URLs are allowed: {url}")
        self.url = url


class WorkflowFetchError(WorkflowLoadError):
    """Fetching a remote workflow failed."""


class WorkflowLoader:
    """Reads bundled workflows from a directory and fetches remote ones."""

    def __init__(
        self,
        workflows_dir: str | Path,
        cache: Optional[PlanCache] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ) -> None:
        self.workflows_dir = Path(workflows_dir)
        self._cache = cache
        self._client = client
        self.timeout = timeout

    def _path_for(self, name: str) -> Optional[Path]:
        for ext in _EXTENSIONS:
            candidate = self.workflows_dir / f"{name}{ext}"
            if candidate.is_file():
                return candidate
        return None

    def load_bundled(self, name: str) -> str:
        """Return the text of the bundled workflow ``name``."""
        path = self._path_for(name)
        if path is None:
            raise WorkflowNotFoundError(name)
        content = path.read_text(encoding="utf-8")
        logger.info(f"Loaded workflow {name} ({len(content)} characters) from {path}")
        return content

    def list_bundled(self) -> List[str]:
        if not self.workflows_dir.is_dir():
            return []
        return sorted(
            p.stem for p in self.workflows_dir.iterdir() if p.suffix in _EXTENSIONS
        )

    async def fetch_remote(self, url: str) -> str:
        """Fetch a workflow over HTTPS, reusing a cached copy when present."""
        parsed = urlparse(url)
        if not parsed.scheme or not parsed.netloc:
            raise InvalidURLError(url)
        if parsed.scheme != "https":
            raise InsecureURLError(url)

        if self._cache is not None:
            cached = self._cache.get_source(url)
            if cached is not None:
                logger.info(f"Using cached workflow source for {url}")
                return cached

        try:
            if self._client is not None:
                response = await self._client.get(url, timeout=self.timeout)
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.get(url, timeout=self.timeout)
        except httpx.HTTPError as exc:
            raise WorkflowFetchError(f"Failed to fetch workflow from {url}: {exc}") from exc

        if not response.is_success:
            raise WorkflowFetchError(
                f"Failed to fetch workflow from {url}: HTTP {response.status_code}"
            )
        content = response.text

        if self._cache is not None:
            try:
                self._cache.put_source(url, content)
            except CacheWriteError as exc:
                logger.warning(f"Fetched workflow not cached: {exc}")
        return content
