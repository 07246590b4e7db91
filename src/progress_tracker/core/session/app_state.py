"""Explicit application state: the set of open projects and their ordering."""

from collections.abc import Callable
from pathlib import Path
from typing import Any

from loguru import logger

from progress_tracker.core.session.project import ProjectSession
from progress_tracker.core.store.settings import Settings, SortOption
from progress_tracker.protocols import SnapshotStoreProtocol

_SORT_KEYS: dict[SortOption, Callable[[ProjectSession], Any]] = {
    SortOption.NAME: lambda p: p.filename.lower(),
    SortOption.LAST_ACCESSED: lambda p: p.document.last_accessed_at,
    SortOption.COMPLETION: lambda p: p.document.completion_percentage,
}


class AppState:
    """Open projects, the active one, and shared settings.

    Created at process start and passed to whatever needs it; closing it
    flushes every project's pending save.
    """

    def __init__(self, store: SnapshotStoreProtocol, settings: Settings | None = None) -> None:
        self.store = store
        self.settings = settings or Settings()
        self.projects: list[ProjectSession] = []
        self.active_path: Path | None = None

    @property
    def active_project(self) -> ProjectSession | None:
        if self.active_path is not None:
            project = self.get_project(self.active_path)
            if project is not None:
                return project
        return self.projects[0] if self.projects else None

    def get_project(self, path: str | Path) -> ProjectSession | None:
        resolved = Path(path).expanduser().resolve()
        for project in self.projects:
            if project.path == resolved:
                return project
        return None

    def is_open(self, path: str | Path) -> bool:
        return self.get_project(path) is not None

    async def open_project(self, path: str | Path) -> ProjectSession:
        """Open (or return the already open) project for ``path``.

        Raises:
            DocumentLoadError: if the file cannot be loaded.
        """
        existing = self.get_project(path)
        if existing is not None:
            return existing

        project = ProjectSession(path, self.store, settings=self.settings)
        await project.reload()
        self.projects.append(project)
        self.settings.remember_file(project.path)
        if len(self.projects) == 1:
            self.active_path = project.path
        logger.info("Opened project {}", project.filename)
        return project

    async def close_project(self, path: str | Path) -> bool:
        project = self.get_project(path)
        if project is None:
            return False
        await project.close()
        self.projects.remove(project)
        if self.active_path == project.path:
            self.active_path = self.projects[0].path if self.projects else None
        logger.info("Closed project {}", project.filename)
        return True

    def set_active(self, path: str | Path) -> ProjectSession:
        project = self.get_project(path)
        if project is None:
            msg = f"Project not open: {path}"
            raise KeyError(msg)
        self.active_path = project.path
        return project

    def sorted_projects(
        self,
        option: SortOption | None = None,
        *,
        ascending: bool | None = None,
    ) -> list[ProjectSession]:
        """Projects ordered by name, last access, or completion."""
        option = option or self.settings.default_sort
        ascending = self.settings.sort_ascending if ascending is None else ascending
        return sorted(self.projects, key=_SORT_KEYS[option], reverse=not ascending)

    async def shutdown(self) -> None:
        for project in list(self.projects):
            await project.close()
        self.projects.clear()
        self.active_path = None
