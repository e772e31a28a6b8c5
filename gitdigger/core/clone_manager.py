"""
Local clone management: decide between clone, fast-forward update and
no-op for a repository, and delegate the git work to a GitClient.
"""

from enum import Enum
from pathlib import Path
from typing import Optional

from ..models import RepoRecord, SyncState
from ..infrastructure.error_handler import (
    CloneFailedError, GitCommandError, UpdateFailedError
)
from ..infrastructure.git_client import GitClient
from ..infrastructure.logger import logger
from ..infrastructure.state_store import StateStore


class CloneAction(Enum):
    """What ensure_local will do for a repository."""

    CLONE = "clone"
    UPDATE = "update"
    NONE = "none"


class CloneManager:
    """
    Maintains on-disk working copies at `<target_dir>/<provider>[@host]/<owner>/<name>`.

    The decision uses the SyncState held by the store: the revision the
    local copy was last fetched at is compared to the record's revision.
    """

    def __init__(self, git_client: GitClient, store: StateStore, depth: Optional[int] = None):
        self.git_client = git_client
        self.store = store
        self.depth = depth

    @staticmethod
    def local_path(record: RepoRecord, target_dir: Path) -> Path:
        return Path(target_dir).joinpath(*record.identity.path_parts())

    def plan(self, record: RepoRecord, target_dir: Path) -> CloneAction:
        state = self.store.get(record.identity)
        return self._decide(record, state, self._path_for(record, state, target_dir))

    async def ensure_local(self, record: RepoRecord, target_dir: Path) -> Path:
        """
        Make sure a current working copy of `record` exists.

        Returns:
            Path of the working copy

        Raises:
            CloneFailedError: Cloning failed or the target is not a git checkout
            UpdateFailedError: Fetch / fast-forward failed (e.g. diverged history)
        """

        state = self.store.get(record.identity)
        path = self._path_for(record, state, target_dir)
        action = self._decide(record, state, path)

        if action is CloneAction.NONE:
            logger.debug(f"{record.display_name} is current at {path}")
            return path

        if action is CloneAction.CLONE:
            if path.exists() and any(path.iterdir()):
                raise CloneFailedError(f"Target {path} exists and is not a git working copy")

            logger.info(f"Cloning {record.display_name} into {path}")
            path.parent.mkdir(parents=True, exist_ok=True)
            try:
                await self.git_client.clone(record.clone_url, path, depth=self.depth)
            except GitCommandError as e:
                raise CloneFailedError(f"Clone of {record.display_name} failed", e) from e
            return path

        logger.info(f"Updating {record.display_name} in {path}")
        try:
            await self.git_client.update(path)
        except GitCommandError as e:
            raise UpdateFailedError(f"Update of {record.display_name} failed", e) from e
        return path

    def _path_for(
        self, record: RepoRecord, state: Optional[SyncState], target_dir: Path
    ) -> Path:
        if state is not None and state.clone_path is not None:
            return Path(state.clone_path)
        return self.local_path(record, target_dir)

    @staticmethod
    def _decide(record: RepoRecord, state: Optional[SyncState], path: Path) -> CloneAction:
        if not (path / ".git").exists():
            return CloneAction.CLONE
        if state is None or state.clone_path is None:
            # A checkout we did not record, e.g. from a lost state directory
            return CloneAction.UPDATE
        if record.revision is not None and state.fetched_ref == record.revision:
            return CloneAction.NONE
        return CloneAction.UPDATE


__all__ = ["CloneManager", "CloneAction"]
