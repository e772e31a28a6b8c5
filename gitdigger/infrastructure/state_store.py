"""
Cache/State store persisting per-repository SyncState between runs.
"""

import asyncio
import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Iterator, Optional, Union

from ..models import RepoIdentity, SyncState
from .logger import logger


class StateStore(ABC):
    """
    Upsert store of SyncState keyed by repository identity.

    Writers must hold `lock(identity)` while reading-modifying-writing one
    identity; different identities can be written concurrently.
    """

    def __init__(self):
        self._locks: Dict[RepoIdentity, asyncio.Lock] = {}

    def lock(self, identity: RepoIdentity) -> asyncio.Lock:
        if identity not in self._locks:
            self._locks[identity] = asyncio.Lock()
        return self._locks[identity]

    @abstractmethod
    def get(self, identity: RepoIdentity) -> Optional[SyncState]:
        """Return the stored state, or None if the identity was never synced."""

    @abstractmethod
    def put(self, state: SyncState) -> None:
        """Insert or replace the state for `state.identity`."""

    @abstractmethod
    def all(self) -> Iterator[SyncState]:
        """Lazily iterate every stored state."""

    @abstractmethod
    def delete(self, identity: RepoIdentity) -> bool:
        """Explicitly forget an identity. Returns False if nothing was stored."""


class MemoryStateStore(StateStore):
    """Process local store; state is lost when the process exits."""

    def __init__(self):
        super().__init__()
        self._states: Dict[RepoIdentity, SyncState] = {}

    def get(self, identity: RepoIdentity) -> Optional[SyncState]:
        return self._states.get(identity)

    def put(self, state: SyncState) -> None:
        self._states[state.identity] = state

    def all(self) -> Iterator[SyncState]:
        yield from list(self._states.values())

    def delete(self, identity: RepoIdentity) -> bool:
        return self._states.pop(identity, None) is not None


class JsonStateStore(StateStore):
    """
    One JSON document per identity under `root/<provider>[@host]/<owner>/<name>.json`.

    Documents are written to a temporary file in the target directory and
    moved into place with `os.replace`, so readers never observe a partial
    record.
    """

    SUFFIX = ".json"

    def __init__(self, root: Union[str, Path]):
        super().__init__()
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, identity: RepoIdentity) -> Path:
        *directories, name = identity.path_parts()
        return self.root.joinpath(*directories, name + self.SUFFIX)

    def get(self, identity: RepoIdentity) -> Optional[SyncState]:
        path = self.path_for(identity)
        if not path.exists():
            return None
        return self._load(path)

    def put(self, state: SyncState) -> None:
        path = self.path_for(state.identity)
        path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(state.to_dict(), f, indent=2, sort_keys=True)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

        logger.debug(f"Stored sync state for {state.identity}")

    def all(self) -> Iterator[SyncState]:
        for path in sorted(self.root.rglob(f"*{self.SUFFIX}")):
            state = self._load(path)
            if state is not None:
                yield state

    def delete(self, identity: RepoIdentity) -> bool:
        path = self.path_for(identity)
        if not path.exists():
            return False
        path.unlink()
        logger.info(f"Removed sync state for {identity}")
        return True

    def _load(self, path: Path) -> Optional[SyncState]:
        try:
            with open(path, encoding="utf-8") as f:
                return SyncState.from_dict(json.load(f))
        except (OSError, ValueError, KeyError) as e:
            logger.warning(f"Ignoring unreadable state file {path}: {e}")
            return None


__all__ = ["StateStore", "MemoryStateStore", "JsonStateStore"]
