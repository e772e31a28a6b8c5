"""
External git collaborator used for clone and fast-forward updates.
"""

import asyncio
import shutil
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

from .error_handler import GitCommandError
from .logger import logger


class GitClient(ABC):
    """Capability interface over a git-capable tool."""

    @abstractmethod
    async def clone(self, url: str, dest: Path, depth: Optional[int] = None) -> None:
        """Clone `url` into `dest`. Raises GitCommandError on failure."""

    @abstractmethod
    async def update(self, path: Path) -> None:
        """Fetch and fast-forward the working copy at `path`. Raises GitCommandError."""


class SubprocessGitClient(GitClient):
    """Runs the `git` executable as a subprocess."""

    def __init__(self, executable: str = "git", timeout: Optional[float] = None):
        self.executable = executable
        self.timeout = timeout

    async def clone(self, url: str, dest: Path, depth: Optional[int] = None) -> None:
        cmd = ["clone", "--quiet"]
        if depth:
            cmd.extend(["--depth", str(depth)])
        cmd.extend([url, str(dest)])

        dest = Path(dest)
        existed = dest.exists()
        try:
            await self._run(cmd)
        except GitCommandError:
            # Leave no partial checkout behind
            if dest.exists():
                logger.debug(f"Removing partial clone at {dest}")
                shutil.rmtree(dest, ignore_errors=True)
                if existed:
                    dest.mkdir(parents=True, exist_ok=True)
            raise

    async def update(self, path: Path) -> None:
        await self._run(["-C", str(path), "fetch", "--quiet", "--prune", "origin"])
        # Diverged history fails here and is left for the user to resolve
        await self._run(["-C", str(path), "merge", "--ff-only", "--quiet", "@{u}"])

    async def _run(self, args: List[str]) -> str:
        cmd = [self.executable, *args]
        logger.debug(f"Running {' '.join(cmd)}")

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise GitCommandError(
                "Git is not installed or not in PATH", stderr=str(e)
            ) from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), self.timeout)
        except asyncio.TimeoutError as e:
            process.kill()
            await process.wait()
            raise GitCommandError(f"git {args[0]} timed out after {self.timeout}s") from e

        if process.returncode != 0:
            message = stderr.decode("utf-8", errors="replace").strip()
            raise GitCommandError(
                f"git {' '.join(args)} failed: {message or 'exit ' + str(process.returncode)}",
                returncode=process.returncode,
                stderr=message,
            )
        return stdout.decode("utf-8", errors="replace")


__all__ = ["GitClient", "SubprocessGitClient"]
