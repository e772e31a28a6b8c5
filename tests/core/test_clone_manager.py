"""
Tests for the clone / update / no-op decision and its error mapping.
"""

from dataclasses import replace
import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from gitdigger.core.clone_manager import CloneAction, CloneManager
from gitdigger.infrastructure.error_handler import (
    CloneFailedError, GitCommandError, UpdateFailedError
)
from gitdigger.infrastructure.git_client import SubprocessGitClient
from gitdigger.infrastructure.state_store import MemoryStateStore
from gitdigger.models import ProviderKind, RepoIdentity, RepoRecord, SyncState


def make_record(updated_at=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc), **kwargs) -> RepoRecord:
    identity = kwargs.pop("identity", RepoIdentity(ProviderKind.GITHUB, "acme", "widgets"))
    return RepoRecord(
        identity=identity,
        full_name=f"{identity.owner}/{identity.name}",
        clone_url=f"https://github.com/{identity.owner}/{identity.name}.git",
        updated_at=updated_at,
        **kwargs,
    )


@pytest.fixture
def store():
    return MemoryStateStore()


@pytest.fixture
def manager(git_client, store):
    return CloneManager(git_client, store, depth=1)


def remember(store, record, path, fetched_ref):
    state = SyncState(identity=record.identity).record_success(record)
    store.put(replace(state, clone_path=path, fetched_ref=fetched_ref))


class TestLocalPath:

    def test_layout_is_provider_owner_name(self, tmp_path):
        record = make_record()

        assert CloneManager.local_path(record, tmp_path) == tmp_path / "github" / "acme" / "widgets"

    def test_nested_owner(self, tmp_path):
        record = make_record(identity=RepoIdentity(ProviderKind.GITLAB, "acme/tools", "widgets"))

        assert CloneManager.local_path(record, tmp_path) == tmp_path / "gitlab" / "acme" / "tools" / "widgets"

    def test_self_hosted_instance_gets_its_own_directory(self, tmp_path):
        record = make_record(identity=RepoIdentity(ProviderKind.GENERIC, "acme", "widgets", "gitea.com"))

        assert CloneManager.local_path(record, tmp_path) == tmp_path / "generic@gitea.com" / "acme" / "widgets"

    def test_traversal_segments_stay_under_root(self, tmp_path):
        record = make_record(identity=RepoIdentity(ProviderKind.GITLAB, "../../../escaped", "widgets"))

        path = CloneManager.local_path(record, tmp_path / "src")

        assert path == tmp_path / "src" / "gitlab" / "escaped" / "widgets"


class TestEnsureLocal:

    @pytest.mark.asyncio
    async def test_first_sync_clones_once(self, manager, git_client, tmp_path):
        record = make_record()

        path = await manager.ensure_local(record, tmp_path)

        assert path == tmp_path / "github" / "acme" / "widgets"
        assert git_client.clones == [(record.clone_url, path, 1)]
        assert git_client.updates == []

    @pytest.mark.asyncio
    async def test_current_copy_is_left_alone(self, manager, git_client, store, tmp_path):
        record = make_record()
        path = await manager.ensure_local(record, tmp_path)
        remember(store, record, path, record.revision)

        assert manager.plan(record, tmp_path) is CloneAction.NONE
        assert await manager.ensure_local(record, tmp_path) == path
        assert git_client.call_count == 1

    @pytest.mark.asyncio
    async def test_stale_copy_is_updated(self, manager, git_client, store, tmp_path):
        old = make_record()
        path = await manager.ensure_local(old, tmp_path)
        remember(store, old, path, old.revision)

        new = make_record(updated_at=datetime(2024, 6, 1, tzinfo=timezone.utc))
        assert manager.plan(new, tmp_path) is CloneAction.UPDATE
        await manager.ensure_local(new, tmp_path)

        assert git_client.updates == [path]
        assert len(git_client.clones) == 1

    @pytest.mark.asyncio
    async def test_recorded_clone_path_is_reused(self, manager, git_client, store, tmp_path):
        record = make_record()
        elsewhere = tmp_path / "elsewhere"
        (elsewhere / ".git").mkdir(parents=True)
        remember(store, record, elsewhere, "an older revision")

        assert await manager.ensure_local(record, tmp_path / "root") == elsewhere
        assert git_client.updates == [elsewhere]

    @pytest.mark.asyncio
    async def test_unrecorded_checkout_is_adopted(self, manager, git_client, tmp_path):
        record = make_record()
        path = CloneManager.local_path(record, tmp_path)
        (path / ".git").mkdir(parents=True)

        assert manager.plan(record, tmp_path) is CloneAction.UPDATE
        await manager.ensure_local(record, tmp_path)

        assert git_client.updates == [path]
        assert git_client.clones == []

    @pytest.mark.asyncio
    async def test_missing_checkout_is_recloned(self, manager, git_client, store, tmp_path):
        record = make_record()
        remember(store, record, tmp_path / "gone", record.revision)

        assert manager.plan(record, tmp_path) is CloneAction.CLONE
        await manager.ensure_local(record, tmp_path)

        assert git_client.clones[0][1] == tmp_path / "gone"

    @pytest.mark.asyncio
    async def test_record_without_revision_is_always_updated(self, manager, store, tmp_path):
        record = make_record(updated_at=None)
        path = await manager.ensure_local(record, tmp_path)
        remember(store, record, path, None)

        assert manager.plan(record, tmp_path) is CloneAction.UPDATE


class TestFailures:

    @pytest.mark.asyncio
    async def test_clone_failure_is_clone_failed(self, manager, git_client, tmp_path):
        git_client.error = GitCommandError("fatal: repository not found", returncode=128)

        with pytest.raises(CloneFailedError) as exc_info:
            await manager.ensure_local(make_record(), tmp_path)

        assert exc_info.value.kind == "CloneFailed"
        assert isinstance(exc_info.value.original_error, GitCommandError)

    @pytest.mark.asyncio
    async def test_update_failure_is_update_failed(self, manager, git_client, store, tmp_path):
        record = make_record()
        path = await manager.ensure_local(record, tmp_path)
        remember(store, record, path, "stale")
        git_client.error = GitCommandError("fatal: Not possible to fast-forward", returncode=128)

        with pytest.raises(UpdateFailedError):
            await manager.ensure_local(record, tmp_path)

    @pytest.mark.asyncio
    async def test_non_git_directory_in_the_way(self, manager, git_client, tmp_path):
        record = make_record()
        path = CloneManager.local_path(record, tmp_path)
        path.mkdir(parents=True)
        (path / "notes.txt").write_text("not a checkout")

        with pytest.raises(CloneFailedError, match="not a git working copy"):
            await manager.ensure_local(record, tmp_path)

        assert git_client.call_count == 0

    @pytest.mark.asyncio
    async def test_empty_directory_is_cloned_into(self, manager, git_client, tmp_path):
        record = make_record()
        path = CloneManager.local_path(record, tmp_path)
        path.mkdir(parents=True)

        await manager.ensure_local(record, tmp_path)

        assert len(git_client.clones) == 1

    @pytest.mark.asyncio
    async def test_timed_out_clone_is_cloned_again_next_time(self, store, tmp_path):
        record = make_record()
        path = CloneManager.local_path(record, tmp_path)
        manager = CloneManager(SubprocessGitClient(timeout=0.01), store)

        async def hang():
            await asyncio.sleep(10)

        process = MagicMock()
        process.communicate = AsyncMock(side_effect=hang)
        process.wait = AsyncMock(return_value=-9)

        async def start(*args, **kwargs):
            (path / ".git").mkdir(parents=True, exist_ok=True)
            return process

        with patch("asyncio.create_subprocess_exec", new=AsyncMock(side_effect=start)):
            with pytest.raises(CloneFailedError):
                await manager.ensure_local(record, tmp_path)

        assert manager.plan(record, tmp_path) is CloneAction.CLONE
