"""
Tests for the on-disk source store.

Run tests:
    pytest tests/test_source_store.py -v
"""

import asyncio

import pytest

from api.source_store import InvalidWorkspaceId, SourceStore, is_valid_user_id


@pytest.fixture
def store(tmp_path):
    return SourceStore(tmp_path / "workspaces")


class TestWorkspaceIds:
    """Test which user ids map to workspace directories."""

    @pytest.mark.parametrize("user_id", ["u1", "f8f4b2b7-b016-418b-b80b-c36630badc64", "a.b_c"])
    def test_valid_ids(self, user_id):
        assert is_valid_user_id(user_id)

    @pytest.mark.parametrize("user_id", ["", "..", "../etc", "a/b", ".hidden", "x" * 200, None, 42])
    def test_invalid_ids(self, user_id):
        assert not is_valid_user_id(user_id)

    def test_workspace_dir_rejects_traversal(self, store):
        with pytest.raises(InvalidWorkspaceId):
            store.workspace_dir("../outside")


class TestSourceAndArtifact:
    """Test reading and writing workspace files."""

    @pytest.mark.asyncio
    async def test_read_missing_source(self, store):
        assert await store.read_source("u1") is None
        assert not store.has_source("u1")

    @pytest.mark.asyncio
    async def test_source_round_trip_keeps_text_exactly(self, store):
        text = "let a = 1;\r\n\nconsole.log(a)\n"
        await store.write_source("u1", text)
        assert await store.read_source("u1") == text
        assert store.source_path("u1").parent == store.root / "u1"

    @pytest.mark.asyncio
    async def test_artifact_absent_until_written(self, store):
        await store.write_source("u1", "console.log(1)")
        assert not store.has_artifact("u1")
        assert await store.read_artifact("u1") is None

        await store.write_artifact("u1", "console.log(1)")
        assert store.has_artifact("u1")
        assert await store.read_artifact("u1") == "console.log(1)"

    @pytest.mark.asyncio
    async def test_overwrite_leaves_no_temp_files(self, store):
        for i in range(5):
            await store.write_source("u1", f"v{i}")
        files = sorted(p.name for p in (store.root / "u1").iterdir())
        assert files == ["main.ts"]
        assert await store.read_source("u1") == "v4"

    @pytest.mark.asyncio
    async def test_concurrent_writes_leave_a_complete_file(self, store):
        texts = [str(i) * 10_000 for i in range(10)]
        await asyncio.gather(*(store.write_artifact("u1", t) for t in texts))
        assert await store.read_artifact("u1") in texts

    @pytest.mark.asyncio
    async def test_users_are_isolated(self, store):
        await store.write_source("alice", "a")
        await store.write_source("bob", "b")
        assert await store.read_source("alice") == "a"
        assert await store.read_source("bob") == "b"
        assert store.list_workspaces() == ["alice", "bob"]


class TestResolveFile:
    """Test preview file lookup."""

    @pytest.mark.asyncio
    async def test_resolves_workspace_file(self, store):
        await store.write_artifact("u1", "x")
        assert store.resolve_file("u1", "main.js") == store.artifact_path("u1")

    def test_missing_file(self, store):
        assert store.resolve_file("u1", "main.js") is None

    @pytest.mark.parametrize("file_name", ["../main.ts", "a/b.js", ".main.js.tmp", ""])
    def test_rejects_unsafe_names(self, store, file_name):
        assert store.resolve_file("u1", file_name) is None

    def test_falls_back_to_shared_assets(self, tmp_path):
        assets = tmp_path / "assets"
        assets.mkdir()
        (assets / "balder.js").write_text("const canvas = null;", encoding="utf-8")
        store = SourceStore(tmp_path / "workspaces", assets_dir=assets)
        assert store.resolve_file("u1", "balder.js") == assets / "balder.js"

    @pytest.mark.asyncio
    async def test_workspace_file_wins_over_asset(self, tmp_path):
        assets = tmp_path / "assets"
        assets.mkdir()
        (assets / "main.js").write_text("shared", encoding="utf-8")
        store = SourceStore(tmp_path / "workspaces", assets_dir=assets)
        await store.write_artifact("u1", "mine")
        assert store.resolve_file("u1", "main.js") == store.artifact_path("u1")
