"""Unit tests for the build working directory lifecycle."""

import os
import stat
from unittest.mock import patch

import pytest
import yaml

from kubeeleven.exceptions import FileIOError, TemplateError
from kubeeleven.utils.artifacts import (
    MANIFEST_FILE_NAME,
    PRIVATE_KEY_FILE_NAME,
    build_workspace,
    materialize_artifacts,
    prepare_working_directory,
    release_working_directory,
    working_directory,
)
from kubeeleven.utils.provisioning_view import build_provisioning_view


def _mode(path) -> int:
    return stat.S_IMODE(os.stat(path).st_mode)


class TestWorkingDirectory:
    """Tests for prepare/release."""

    def test_path_convention(self) -> None:
        assert working_directory("/base", "c1-h1") == os.path.join("/base", "clusters", "c1-h1")

    def test_distinct_build_ids_get_distinct_dirs(self) -> None:
        assert working_directory("/base", "c1-h1") != working_directory("/base", "c1-h2")

    @pytest.mark.asyncio
    async def test_prepare_creates_empty_directory(self, tmp_path) -> None:
        working_dir = await prepare_working_directory(str(tmp_path), "c1-h1")

        assert working_dir == str(tmp_path / "clusters" / "c1-h1")
        assert os.path.isdir(working_dir)
        assert os.listdir(working_dir) == []

    @pytest.mark.asyncio
    async def test_prepare_wipes_stale_directory(self, tmp_path) -> None:
        """Test leftovers of an earlier failed build are removed."""
        stale = tmp_path / "clusters" / "c1-h1"
        stale.mkdir(parents=True)
        (stale / "kubeone.yaml").write_text("old")

        working_dir = await prepare_working_directory(str(tmp_path), "c1-h1")

        assert os.listdir(working_dir) == []

    @pytest.mark.asyncio
    async def test_prepare_failure_raises_file_io_error(self, tmp_path) -> None:
        blocker = tmp_path / "clusters"
        blocker.write_text("not a directory")

        with pytest.raises(FileIOError, match="error while creating directory"):
            await prepare_working_directory(str(tmp_path), "c1-h1")

    @pytest.mark.asyncio
    async def test_release_removes_tree(self, tmp_path) -> None:
        working_dir = await prepare_working_directory(str(tmp_path), "c1-h1")
        (tmp_path / "clusters" / "c1-h1" / "file").write_text("x")

        await release_working_directory(working_dir)

        assert not os.path.exists(working_dir)

    @pytest.mark.asyncio
    async def test_release_missing_directory_is_fine(self, tmp_path) -> None:
        await release_working_directory(str(tmp_path / "never-created"))

    @pytest.mark.asyncio
    async def test_release_failure_raises_file_io_error(self, tmp_path) -> None:
        working_dir = await prepare_working_directory(str(tmp_path), "c1-h1")

        with patch("kubeeleven.utils.artifacts.shutil.rmtree", side_effect=PermissionError("denied")):
            with pytest.raises(FileIOError, match="error while removing files"):
                await release_working_directory(working_dir)


class TestMaterializeArtifacts:
    """Tests for writing manifest, key and kubeconfig seed."""

    @pytest.mark.asyncio
    async def test_writes_all_files(self, tmp_path, mixed_cluster) -> None:
        working_dir = await prepare_working_directory(str(tmp_path), mixed_cluster.build_id)
        view = build_provisioning_view(mixed_cluster, [])

        await materialize_artifacts(
            working_dir, view, mixed_cluster.cluster_info.private_key, "seed-kubeconfig"
        )

        assert sorted(os.listdir(working_dir)) == sorted(
            [MANIFEST_FILE_NAME, PRIVATE_KEY_FILE_NAME, "c1-kubeconfig"]
        )
        with open(os.path.join(working_dir, MANIFEST_FILE_NAME)) as f:
            manifest = yaml.safe_load(f)
        assert manifest["apiEndpoint"]["host"] == "10.0.0.1"
        with open(os.path.join(working_dir, PRIVATE_KEY_FILE_NAME)) as f:
            assert f.read() == mixed_cluster.cluster_info.private_key
        with open(os.path.join(working_dir, "c1-kubeconfig")) as f:
            assert f.read() == "seed-kubeconfig"

    @pytest.mark.asyncio
    async def test_secret_files_are_owner_only(self, tmp_path, mixed_cluster) -> None:
        working_dir = await prepare_working_directory(str(tmp_path), mixed_cluster.build_id)

        await materialize_artifacts(
            working_dir, build_provisioning_view(mixed_cluster, []), "key", ""
        )

        assert _mode(os.path.join(working_dir, PRIVATE_KEY_FILE_NAME)) == 0o600
        assert _mode(os.path.join(working_dir, "c1-kubeconfig")) == 0o600

    @pytest.mark.asyncio
    async def test_empty_kubeconfig_seed_is_written(self, tmp_path, mixed_cluster) -> None:
        working_dir = await prepare_working_directory(str(tmp_path), mixed_cluster.build_id)

        await materialize_artifacts(
            working_dir, build_provisioning_view(mixed_cluster, []), "key", ""
        )

        assert os.path.getsize(os.path.join(working_dir, "c1-kubeconfig")) == 0

    @pytest.mark.asyncio
    async def test_template_error_propagates(self, tmp_path, mixed_cluster) -> None:
        working_dir = await prepare_working_directory(str(tmp_path), mixed_cluster.build_id)
        broken = tmp_path / "broken.j2"
        broken.write_text("{{ not_in_view }}")

        with pytest.raises(TemplateError):
            await materialize_artifacts(
                working_dir,
                build_provisioning_view(mixed_cluster, []),
                "key",
                "",
                template_path=str(broken),
            )

    @pytest.mark.asyncio
    async def test_write_failure_raises_file_io_error(self, tmp_path, mixed_cluster) -> None:
        missing_dir = str(tmp_path / "does-not-exist")

        with pytest.raises(FileIOError) as exc_info:
            await materialize_artifacts(
                missing_dir, build_provisioning_view(mixed_cluster, []), "key", ""
            )

        assert exc_info.value.working_dir == missing_dir
        assert exc_info.value.cluster_name == "c1"


class TestBuildWorkspace:
    """Tests for the scoped workspace context manager."""

    @pytest.mark.asyncio
    async def test_released_on_success(self, tmp_path) -> None:
        async with build_workspace(str(tmp_path), "c1-h1") as working_dir:
            assert os.path.isdir(working_dir)

        assert not os.path.exists(working_dir)

    @pytest.mark.asyncio
    async def test_retained_on_failure_by_default(self, tmp_path) -> None:
        with pytest.raises(RuntimeError):
            async with build_workspace(str(tmp_path), "c1-h1") as working_dir:
                raise RuntimeError("boom")

        assert os.path.isdir(working_dir)

    @pytest.mark.asyncio
    async def test_released_on_failure_when_not_retained(self, tmp_path) -> None:
        with pytest.raises(RuntimeError, match="boom"):
            async with build_workspace(
                str(tmp_path), "c1-h1", retain_on_failure=False
            ) as working_dir:
                raise RuntimeError("boom")

        assert not os.path.exists(working_dir)

    @pytest.mark.asyncio
    async def test_original_error_wins_over_cleanup_error(self, tmp_path) -> None:
        """Test a failing cleanup after a failed build does not mask the build error."""
        with patch("kubeeleven.utils.artifacts.shutil.rmtree", side_effect=PermissionError("denied")):
            with pytest.raises(RuntimeError, match="boom"):
                async with build_workspace(str(tmp_path), "c1-h1", retain_on_failure=False):
                    raise RuntimeError("boom")
