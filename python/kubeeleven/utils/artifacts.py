"""
kubeeleven/utils/artifacts.py

Manages the per-build working directory handed to kubeone:

    <base_dir>/clusters/<cluster-name>-<hash>/
        kubeone.yaml                 rendered manifest
        private.pem                  cluster SSH private key (0600)
        <cluster-name>-kubeconfig    kubeconfig seed, overwritten by kubeone (0600)

The directory name is derived from the build id only, so builds of different
clusters never share a directory. A directory left behind by an earlier failed
build of the same id is wiped when the next build prepares it.

`build_workspace` wraps prepare/release as an async context manager. On
success the directory is always removed; on failure it is kept when
`retain_on_failure` is set so the generated files can be inspected.
"""

from __future__ import annotations

import logging
import os
import shutil
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import aiofiles

from kubeeleven.exceptions import FileIOError
from kubeeleven.models.provisioning import ProvisioningView
from kubeeleven.utils.kubeconfig import kubeconfig_path
from kubeeleven.utils.templates import load_template, render_template

logger = logging.getLogger(__name__)

OUTPUT_DIRECTORY = "clusters"
MANIFEST_FILE_NAME = "kubeone.yaml"
PRIVATE_KEY_FILE_NAME = "private.pem"


def working_directory(base_dir: str, build_id: str) -> str:
    """Return '<base_dir>/clusters/<build_id>'."""
    return os.path.join(base_dir, OUTPUT_DIRECTORY, build_id)


async def prepare_working_directory(base_dir: str, build_id: str) -> str:
    """
    Create an empty working directory for `build_id`.

    Stale contents from a previous build of the same id are removed first.

    Returns:
        The working directory path.

    Raises:
        FileIOError: If the directory cannot be cleared or created.
    """
    working_dir = working_directory(base_dir, build_id)
    try:
        if os.path.lexists(working_dir):
            logger.warning("Removing stale working directory %s", working_dir)
            _remove_tree(working_dir)
        os.makedirs(working_dir, mode=0o700)
    except OSError as e:
        raise FileIOError(
            f"error while creating directory {working_dir}: {e}",
            working_dir=working_dir,
        ) from e
    return working_dir


async def _write_file(path: str, content: str, mode: Optional[int] = None) -> None:
    async with aiofiles.open(path, "w", encoding="utf-8") as f:
        await f.write(content)
    if mode is not None:
        os.chmod(path, mode)


async def materialize_artifacts(
    working_dir: str,
    view: ProvisioningView,
    private_key: str,
    kubeconfig: str,
    *,
    template_path: Optional[str] = None,
) -> None:
    """
    Write every file kubeone needs into `working_dir`.

    Args:
        working_dir: Directory returned by prepare_working_directory.
        view: ProvisioningView to render the manifest with.
        private_key: SSH private key for the cluster nodes, written verbatim.
        kubeconfig: Current kubeconfig of the cluster, possibly empty.
        template_path: Optional manifest template overriding the packaged one.

    Raises:
        TemplateError: If the manifest template cannot be loaded or rendered.
        FileIOError: If any file cannot be written.
    """
    template = load_template(template_path=template_path)
    manifest = render_template(
        template, {**dict(view), "private_key_file": PRIVATE_KEY_FILE_NAME}
    )

    files = [
        (os.path.join(working_dir, MANIFEST_FILE_NAME), manifest, None),
        (os.path.join(working_dir, PRIVATE_KEY_FILE_NAME), private_key, 0o600),
        (kubeconfig_path(working_dir, view.cluster_name), kubeconfig, 0o600),
    ]
    for path, content, mode in files:
        try:
            await _write_file(path, content, mode)
        except OSError as e:
            raise FileIOError(
                f"error while writing {os.path.basename(path)} in {working_dir}: {e}",
                cluster_name=view.cluster_name,
                working_dir=working_dir,
            ) from e
        logger.debug("Generated %s", path)


def _remove_tree(path: str) -> None:
    if os.path.isdir(path) and not os.path.islink(path):
        shutil.rmtree(path)
    else:
        os.remove(path)


async def release_working_directory(working_dir: str) -> None:
    """
    Recursively remove `working_dir`. A directory that is already gone is fine.

    Raises:
        FileIOError: If removal fails.
    """
    if not os.path.lexists(working_dir):
        return
    try:
        _remove_tree(working_dir)
    except OSError as e:
        raise FileIOError(
            f"error while removing files from {working_dir}: {e}",
            working_dir=working_dir,
        ) from e


@asynccontextmanager
async def build_workspace(
    base_dir: str,
    build_id: str,
    *,
    retain_on_failure: bool = True,
) -> AsyncGenerator[str, None]:
    """
    Async context manager owning the working directory of one build.

    Yields:
        str: The prepared, empty working directory.

    On normal exit the directory is removed (a removal failure raises
    FileIOError). If the body raises, the directory is kept when
    `retain_on_failure` is True and removed otherwise; the original exception
    always propagates.
    """
    working_dir = await prepare_working_directory(base_dir, build_id)
    try:
        yield working_dir
    except BaseException:
        if retain_on_failure:
            logger.warning("Build %s failed, keeping %s for inspection", build_id, working_dir)
        else:
            try:
                await release_working_directory(working_dir)
            except FileIOError:
                logger.exception("Could not clean up %s after failed build", working_dir)
        raise

    await release_working_directory(working_dir)
