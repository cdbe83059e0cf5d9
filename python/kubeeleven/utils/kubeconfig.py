"""
kubeeleven/utils/kubeconfig.py

Reads back the kubeconfig that kubeone downloaded into the working directory.
"""

from __future__ import annotations

import os

import aiofiles

from kubeeleven.exceptions import FileIOError


def kubeconfig_path(working_dir: str, cluster_name: str) -> str:
    """Path of the kubeconfig file for `cluster_name` inside `working_dir`."""
    return os.path.join(working_dir, f"{cluster_name}-kubeconfig")


async def read_kubeconfig(working_dir: str, cluster_name: str) -> str:
    """
    Read '<working_dir>/<cluster_name>-kubeconfig'.

    An empty string means kubeone left the seed untouched and the caller should
    keep the kubeconfig it already has.

    Raises:
        FileIOError: If the file is missing, cannot be read, or is not UTF-8.
    """
    path = kubeconfig_path(working_dir, cluster_name)
    try:
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            return await f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise FileIOError(
            f"error while reading cluster-config {path}: {e}",
            cluster_name=cluster_name,
            working_dir=working_dir,
        ) from e
