"""Pytest configuration and shared fixtures."""

import os
import textwrap
from typing import Callable

import pytest

from factories import make_cluster, make_node, make_pool
from kubeeleven.models.cluster import K8sCluster, NodeType
from kubeeleven.models.settings import KubeElevenSettings


@pytest.fixture
def single_master_cluster() -> K8sCluster:
    """Cluster c1/h1 with one pool holding one master at 1.2.3.4."""
    return make_cluster([make_pool("control", [make_node("control-1", "1.2.3.4", NodeType.MASTER)])])


@pytest.fixture
def mixed_cluster() -> K8sCluster:
    """Cluster c1/h1 with a control pool (two masters) and a compute pool (two workers)."""
    return make_cluster(
        [
            make_pool(
                "control",
                [
                    make_node("control-1", "10.0.0.1", NodeType.MASTER, private="192.168.2.1"),
                    make_node("control-2", "10.0.0.2", NodeType.MASTER, private="192.168.2.2"),
                ],
            ),
            make_pool(
                "gcp-compute",
                [
                    make_node("compute-1", "10.0.1.1", private="192.168.2.3"),
                    make_node("compute-2", "10.0.1.2", private="192.168.2.4"),
                ],
                region="europe-west1",
                zone="europe-west1-b",
            ),
        ]
    )


@pytest.fixture
def settings(tmp_path) -> KubeElevenSettings:
    """Settings rooted in a temporary base directory."""
    return KubeElevenSettings(base_dir=str(tmp_path / "server"))


@pytest.fixture
def fake_kubeone(tmp_path) -> Callable[[str], str]:
    """Factory writing an executable stand-in for the kubeone binary.

    The body runs in the working directory kubeone would run in; '$@' holds
    the kubeone arguments.
    """

    def _make(body: str) -> str:
        path = tmp_path / "bin" / "kubeone"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("#!/bin/sh\n" + textwrap.dedent(body))
        os.chmod(path, 0o755)
        return str(path)

    return _make
