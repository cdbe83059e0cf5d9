"""
kubeeleven/deployment/kube_eleven.py

Builds a Kubernetes cluster with kubeone from a K8sCluster description and the
LB clusters attached to it. A build walks through these stages, each finishing
before the next starts:

  1) Preparing             create <base_dir>/clusters/<name>-<hash>
  2) Rendering             resolve the API endpoint, assemble the view,
                           write kubeone.yaml, private.pem and the kubeconfig seed
  3) Provisioning          kubeone apply
  4) ExtractingCredential  read the kubeconfig kubeone downloaded and store it
                           on the K8sCluster (only if non-empty)
  5) CleaningUp            remove the working directory
  6) Done

Any failure moves the build to Failed and raises a KubeElevenError stamped
with the stage, cluster name and working directory; other exceptions are
wrapped in one. Nothing is retried. The working directory of a failed build
is kept unless the settings say otherwise.
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Sequence, Union

from kubeeleven.exceptions import KubeElevenError
from kubeeleven.models.cluster import ClusterDescriptor, K8sCluster, LBCluster
from kubeeleven.models.provisioning import BuildResult, BuildStage, DiagnosticEvent
from kubeeleven.models.settings import KubeElevenSettings
from kubeeleven.utils.artifacts import (
    build_workspace,
    materialize_artifacts,
    working_directory,
)
from kubeeleven.utils.kubeconfig import read_kubeconfig
from kubeeleven.utils.kubeone import kubeone_apply
from kubeeleven.utils.provisioning_view import build_provisioning_view

logger = logging.getLogger(__name__)


class _StageTracker:
    """Records the stages a build passes through."""

    def __init__(self, build_id: str) -> None:
        self.build_id = build_id
        self.current = BuildStage.IDLE
        self.history: List[BuildStage] = [BuildStage.IDLE]

    def enter(self, stage: BuildStage) -> None:
        logger.info("Cluster %s: %s -> %s", self.build_id, self.current.value, stage.value)
        self.current = stage
        self.history.append(stage)


def _stamp_error(
    err: KubeElevenError, stage: BuildStage, cluster_name: str, working_dir: str
) -> None:
    """Fill in build context the failing stage did not know about."""
    err.stage = err.stage or stage
    err.cluster_name = err.cluster_name or cluster_name
    err.working_dir = err.working_dir or working_dir
    err.events.append(
        DiagnosticEvent(
            stage=BuildStage.FAILED,
            message=err.message,
            cluster_name=cluster_name,
            details={"failed_stage": err.stage.value, "working_dir": err.working_dir},
        )
    )


async def build_cluster(
    cluster: K8sCluster,
    lb_clusters: Sequence[LBCluster] = (),
    settings: Optional[KubeElevenSettings] = None,
) -> BuildResult:
    """
    Build (or reconcile) `cluster` with kubeone.

    Args:
        cluster: Cluster to build. Its endpoint node is tagged apiEndpoint and,
            on success, its kubeconfig is replaced by the one kubeone produced
            (unless kubeone produced an empty one).
        lb_clusters: LB clusters attached to the cluster. An ApiServer LB
            cluster targeting `cluster` provides the API endpoint.
        settings: Build settings; read from the environment if omitted.

    Returns:
        BuildResult summarising the build.

    Raises:
        ConfigurationError: No API endpoint could be determined.
        TemplateError: The kubeone manifest could not be rendered.
        FileIOError: A working-directory file operation failed.
        ExternalToolError: kubeone failed, could not start, or timed out.
        KubeElevenError: Any other failure, wrapped with the failing stage.
    """
    settings = settings or KubeElevenSettings()
    build_id = cluster.build_id
    working_dir = working_directory(settings.base_dir, build_id)
    tracker = _StageTracker(build_id)
    api_endpoint = ""
    kubeconfig_updated = False

    try:
        tracker.enter(BuildStage.PREPARING)
        async with build_workspace(
            settings.base_dir,
            build_id,
            retain_on_failure=settings.retain_on_failure,
        ) as working_dir:
            tracker.enter(BuildStage.RENDERING)
            view = build_provisioning_view(cluster, lb_clusters)
            api_endpoint = view.api_endpoint
            await materialize_artifacts(
                working_dir,
                view,
                cluster.cluster_info.private_key,
                cluster.kubeconfig,
                template_path=settings.template_path,
            )

            tracker.enter(BuildStage.PROVISIONING)
            await kubeone_apply(
                working_dir,
                build_id,
                binary=settings.kubeone_binary,
                timeout=settings.apply_timeout,
            )

            tracker.enter(BuildStage.EXTRACTING_CREDENTIAL)
            kubeconfig = await read_kubeconfig(working_dir, cluster.name)
            if kubeconfig:
                cluster.kubeconfig = kubeconfig
                kubeconfig_updated = True
            else:
                logger.warning(
                    "kubeone left an empty kubeconfig for %s, keeping the existing one",
                    build_id,
                )

            tracker.enter(BuildStage.CLEANING_UP)
    except KubeElevenError as err:
        _stamp_error(err, tracker.current, cluster.name, working_dir)
        tracker.enter(BuildStage.FAILED)
        logger.error("Cluster %s build failed: %s", build_id, err)
        raise
    except Exception as e:
        wrapped = KubeElevenError(f"unexpected error while building {build_id}: {e!r}")
        _stamp_error(wrapped, tracker.current, cluster.name, working_dir)
        tracker.enter(BuildStage.FAILED)
        logger.exception("Cluster %s build failed unexpectedly", build_id)
        raise wrapped from e

    tracker.enter(BuildStage.DONE)
    return BuildResult(
        build_id=build_id,
        working_dir=working_dir,
        api_endpoint=api_endpoint,
        kubeconfig_updated=kubeconfig_updated,
        stages=tracker.history,
    )


async def build_descriptor(
    descriptor: ClusterDescriptor, settings: Optional[KubeElevenSettings] = None
) -> BuildResult:
    """Build the cluster of `descriptor` with the LB clusters it carries."""
    return await build_cluster(descriptor.cluster, descriptor.lb_clusters, settings)


async def build_clusters(
    descriptors: Sequence[ClusterDescriptor],
    settings: Optional[KubeElevenSettings] = None,
) -> List[Union[BuildResult, BaseException]]:
    """
    Build several independent clusters concurrently.

    Each build owns its own working directory, so the only requirement is that
    no two descriptors share a build id. Results are returned in input order;
    a failed build contributes its exception instead of a BuildResult.

    Raises:
        ValueError: If two descriptors have the same '<name>-<hash>' build id.
    """
    build_ids = [d.cluster.build_id for d in descriptors]
    duplicates = sorted({b for b in build_ids if build_ids.count(b) > 1})
    if duplicates:
        raise ValueError(f"Duplicate cluster build ids: {', '.join(duplicates)}")

    settings = settings or KubeElevenSettings()
    return await asyncio.gather(
        *[build_descriptor(d, settings) for d in descriptors],
        return_exceptions=True,
    )
