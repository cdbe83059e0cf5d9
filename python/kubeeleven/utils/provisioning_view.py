"""
kubeeleven/utils/provisioning_view.py

Builds the ProvisioningView handed to the KubeOne manifest template: one
NodepoolInfo per node pool (order preserved), nodes carrying display names with
the "<cluster>-<hash>-" prefix stripped, and label-like fields sanitised.
"""

from __future__ import annotations

import logging
import re
from typing import Sequence

from kubeeleven.exceptions import ConfigurationError
from kubeeleven.models.cluster import K8sCluster, LBCluster, NodePool
from kubeeleven.models.provisioning import (
    BuildStage,
    DiagnosticEvent,
    NodeInfo,
    NodepoolInfo,
    ProvisioningView,
)
from kubeeleven.utils.endpoint import apply_endpoint_resolution, resolve_api_endpoint

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^a-z0-9-]")


def sanitise_string(value: str) -> str:
    """Lower-case `value` and replace anything outside [a-z0-9-] with '-'."""
    return _UNSAFE_CHARS.sub("-", value.lower())


def strip_node_prefix(node_name: str, cluster: K8sCluster) -> str:
    """Remove a leading '<cluster-name>-<cluster-hash>-' from `node_name`, if present."""
    prefix = f"{cluster.build_id}-"
    if node_name.startswith(prefix):
        return node_name[len(prefix) :]
    return node_name


def _nodepool_info(pool: NodePool, cluster: K8sCluster) -> NodepoolInfo:
    return NodepoolInfo(
        nodepool_name=pool.name,
        region=sanitise_string(pool.region),
        zone=sanitise_string(pool.zone),
        cloud_provider_name=sanitise_string(pool.provider.cloud_provider_name),
        provider_name=sanitise_string(pool.provider.spec_name),
        nodes=[
            NodeInfo(name=strip_node_prefix(node.name, cluster), node=node)
            for node in pool.nodes
        ],
    )


def assemble_provisioning_view(cluster: K8sCluster, api_endpoint: str) -> ProvisioningView:
    """
    Project `cluster` into the flat view consumed by the manifest template.

    The NodeInfo entries reference the cluster's own Node objects, so the
    view must be assembled after any endpoint promotion has been applied.
    """
    return ProvisioningView(
        cluster_name=cluster.name,
        kubernetes_version=cluster.kubernetes,
        api_endpoint=api_endpoint,
        nodepools=[_nodepool_info(pool, cluster) for pool in cluster.cluster_info.node_pools],
    )


def build_provisioning_view(
    cluster: K8sCluster, lb_clusters: Sequence[LBCluster]
) -> ProvisioningView:
    """
    Resolve the API endpoint, promote the endpoint node and assemble the view.

    Args:
        cluster: The Kubernetes cluster being built. Its endpoint node (if any)
            is tagged apiEndpoint.
        lb_clusters: LB clusters attached to the build.

    Returns:
        ProvisioningView for the manifest template.

    Raises:
        ConfigurationError: If neither an ApiServer LB cluster nor a
            master/apiEndpoint node exists, or the endpoint node cannot be
            located for promotion.
    """
    resolution = resolve_api_endpoint(cluster, lb_clusters)
    if not resolution.resolved:
        event = DiagnosticEvent(
            stage=BuildStage.RENDERING,
            message="cluster does not have any API endpoint specified",
            cluster_name=cluster.name,
            details={
                "node_pools": [pool.name for pool in cluster.cluster_info.node_pools],
                "lb_clusters": [lb.cluster_info.name for lb in lb_clusters],
            },
        )
        raise ConfigurationError(
            f"Cluster {cluster.name} does not have any API endpoint specified",
            cluster_name=cluster.name,
            stage=BuildStage.RENDERING,
            events=[event],
        )

    promoted = apply_endpoint_resolution(cluster, resolution)
    if promoted is not None:
        logger.debug(
            "Node %s of cluster %s acts as the API endpoint (%s)",
            promoted.name,
            cluster.name,
            resolution.endpoint,
        )
    else:
        logger.debug(
            "Cluster %s uses load balancer endpoint %s", cluster.name, resolution.endpoint
        )

    return assemble_provisioning_view(cluster, resolution.endpoint)
