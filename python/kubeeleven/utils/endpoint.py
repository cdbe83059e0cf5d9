"""
kubeeleven/utils/endpoint.py

Decides the address at which the cluster's control plane will be reachable.

Resolution is split in two:
  - resolve_api_endpoint: pure; inspects the cluster and its LB clusters and
    reports the endpoint plus which node (if any) should become the endpoint.
  - apply_endpoint_resolution: applies the node promotion explicitly.

Nodes are identified by their (pool index, node index) position, since node
names are not required to be unique.
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from kubeeleven.exceptions import ConfigurationError
from kubeeleven.models.cluster import K8sCluster, LBCluster, Node, NodeType, RoleType
from kubeeleven.models.provisioning import BuildStage, EndpointResolution


def find_api_server_lb(
    cluster: K8sCluster, lb_clusters: Sequence[LBCluster]
) -> Optional[LBCluster]:
    """
    Return the first LB cluster (in input order) that targets `cluster` and
    serves the ApiServer role. Duplicates are not checked; first match wins.
    """
    return next(
        (
            lb
            for lb in lb_clusters
            if lb.targeted_k8s == cluster.name and lb.has_role(RoleType.API_SERVER)
        ),
        None,
    )


def find_endpoint_position(cluster: K8sCluster) -> Optional[Tuple[int, int]]:
    """
    Scan nodes in pool-then-node order for the endpoint candidate and return
    its (pool index, node index).

    A node already tagged apiEndpoint is adopted whenever seen. Otherwise the
    first master becomes the candidate and is kept even if more masters follow.
    """
    candidate: Optional[Tuple[int, int]] = None
    for pool_index, pool in enumerate(cluster.cluster_info.node_pools):
        for node_index, node in enumerate(pool.nodes):
            if node.node_type == NodeType.API_ENDPOINT:
                candidate = (pool_index, node_index)
            elif node.node_type == NodeType.MASTER and candidate is None:
                candidate = (pool_index, node_index)
    return candidate


def _node_at(cluster: K8sCluster, position: Tuple[int, int]) -> Optional[Node]:
    pool_index, node_index = position
    pools = cluster.cluster_info.node_pools
    if not 0 <= pool_index < len(pools):
        return None
    nodes = pools[pool_index].nodes
    if not 0 <= node_index < len(nodes):
        return None
    return nodes[node_index]


def find_endpoint_node(cluster: K8sCluster) -> Optional[Node]:
    """The endpoint candidate node itself, see find_endpoint_position."""
    position = find_endpoint_position(cluster)
    return _node_at(cluster, position) if position is not None else None


def resolve_api_endpoint(
    cluster: K8sCluster, lb_clusters: Sequence[LBCluster]
) -> EndpointResolution:
    """
    Resolve the cluster API endpoint without modifying the cluster.

    Priority:
      1) DNS endpoint of an attached ApiServer LB cluster (node pools untouched).
      2) Public address of the existing apiEndpoint node, else of the first master.
      3) Nothing found => empty endpoint with source 'none'.

    Args:
        cluster: The Kubernetes cluster being built.
        lb_clusters: LB clusters attached to the build, in input order.

    Returns:
        EndpointResolution describing the endpoint and the node to promote.
    """
    lb = find_api_server_lb(cluster, lb_clusters)
    if lb is not None:
        return EndpointResolution(endpoint=lb.dns.endpoint, source="loadbalancer")

    position = find_endpoint_position(cluster)
    if position is not None:
        node = _node_at(cluster, position)
        assert node is not None
        return EndpointResolution(
            endpoint=node.public,
            node_name=node.name,
            node_position=position,
            source="node",
        )

    return EndpointResolution()


def _locate_by_name(cluster: K8sCluster, node_name: str) -> Optional[Node]:
    matches: List[Node] = [
        n for n in cluster.cluster_info.iter_nodes() if n.name == node_name
    ]
    if len(matches) > 1:
        raise ConfigurationError(
            f"Node name '{node_name}' is ambiguous in cluster '{cluster.name}' "
            f"({len(matches)} nodes share it)",
            cluster_name=cluster.name,
            stage=BuildStage.RENDERING,
        )
    return matches[0] if matches else None


def apply_endpoint_resolution(
    cluster: K8sCluster, resolution: EndpointResolution
) -> Optional[Node]:
    """
    Tag the node chosen by `resolution` as apiEndpoint. Idempotent.

    The node is looked up by `node_position` and must still carry
    `node_name`. A resolution without a position falls back to a lookup by
    name, which must be unambiguous.

    Returns:
        The promoted node, or None if the resolution names no node.

    Raises:
        ConfigurationError: If the named node no longer exists in the cluster
            or its name is shared by several nodes.
    """
    if resolution.node_name is None:
        return None

    if resolution.node_position is not None:
        node = _node_at(cluster, resolution.node_position)
        if node is not None and node.name != resolution.node_name:
            node = None
    else:
        node = _locate_by_name(cluster, resolution.node_name)

    if node is None:
        raise ConfigurationError(
            f"Node '{resolution.node_name}' not found in cluster '{cluster.name}'",
            cluster_name=cluster.name,
            stage=BuildStage.RENDERING,
        )
    node.node_type = NodeType.API_ENDPOINT
    return node
