"""
kubeeleven/models/cluster.py

Defines Pydantic models for the declarative cluster description consumed by a build:
 - NodeType / Node / Provider / NodePool
 - ClusterInfo / K8sCluster
 - RoleType / Role / DNS / LBCluster
 - ClusterDescriptor: one K8sCluster plus the LB clusters attached to it,
   with YAML (de)serialization via PyYAML.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator


class NodeType(str, Enum):
    """Role tag of a single node. A master may be promoted to apiEndpoint."""

    WORKER = "worker"
    MASTER = "master"
    API_ENDPOINT = "apiEndpoint"


class Node(BaseModel):
    """
    A single machine of a node pool.

    Attributes:
        name: Full node name, "<cluster-name>-<cluster-hash>-<suffix>".
        public: Public IP address (or hostname) of the node.
        private: Private address inside the cluster network, if known.
        node_type: worker, master or apiEndpoint. Mutable.
    """

    name: str
    public: str
    private: Optional[str] = None
    node_type: NodeType = NodeType.WORKER

    @property
    def is_control_plane(self) -> bool:
        return self.node_type in (NodeType.MASTER, NodeType.API_ENDPOINT)


class Provider(BaseModel):
    """
    Cloud provider a node pool runs on.

    Attributes:
        spec_name: Name of the provider entry in the user's input manifest (e.g. 'gcp-1').
        cloud_provider_name: Provider kind (e.g. 'gcp', 'aws', 'hetzner').
    """

    spec_name: str
    cloud_provider_name: str


class NodePool(BaseModel):
    """A named group of nodes sharing provider, region and zone."""

    name: str
    region: str
    zone: str
    provider: Provider
    nodes: List[Node] = Field(default_factory=list)


class ClusterInfo(BaseModel):
    """
    Identity and topology shared by Kubernetes and LB clusters.

    The (name, hash) pair identifies one provisioning attempt.
    """

    name: str
    hash: str
    private_key: str = ""
    node_pools: List[NodePool] = Field(default_factory=list)

    @field_validator("name", "hash")
    @classmethod
    def validate_identifier(cls, value: str) -> str:
        """The build identifier becomes a directory name, so no slashes/newlines."""
        if not value or any(x in value for x in ["/", "\n", "\\"]):
            raise ValueError("Cluster name/hash must be non-empty with no slash/newline.")
        return value

    @property
    def build_id(self) -> str:
        return f"{self.name}-{self.hash}"

    def iter_nodes(self) -> List[Node]:
        """All nodes in pool-then-node order."""
        return [node for pool in self.node_pools for node in pool.nodes]


class K8sCluster(BaseModel):
    """
    A Kubernetes cluster to be built.

    Attributes:
        cluster_info: Name, hash, private key and node pools.
        kubernetes: Kubernetes version, e.g. 'v1.24.0'.
        kubeconfig: Admin kubeconfig of the running cluster. Empty until the
            first successful build; updated in place by later builds.
    """

    cluster_info: ClusterInfo
    kubernetes: str
    kubeconfig: str = ""

    @property
    def name(self) -> str:
        return self.cluster_info.name

    @property
    def build_id(self) -> str:
        return self.cluster_info.build_id


class RoleType(str, Enum):
    API_SERVER = "ApiServer"
    INGRESS = "Ingress"


class Role(BaseModel):
    """A load-balancing role served by an LB cluster."""

    name: str
    role_type: RoleType
    port: Optional[int] = Field(default=None, ge=1, le=65535)
    target_port: Optional[int] = Field(default=None, ge=1, le=65535)


class DNS(BaseModel):
    """DNS record pointing at an LB cluster."""

    endpoint: str
    dns_zone: Optional[str] = None
    hostname: Optional[str] = None


class LBCluster(BaseModel):
    """
    A load-balancer cluster that may front a Kubernetes cluster's control plane.

    Attributes:
        cluster_info: Identity and nodes of the LB cluster itself.
        targeted_k8s: Name of the Kubernetes cluster this LB cluster fronts.
        dns: DNS record of the LB cluster.
        roles: Ordered roles the LB cluster serves.
    """

    cluster_info: ClusterInfo
    targeted_k8s: str
    dns: DNS
    roles: List[Role] = Field(default_factory=list)

    def has_role(self, role_type: RoleType) -> bool:
        return any(role.role_type == role_type for role in self.roles)


class ClusterDescriptor(BaseModel):
    """
    A Kubernetes cluster together with the LB clusters attached to it.
    This is the unit handed to a build and written back afterwards.
    """

    cluster: K8sCluster
    lb_clusters: List[LBCluster] = Field(default_factory=list)

    def to_yaml(self, *, sort_keys: bool = False) -> str:
        """
        Serialize this ClusterDescriptor to a YAML string using PyYAML.
        """
        return yaml.safe_dump(self.model_dump(mode="json"), sort_keys=sort_keys)

    @classmethod
    def from_yaml(cls, yaml_str: str) -> ClusterDescriptor:
        """
        Deserialize a ClusterDescriptor from a YAML string.
        """
        data = yaml.safe_load(yaml_str)
        return cls.model_validate(data)


__all__ = [
    "NodeType",
    "Node",
    "Provider",
    "NodePool",
    "ClusterInfo",
    "K8sCluster",
    "RoleType",
    "Role",
    "DNS",
    "LBCluster",
    "ClusterDescriptor",
]
