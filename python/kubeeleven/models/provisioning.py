"""
kubeeleven/models/provisioning.py

Build-scoped models:
 - NodeInfo / NodepoolInfo / ProvisioningView: the template-ready projection
   of a cluster consumed by the KubeOne manifest template.
 - EndpointResolution: result of API endpoint resolution.
 - BuildStage / DiagnosticEvent / BuildResult: build progress and outcome.
"""

from __future__ import annotations

import time
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, Field

from kubeeleven.models.cluster import Node


class NodeInfo(BaseModel):
    """A node with its display name (cluster prefix stripped)."""

    name: str
    node: Node


class NodepoolInfo(BaseModel):
    """
    One node pool as seen by the template. Region, zone and provider names
    are already sanitised for verbatim use in the manifest.
    """

    nodepool_name: str
    region: str
    zone: str
    cloud_provider_name: str
    provider_name: str
    nodes: List[NodeInfo] = Field(default_factory=list)


class ProvisioningView(BaseModel):
    """Everything the KubeOne manifest template needs for one build."""

    cluster_name: str
    kubernetes_version: str
    api_endpoint: str
    nodepools: List[NodepoolInfo] = Field(default_factory=list)


EndpointSource = Literal["loadbalancer", "node", "none"]


class EndpointResolution(BaseModel):
    """
    Outcome of resolving the cluster API endpoint.

    Attributes:
        endpoint: Address the control plane is reachable at. Empty if unresolved.
        node_name: Full name of the node to tag as apiEndpoint, if the endpoint
            came from a node.
        node_position: (pool index, node index) of that node. Node names are
            not guaranteed unique, so promotion goes by position.
        source: Where the endpoint came from.
    """

    endpoint: str = ""
    node_name: Optional[str] = None
    node_position: Optional[Tuple[int, int]] = None
    source: EndpointSource = "none"

    @property
    def resolved(self) -> bool:
        return bool(self.endpoint)


class BuildStage(str, Enum):
    IDLE = "Idle"
    PREPARING = "Preparing"
    RENDERING = "Rendering"
    PROVISIONING = "Provisioning"
    EXTRACTING_CREDENTIAL = "ExtractingCredential"
    CLEANING_UP = "CleaningUp"
    DONE = "Done"
    FAILED = "Failed"


class DiagnosticEvent(BaseModel):
    """A structured event attached to an error for downstream observability."""

    stage: BuildStage
    message: str
    cluster_name: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    timestamp: float = Field(default_factory=time.time)


class BuildResult(BaseModel):
    """Summary of a successful build."""

    build_id: str
    working_dir: str
    api_endpoint: str
    kubeconfig_updated: bool
    stages: List[BuildStage] = Field(default_factory=list)
