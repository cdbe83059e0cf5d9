"""
kubeeleven/exceptions.py

Error taxonomy for cluster builds. Every error carries enough context to tell
which cluster, which working directory and which build stage failed, plus any
structured DiagnosticEvents collected on the way.
"""

from __future__ import annotations

from typing import List, Optional

from kubeeleven.models.provisioning import BuildStage, DiagnosticEvent


class KubeElevenError(Exception):
    """Base class for all build failures.

    Attributes:
        message (str): Human-readable description of the failure.
        cluster_name (Optional[str]): Cluster being built.
        working_dir (Optional[str]): Working directory of the build, if created.
        stage (Optional[BuildStage]): Build stage that failed.
        events (List[DiagnosticEvent]): Structured events for observability.
    """

    def __init__(
        self,
        message: str,
        *,
        cluster_name: Optional[str] = None,
        working_dir: Optional[str] = None,
        stage: Optional[BuildStage] = None,
        events: Optional[List[DiagnosticEvent]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.cluster_name = cluster_name
        self.working_dir = working_dir
        self.stage = stage
        self.events: List[DiagnosticEvent] = list(events or [])

    def __str__(self) -> str:
        context = [
            f"{key}={value}"
            for key, value in (
                ("cluster", self.cluster_name),
                ("working_dir", self.working_dir),
                ("stage", self.stage.value if self.stage else None),
            )
            if value
        ]
        if not context:
            return self.message
        return f"{self.message} ({', '.join(context)})"


class TemplateError(KubeElevenError):
    """The KubeOne manifest template could not be loaded or rendered."""


class FileIOError(KubeElevenError):
    """A working-directory, manifest, key or kubeconfig file operation failed."""


class ExternalToolError(KubeElevenError):
    """The provisioning tool exited non-zero, failed to start, or timed out.

    Attributes:
        build_id (Optional[str]): The '<name>-<hash>' identifier passed to the tool.
        return_code (Optional[int]): Exit code, if the process ran to completion.
    """

    def __init__(
        self,
        message: str,
        *,
        build_id: Optional[str] = None,
        return_code: Optional[int] = None,
        cluster_name: Optional[str] = None,
        working_dir: Optional[str] = None,
        stage: Optional[BuildStage] = None,
        events: Optional[List[DiagnosticEvent]] = None,
    ) -> None:
        super().__init__(
            message,
            cluster_name=cluster_name,
            working_dir=working_dir,
            stage=stage,
            events=events,
        )
        self.build_id = build_id
        self.return_code = return_code


class ConfigurationError(KubeElevenError):
    """The cluster definition cannot produce a working cluster (e.g. no API endpoint)."""
