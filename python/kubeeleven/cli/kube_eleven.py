#!/usr/bin/env python3
"""
kubeeleven/cli/kube_eleven.py

Builds the cluster described in a YAML ClusterDescriptor with kubeone and writes
the descriptor back with the cluster's kubeconfig (and apiEndpoint node) updated:

    python -m kubeeleven.cli.kube_eleven \
      --descriptor cluster.yaml \
      --output cluster.out.yaml \
      --base-dir /var/lib/kube-eleven \
      --timeout 3600

Settings not given on the command line come from KUBE_ELEVEN_* environment
variables (see kubeeleven.models.settings).
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

import aiofiles
import yaml
from pydantic import ValidationError

from kubeeleven.deployment.kube_eleven import build_descriptor
from kubeeleven.exceptions import KubeElevenError
from kubeeleven.models.cluster import ClusterDescriptor
from kubeeleven.models.settings import KubeElevenSettings


async def run_build(descriptor_path: str, output_path: str, settings: KubeElevenSettings) -> None:
    """
    Load the descriptor, build the cluster, and save the updated descriptor.
    The descriptor is only written if the build succeeds.
    """
    async with aiofiles.open(descriptor_path, "r", encoding="utf-8") as f:
        descriptor = ClusterDescriptor.from_yaml(await f.read())

    result = await build_descriptor(descriptor, settings)

    async with aiofiles.open(output_path, "w", encoding="utf-8") as f:
        await f.write(descriptor.to_yaml())

    print(
        f"Cluster {result.build_id} built. API endpoint = '{result.api_endpoint}', "
        f"kubeconfig {'updated' if result.kubeconfig_updated else 'unchanged'}, "
        f"descriptor written to '{output_path}'."
    )


def _settings_from_args(args: argparse.Namespace) -> KubeElevenSettings:
    overrides = {
        key: value
        for key, value in (
            ("base_dir", args.base_dir),
            ("kubeone_binary", args.kubeone_binary),
            ("apply_timeout", args.timeout),
            ("template_path", args.template),
        )
        if value is not None
    }
    if args.cleanup_on_failure:
        overrides["retain_on_failure"] = False
    return KubeElevenSettings(**overrides)


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entrypoint for building a cluster from a descriptor file."""
    parser = argparse.ArgumentParser(
        description="Build a Kubernetes cluster with kubeone from a YAML cluster descriptor."
    )
    parser.add_argument(
        "--descriptor", required=True, help="Path to the ClusterDescriptor YAML."
    )
    parser.add_argument(
        "--output",
        default=None,
        help="Where to write the updated descriptor (defaults to --descriptor).",
    )
    parser.add_argument("--base-dir", default=None, help="Base directory for working dirs.")
    parser.add_argument("--kubeone-binary", default=None, help="kubeone executable.")
    parser.add_argument(
        "--timeout", type=float, default=None, help="Seconds before kubeone is killed."
    )
    parser.add_argument("--template", default=None, help="Custom kubeone manifest template.")
    parser.add_argument(
        "--cleanup-on-failure",
        action="store_true",
        help="Remove the working directory even if the build fails.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        settings = _settings_from_args(args)
        asyncio.run(run_build(args.descriptor, args.output or args.descriptor, settings))
    except (KubeElevenError, ValidationError, yaml.YAMLError, OSError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
