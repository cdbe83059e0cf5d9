"""
kubeeleven/utils/kubeone.py

Runs `kubeone apply` against a prepared working directory. The working
directory must already contain the generated manifest, the private key and the
kubeconfig seed file (see kubeeleven.utils.artifacts).
"""

from __future__ import annotations

import logging
from typing import List, Optional

from kubeeleven.exceptions import ExternalToolError
from kubeeleven.utils.artifacts import MANIFEST_FILE_NAME
from kubeeleven.utils.async_command_runner import CommandError, run_command

logger = logging.getLogger(__name__)


def _kubeone_command(binary: str, action: str) -> List[str]:
    return [binary, action, "-m", MANIFEST_FILE_NAME, "-y"]


async def kubeone_apply(
    working_dir: str,
    build_id: str,
    *,
    binary: str = "kubeone",
    timeout: Optional[float] = None,
) -> None:
    """
    Execute `kubeone apply -m kubeone.yaml -y` inside `working_dir`.

    Output lines are logged with `build_id` as prefix. A zero exit status means
    success; kubeone is expected to have replaced the kubeconfig seed file with
    the live cluster kubeconfig by then.

    Args:
        working_dir: Directory holding kubeone.yaml and friends.
        build_id: '<cluster-name>-<hash>' of the build, used to tag output.
        binary: kubeone executable name or path.
        timeout: Seconds before the process is killed. None waits indefinitely.

    Raises:
        ExternalToolError: On non-zero exit, start failure or timeout.
    """
    logger.info("Running kubeone apply for %s in %s", build_id, working_dir)
    try:
        await run_command(
            _kubeone_command(binary, "apply"),
            cwd=working_dir,
            timeout=timeout,
            sensitive=False,
            log_prefix=build_id,
            output_logger=logger,
        )
    except CommandError as e:
        raise ExternalToolError(
            f"error while running \"kubeone apply\" in {working_dir} for {build_id}: {e}",
            build_id=build_id,
            return_code=e.return_code,
            working_dir=working_dir,
        ) from e
    logger.info("kubeone apply for %s finished", build_id)
