# kubeeleven/models/settings.py

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class KubeElevenSettings(BaseSettings):
    """
    Pydantic settings for cluster builds.
    By default, these fields map to environment variables prefixed with `KUBE_ELEVEN_`.
    For example, `KUBE_ELEVEN_BASE_DIR`, `KUBE_ELEVEN_APPLY_TIMEOUT`, etc.
    """

    # Working directories are created under <base_dir>/clusters/<name>-<hash>
    base_dir: str = "services/kube-eleven/server"
    kubeone_binary: str = "kubeone"
    # Seconds; None => wait for kubeone as long as it takes
    apply_timeout: Optional[float] = Field(default=None, gt=0)
    # Keep the working directory of a failed build for postmortem inspection
    retain_on_failure: bool = True
    # Overrides the packaged kubeone.yaml.j2 template
    template_path: Optional[str] = None

    model_config = SettingsConfigDict(env_prefix="KUBE_ELEVEN_")
