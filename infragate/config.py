"""Runtime configuration — env-driven via pydantic-settings.

Reads from a .env file and INFRAGATE_* environment variables.  Secrets
(SSH key, registry password) are injected by the CI platform at run time
and never live in versioned configuration.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from infragate.models.triggers import Environment, RedundantPolicy


class Settings(BaseSettings):
    """Orchestrator settings with environment variable overrides.

    Examples
    --------
    Override via environment::

        export INFRAGATE_ENVIRONMENT=prod
        export INFRAGATE_LOG_LEVEL=DEBUG
        export INFRAGATE_SSH_PRIVATE_KEY="$(cat ~/.ssh/deploy)"
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="INFRAGATE_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Runtime
    environment: Environment = Environment.DEV
    log_level: str = "INFO"

    # Tag history
    repo_root: Path = Path(".")
    fetch_tags: bool = True
    tag_remote: str = "origin"
    redundant_policy: RedundantPolicy = RedundantPolicy.FAIL

    # Storage paths
    ledger_path: Path = Path(".infragate/ledger.db")
    artifact_store_path: Path = Path(".infragate/artifacts")
    artifact_retention_days: int = Field(default=3, ge=1)

    # Terraform
    terraform_dir: Path = Path("terraform")
    terraform_var_file_template: str = "environments/{environment}.tfvars"
    terraform_plugin_cache_dir: Path | None = None

    # Ansible
    ansible_dir: Path = Path("ansible")
    ansible_inventory_template: str = "inventory/{environment}.ini"
    ansible_playbook: str = "site.yml"
    ssh_private_key: SecretStr | None = None

    # Runner image
    docker_context: Path = Path(".")
    dockerfile: str = "Dockerfile"
    runner_image: str = "registry.gitlab.com/infragate/runner"
    registry: str = "registry.gitlab.com"
    registry_user: str = ""
    registry_password: SecretStr | None = None

    @property
    def has_registry_credentials(self) -> bool:
        return bool(
            self.registry_user
            and self.registry_password
            and self.registry_password.get_secret_value()
        )
