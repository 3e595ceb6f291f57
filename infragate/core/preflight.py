"""Preflight guard — validates configuration before a run mutates anything.

Runs once when a run is triggered, for the stages that run is eligible
for.  Every violation is collected and reported together; the run does
not start.
"""

from __future__ import annotations

import logging

from infragate.config import Settings

logger = logging.getLogger(__name__)

# Secrets each stage needs, as Settings field names.  They are injected
# by the CI platform and never live in versioned configuration.
STAGE_SECRET_REQUIREMENTS: dict[str, list[str]] = {
    "configure": ["ssh_private_key"],
    "build_runner_image": ["registry_user", "registry_password"],
}

# Working directories each stage runs in, as Settings field names.
STAGE_DIRECTORY_REQUIREMENTS: dict[str, list[str]] = {
    "lint_and_plan": ["terraform_dir", "ansible_dir"],
    "provision": ["terraform_dir"],
    "configure": ["ansible_dir"],
    "build_runner_image": ["docker_context"],
}


class ConfigurationError(RuntimeError):
    """Raised when the configuration cannot support the requested run.

    The run cannot start until the configuration is fixed.
    """


def _is_set(value: object) -> bool:
    if value is None:
        return False
    if hasattr(value, "get_secret_value"):
        return bool(value.get_secret_value())
    return bool(value)


def enforce_stage_requirements(settings: Settings, stage_ids: list[str]) -> None:
    """Validate secrets and working directories for *stage_ids*.

    Raises
    ------
    ConfigurationError
        Listing every violation found.
    """
    violations: list[str] = []

    for stage_id in stage_ids:
        for field in STAGE_SECRET_REQUIREMENTS.get(stage_id, []):
            if not _is_set(getattr(settings, field)):
                violations.append(
                    f"{stage_id} needs {field}; set INFRAGATE_{field.upper()} "
                    f"in the CI environment."
                )
        for field in STAGE_DIRECTORY_REQUIREMENTS.get(stage_id, []):
            path = getattr(settings, field)
            if not path.is_dir():
                violations.append(f"{stage_id} needs {field}: {path} is not a directory.")

    if violations:
        msg = "Preflight check failed.\n" + "\n".join(
            f"  - {v}" for v in dict.fromkeys(violations)
        )
        logger.error(msg)
        raise ConfigurationError(msg)

    logger.debug("Preflight passed for %s.", ", ".join(stage_ids) or "no stages")
