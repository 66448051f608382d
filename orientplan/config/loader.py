"""
Assemble a raw configuration mapping from a YAML file and the environment.

The YAML file is a flat mapping using the same keys as the environment:

    VPC_ID: vpc-0abc
    SUBNET_IDS: [subnet-1, subnet-2]
    EC2_INSTANCE_TYPE: r5.large

Environment values override file values.
"""

import os
from pathlib import Path
from typing import Any, Mapping

import structlog
import yaml

from orientplan.config.settings import recognized_keys
from orientplan.exceptions import ConfigurationError

logger = structlog.get_logger(__name__)


def load_config_file(path: str | Path) -> dict[str, Any]:
    """
    Read a YAML configuration file.

    Raises:
        ConfigurationError: If the file cannot be parsed or is not a mapping
    """
    path = Path(path)
    try:
        with open(path, "r") as file:
            data = yaml.safe_load(file)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError({str(path): f"cannot be read: {e}"}) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError({str(path): "must contain a mapping of setting names to values"})

    return {str(key): value for key, value in data.items()}


def collect_raw_config(
    config_file: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
    use_env: bool = True,
) -> dict[str, Any]:
    """
    Merge file and environment configuration into one raw mapping.

    Only recognized keys are taken from the environment so unrelated
    process variables never reach validation.

    Args:
        config_file: Optional YAML file with base values
        environ: Environment mapping (defaults to os.environ)
        use_env: Whether to read the environment at all

    Returns:
        Raw configuration mapping ready for load_settings()
    """
    raw: dict[str, Any] = {}

    if config_file is not None:
        raw.update(load_config_file(config_file))
        logger.debug("config_file_loaded", path=str(config_file), keys=sorted(raw))

    if use_env:
        environ = os.environ if environ is None else environ
        overrides = {key: environ[key] for key in recognized_keys() if key in environ}
        raw.update(overrides)
        logger.debug("environment_loaded", keys=sorted(overrides))

    return raw
