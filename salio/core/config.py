import copy
import logging
import os
from pathlib import Path
from typing import Any

import yaml
from omegaconf import OmegaConf
from omegaconf.errors import InterpolationResolutionError

from salio.constants import DEFAULT_BASTION_USER, DEFAULT_DIAL_TIMEOUT_SECONDS
from salio.providers.aws.constants import DEFAULT_REGION

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "~/.salio.yaml"

ENVIRONMENT_OVERRIDES = {
    "profile": "AWS_PROFILE",
    "region": "AWS_REGION",
    "dial_timeout": "SALIO_DIAL_TIMEOUT",
}


class ConfigLoader:
    """Load optional YAML settings and merge them with defaults."""

    def __init__(self) -> None:
        """Initialize ConfigLoader with built-in defaults."""
        self.BUILT_IN_DEFAULTS = {
            "profile": None,
            "region": DEFAULT_REGION,
            "bastion_user": DEFAULT_BASTION_USER,
            "instance_user": None,
            "dial_timeout": DEFAULT_DIAL_TIMEOUT_SECONDS,
            "auto_jump": False,
        }

    def load_config(self, config_path: str | None = None) -> dict[str, Any]:
        """Load configuration from YAML file.

        Parameters
        ----------
        config_path : str | None
            Path to YAML config file. If None, checks SALIO_CONFIG env var,
            then falls back to ~/.salio.yaml

        Returns
        -------
        dict[str, Any]
            Parsed configuration with interpolations resolved, or an empty
            dict when the file does not exist

        Raises
        ------
        ValueError
            If the file is not valid YAML or is not a mapping
        RuntimeError
            If the file exists but cannot be read
        """
        if config_path is None:
            config_path = os.environ.get("SALIO_CONFIG", DEFAULT_CONFIG_PATH)

        config_file = Path(config_path).expanduser()

        if not config_file.exists():
            return {}

        try:
            cfg = OmegaConf.load(config_file)
        except yaml.YAMLError as e:
            logger.error("Failed to parse YAML config file %s: %s", config_file, e)
            raise ValueError(f"Invalid YAML in {config_file}: {e}") from e
        except OSError as e:
            logger.error("Failed to read config file %s: %s", config_file, e)
            raise RuntimeError(f"Failed to read config file {config_file}: {e}") from e

        if cfg is None:
            return {}

        if not OmegaConf.is_dict(cfg):
            raise ValueError(f"Config file {config_file} must contain a mapping")

        try:
            return OmegaConf.to_container(cfg, resolve=True, throw_on_missing=True)
        except InterpolationResolutionError as e:
            logger.error("Failed to resolve configuration variables: %s", e)
            raise ValueError(f"Configuration variable resolution error: {e}") from e

    def get_effective_config(
        self,
        overrides: dict[str, Any] | None = None,
        config_path: str | None = None,
    ) -> dict[str, Any]:
        """Merge defaults, config file, environment and CLI overrides.

        Later sources win: built-in defaults, then the config file, then
        environment variables, then non-None ``overrides``.

        Parameters
        ----------
        overrides : dict[str, Any] | None
            Values passed on the command line; None values are ignored
        config_path : str | None
            Explicit config file path

        Returns
        -------
        dict[str, Any]
            Validated effective configuration
        """
        merged = copy.deepcopy(self.BUILT_IN_DEFAULTS)

        for key, value in self.load_config(config_path).items():
            if key not in merged:
                logger.warning("Ignoring unknown config key: %s", key)
                continue
            merged[key] = value

        for key, env_var in ENVIRONMENT_OVERRIDES.items():
            value = os.environ.get(env_var)
            if value:
                merged[key] = value

        for key, value in (overrides or {}).items():
            if value is not None:
                merged[key] = value

        self.validate_config(merged)
        merged["dial_timeout"] = float(merged["dial_timeout"])
        return merged

    def validate_config(self, config: dict[str, Any]) -> None:
        """Validate configuration values.

        Parameters
        ----------
        config : dict[str, Any]
            Configuration to validate

        Raises
        ------
        ValueError
            If a value has the wrong type or is out of range
        """
        for field in ("region", "bastion_user"):
            if not isinstance(config.get(field), str) or not config[field]:
                raise ValueError(f"{field} must be a non-empty string")

        for field in ("profile", "instance_user"):
            if config.get(field) is not None and not isinstance(config[field], str):
                raise ValueError(f"{field} must be a string")

        if not isinstance(config.get("auto_jump"), bool):
            raise ValueError("auto_jump must be a boolean")

        try:
            dial_timeout = float(config.get("dial_timeout"))
        except (TypeError, ValueError) as e:
            raise ValueError("dial_timeout must be a number") from e

        if dial_timeout <= 0:
            raise ValueError("dial_timeout must be positive")
