"""Load run configuration from YAML files and the environment."""

import logging
import os
from pathlib import Path

import yaml

from boostsec.api_test_runner.models.config import RunnerConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = Path("api-test.yaml")


def normalize_database_url(url: str) -> str:
    """Rewrite ``postgres://`` URLs to the asyncpg driver scheme."""
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql+asyncpg://", 1)
    return url


def load_config(config_path: Path | None = None) -> RunnerConfig:
    """Load a run configuration.

    Args:
        config_path: YAML file to read; defaults to ``api-test.yaml``

    Returns:
        Validated configuration with environment overrides applied

    Raises:
        ValueError: If YAML is invalid or doesn't match schema

    """
    config_file = config_path or DEFAULT_CONFIG_FILE
    data: object = {}

    if config_file.exists():
        try:
            with config_file.open() as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {config_file}: {e}") from e
    else:
        logger.debug(f"Config file {config_file} not found, using defaults")

    try:
        config = RunnerConfig.model_validate(data)
    except Exception as e:
        raise ValueError(f"Invalid configuration schema in {config_file}: {e}") from e

    return apply_env_overrides(config)


def apply_env_overrides(config: RunnerConfig) -> RunnerConfig:
    """Apply ``API_BASE_URL`` and ``DATABASE_URL`` from the environment."""
    if "API_BASE_URL" in os.environ:
        config.http.base_url = os.environ["API_BASE_URL"]
    if "DATABASE_URL" in os.environ:
        config.database.url = os.environ["DATABASE_URL"]
    config.database.url = normalize_database_url(config.database.url)
    return config
