"""YAML configuration loader with environment variable overrides.

Configuration is loaded in layers (later layers override earlier):

  1. ``config/config.yaml``  -- static defaults checked into the repo
  2. ``.env`` file           -- local developer overrides (not committed)
  3. Environment variables   -- set at deploy time

:func:`load_config` reads the YAML file first, then deep-merges the
environment-based values from :class:`~thinkr.config.settings.Settings`
on top.
"""

from pathlib import Path

import yaml

from thinkr.config.settings import Settings

_DEFAULT_SEED_MESSAGE = (
    "You are a helpful assistant that provides accurate information "
    "based on the context provided."
)


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Environment variables (via Settings) override YAML values where keys overlap.

    Args:
        path: Path to the YAML configuration file.
        settings: Pre-built settings; a fresh ``Settings()`` is read when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    settings = settings or Settings()
    env_overrides = {
        "app": {
            "host": settings.app_host,
            "port": settings.app_port,
            "env": settings.app_env,
        },
        "llm": {
            "ollama_base_url": settings.ollama_base_url,
            "available_providers": settings.get_available_llm_providers(),
        },
        "vector_store": {
            "collection": settings.chromadb_collection,
            "tenancy": settings.vector_store_tenancy,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    yaml_config.setdefault("chat", {}).setdefault("seed_message", _DEFAULT_SEED_MESSAGE)
    yaml_config.setdefault("cors", {}).setdefault("allowed_origins", ["*"])
    yaml_config.setdefault("suggestions", {}).setdefault("default_limit", 5)
    return yaml_config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
