"""
config_loader.py
-----------------
Singleton config loader. Reads config.yaml once and caches it.
All modules access configuration through this — never hardcoded values.
"""

import os
import yaml
from typing import Any, Dict


_CONFIG_CACHE: Dict[str, Any] = {}


def load_config(config_path: str | None = None) -> Dict[str, Any]:
    """
    Load and cache the YAML configuration file.

    Args:
        config_path: Path to config.yaml. Defaults to config/ relative to this file.

    Returns:
        Full config dictionary.
    """
    global _CONFIG_CACHE

    if _CONFIG_CACHE:
        return _CONFIG_CACHE

    if config_path is None:
        config_path = os.path.join(os.path.dirname(__file__), "config.yaml")

    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r") as f:
        _CONFIG_CACHE = yaml.safe_load(f)

    return _CONFIG_CACHE


def _get_block(name: str) -> Any:
    config = load_config()
    if name not in config:
        raise KeyError(
            f"No '{name}' block in config. "
            f"Available: {list(config.keys())}"
        )
    return config[name]


def get_recurring_detection_config() -> Dict[str, Any]:
    """Returns the recurring_detection block."""
    return _get_block("recurring_detection")


def get_noise_tokens() -> list[str]:
    """Returns the description noise vocabulary used by the normalizer."""
    return list(get_recurring_detection_config()["noise_tokens"])


def get_cadence_table() -> list[Dict[str, Any]]:
    """Returns the ordered cadence table (priority order is significant)."""
    return _get_block("cadences")


def get_scoring_config() -> Dict[str, Any]:
    """Returns the amount gate and confidence clamp settings."""
    return _get_block("scoring")


def get_cost_rollup_config() -> Dict[str, Any]:
    """Returns monthly/yearly cost factors per billing cycle."""
    return _get_block("cost_rollup")


def get_renewals_config() -> Dict[str, Any]:
    """Returns renewal window and status thresholds."""
    return _get_block("renewals")


def reset_config() -> None:
    """Clears cached config. Useful for testing."""
    global _CONFIG_CACHE
    _CONFIG_CACHE = {}
