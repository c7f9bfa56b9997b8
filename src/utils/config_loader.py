"""Configuration file loader with validation"""

import yaml
import os
from pathlib import Path
from typing import Dict, Any
from .errors import ConfigurationError

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[2] / "config" / "settings.yaml"

REQUIRED_KEYS = ['version', 'batch', 'llm', 'store']


def load_config(config_path: str = None) -> Dict[str, Any]:
    """
    Load YAML configuration file with validation.
    SPENDS_CONFIG overrides the default location.

    Args:
        config_path: Path to configuration file

    Returns:
        Dictionary with configuration

    Raises:
        ConfigurationError: If file doesn't exist, is invalid YAML or misses keys
    """
    config_path = config_path or os.getenv("SPENDS_CONFIG") or str(DEFAULT_CONFIG_PATH)
    config_file = Path(config_path)

    if not config_file.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    try:
        with open(config_file, 'r') as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in configuration file: {e}")
    except OSError as e:
        raise ConfigurationError(f"Error loading configuration: {e}")

    if not isinstance(config, dict):
        raise ConfigurationError(f"Configuration root must be a mapping: {config_path}")

    missing_keys = [key for key in REQUIRED_KEYS if key not in config]
    if missing_keys:
        raise ConfigurationError(f"Missing required configuration keys: {missing_keys}")

    return config


def get_batch_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """Batch orchestration settings (chunking, pacing, timeouts)"""
    return config.get('batch', {}) or {}


def get_llm_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """LLM backend settings (model, timeouts, readiness retries)"""
    return config.get('llm', {}) or {}
