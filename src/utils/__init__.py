"""Utility modules"""

from .config_loader import load_config, get_batch_config, get_llm_config
from .errors import (
    SpendParserError,
    ExtractionError,
    LLMError,
    BackendNotReadyError,
    StoreError,
    StateManagerError,
    ConfigurationError
)

__all__ = [
    "load_config",
    "get_batch_config",
    "get_llm_config",
    "SpendParserError",
    "ExtractionError",
    "LLMError",
    "BackendNotReadyError",
    "StoreError",
    "StateManagerError",
    "ConfigurationError"
]
