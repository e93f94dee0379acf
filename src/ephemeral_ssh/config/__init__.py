"""
Configuration management for Ephemeral SSH Keys
"""

from .lifecycle_config import (
    KeyLifecycleConfig,
    DEFAULT_TTL_MS,
    load_config_from_json,
    load_config_from_file,
    load_config_from_env,
    load_default_config,
)

__all__ = [
    'KeyLifecycleConfig',
    'DEFAULT_TTL_MS',
    'load_config_from_json',
    'load_config_from_file',
    'load_config_from_env',
    'load_default_config',
]
