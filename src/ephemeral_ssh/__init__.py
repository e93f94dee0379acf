"""
Ephemeral SSH Keys
Short-lived SSH key pairs with automatic time-bounded deletion
"""

from .version import __version__
from .keys import (
    KeyAlgorithm,
    DEFAULT_ALGORITHM_PREFERENCE,
    KeyFileSystem,
    LifecycleTimer,
    Scheduler,
    ThreadingScheduler,
    ManualScheduler,
    SshKeyPair,
    PublicKeyInfo,
    KeyGenerator,
    KeyInspection,
    get_ssh_key_pair,
    inspect_key,
)
from .config import (
    KeyLifecycleConfig,
    load_config_from_json,
    load_config_from_file,
    load_config_from_env,
    load_default_config,
)
from .exceptions import (
    EphemeralSSHError,
    KeyGenerationError,
    KeyIOError,
    ValidationError,
    ConfigurationError,
    UnsupportedPlatformError,
)

# Public API exports
__all__ = [
    '__version__',
    # Keys
    'KeyAlgorithm',
    'DEFAULT_ALGORITHM_PREFERENCE',
    'KeyFileSystem',
    'LifecycleTimer',
    'Scheduler',
    'ThreadingScheduler',
    'ManualScheduler',
    'SshKeyPair',
    'PublicKeyInfo',
    'KeyGenerator',
    'KeyInspection',
    'get_ssh_key_pair',
    'inspect_key',
    # Configuration
    'KeyLifecycleConfig',
    'load_config_from_json',
    'load_config_from_file',
    'load_config_from_env',
    'load_default_config',
    # Exceptions
    'EphemeralSSHError',
    'KeyGenerationError',
    'KeyIOError',
    'ValidationError',
    'ConfigurationError',
    'UnsupportedPlatformError',
]
