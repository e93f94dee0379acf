"""
Ephemeral SSH key pair generation, handles and lifecycle timers
"""

from .algorithms import (
    KeyAlgorithm,
    DEFAULT_ALGORITHM_PREFERENCE,
    parse_algorithm_preference,
)

from .filesystem import (
    KeyFileSystem,
    OWNER_READ_WRITE,
)

from .timer import (
    LifecycleTimer,
    Scheduler,
    ScheduledCall,
    ThreadingScheduler,
    ManualScheduler,
)

from .key_pair import (
    SshKeyPair,
    PublicKeyInfo,
    parse_public_key,
)

from .generator import (
    KeyGenerator,
    KeyInspection,
    get_ssh_key_pair,
    inspect_key,
)

__all__ = [
    # Algorithms
    'KeyAlgorithm',
    'DEFAULT_ALGORITHM_PREFERENCE',
    'parse_algorithm_preference',
    
    # Filesystem
    'KeyFileSystem',
    'OWNER_READ_WRITE',
    
    # Lifecycle timers
    'LifecycleTimer',
    'Scheduler',
    'ScheduledCall',
    'ThreadingScheduler',
    'ManualScheduler',
    
    # Key pair handles
    'SshKeyPair',
    'PublicKeyInfo',
    'parse_public_key',
    
    # Generation
    'KeyGenerator',
    'KeyInspection',
    'get_ssh_key_pair',
    'inspect_key',
]
