"""
Configuration for the ephemeral key lifecycle

Settings are plain dataclass fields loaded from JSON (string or file) and
overridden from ``EPHEMERAL_SSH_*`` environment variables.
"""

import json
import os
from dataclasses import dataclass, field, asdict, replace
from pathlib import Path
from typing import Dict, Optional, Any, Mapping, Tuple, Union

from ..exceptions import ConfigurationError, ValidationError
from ..keys.algorithms import KeyAlgorithm, DEFAULT_ALGORITHM_PREFERENCE, parse_algorithm_preference

ENV_PREFIX = "EPHEMERAL_SSH_"
CONFIG_PATH_ENV = ENV_PREFIX + "CONFIG"
DEFAULT_TTL_MS = 30000
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


@dataclass
class KeyLifecycleConfig:
    """
    Key lifecycle settings

    Attributes:
        keygen_command: Key generation executable
        algorithms: Algorithm names tried in order
        rsa_bits: RSA key size passed with ``-b`` (None for the tool default)
        key_comment: Comment embedded in generated keys
        default_ttl_ms: Time-to-live used when a caller does not give one
        enforce_permissions: Restrict private keys to owner read/write
        require_permissions: Fail on platforms where that restriction is impossible
        log_level: Logging level name for the command-line interface
    """
    keygen_command: str = "ssh-keygen"
    algorithms: Tuple[str, ...] = field(
        default_factory=lambda: tuple(a.value for a in DEFAULT_ALGORITHM_PREFERENCE)
    )
    rsa_bits: Optional[int] = None
    key_comment: str = ""
    default_ttl_ms: int = DEFAULT_TTL_MS
    enforce_permissions: bool = True
    require_permissions: bool = False
    log_level: str = "WARNING"

    def __post_init__(self):
        self.algorithms = tuple(
            a.value if isinstance(a, KeyAlgorithm) else str(a).lower() for a in self.algorithms
        )
        self.log_level = str(self.log_level).upper()
        self.validate()

    @property
    def algorithm_preference(self) -> Tuple[KeyAlgorithm, ...]:
        return parse_algorithm_preference(self.algorithms)

    def validate(self) -> None:
        """
        Validate all settings

        Raises:
            ConfigurationError: If any setting is invalid
        """
        if not self.keygen_command or not isinstance(self.keygen_command, str):
            raise ConfigurationError("keygen_command must be a non-empty string", "INVALID_KEYGEN_COMMAND")

        try:
            parse_algorithm_preference(self.algorithms)
        except ValidationError as e:
            raise ConfigurationError(str(e), "INVALID_ALGORITHMS", e.details)

        if self.rsa_bits is not None:
            if isinstance(self.rsa_bits, bool) or not isinstance(self.rsa_bits, int) or self.rsa_bits < 1024:
                raise ConfigurationError(
                    f"rsa_bits must be an integer of at least 1024: {self.rsa_bits!r}",
                    "INVALID_RSA_BITS"
                )

        if isinstance(self.default_ttl_ms, bool) or not isinstance(self.default_ttl_ms, int) \
                or self.default_ttl_ms < 0:
            raise ConfigurationError(
                f"default_ttl_ms must be a non-negative integer: {self.default_ttl_ms!r}",
                "INVALID_DEFAULT_TTL"
            )

        if self.log_level not in VALID_LOG_LEVELS:
            raise ConfigurationError(f"Unknown log level: {self.log_level}", "INVALID_LOG_LEVEL")

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['algorithms'] = list(self.algorithms)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'KeyLifecycleConfig':
        """
        Build configuration from a dictionary

        Raises:
            ConfigurationError: If the dictionary has unknown keys or bad values
        """
        if not isinstance(data, Mapping):
            raise ConfigurationError("Configuration must be a JSON object", "INVALID_FORMAT")

        known = set(cls.__dataclass_fields__)
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(
                f"Unknown configuration keys: {', '.join(unknown)}",
                "UNKNOWN_KEYS",
                {"keys": unknown}
            )

        try:
            return cls(**dict(data))
        except TypeError as e:
            raise ConfigurationError(f"Invalid configuration format: {e}", "INVALID_FORMAT")

    @classmethod
    def from_json(cls, json_string: str) -> 'KeyLifecycleConfig':
        """Load configuration from a JSON string"""
        try:
            data = json.loads(json_string)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Failed to parse configuration JSON: {e}", "PARSE_ERROR")
        return cls.from_dict(data)

    @classmethod
    def from_file(cls, file_path: Union[str, Path]) -> 'KeyLifecycleConfig':
        """Load configuration from a JSON file"""
        try:
            with open(Path(file_path), 'r', encoding='utf-8') as f:
                json_string = f.read()
        except OSError as e:
            raise ConfigurationError(f"Failed to read configuration file: {e}", "FILE_ERROR")
        return cls.from_json(json_string)

    def with_env_overrides(self, environ: Optional[Mapping[str, str]] = None) -> 'KeyLifecycleConfig':
        """Return a copy with ``EPHEMERAL_SSH_*`` environment variables applied"""
        environ = os.environ if environ is None else environ
        overrides: Dict[str, Any] = {}

        if ENV_PREFIX + "KEYGEN" in environ:
            overrides['keygen_command'] = environ[ENV_PREFIX + "KEYGEN"]
        if ENV_PREFIX + "ALGORITHMS" in environ:
            overrides['algorithms'] = tuple(
                name.strip() for name in environ[ENV_PREFIX + "ALGORITHMS"].split(",") if name.strip()
            )
        if ENV_PREFIX + "RSA_BITS" in environ:
            overrides['rsa_bits'] = _parse_int(environ, "RSA_BITS")
        if ENV_PREFIX + "KEY_COMMENT" in environ:
            overrides['key_comment'] = environ[ENV_PREFIX + "KEY_COMMENT"]
        if ENV_PREFIX + "DEFAULT_TTL_MS" in environ:
            overrides['default_ttl_ms'] = _parse_int(environ, "DEFAULT_TTL_MS")
        if ENV_PREFIX + "ENFORCE_PERMISSIONS" in environ:
            overrides['enforce_permissions'] = _parse_bool(environ, "ENFORCE_PERMISSIONS")
        if ENV_PREFIX + "REQUIRE_PERMISSIONS" in environ:
            overrides['require_permissions'] = _parse_bool(environ, "REQUIRE_PERMISSIONS")
        if ENV_PREFIX + "LOG_LEVEL" in environ:
            overrides['log_level'] = environ[ENV_PREFIX + "LOG_LEVEL"]

        return replace(self, **overrides) if overrides else self


def _parse_int(environ: Mapping[str, str], name: str) -> int:
    raw = environ[ENV_PREFIX + name]
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{ENV_PREFIX}{name} must be an integer: {raw!r}", "INVALID_ENVIRONMENT")


def _parse_bool(environ: Mapping[str, str], name: str) -> bool:
    raw = environ[ENV_PREFIX + name].strip().lower()
    if raw in _TRUE_VALUES:
        return True
    if raw in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"{ENV_PREFIX}{name} must be a boolean: {raw!r}", "INVALID_ENVIRONMENT")


def load_config_from_json(json_string: str) -> KeyLifecycleConfig:
    """Load configuration from a JSON string"""
    return KeyLifecycleConfig.from_json(json_string)


def load_config_from_file(file_path: Union[str, Path]) -> KeyLifecycleConfig:
    """Load configuration from a JSON file"""
    return KeyLifecycleConfig.from_file(file_path)


def load_config_from_env(environ: Optional[Mapping[str, str]] = None) -> KeyLifecycleConfig:
    """Load default configuration with environment overrides applied"""
    return KeyLifecycleConfig().with_env_overrides(environ)


def load_default_config(environ: Optional[Mapping[str, str]] = None) -> KeyLifecycleConfig:
    """
    Load configuration the way the command-line interface does

    Reads the JSON file named by ``EPHEMERAL_SSH_CONFIG`` if set, then applies
    the remaining environment variables on top.
    """
    environ = os.environ if environ is None else environ
    config_path = environ.get(CONFIG_PATH_ENV)
    config = KeyLifecycleConfig.from_file(config_path) if config_path else KeyLifecycleConfig()
    return config.with_env_overrides(environ)
