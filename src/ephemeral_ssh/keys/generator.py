"""
SSH key pair generation with algorithm fallback

Key pairs are produced by the external ``ssh-keygen`` tool. Algorithms are
tried in preference order (Ed25519, then RSA) and the first one that yields
both key files wins. ``KeyGenerator.try_key_gen`` is the single place the tool
is invoked, so tests can patch it to simulate an algorithm being unavailable.
"""

import logging
import os
import re
import subprocess
import threading
import weakref
from dataclasses import dataclass
from typing import List, Optional

from ..config.lifecycle_config import KeyLifecycleConfig
from ..exceptions import (
    KeyGenerationError,
    KeyIOError,
    UnsupportedPlatformError,
    ValidationError,
)
from .algorithms import KeyAlgorithm
from .filesystem import KeyFileSystem, PathLike
from .key_pair import SshKeyPair, PUBLIC_KEY_SUFFIX
from .timer import Scheduler, validate_ttl_ms

logger = logging.getLogger(__name__)

# Handle that currently owns each absolute key path in this process
_owners: 'weakref.WeakValueDictionary[str, SshKeyPair]' = weakref.WeakValueDictionary()
_owners_lock = threading.Lock()

# "<bits> <fingerprint> <comment> (<TYPE>)" as printed by ssh-keygen -l
FINGERPRINT_LINE = re.compile(
    r"^(?P<bits>\d+)\s+(?P<fingerprint>\S+)\s+(?P<comment>.*?)\s*\((?P<algorithm>[A-Z0-9-]+)\)\s*$"
)


@dataclass
class KeyInspection:
    """
    Result of ``ssh-keygen -vvv -l -f <path>``

    Attributes:
        bits: Key size in bits
        fingerprint: Key fingerprint (e.g. ``SHA256:...``)
        comment: Key comment (``no comment`` when the key has none)
        algorithm_name: Algorithm label, e.g. ``ED25519`` or ``RSA``
        stdout: Full tool output, including the randomart picture
    """
    bits: int
    fingerprint: str
    comment: str
    algorithm_name: str
    stdout: str

    @property
    def algorithm(self) -> Optional[KeyAlgorithm]:
        """Matching KeyAlgorithm, or None for other key types"""
        for algorithm in KeyAlgorithm:
            if algorithm.display_name == self.algorithm_name:
                return algorithm
        return None


def inspect_key(path: PathLike, keygen_command: str = "ssh-keygen") -> KeyInspection:
    """
    Describe a key file with ``ssh-keygen -vvv -l -f``

    Args:
        path: Private or public key file
        keygen_command: Key generation executable

    Returns:
        KeyInspection: Parsed fingerprint line and raw output

    Raises:
        KeyIOError: If the tool cannot be run, fails, or prints nothing recognisable
    """
    args = [keygen_command, "-vvv", "-l", "-f", os.fspath(path)]
    try:
        result = subprocess.run(
            args,
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
        )
    except OSError as e:
        raise KeyIOError(f"Failed to run {keygen_command}: {e}", "KEYGEN_UNAVAILABLE")

    if result.returncode != 0:
        raise KeyIOError(
            f"Key inspection failed for {path}: {result.stderr.strip()}",
            "KEY_INSPECTION_FAILED",
            {"path": os.fspath(path), "exit_code": result.returncode}
        )

    for line in result.stdout.splitlines():
        match = FINGERPRINT_LINE.match(line.strip())
        if match:
            return KeyInspection(
                bits=int(match.group('bits')),
                fingerprint=match.group('fingerprint'),
                comment=match.group('comment'),
                algorithm_name=match.group('algorithm'),
                stdout=result.stdout,
            )

    raise KeyIOError(
        f"Unrecognised key inspection output for {path}",
        "KEY_INSPECTION_UNPARSABLE",
        {"path": os.fspath(path)}
    )


class KeyGenerator:
    """Creates SSH key pairs on disk and arms their lifecycle timers"""

    def __init__(self, config: Optional[KeyLifecycleConfig] = None,
                 file_system: Optional[KeyFileSystem] = None,
                 scheduler: Optional[Scheduler] = None):
        """
        Initialize the generator

        Args:
            config: Lifecycle settings (defaults to KeyLifecycleConfig())
            file_system: Filesystem access (defaults to KeyFileSystem())
            scheduler: Scheduler for deletion timers (defaults to a ThreadingScheduler per timer)
        """
        self.config = config or KeyLifecycleConfig()
        self.file_system = file_system or KeyFileSystem()
        self.scheduler = scheduler

    def _build_command(self, base_path: str, algorithm: KeyAlgorithm) -> List[str]:
        args = [self.config.keygen_command, "-t", algorithm.keygen_type]
        if algorithm is KeyAlgorithm.RSA and self.config.rsa_bits:
            args += ["-b", str(self.config.rsa_bits)]
        args += ["-N", "", "-q", "-C", self.config.key_comment, "-f", base_path]
        return args

    def _remove_key_files(self, base_path: str) -> None:
        self.file_system.delete(base_path)
        self.file_system.delete(base_path + PUBLIC_KEY_SUFFIX)

    def try_key_gen(self, base_path: PathLike, algorithm: KeyAlgorithm) -> bool:
        """
        Run one key generation attempt

        Existing files at base_path are replaced. A failed attempt leaves
        neither key file behind.

        Args:
            base_path: Private key path
            algorithm: Algorithm to generate

        Returns:
            bool: True if the tool exited successfully and both key files exist
        """
        base_path = os.fspath(base_path)
        try:
            self._remove_key_files(base_path)
            self.file_system.ensure_directory(os.path.dirname(os.path.abspath(base_path)))
        except KeyIOError as e:
            logger.warning(f"Cannot prepare {base_path} for {algorithm.value} key generation: {e}")
            return False

        args = self._build_command(base_path, algorithm)
        logger.debug(f"Generating {algorithm.value} key pair at {base_path}")
        try:
            result = subprocess.run(
                args,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
            )
        except OSError as e:
            logger.warning(f"Could not run {self.config.keygen_command}: {e}")
            return False

        generated = (
            result.returncode == 0
            and self.file_system.exists(base_path)
            and self.file_system.exists(base_path + PUBLIC_KEY_SUFFIX)
        )
        if not generated:
            logger.debug(
                f"{algorithm.value} key generation exited with {result.returncode}: {result.stderr.strip()}"
            )
            try:
                self._remove_key_files(base_path)
            except KeyIOError as e:
                logger.warning(f"Failed to clean up after {algorithm.value} key generation: {e}")
        return generated

    def generate_ssh_key_pair(self, base_path: PathLike) -> KeyAlgorithm:
        """
        Generate a key pair, falling back through the configured algorithms

        Args:
            base_path: Private key path

        Returns:
            KeyAlgorithm: The algorithm that succeeded

        Raises:
            KeyGenerationError: If every algorithm failed
        """
        base_path = os.fspath(base_path)
        attempted = []
        for algorithm in self.config.algorithm_preference:
            attempted.append(algorithm.value)
            if self.try_key_gen(base_path, algorithm):
                if len(attempted) > 1:
                    logger.warning(f"Generated {algorithm.value} key pair at {base_path} after fallback")
                return algorithm
            logger.info(f"{algorithm.value} key generation failed for {base_path}")

        try:
            self._remove_key_files(base_path)
        except KeyIOError as e:
            logger.warning(f"Failed to clean up {base_path}: {e}")
        raise KeyGenerationError(
            f"Failed to generate a key pair at {base_path} with any of: {', '.join(attempted)}",
            "KEY_GENERATION_FAILED",
            {"base_path": base_path, "attempted": attempted}
        )

    def _protect_private_key(self, base_path: str) -> None:
        if not self.config.enforce_permissions:
            return

        if not self.file_system.supports_permissions:
            if self.config.require_permissions:
                self._remove_key_files(base_path)
                raise UnsupportedPlatformError(
                    "Owner-only key file permissions are not supported on this platform",
                    "PERMISSIONS_UNSUPPORTED"
                )
            return

        try:
            self.file_system.set_owner_only_permissions(base_path)
        except KeyIOError:
            self._remove_key_files(base_path)
            raise

    def get_or_create(self, base_path: PathLike, ttl_ms: int) -> SshKeyPair:
        """
        Generate a fresh key pair and schedule its deletion

        Any key files already at base_path are overwritten; key material is
        never reused between calls. A handle previously created for the same
        path in this process is released first, so its timer cannot delete
        the new pair.

        Args:
            base_path: Private key path; the public key goes to ``base_path + ".pub"``
            ttl_ms: Milliseconds until the key pair is deleted automatically

        Returns:
            SshKeyPair: Handle to the new key pair

        Raises:
            ValidationError: If base_path or ttl_ms is invalid
            KeyGenerationError: If no algorithm succeeded
            KeyIOError: If the private key could not be protected
        """
        if isinstance(base_path, (str, os.PathLike)):
            base_path = os.fspath(base_path)
        if not base_path or not isinstance(base_path, str):
            raise ValidationError("Key path must be a non-empty path", "INVALID_KEY_PATH")
        validate_ttl_ms(ttl_ms)

        owner_key = os.path.abspath(base_path)
        with _owners_lock:
            previous = _owners.pop(owner_key, None)
        if previous is not None:
            previous.release()

        algorithm = self.generate_ssh_key_pair(base_path)
        self._protect_private_key(base_path)

        key_pair = SshKeyPair(base_path, algorithm, self.file_system)
        key_pair.arm_timer(ttl_ms, self.scheduler)
        with _owners_lock:
            _owners[owner_key] = key_pair
        logger.info(f"Created {algorithm.value} key pair at {base_path} (ttl {ttl_ms}ms)")
        return key_pair


def get_ssh_key_pair(base_path: PathLike, ttl_ms: Optional[int] = None,
                     config: Optional[KeyLifecycleConfig] = None) -> SshKeyPair:
    """
    Generate a key pair at base_path that deletes itself after ttl_ms

    Args:
        base_path: Private key path
        ttl_ms: Time-to-live in milliseconds (defaults to config.default_ttl_ms)
        config: Lifecycle settings

    Returns:
        SshKeyPair: Handle to the new key pair
    """
    generator = KeyGenerator(config)
    if ttl_ms is None:
        ttl_ms = generator.config.default_ttl_ms
    return generator.get_or_create(base_path, ttl_ms)
