"""
Handle to one generated SSH key pair on disk

An SshKeyPair owns two files, the private key at ``base_path`` and the public
key at ``base_path + ".pub"``. Its deleted state is always read back from the
filesystem, so removal by the lifecycle timer or by anything outside this
process is observed on the next ``is_deleted()`` call.
"""

import base64
import hashlib
import logging
import os
from dataclasses import dataclass
from typing import Optional

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519, rsa

from ..exceptions import KeyIOError
from .algorithms import KeyAlgorithm
from .filesystem import KeyFileSystem, PathLike
from .timer import LifecycleTimer, Scheduler

logger = logging.getLogger(__name__)

PUBLIC_KEY_SUFFIX = ".pub"


@dataclass
class PublicKeyInfo:
    """
    Details parsed from an OpenSSH public key file

    Attributes:
        algorithm: Key algorithm
        key_size: Key size in bits
        fingerprint: SHA256 fingerprint in ``ssh-keygen -l`` format
        comment: Trailing comment from the key line (may be empty)
    """
    algorithm: KeyAlgorithm
    key_size: int
    fingerprint: str
    comment: str


def compute_fingerprint(key_blob: bytes) -> str:
    """Compute the ``SHA256:...`` fingerprint of a decoded public key blob"""
    digest = hashlib.sha256(key_blob).digest()
    return "SHA256:" + base64.b64encode(digest).decode('ascii').rstrip("=")


def parse_public_key(data: bytes) -> PublicKeyInfo:
    """
    Parse an OpenSSH public key line

    Args:
        data: Contents of a ``.pub`` file

    Returns:
        PublicKeyInfo: Parsed details

    Raises:
        KeyIOError: If the data is not a supported OpenSSH public key
    """
    fields = data.strip().split(None, 2)
    if len(fields) < 2:
        raise KeyIOError("Public key is not in OpenSSH format", "INVALID_PUBLIC_KEY")

    try:
        public_key = serialization.load_ssh_public_key(b" ".join(fields[:2]))
        key_blob = base64.b64decode(fields[1], validate=True)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise KeyIOError(f"Failed to parse public key: {e}", "INVALID_PUBLIC_KEY")

    if isinstance(public_key, ed25519.Ed25519PublicKey):
        algorithm = KeyAlgorithm.ED25519
        key_size = 256
    elif isinstance(public_key, rsa.RSAPublicKey):
        algorithm = KeyAlgorithm.RSA
        key_size = public_key.key_size
    else:
        raise KeyIOError(
            f"Unsupported public key type: {fields[0].decode('ascii', 'replace')}",
            "UNSUPPORTED_PUBLIC_KEY_TYPE"
        )

    comment = fields[2].decode('utf-8', 'replace') if len(fields) > 2 else ""
    return PublicKeyInfo(
        algorithm=algorithm,
        key_size=key_size,
        fingerprint=compute_fingerprint(key_blob),
        comment=comment,
    )


class SshKeyPair:
    """A generated SSH key pair and its scheduled self-destruction"""

    def __init__(self, base_path: PathLike, algorithm: Optional[KeyAlgorithm],
                 file_system: Optional[KeyFileSystem] = None):
        """
        Wrap key files that already exist on disk

        Args:
            base_path: Private key path; the public key is ``base_path + ".pub"``
            algorithm: Algorithm the pair was generated with (None if unknown)
            file_system: Filesystem access (defaults to KeyFileSystem)
        """
        self.base_path = os.fspath(base_path)
        self.algorithm = algorithm
        self.file_system = file_system or KeyFileSystem()
        self._timer: Optional[LifecycleTimer] = None
        self._released = False

    def __repr__(self) -> str:
        algorithm = self.algorithm.value if self.algorithm else None
        return f"SshKeyPair(base_path={self.base_path!r}, algorithm={algorithm!r})"

    @property
    def timer(self) -> Optional[LifecycleTimer]:
        return self._timer

    @property
    def released(self) -> bool:
        """True once the files at base_path no longer belong to this handle"""
        return self._released

    def release(self) -> None:
        """
        Give up ownership of the files at base_path

        Cancels any pending deletion and turns later ``delete()`` calls into
        no-ops. Used when a new key pair is generated over this one's path.
        """
        self._released = True
        if self._timer is not None:
            self._timer.cancel()
        logger.debug(f"Key pair {self.base_path} released")

    def get_private_key_path(self) -> str:
        return self.base_path

    def get_public_key_path(self) -> str:
        return self.base_path + PUBLIC_KEY_SUFFIX

    def get_public_key(self) -> bytes:
        """
        Read the public key file

        Raises:
            KeyIOError: If the public key is absent, unreadable or empty
        """
        data = self.file_system.read_bytes(self.get_public_key_path())
        if not data:
            raise KeyIOError(
                f"Public key file is empty: {self.get_public_key_path()}",
                "EMPTY_PUBLIC_KEY",
                {"path": self.get_public_key_path()}
            )
        return data

    def get_public_key_info(self) -> PublicKeyInfo:
        """Parse the public key file into algorithm, size and fingerprint"""
        return parse_public_key(self.get_public_key())

    def matches_private_key(self) -> bool:
        """
        Check that the public key file belongs to the private key file

        Raises:
            KeyIOError: If either file is missing or the private key cannot be loaded
        """
        private_data = self.file_system.read_bytes(self.get_private_key_path())
        try:
            private_key = serialization.load_ssh_private_key(private_data, password=None)
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise KeyIOError(f"Failed to load private key: {e}", "INVALID_PRIVATE_KEY")

        derived = private_key.public_key().public_bytes(
            serialization.Encoding.OpenSSH,
            serialization.PublicFormat.OpenSSH,
        )
        stored = b" ".join(self.get_public_key().split()[:2])
        return derived == stored

    def arm_timer(self, ttl_ms: int, scheduler: Optional[Scheduler] = None) -> LifecycleTimer:
        """
        Schedule deletion of this key pair after ttl_ms

        Any timer previously armed on this key pair is cancelled first.
        """
        if self._timer is not None:
            self._timer.cancel()
        self._timer = LifecycleTimer(self.delete, ttl_ms, scheduler).start()
        logger.debug(f"Key pair {self.base_path} scheduled for deletion in {ttl_ms}ms")
        return self._timer

    def delete(self) -> None:
        """
        Remove both key files

        Files that are already gone are skipped, so calling this more than once
        is safe. Both files are always attempted. The pending timer is only
        cancelled once both are gone, so a failed call leaves the scheduled
        deletion in place. A released handle deletes nothing.

        Raises:
            KeyIOError: If an existing file cannot be removed
        """
        if self._released:
            logger.debug(f"Key pair {self.base_path} was released; not deleting")
            return

        errors = []
        removed = False
        for path in (self.get_private_key_path(), self.get_public_key_path()):
            try:
                removed = self.file_system.delete(path) or removed
            except KeyIOError as e:
                errors.append(e)

        if errors:
            for error in errors[1:]:
                logger.warning(f"Failed to delete key file: {error}")
            raise errors[0]

        if self._timer is not None:
            self._timer.cancel()
        if removed:
            logger.info(f"Deleted key pair {self.base_path}")

    def is_deleted(self) -> bool:
        """
        True if either key file is missing

        A pair with only one file left is unusable and counts as deleted.
        """
        private_exists = self.file_system.exists(self.get_private_key_path())
        public_exists = self.file_system.exists(self.get_public_key_path())
        return not (private_exists and public_exists)
