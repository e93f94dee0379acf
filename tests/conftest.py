"""
Shared fixtures for Ephemeral SSH Keys tests
"""

import subprocess
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519, rsa


def make_openssh_key_pair(algorithm: str = "ed25519", comment: str = ""):
    """Return (private_bytes, public_bytes) in the formats ssh-keygen writes"""
    if algorithm == "rsa":
        private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    else:
        private_key = ed25519.Ed25519PrivateKey.generate()

    private_bytes = private_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.OpenSSH,
        serialization.NoEncryption(),
    )
    public_bytes = private_key.public_key().public_bytes(
        serialization.Encoding.OpenSSH,
        serialization.PublicFormat.OpenSSH,
    )
    if comment:
        public_bytes += b" " + comment.encode('utf-8')
    return private_bytes, public_bytes + b"\n"


class FakeKeygen:
    """
    Stand-in for ``subprocess.run`` that behaves like ``ssh-keygen -t ... -f ...``

    Attributes:
        fail_types: Key types that exit non-zero without writing files
        write_public: Whether the public key file is written
        exit_code: Exit code reported for non-failing types
    """

    def __init__(self):
        self.calls = []
        self.fail_types = set()
        self.write_public = True
        self.exit_code = 0

    def __call__(self, args, **kwargs):
        self.calls.append(list(args))
        key_type = args[args.index("-t") + 1]
        path = args[args.index("-f") + 1]

        if key_type in self.fail_types:
            return subprocess.CompletedProcess(args, 1, "", f"unknown key type {key_type}\n")

        private_bytes, public_bytes = make_openssh_key_pair(key_type)
        Path(path).write_bytes(private_bytes)
        if self.write_public:
            Path(path + ".pub").write_bytes(public_bytes)
        return subprocess.CompletedProcess(args, self.exit_code, "", "")

    @property
    def attempted_types(self):
        return [call[call.index("-t") + 1] for call in self.calls]


@pytest.fixture
def key_dir():
    """Temporary directory for key files"""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield temp_dir


@pytest.fixture
def fake_keygen():
    """Patch ssh-keygen invocations with a FakeKeygen"""
    fake = FakeKeygen()
    with patch("ephemeral_ssh.keys.generator.subprocess.run", side_effect=fake):
        yield fake
