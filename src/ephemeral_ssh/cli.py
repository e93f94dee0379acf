"""
Command-line interface for Ephemeral SSH Keys
Generates short-lived SSH key pairs and reports or removes existing ones
"""

import argparse
import logging
import sys
import time
from typing import Optional

from . import __version__
from .config import KeyLifecycleConfig, load_config_from_file, load_default_config
from .exceptions import EphemeralSSHError, KeyGenerationError, KeyIOError
from .keys import KeyAlgorithm, KeyFileSystem, KeyGenerator, SshKeyPair, inspect_key

logger = logging.getLogger(__name__)

WAIT_POLL_SECONDS = 0.25


def create_parser() -> argparse.ArgumentParser:
    """Create the main argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog='ephemeral-ssh',
        description='Generate SSH key pairs that delete themselves after a time-to-live'
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'Ephemeral SSH Keys {__version__}'
    )

    parser.add_argument(
        '--config',
        help='JSON configuration file (default: $EPHEMERAL_SSH_CONFIG)'
    )

    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        help='Logging level (overrides configuration)'
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    setup_generate_parser(subparsers)
    setup_key_path_parsers(subparsers)

    return parser


def setup_generate_parser(subparsers):
    """Setup key generation subcommand."""
    generate_parser = subparsers.add_parser('generate', help='Generate an ephemeral key pair')
    generate_parser.add_argument('path', help='Private key path (public key is written to PATH.pub)')
    generate_parser.add_argument(
        '--ttl',
        type=int,
        help='Milliseconds until the key pair is deleted (default from configuration)'
    )
    generate_parser.add_argument(
        '--algorithm',
        action='append',
        choices=[a.value for a in KeyAlgorithm],
        help='Algorithm to try, in order; repeat for fallbacks (default: ed25519, then rsa)'
    )
    generate_parser.add_argument(
        '--no-wait',
        action='store_true',
        help='Exit immediately and leave the key files in place'
    )


def setup_key_path_parsers(subparsers):
    """Setup subcommands that operate on an existing key path."""
    inspect_parser = subparsers.add_parser('inspect', help='Show ssh-keygen details for a key')
    inspect_parser.add_argument('path', help='Private key path')

    status_parser = subparsers.add_parser('status', help='Report whether a key pair is live or deleted')
    status_parser.add_argument('path', help='Private key path')

    delete_parser = subparsers.add_parser('delete', help='Delete both files of a key pair')
    delete_parser.add_argument('path', help='Private key path')


def load_cli_config(args) -> KeyLifecycleConfig:
    """Load configuration from --config or the environment, then apply CLI overrides."""
    if args.config:
        config = load_config_from_file(args.config).with_env_overrides()
    else:
        config = load_default_config()

    if args.log_level:
        config.log_level = args.log_level
    return config


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )


def wait_for_deletion(key_pair: SshKeyPair) -> None:
    """Block until the key pair's timer has deleted it."""
    while not key_pair.is_deleted():
        time.sleep(WAIT_POLL_SECONDS)


def handle_generate_command(args, config: KeyLifecycleConfig) -> int:
    """Handle key generation command."""
    if args.algorithm:
        config.algorithms = tuple(args.algorithm)
    ttl_ms = args.ttl if args.ttl is not None else config.default_ttl_ms

    generator = KeyGenerator(config)
    try:
        key_pair = generator.get_or_create(args.path, ttl_ms)
    except KeyGenerationError as e:
        print(f"Key generation failed: {e}", file=sys.stderr)
        return 1

    try:
        info = key_pair.get_public_key_info()
    except EphemeralSSHError:
        # The deletion timer does not outlive this process
        key_pair.delete()
        raise

    print(f"Private Key: {key_pair.get_private_key_path()}")
    print(f"Public Key: {key_pair.get_public_key_path()}")
    print(f"Algorithm: {key_pair.algorithm.value}")
    print(f"Fingerprint: {info.fingerprint}")
    print(key_pair.get_public_key().decode('utf-8').strip())

    if args.no_wait:
        key_pair.timer.cancel()
        return 0

    print(f"Key pair will be deleted in {ttl_ms}ms (Ctrl-C to delete now)")
    sys.stdout.flush()
    try:
        wait_for_deletion(key_pair)
    except KeyboardInterrupt:
        key_pair.delete()
    print("Key pair deleted")
    return 0


def handle_inspect_command(args, config: KeyLifecycleConfig) -> int:
    """Handle key inspection command."""
    inspection = inspect_key(args.path, config.keygen_command)
    print(f"Algorithm: {inspection.algorithm_name}")
    print(f"Bits: {inspection.bits}")
    print(f"Fingerprint: {inspection.fingerprint}")
    print(f"Comment: {inspection.comment}")
    return 0


def _existing_key_pair(path: str) -> SshKeyPair:
    """Wrap key files at path, reading the algorithm from the public key when possible."""
    file_system = KeyFileSystem()
    key_pair = SshKeyPair(path, None, file_system)
    if file_system.exists(key_pair.get_public_key_path()):
        try:
            key_pair.algorithm = key_pair.get_public_key_info().algorithm
        except KeyIOError as e:
            logger.debug(f"Unknown algorithm for {path}: {e}")
    return key_pair


def handle_status_command(args, config: KeyLifecycleConfig) -> int:
    """Handle key status command. Exit code 0 means live, 1 means deleted."""
    key_pair = _existing_key_pair(args.path)
    if key_pair.is_deleted():
        print(f"{args.path}: deleted")
        return 1
    if key_pair.algorithm is not None:
        print(f"{args.path}: live ({key_pair.algorithm.value})")
    else:
        print(f"{args.path}: live")
    return 0


def handle_delete_command(args, config: KeyLifecycleConfig) -> int:
    """Handle key deletion command."""
    key_pair = _existing_key_pair(args.path)
    key_pair.delete()
    print(f"{args.path}: deleted")
    return 0


COMMAND_HANDLERS = {
    'generate': handle_generate_command,
    'inspect': handle_inspect_command,
    'status': handle_status_command,
    'delete': handle_delete_command,
}


def main(argv: Optional[list] = None) -> int:
    """
    Main entry point for the CLI

    Args:
        argv: Command line arguments (None to use sys.argv)

    Returns:
        int: Exit code (0 for success, non-zero for failure)
    """
    if argv is None:
        argv = sys.argv[1:]

    parser = create_parser()
    args = parser.parse_args(argv)

    handler = COMMAND_HANDLERS.get(args.command)
    if handler is None:
        parser.print_help()
        return 1

    try:
        config = load_cli_config(args)
        configure_logging(config.log_level)
        return handler(args, config)
    except KeyboardInterrupt:
        print("\nOperation cancelled by user", file=sys.stderr)
        return 130
    except EphemeralSSHError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
