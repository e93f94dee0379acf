"""
Filesystem operations on key files

Wraps the handful of file operations the key lifecycle needs so that every
failure surfaces as a KeyIOError, and so that deleting an absent file is
never treated as an error.
"""

import os
import platform
import logging
from pathlib import Path
from typing import Union

from ..exceptions import KeyIOError

logger = logging.getLogger(__name__)

OWNER_READ_WRITE = 0o600  # Owner read/write only
KEY_DIRECTORY_PERMISSIONS = 0o700

PathLike = Union[str, "os.PathLike[str]"]


class KeyFileSystem:
    """Local filesystem access for key files"""
    
    @property
    def supports_permissions(self) -> bool:
        """Whether POSIX permission bits are meaningful on this platform"""
        return platform.system() != "Windows"
    
    def exists(self, path: PathLike) -> bool:
        """Check whether a regular file exists at path"""
        return os.path.isfile(path)
    
    def read_bytes(self, path: PathLike) -> bytes:
        """
        Read a file's contents
        
        Raises:
            KeyIOError: If the file is absent or cannot be read
        """
        try:
            return Path(path).read_bytes()
        except FileNotFoundError:
            raise KeyIOError(
                f"Key file not found: {path}",
                "KEY_FILE_NOT_FOUND",
                {"path": os.fspath(path)}
            )
        except OSError as e:
            raise KeyIOError(
                f"Failed to read key file {path}: {e}",
                "KEY_FILE_READ_FAILED",
                {"path": os.fspath(path)}
            )
    
    def delete(self, path: PathLike) -> bool:
        """
        Delete a file
        
        Returns:
            bool: True if a file was removed, False if it was already absent
            
        Raises:
            KeyIOError: If the file exists but cannot be removed
        """
        try:
            os.remove(path)
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            raise KeyIOError(
                f"Failed to delete key file {path}: {e}",
                "KEY_FILE_DELETION_FAILED",
                {"path": os.fspath(path)}
            )
    
    def set_owner_only_permissions(self, path: PathLike) -> bool:
        """
        Restrict a file to owner read/write
        
        Returns:
            bool: True if permissions were set, False if the platform has no
                  equivalent and the call was skipped
                  
        Raises:
            KeyIOError: If chmod fails
        """
        if not self.supports_permissions:
            logger.debug(f"Skipping permission enforcement for {path} on {platform.system()}")
            return False
        
        try:
            os.chmod(path, OWNER_READ_WRITE)
            return True
        except OSError as e:
            raise KeyIOError(
                f"Failed to set permissions on {path}: {e}",
                "KEY_FILE_PERMISSIONS_FAILED",
                {"path": os.fspath(path)}
            )
    
    def ensure_directory(self, path: PathLike) -> None:
        """
        Create a directory (and parents) if it does not exist
        
        Newly created directories are owner-only where the platform supports it.
        
        Raises:
            KeyIOError: If the directory cannot be created
        """
        directory = Path(path)
        if directory.is_dir():
            return
        
        try:
            directory.mkdir(parents=True, exist_ok=True)
            if self.supports_permissions:
                os.chmod(directory, KEY_DIRECTORY_PERMISSIONS)
        except OSError as e:
            raise KeyIOError(
                f"Failed to create key directory {path}: {e}",
                "KEY_DIRECTORY_CREATION_FAILED",
                {"path": os.fspath(path)}
            )
