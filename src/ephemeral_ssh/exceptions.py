"""
Exception classes for Ephemeral SSH Keys
"""

from typing import Optional, Dict, Any


class EphemeralSSHError(Exception):
    """Base exception for all ephemeral SSH key errors"""
    
    def __init__(self, message: str, error_code: str = "UNKNOWN_ERROR", details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.error_code = error_code
        self.details = details or {}


class KeyGenerationError(EphemeralSSHError):
    """Exception raised when no key algorithm could produce a key pair"""
    pass


class KeyIOError(EphemeralSSHError):
    """Exception raised when a key file cannot be read, removed or protected"""
    pass


class ValidationError(EphemeralSSHError):
    """Exception raised for invalid caller input"""
    pass


class ConfigurationError(EphemeralSSHError):
    """Exception raised for unreadable or invalid configuration"""
    pass


class UnsupportedPlatformError(EphemeralSSHError):
    """Exception raised when platform features are not supported"""
    pass
