"""Version information for Ephemeral SSH Keys"""

__version__ = "0.1.0"
