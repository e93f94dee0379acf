"""
Key algorithms supported by the ephemeral key generator
"""

from enum import Enum
from typing import Iterable, Tuple

from ..exceptions import ValidationError


class KeyAlgorithm(Enum):
    """SSH key algorithms, named by their ``ssh-keygen -t`` type"""
    ED25519 = "ed25519"
    RSA = "rsa"

    @property
    def keygen_type(self) -> str:
        """Value passed to ``ssh-keygen -t``"""
        return self.value

    @property
    def display_name(self) -> str:
        """Label printed by ``ssh-keygen -l`` (e.g. ``ED25519``)"""
        return self.value.upper()

    @classmethod
    def from_name(cls, name: str) -> 'KeyAlgorithm':
        """Resolve an algorithm from a case-insensitive name"""
        if isinstance(name, KeyAlgorithm):
            return name
        normalized = str(name).strip().lower()
        for algorithm in cls:
            if algorithm.value == normalized:
                return algorithm
        raise ValidationError(
            f"Unsupported key algorithm: {name}",
            "UNSUPPORTED_ALGORITHM",
            {"algorithm": name, "supported": [a.value for a in cls]}
        )


# Tried in order, first success wins
DEFAULT_ALGORITHM_PREFERENCE: Tuple[KeyAlgorithm, ...] = (KeyAlgorithm.ED25519, KeyAlgorithm.RSA)


def parse_algorithm_preference(names: Iterable) -> Tuple[KeyAlgorithm, ...]:
    """
    Convert a list of algorithm names into an ordered, de-duplicated preference
    
    Args:
        names: Algorithm names or KeyAlgorithm members
        
    Returns:
        tuple: Ordered algorithms
        
    Raises:
        ValidationError: If a name is unknown or the list is empty
    """
    preference = []
    for name in names:
        algorithm = KeyAlgorithm.from_name(name)
        if algorithm not in preference:
            preference.append(algorithm)
    
    if not preference:
        raise ValidationError("At least one key algorithm is required", "EMPTY_ALGORITHM_LIST")
    
    return tuple(preference)
