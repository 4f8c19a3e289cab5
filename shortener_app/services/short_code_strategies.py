"""
Short code generation strategies for URL shortener.
Uses Strategy Pattern to allow different generation algorithms.
"""

import string
import secrets
from abc import ABC, abstractmethod


class ShortCodeStrategy(ABC):
    """Abstract base class for short code generation strategies"""

    @abstractmethod
    def generate(self, length: int) -> str:
        """
        Generate a short code candidate.

        Uniqueness is not checked here; the service retries on collision.

        Args:
            length: Number of characters

        Returns:
            A short code string
        """
        pass


class SecureRandomShortCodeStrategy(ShortCodeStrategy):
    """
    Random alphanumeric codes from a cryptographically secure source.

    Pros: Unpredictable (codes cannot be enumerated), no shared state
    Cons: Collisions possible, so the caller must check and retry

    62^6 is roughly 5.7e10 codes, so collisions at length 6 are rare.
    """

    ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits

    def generate(self, length: int) -> str:
        if length < 1:
            raise ValueError(f"Short code length must be positive, got {length}")
        return ''.join(secrets.choice(self.ALPHABET) for _ in range(length))
