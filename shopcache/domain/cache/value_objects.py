"""
Cache Value Objects

Immutable value objects for cache keys and expirations.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Any


@dataclass(frozen=True)
class CacheKey:
    """
    Immutable cache key value object.

    Keys are built as ``prefix + str(identifier)``, e.g. ``cache:shop:1``.
    """

    value: str

    MAX_LENGTH = 512

    def __post_init__(self) -> None:
        """Validate cache key format."""
        if not self.value:
            raise ValueError("Cache key cannot be empty")

        if len(self.value) > self.MAX_LENGTH:
            raise ValueError(f"Cache key too long (max {self.MAX_LENGTH} characters)")

        if any(char.isspace() for char in self.value):
            raise ValueError("Cache key cannot contain whitespace")

    @classmethod
    def build(cls, prefix: str, identifier: Any) -> "CacheKey":
        """Create the key of ``identifier`` under ``prefix``."""
        return cls(f"{prefix}{identifier}")

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class TTL:
    """
    Time To Live value object.

    Used both as a physical Redis expiry and as a logical expiry window.
    """

    seconds: int

    def __post_init__(self) -> None:
        """Validate TTL value."""
        if not isinstance(self.seconds, int) or isinstance(self.seconds, bool):
            raise TypeError("TTL seconds must be an integer")
        if self.seconds <= 0:
            raise ValueError("TTL must be positive")
        if self.seconds > 86400 * 365:  # Max 1 year
            raise ValueError("TTL too large (max 1 year)")

    @classmethod
    def minutes(cls, minutes: int) -> "TTL":
        """Create TTL from minutes."""
        return cls(minutes * 60)

    @classmethod
    def hours(cls, hours: int) -> "TTL":
        """Create TTL from hours."""
        return cls(hours * 3600)

    @classmethod
    def days(cls, days: int) -> "TTL":
        """Create TTL from days."""
        return cls(days * 86400)

    @classmethod
    def from_timedelta(cls, delta: timedelta) -> "TTL":
        """Create TTL from a timedelta, truncated to whole seconds."""
        return cls(int(delta.total_seconds()))

    def as_timedelta(self) -> timedelta:
        return timedelta(seconds=self.seconds)

    def __str__(self) -> str:
        return f"{self.seconds}s"
