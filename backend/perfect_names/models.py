"""Core data types for name resolution."""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from perfect_names.resilience.errors import ErrorKind


class NameSource(str, Enum):
    """Where a display name came from."""

    ENS = "ens"
    BASENAME = "basename"
    WALLET = "wallet"  # No name found, display a formatted address


def truncate_address(address: str, start_chars: int = 6, end_chars: int = 4) -> str:
    """Shorten an address for display, e.g. ``0x1234...abcd``."""
    if len(address) <= start_chars + end_chars:
        return address
    return f"{address[:start_chars]}...{address[-end_chars:]}"


@dataclass(frozen=True)
class NameResolution:
    """
    Result of resolving one address.

    Instances are immutable; a new lookup produces a new resolution.
    """

    address: str
    name: Optional[str]
    source: NameSource
    timestamp: float = field(default_factory=time.time)

    @classmethod
    def wallet(cls, address: str, timestamp: Optional[float] = None) -> "NameResolution":
        """Build the "no name found" resolution for an address."""
        return cls(
            address=address,
            name=truncate_address(address),
            source=NameSource.WALLET,
            timestamp=time.time() if timestamp is None else timestamp,
        )

    @property
    def is_success(self) -> bool:
        """True if this holds a real name rather than the address fallback."""
        return (
            self.source != NameSource.WALLET
            or self.name != truncate_address(self.address)
        )


@dataclass(frozen=True)
class ResolvedName:
    """Name handed back to callers of the resolution service."""

    address: str
    name: Optional[str]
    source: NameSource
    cached: bool = False
    from_fallback: bool = False
    error: Optional["ErrorKind"] = None

    @classmethod
    def from_resolution(
        cls,
        resolution: NameResolution,
        cached: bool = False,
        address: Optional[str] = None,
    ) -> "ResolvedName":
        return cls(
            address=address or resolution.address,
            name=resolution.name,
            source=resolution.source,
            cached=cached,
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "name": self.name,
            "source": self.source.value,
            "cached": self.cached,
        }
        if self.from_fallback:
            result["fromFallback"] = True
        if self.error is not None:
            result["error"] = self.error.value
        return result
