"""Session identity providers.

The interpreter treats a session token as an opaque string that scopes
``list_forms``. How a host derives it is pluggable; the provider shipped here
hashes the client address with the current hour.
"""

import hashlib
import re
import time
from abc import ABC, abstractmethod
from typing import Callable

SESSION_ID_PATTERN = re.compile(r"^[a-f0-9]{16}$")


def is_valid_session_id(session_id: str) -> bool:
    """Whether a token has the 16 lowercase hex character format."""
    return bool(SESSION_ID_PATTERN.match(session_id or ""))


class SessionIdentityProvider(ABC):
    """Produces the opaque session token for a client."""

    @abstractmethod
    def session_id(self, client_address: str) -> str:
        ...


class HourlyAddressSessionProvider(SessionIdentityProvider):
    """sha256 of "{address}-{hour bucket}", truncated to 16 hex characters.

    The same client address maps to the same token for the rest of the
    current hour.

    Examples:
        >>> provider = HourlyAddressSessionProvider(clock=lambda: 3600.0)
        >>> is_valid_session_id(provider.session_id("10.0.0.1"))
        True
    """

    DEFAULT_ADDRESS = "127.0.0.1"

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock

    def session_id(self, client_address: str) -> str:
        address = client_address or self.DEFAULT_ADDRESS
        hour = int(self._clock() // 3600)
        digest = hashlib.sha256(f"{address}-{hour}".encode("utf-8")).hexdigest()
        return digest[:16]


__all__ = [
    "SessionIdentityProvider",
    "HourlyAddressSessionProvider",
    "is_valid_session_id",
]
