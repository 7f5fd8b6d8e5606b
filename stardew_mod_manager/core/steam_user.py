"""
Steam user data structure.

Defines the SteamUser value read from the "friends" block of a user's
localconfig.vdf.
"""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class SteamUser:
    """Represents a local Steam profile.

    Attributes:
        id: Steam3 account id (the userdata folder name), as a numeric string
        nickname: First PersonaName found under the user's friends block
    """
    id: str
    nickname: str

    def __str__(self) -> str:
        """String representation showing nickname and account id."""
        return f"{self.nickname} ({self.id})"
