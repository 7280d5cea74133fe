"""Domain models for EcoPlate users."""

from dataclasses import dataclass


@dataclass(frozen=True)
class UserRecord:
    """A signed-in user. The e-mail doubles as the owner identifier."""

    name: str
    email: str
