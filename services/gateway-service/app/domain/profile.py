from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class UserProfile:
    """Security-context view of an authenticated account."""

    security_id: str
    username: str
    email: str
