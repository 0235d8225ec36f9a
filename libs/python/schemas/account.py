"""Account-related DTOs shared across services.

Email addresses are plain strings: the user service owns their validation and
normalisation, so the gateway forwards them exactly as received.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class Account(BaseModel):
    id: str
    username: str
    email: str


class NewAccount(BaseModel):
    """Registration payload forwarded to the user service."""

    username: str
    email: str
    password: str


class Credentials(BaseModel):
    """Login payload; ``username`` may hold either a username or an email."""

    username: str
    password: str


class Token(BaseModel):
    model_config = ConfigDict(extra="allow")

    token: str


class Email(BaseModel):
    email: str


class Password(BaseModel):
    password: str
