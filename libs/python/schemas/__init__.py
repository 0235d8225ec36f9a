"""Shared schema exports."""

from .account import Account, Credentials, Email, NewAccount, Password, Token

__all__ = [
    "Account",
    "Credentials",
    "Email",
    "NewAccount",
    "Password",
    "Token",
]
