# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_auth

"""
Identity provider registry.

Providers register themselves by name; the config manager only ever deals with
the `IdentityProvider` contract, so adding a provider never touches it.
"""

from typing import TypeVar

from coreason_auth.exceptions import UnknownProviderError
from coreason_auth.providers.base import IdentityProvider

PROVIDERS: dict[str, type[IdentityProvider]] = {}

P = TypeVar("P", bound=type[IdentityProvider])


def register_provider(cls: P) -> P:
    """
    Class decorator adding a provider to the registry under its `name`.

    Raises:
        ValueError: If the class has no name or the name is already taken by another class.
    """
    name = getattr(cls, "name", "")
    if not name:
        raise ValueError(f"Provider {cls.__name__} must define a non-empty 'name'")
    existing = PROVIDERS.get(name)
    if existing is not None and existing is not cls:
        raise ValueError(f"Provider name '{name}' is already registered by {existing.__name__}")
    PROVIDERS[name] = cls
    return cls


def get_provider(name: str) -> IdentityProvider:
    """
    Returns a fresh, unconfigured instance of the provider registered as `name`.

    Raises:
        UnknownProviderError: If no provider is registered under `name`.
    """
    cls = PROVIDERS.get(name)
    if cls is None:
        raise UnknownProviderError(f"Could not get the '{name}' auth provider")
    return cls()


# Registers the built-in providers
from coreason_auth.providers.oauth2 import OAuth2Provider  # noqa: E402

__all__ = [
    "PROVIDERS",
    "IdentityProvider",
    "OAuth2Provider",
    "get_provider",
    "register_provider",
]
