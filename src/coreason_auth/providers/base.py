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
The capability contract every identity provider implements.
"""

from abc import ABC, abstractmethod
from typing import ClassVar

from coreason_auth.models import AuthConfig, Identity, ProviderToken


class IdentityProvider(ABC):
    """
    Bridges coreason-auth to an external credential/identity system.

    Instances are created in a zero-value state by the registry and filled in by
    `load_config` (from an incoming AuthConfig) before any other method is used.
    Configuration methods are synchronous and local; everything that talks to the
    external system is async.
    """

    name: ClassVar[str]
    # provider_config fields that are persisted but never handed back to callers
    secret_fields: ClassVar[tuple[str, ...]] = ()

    @abstractmethod
    def load_config(self, config: AuthConfig) -> None:
        """
        Validates and absorbs the provider-specific fields of `config`.

        Raises:
            InvalidConfigError: If required fields are missing or malformed.
        """

    @abstractmethod
    def get_settings(self) -> dict[str, str]:
        """Exports the current provider-specific fields as settings store keys."""

    @abstractmethod
    def get_provider_setting_list(self) -> list[str]:
        """The settings store keys this provider needs to rebuild its configuration."""

    @abstractmethod
    def add_provider_config(self, config: AuthConfig, settings: dict[str, str]) -> AuthConfig:
        """
        Hydrates the provider-specific part of `config` from raw settings.

        Returns:
            AuthConfig: A copy of `config` carrying the provider fields.
        """

    @abstractmethod
    async def generate_token(self, code: str) -> ProviderToken:
        """
        Exchanges an authorization code for an access token and the caller's identities.

        Raises:
            AuthFailedError: If the code is rejected or expired.
            ProviderError: If the provider cannot be reached.
        """

    @abstractmethod
    async def refresh_token(self, access_token: str) -> ProviderToken:
        """
        Renews a previously issued provider access token.

        Raises:
            AuthFailedError: If the access token is invalid or expired.
            ProviderError: If the provider cannot be reached.
        """

    @abstractmethod
    async def get_identity(self, external_id: str, external_id_type: str, access_token: str) -> Identity:
        """
        Raises:
            IdentityNotFoundError: If the provider does not know the identity.
            AuthFailedError: If the access token is rejected.
        """

    @abstractmethod
    async def get_identities(self, access_token: str) -> list[Identity]:
        """The caller's own identity followed by its memberships."""

    @abstractmethod
    async def search_identities(self, name: str, exact_match: bool, access_token: str) -> list[Identity]:
        """
        Searches identities by name.

        Case sensitivity and partial matching are up to the provider, but with
        `exact_match=True` the result never contains an identity whose name differs
        from `name`.
        """
