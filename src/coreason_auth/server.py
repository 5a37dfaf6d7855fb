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
AuthServer: wires the settings store, the active state and the services together.
"""

from typing import Any

from coreason_auth.config import CoreasonAuthConfig
from coreason_auth.identity_resolver import IdentityResolver
from coreason_auth.manager import ConfigManager
from coreason_auth.settings_store import HTTPSettingsStore, SettingsStore
from coreason_auth.state import ActiveState
from coreason_auth.synchronizer import SettingsSynchronizer
from coreason_auth.token_service import TokenService, TokenSigner


class AuthServer:
    """
    The core of the auth service, independent of any HTTP framework.

    Handles resources via async context manager: the settings store is closed on exit.
    """

    def __init__(
        self,
        store: SettingsStore,
        signer: TokenSigner,
        provider_timeout: float = 10.0,
        store_timeout: float = 10.0,
    ) -> None:
        """
        Initialize the AuthServer.

        Args:
            store: The settings store client.
            signer: Signs issued tokens.
            provider_timeout: Upper bound in seconds for a single identity provider call.
            store_timeout: Upper bound in seconds for a single settings store call.
        """
        self.store = store
        self.state = ActiveState()
        self.synchronizer = SettingsSynchronizer(store, timeout=store_timeout)
        self.resolver = IdentityResolver(self.state, provider_timeout=provider_timeout)
        self.config_manager = ConfigManager(self.synchronizer, self.state, self.resolver)
        self.token_service = TokenService(self.state, signer, provider_timeout=provider_timeout)

    @classmethod
    def from_config(cls, config: CoreasonAuthConfig) -> "AuthServer":
        """
        Builds a server talking to the HTTP settings store described by `config`.

        Raises:
            InvalidConfigError: If the private key file cannot be loaded.
        """
        signer = TokenSigner.from_pem_file(config.private_key_file, ttl=config.token_ttl)
        store = HTTPSettingsStore(
            config.settings_url,
            config.access_key,
            config.secret_key.get_secret_value(),
            timeout=config.http_timeout,
        )
        return cls(store, signer, provider_timeout=config.provider_timeout, store_timeout=config.store_timeout)

    async def __aenter__(self) -> "AuthServer":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.store.aclose()
