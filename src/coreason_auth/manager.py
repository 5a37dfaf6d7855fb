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
ConfigManager component for loading, persisting and reloading the auth configuration.
"""

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from coreason_auth.exceptions import CoreasonAuthError, InvalidConfigError, UnknownProviderError
from coreason_auth.identity_resolver import IdentityResolver, serialize_allow_list
from coreason_auth.models import AccessMode, AuthConfig
from coreason_auth.providers import get_provider
from coreason_auth.providers.base import IdentityProvider
from coreason_auth.state import ActiveState
from coreason_auth.synchronizer import (
    ACCESS_MODE_SETTING,
    ALLOWED_IDENTITIES_SETTING,
    CONFIGURED_PROVIDER_SETTING,
    GENERIC_SETTINGS,
    PROVIDER_NAME_SETTING,
    SECURITY_SETTING,
    SettingsSynchronizer,
    format_bool,
    parse_bool,
)
from coreason_auth.utils.logger import logger

tracer = trace.get_tracer(__name__)


class ConfigManager:
    """
    Owns the lifecycle of the active auth configuration.

    The settings store is the source of truth; the active provider/config pair in
    `state` is only replaced after the store has accepted the new configuration
    (update) or the configuration has been read back from it (reload).

    Attributes:
        synchronizer (SettingsSynchronizer): Reads and writes the settings store.
        state (ActiveState): The process-wide provider/config cell.
        resolver (IdentityResolver): Expands persisted allow-lists.
    """

    def __init__(self, synchronizer: SettingsSynchronizer, state: ActiveState, resolver: IdentityResolver) -> None:
        self.synchronizer = synchronizer
        self.state = state
        self.resolver = resolver

    @staticmethod
    def _new_provider(config: AuthConfig) -> IdentityProvider:
        """
        Raises:
            InvalidConfigError: If the provider name is empty.
            UnknownProviderError: If the provider is not registered.
        """
        if not config.provider:
            raise InvalidConfigError("Provider is a required field")
        return get_provider(config.provider)

    @staticmethod
    def _load(provider: IdentityProvider, config: AuthConfig) -> None:
        try:
            provider.load_config(config)
        except InvalidConfigError:
            logger.debug(f"Provider '{config.provider}' rejected its config")
            raise

    @staticmethod
    def _redact(provider: IdentityProvider, config: AuthConfig) -> AuthConfig:
        if not provider.secret_fields:
            return config
        public = {k: v for k, v in config.provider_config.items() if k not in provider.secret_fields}
        return config.model_copy(update={"provider_config": public})

    async def _with_stored_secrets(self, provider: IdentityProvider, config: AuthConfig) -> AuthConfig:
        """
        Fills the secret fields `config` leaves empty with their persisted values.

        Secrets are never returned by `get_config`, so an edited config sent back
        as-is carries none; the stored ones stay in force.

        Raises:
            StoreError: If the provider settings cannot be read.
        """
        missing = [field for field in provider.secret_fields if not config.provider_config.get(field)]
        if not missing:
            return config

        settings = await self.synchronizer.read(provider.get_provider_setting_list())
        stored = provider.add_provider_config(config, settings).provider_config
        provider_config = dict(config.provider_config)
        for field in missing:
            if stored.get(field):
                provider_config[field] = stored[field]
        return config.model_copy(update={"provider_config": provider_config})

    @staticmethod
    def _export_settings(provider: IdentityProvider, config: AuthConfig) -> dict[str, str]:
        settings = provider.get_settings()
        settings[ACCESS_MODE_SETTING] = config.access_mode.value
        settings[ALLOWED_IDENTITIES_SETTING] = serialize_allow_list(config.allowed_identities)
        settings[SECURITY_SETTING] = format_bool(config.enabled)
        settings[PROVIDER_NAME_SETTING] = config.provider
        # The configured-provider key is the platform-wide switch; disabling must leave it alone
        if config.enabled:
            settings[CONFIGURED_PROVIDER_SETTING] = config.provider
        return settings

    async def update_config(self, config: AuthConfig) -> None:
        """
        Validates `config`, persists it and makes it the active configuration.

        Secret provider fields left empty keep their stored value. Nothing is
        persisted and the active pair is left untouched if the provider cannot be
        initialized; the active pair is left untouched if persisting fails.

        Args:
            config: The new configuration.

        Raises:
            InvalidConfigError: If the provider is missing or rejects the config.
            UnknownProviderError: If the provider is not registered.
            StoreError: If stored secrets cannot be read or the settings could not be persisted.
        """
        with tracer.start_as_current_span("update_config") as span:
            span.set_attribute("auth.provider", config.provider)
            try:
                provider = self._new_provider(config)
                config = await self._with_stored_secrets(provider, config)
                self._load(provider, config)
                settings = self._export_settings(provider, config)

                async with self.state.write_lock():
                    await self.synchronizer.write(settings)
                    self.state.swap(provider, config)

                logger.info(f"Auth config updated: provider={config.provider} enabled={config.enabled}")
                span.set_status(Status(StatusCode.OK))
            except CoreasonAuthError as e:
                logger.error(f"UpdateConfig: cannot update the config: {e}")
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, str(e)))
                raise

    async def get_config(self, access_token: str = "") -> AuthConfig:
        """
        Reads the persisted configuration.

        Allow-list entries are resolved through the active provider when
        `access_token` is given, and returned as stubs otherwise. Secret provider
        fields are left out.

        Args:
            access_token: The caller's provider access token, or "".

        Raises:
            StoreError: If the settings cannot be read.
            UnknownProviderError: If the persisted provider name does not resolve.
            InvalidConfigError: If the persisted access mode is not a known one.
        """
        async with self.state.read_lock():
            config, provider = await self._read_config(access_token, self.state.snapshot().provider)
            return self._redact(provider, config)

    async def _read_config(
        self, access_token: str, live_provider: IdentityProvider | None
    ) -> tuple[AuthConfig, IdentityProvider]:
        """Reads the full persisted config, secrets included, and a fresh instance of its provider."""
        settings = await self.synchronizer.read(GENERIC_SETTINGS)

        provider_name = settings[PROVIDER_NAME_SETTING]
        logger.debug(
            f"Provider name in store: '{provider_name}', "
            f"configured provider: '{settings[CONFIGURED_PROVIDER_SETTING]}'"
        )
        if not provider_name:
            raise UnknownProviderError("No auth provider name found in the settings store")
        provider = get_provider(provider_name)

        raw_mode = settings[ACCESS_MODE_SETTING].strip()
        try:
            access_mode = AccessMode(raw_mode) if raw_mode else AccessMode.UNRESTRICTED
        except ValueError as e:
            raise InvalidConfigError(f"Unknown access mode '{raw_mode}' in the settings store") from e

        allowed = await self.resolver.resolve_allow_list(
            settings[ALLOWED_IDENTITIES_SETTING], access_token, live_provider
        )
        config = AuthConfig(
            provider=provider_name,
            enabled=parse_bool(settings[SECURITY_SETTING]),
            access_mode=access_mode,
            allowed_identities=allowed,
        )

        provider_settings = await self.synchronizer.read(provider.get_provider_setting_list())
        return provider.add_provider_config(config, provider_settings), provider

    async def reload(self) -> None:
        """
        Re-reads the configuration from the settings store and re-initializes the provider.

        Nothing is written back. Allow-list entries come back as stubs since there
        is no caller token to resolve them with.

        Raises:
            StoreError: If the settings cannot be read.
            UnknownProviderError: If the persisted provider does not resolve.
            InvalidConfigError: If the persisted configuration is rejected by the provider.
        """
        with tracer.start_as_current_span("reload_config") as span:
            try:
                async with self.state.write_lock():
                    config, provider = await self._read_config("", None)
                    self._load(provider, config)
                    self.state.swap(provider, config)

                logger.info(f"Auth config reloaded: provider={config.provider} enabled={config.enabled}")
                span.set_status(Status(StatusCode.OK))
            except CoreasonAuthError as e:
                logger.error(f"Error reloading the auth config: {e}")
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, str(e)))
                raise
