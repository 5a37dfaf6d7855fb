# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_auth

import pytest
from fakes import ALICE, DEVS, FAKE_SECRET_SETTING, FAKE_URL_SETTING, GOOD_TOKEN, FakeProvider

from coreason_auth.exceptions import (
    InvalidConfigError,
    InvalidRequestError,
    StoreError,
    UnknownProviderError,
)
from coreason_auth.models import AccessMode, AuthConfig
from coreason_auth.providers.oauth2 import (
    CLIENT_ID_SETTING,
    CLIENT_SECRET_SETTING,
    TOKEN_URL_SETTING,
    USERINFO_URL_SETTING,
    OAuth2Provider,
)
from coreason_auth.server import AuthServer
from coreason_auth.settings_store import InMemorySettingsStore
from coreason_auth.synchronizer import (
    ACCESS_MODE_SETTING,
    ALLOWED_IDENTITIES_SETTING,
    CONFIGURED_PROVIDER_SETTING,
    PROVIDER_NAME_SETTING,
    SECURITY_SETTING,
)
from coreason_auth.token_service import TokenSigner


class BrokenStore(InMemorySettingsStore):
    """Reads work, writes fail."""

    async def update_settings(self, settings: dict[str, str]) -> None:
        raise StoreError("store is read-only")


@pytest.mark.asyncio
async def test_update_persists_every_setting(
    server: AuthServer, store: InMemorySettingsStore, fake_config: AuthConfig
) -> None:
    await server.config_manager.update_config(fake_config)

    assert store.data == {
        ACCESS_MODE_SETTING: "restricted",
        ALLOWED_IDENTITIES_SETTING: "user:1001,group:devs",
        SECURITY_SETTING: "true",
        PROVIDER_NAME_SETTING: "fake",
        CONFIGURED_PROVIDER_SETTING: "fake",
        FAKE_URL_SETTING: "https://idp.example.com",
        FAKE_SECRET_SETTING: "s3cr3t",
    }


@pytest.mark.asyncio
async def test_update_activates_provider(server: AuthServer, fake_config: AuthConfig) -> None:
    await server.config_manager.update_config(fake_config)

    provider, config = server.state.snapshot()
    assert isinstance(provider, FakeProvider)
    assert provider.url == "https://idp.example.com"
    assert config == fake_config


@pytest.mark.asyncio
async def test_update_then_get_round_trip(server: AuthServer, fake_config: AuthConfig) -> None:
    await server.config_manager.update_config(fake_config)

    config = await server.config_manager.get_config()

    assert config.provider == "fake"
    assert config.enabled is True
    assert config.access_mode is AccessMode.RESTRICTED
    assert config.allowed_identities == [ALICE, DEVS]
    assert config.provider_config == {"url": "https://idp.example.com"}
    # Without a token the allow-list comes back unresolved
    assert config.allowed_identities[0].login == ""


@pytest.mark.asyncio
async def test_get_resolves_allow_list_with_token(server: AuthServer, fake_config: AuthConfig) -> None:
    await server.config_manager.update_config(fake_config)

    config = await server.config_manager.get_config(GOOD_TOKEN)

    assert [i.login for i in config.allowed_identities] == ["alice", "devs"]


@pytest.mark.asyncio
async def test_update_rejects_missing_provider(server: AuthServer, store: InMemorySettingsStore) -> None:
    with pytest.raises(InvalidConfigError, match="Provider is a required field") as exc_info:
        await server.config_manager.update_config(AuthConfig(provider=""))

    assert isinstance(exc_info.value, InvalidRequestError)
    assert store.data == {}


@pytest.mark.asyncio
async def test_update_rejects_unknown_provider(server: AuthServer, store: InMemorySettingsStore) -> None:
    with pytest.raises(UnknownProviderError):
        await server.config_manager.update_config(AuthConfig(provider="nope"))
    assert store.data == {}


@pytest.mark.asyncio
async def test_rejected_update_keeps_previous_state(
    server: AuthServer, store: InMemorySettingsStore, fake_config: AuthConfig
) -> None:
    await server.config_manager.update_config(fake_config)
    before = dict(store.data)
    previous = server.state.snapshot()

    bad = fake_config.model_copy(update={"provider_config": {"secret": "x"}})
    with pytest.raises(InvalidConfigError):
        await server.config_manager.update_config(bad)

    assert store.data == before
    assert server.state.snapshot() == previous


@pytest.mark.asyncio
async def test_store_failure_does_not_swap(signer: TokenSigner, fake_config: AuthConfig) -> None:
    async with AuthServer(BrokenStore(), signer) as server:
        with pytest.raises(StoreError):
            await server.config_manager.update_config(fake_config)

        assert server.state.snapshot() == (None, None)


@pytest.mark.asyncio
async def test_disable_keeps_configured_provider(
    server: AuthServer, store: InMemorySettingsStore, fake_config: AuthConfig
) -> None:
    await server.config_manager.update_config(fake_config)
    store.data[CONFIGURED_PROVIDER_SETTING] = "platform-choice"

    await server.config_manager.update_config(fake_config.model_copy(update={"enabled": False}))

    assert store.data[SECURITY_SETTING] == "false"
    assert store.data[CONFIGURED_PROVIDER_SETTING] == "platform-choice"


@pytest.mark.asyncio
async def test_omitted_secret_keeps_stored_value(
    server: AuthServer, store: InMemorySettingsStore, fake_config: AuthConfig
) -> None:
    await server.config_manager.update_config(fake_config)

    await server.config_manager.update_config(
        fake_config.model_copy(update={"provider_config": {"url": "https://other.example.com"}})
    )

    assert store.data[FAKE_URL_SETTING] == "https://other.example.com"
    assert store.data[FAKE_SECRET_SETTING] == "s3cr3t"
    provider, _ = server.state.snapshot()
    assert isinstance(provider, FakeProvider)
    assert provider.secret == "s3cr3t"


@pytest.mark.asyncio
async def test_empty_allow_list_is_written(
    server: AuthServer, store: InMemorySettingsStore, fake_config: AuthConfig
) -> None:
    await server.config_manager.update_config(fake_config)
    await server.config_manager.update_config(fake_config.model_copy(update={"allowed_identities": []}))

    assert store.data[ALLOWED_IDENTITIES_SETTING] == ""


@pytest.mark.asyncio
async def test_get_without_provider_name(server: AuthServer) -> None:
    with pytest.raises(UnknownProviderError):
        await server.config_manager.get_config()


@pytest.mark.asyncio
async def test_get_defaults_empty_access_mode(server: AuthServer, store: InMemorySettingsStore) -> None:
    store.data.update({PROVIDER_NAME_SETTING: "fake", FAKE_URL_SETTING: "https://idp"})

    config = await server.config_manager.get_config()

    assert config.access_mode is AccessMode.UNRESTRICTED
    assert config.enabled is False
    assert config.allowed_identities == []


@pytest.mark.asyncio
async def test_get_rejects_unknown_access_mode(server: AuthServer, store: InMemorySettingsStore) -> None:
    store.data.update({PROVIDER_NAME_SETTING: "fake", ACCESS_MODE_SETTING: "everyone"})

    with pytest.raises(InvalidConfigError, match="everyone"):
        await server.config_manager.get_config()


@pytest.mark.asyncio
async def test_reload_activates_persisted_config(server: AuthServer, store: InMemorySettingsStore) -> None:
    store.data.update(
        {
            PROVIDER_NAME_SETTING: "fake",
            SECURITY_SETTING: "true",
            ACCESS_MODE_SETTING: "required",
            ALLOWED_IDENTITIES_SETTING: "user:1001",
            FAKE_URL_SETTING: "https://idp.example.com",
            FAKE_SECRET_SETTING: "s3cr3t",
        }
    )
    before = dict(store.data)

    await server.config_manager.reload()

    provider, config = server.state.snapshot()
    assert isinstance(provider, FakeProvider)
    assert provider.url == "https://idp.example.com"
    assert provider.secret == "s3cr3t"
    assert config is not None
    assert config.access_mode is AccessMode.REQUIRED
    assert config.allowed_identities == [ALICE]
    assert store.data == before


@pytest.mark.asyncio
async def test_reload_unknown_provider_keeps_state(
    server: AuthServer, store: InMemorySettingsStore, fake_config: AuthConfig
) -> None:
    await server.config_manager.update_config(fake_config)
    previous = server.state.snapshot()
    store.data[PROVIDER_NAME_SETTING] = "vanished"

    with pytest.raises(UnknownProviderError):
        await server.config_manager.reload()

    assert server.state.snapshot() == previous


@pytest.mark.asyncio
async def test_reload_store_failure_propagates(server: AuthServer, store: InMemorySettingsStore) -> None:
    async def failing_get(key: str) -> str:
        raise StoreError("store down")

    store.get_setting = failing_get  # type: ignore[method-assign]

    with pytest.raises(StoreError):
        await server.config_manager.reload()


@pytest.mark.asyncio
async def test_get_leaves_out_stored_secret(
    server: AuthServer, store: InMemorySettingsStore, fake_config: AuthConfig
) -> None:
    await server.config_manager.update_config(fake_config)

    config = await server.config_manager.get_config(GOOD_TOKEN)

    assert "secret" not in config.provider_config
    assert store.data[FAKE_SECRET_SETTING] == "s3cr3t"


OAUTH2_SETTINGS = {
    PROVIDER_NAME_SETTING: "oauth2",
    CONFIGURED_PROVIDER_SETTING: "oauth2",
    SECURITY_SETTING: "true",
    CLIENT_ID_SETTING: "platform",
    CLIENT_SECRET_SETTING: "TOPSECRET",
    TOKEN_URL_SETTING: "https://idp.example.com/token",
    USERINFO_URL_SETTING: "https://idp.example.com/userinfo",
}


@pytest.mark.asyncio
async def test_oauth2_config_edit_keeps_client_secret(server: AuthServer, store: InMemorySettingsStore) -> None:
    store.data.update(OAUTH2_SETTINGS)

    config = await server.config_manager.get_config()
    assert "clientSecret" not in config.provider_config
    assert "TOPSECRET" not in config.model_dump_json()

    await server.config_manager.update_config(config.model_copy(update={"access_mode": AccessMode.REQUIRED}))

    assert store.data[CLIENT_SECRET_SETTING] == "TOPSECRET"
    assert store.data[ACCESS_MODE_SETTING] == "required"
    provider, _ = server.state.snapshot()
    assert isinstance(provider, OAuth2Provider)
    assert provider.client_secret == "TOPSECRET"


@pytest.mark.asyncio
async def test_oauth2_without_any_client_secret(server: AuthServer, store: InMemorySettingsStore) -> None:
    config = AuthConfig(
        provider="oauth2",
        provider_config={
            "clientId": "platform",
            "tokenUrl": "https://idp.example.com/token",
            "userinfoUrl": "https://idp.example.com/userinfo",
        },
    )

    with pytest.raises(InvalidConfigError, match="clientSecret"):
        await server.config_manager.update_config(config)

    assert CLIENT_SECRET_SETTING not in store.data
    assert server.state.snapshot() == (None, None)
