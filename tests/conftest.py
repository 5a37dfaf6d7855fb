# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_auth

from collections.abc import AsyncGenerator, Generator
from typing import Any

import pytest
from authlib.jose import JsonWebKey
from fakes import ALICE, DEVS, FakeProvider
from loguru import logger

from coreason_auth.models import AccessMode, AuthConfig
from coreason_auth.providers import PROVIDERS
from coreason_auth.server import AuthServer
from coreason_auth.settings_store import InMemorySettingsStore
from coreason_auth.token_service import TokenSigner


@pytest.fixture(autouse=True)
def fake_provider(monkeypatch: pytest.MonkeyPatch) -> type[FakeProvider]:
    """Registers FakeProvider for the duration of a test, without leaking into the global registry."""
    monkeypatch.setitem(PROVIDERS, FakeProvider.name, FakeProvider)
    return FakeProvider


@pytest.fixture(scope="session")
def rsa_key() -> Any:
    return JsonWebKey.generate_key("RSA", 2048, is_private=True)


@pytest.fixture(scope="session")
def public_jwk(rsa_key: Any) -> dict[str, Any]:
    return rsa_key.as_dict(is_private=False)  # type: ignore[no-any-return]


@pytest.fixture
def signer(rsa_key: Any) -> TokenSigner:
    return TokenSigner(rsa_key)


@pytest.fixture
def store() -> InMemorySettingsStore:
    return InMemorySettingsStore()


@pytest.fixture
async def server(store: InMemorySettingsStore, signer: TokenSigner) -> AsyncGenerator[AuthServer, None]:
    async with AuthServer(store, signer, provider_timeout=2.0, store_timeout=2.0) as srv:
        yield srv


@pytest.fixture
def fake_config() -> AuthConfig:
    return AuthConfig(
        provider="fake",
        enabled=True,
        access_mode=AccessMode.RESTRICTED,
        allowed_identities=[ALICE, DEVS],
        provider_config={"url": "https://idp.example.com", "secret": "s3cr3t"},
    )


@pytest.fixture
def log_messages() -> Generator[list[str], None, None]:
    """Collects the messages logged through loguru during the test."""
    messages: list[str] = []
    handler_id = logger.add(lambda m: messages.append(m.record["message"]), level="DEBUG")
    yield messages
    logger.remove(handler_id)
