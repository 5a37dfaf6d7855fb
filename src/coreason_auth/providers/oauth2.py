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
Generic OAuth2 authorization-code provider.

Identities come from the provider's userinfo endpoint: the caller is a `user`
identity and every entry of the `groups` claim becomes a `group` identity.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any
from urllib.parse import urlparse

import httpx

from coreason_auth.exceptions import (
    AuthFailedError,
    IdentityNotFoundError,
    InvalidConfigError,
    ProviderError,
)
from coreason_auth.models import AuthConfig, Identity, ProviderToken
from coreason_auth.providers import register_provider
from coreason_auth.providers.base import IdentityProvider
from coreason_auth.utils.logger import logger

CLIENT_ID_SETTING = "api.auth.oauth2.client.id"
CLIENT_SECRET_SETTING = "api.auth.oauth2.client.secret"
TOKEN_URL_SETTING = "api.auth.oauth2.token.url"
USERINFO_URL_SETTING = "api.auth.oauth2.userinfo.url"

# provider_config field -> settings store key
FIELD_SETTINGS: dict[str, str] = {
    "clientId": CLIENT_ID_SETTING,
    "clientSecret": CLIENT_SECRET_SETTING,
    "tokenUrl": TOKEN_URL_SETTING,
    "userinfoUrl": USERINFO_URL_SETTING,
}


@register_provider
class OAuth2Provider(IdentityProvider):
    """
    Identity provider for any OAuth2 server exposing a token and a userinfo endpoint.

    Attributes:
        client (httpx.AsyncClient | None): Shared client; a transient one is used when None.
        http_timeout (float): Timeout for transient clients.
    """

    name = "oauth2"
    secret_fields = ("clientSecret",)
    token_type = "oauth2jwt"

    def __init__(self, client: httpx.AsyncClient | None = None, http_timeout: float = 10.0) -> None:
        self.client = client
        self.http_timeout = http_timeout
        self.client_id = ""
        self.client_secret = ""
        self.token_url = ""
        self.userinfo_url = ""

    def load_config(self, config: AuthConfig) -> None:
        fields = {field: config.provider_config.get(field, "").strip() for field in FIELD_SETTINGS}
        missing = [field for field, value in fields.items() if not value]
        if missing:
            raise InvalidConfigError(f"oauth2 provider config is missing required fields: {', '.join(missing)}")

        for field in ("tokenUrl", "userinfoUrl"):
            parsed = urlparse(fields[field])
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                raise InvalidConfigError(f"oauth2 provider field '{field}' must be an absolute http(s) URL")

        self.client_id = fields["clientId"]
        self.client_secret = fields["clientSecret"]
        self.token_url = fields["tokenUrl"]
        self.userinfo_url = fields["userinfoUrl"]

    def get_settings(self) -> dict[str, str]:
        return {
            CLIENT_ID_SETTING: self.client_id,
            CLIENT_SECRET_SETTING: self.client_secret,
            TOKEN_URL_SETTING: self.token_url,
            USERINFO_URL_SETTING: self.userinfo_url,
        }

    def get_provider_setting_list(self) -> list[str]:
        return list(FIELD_SETTINGS.values())

    def add_provider_config(self, config: AuthConfig, settings: dict[str, str]) -> AuthConfig:
        provider_config = {field: settings.get(key, "") for field, key in FIELD_SETTINGS.items()}
        return config.model_copy(update={"provider_config": provider_config})

    @asynccontextmanager
    async def _http(self) -> AsyncIterator[httpx.AsyncClient]:
        if self.client is not None:
            yield self.client
            return
        async with httpx.AsyncClient(timeout=self.http_timeout) as client:
            yield client

    @staticmethod
    def _json(response: httpx.Response, what: str) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(f"Invalid JSON in {what} response: {e}") from e
        if not isinstance(data, dict):
            raise ProviderError(f"Unexpected {what} response shape: {type(data).__name__}")
        return data

    async def generate_token(self, code: str) -> ProviderToken:
        if not code:
            raise AuthFailedError("Authorization code is empty")

        data = {
            "grant_type": "authorization_code",
            "code": code,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }
        async with self._http() as client:
            try:
                response = await client.post(self.token_url, data=data, headers={"Accept": "application/json"})
            except httpx.HTTPError as e:
                raise ProviderError(f"Token exchange with {self.token_url} failed: {e}") from e

        if response.status_code in (400, 401):
            raise AuthFailedError(f"Authorization code rejected by provider (HTTP {response.status_code})")
        if response.is_error:
            raise ProviderError(f"Token exchange failed with HTTP {response.status_code}")

        payload = self._json(response, "token exchange")
        if "error" in payload:
            # Some servers answer 200 with an OAuth error body
            raise AuthFailedError(f"Authorization code rejected by provider: {payload['error']}")

        access_token = payload.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise ProviderError("Token exchange response carries no access_token")

        logger.debug("Exchanged authorization code for a provider access token")
        return await self._provider_token(access_token)

    async def refresh_token(self, access_token: str) -> ProviderToken:
        if not access_token:
            raise AuthFailedError("Access token is empty")
        return await self._provider_token(access_token)

    async def _provider_token(self, access_token: str) -> ProviderToken:
        identities = await self.get_identities(access_token)
        return ProviderToken(
            type=self.token_type,
            external_account_id=identities[0].external_id,
            access_token=access_token,
            identities=identities,
        )

    async def _userinfo(self, access_token: str) -> dict[str, Any]:
        headers = {"Authorization": f"Bearer {access_token}", "Accept": "application/json"}
        async with self._http() as client:
            try:
                response = await client.get(self.userinfo_url, headers=headers)
            except httpx.HTTPError as e:
                raise ProviderError(f"Userinfo request to {self.userinfo_url} failed: {e}") from e

        if response.status_code in (401, 403):
            raise AuthFailedError(f"Access token rejected by provider (HTTP {response.status_code})")
        if response.is_error:
            raise ProviderError(f"Userinfo request failed with HTTP {response.status_code}")
        return self._json(response, "userinfo")

    async def get_identities(self, access_token: str) -> list[Identity]:
        info = await self._userinfo(access_token)

        subject = str(info.get("sub") or info.get("id") or "")
        if not subject:
            raise ProviderError("Userinfo response carries no subject")
        login = str(info.get("preferred_username") or info.get("login") or subject)

        identities = [
            Identity(
                id=f"user:{subject}",
                external_id=subject,
                external_id_type="user",
                login=login,
                name=str(info.get("name") or login),
                profile_picture=str(info.get("picture") or ""),
                profile_url=str(info.get("profile") or ""),
            )
        ]

        groups = info.get("groups") or []
        if isinstance(groups, str):
            groups = [groups]
        for group in groups:
            if not isinstance(group, str) or not group:
                continue
            identity = Identity(
                id=f"group:{group}", external_id=group, external_id_type="group", login=group, name=group
            )
            if identity not in identities:
                identities.append(identity)

        return identities

    async def get_identity(self, external_id: str, external_id_type: str, access_token: str) -> Identity:
        for identity in await self.get_identities(access_token):
            if identity.external_id == external_id and identity.external_id_type == external_id_type:
                return identity
        raise IdentityNotFoundError(f"Identity {external_id_type}:{external_id} not found")

    async def search_identities(self, name: str, exact_match: bool, access_token: str) -> list[Identity]:
        identities = await self.get_identities(access_token)
        if exact_match:
            return [i for i in identities if i.name == name]
        needle = name.lower()
        return [i for i in identities if needle in i.login.lower() or needle in i.name.lower()]
