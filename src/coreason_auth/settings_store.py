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
Clients for the external key/value settings store.
"""

from typing import Any, Protocol, runtime_checkable

import anyio
import httpx
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor

from coreason_auth.exceptions import StoreError
from coreason_auth.utils.logger import logger


class SettingsStore(Protocol):
    """A key/value service where every value is a string."""

    async def get_setting(self, key: str) -> str:
        """
        Returns the active value of `key`.

        Raises:
            StoreError: If the setting cannot be read.
        """
        ...

    async def update_setting(self, key: str, value: str) -> None:
        """
        Raises:
            StoreError: If the setting cannot be written.
        """
        ...

    async def aclose(self) -> None: ...


@runtime_checkable
class BatchSettingsStore(SettingsStore, Protocol):
    """A settings store able to apply several updates in one all-or-nothing call."""

    async def update_settings(self, settings: dict[str, str]) -> None: ...


class InMemorySettingsStore:
    """
    Dict-backed settings store, for tests and local development.

    Unknown keys read as "" (the platform's default for settings that were never set).
    Batch updates are applied atomically.
    """

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})

    async def get_setting(self, key: str) -> str:
        return self.data.get(key, "")

    async def update_setting(self, key: str, value: str) -> None:
        self.data[key] = value

    async def update_settings(self, settings: dict[str, str]) -> None:
        self.data.update(settings)

    async def aclose(self) -> None:
        return None


class HTTPSettingsStore:
    """
    Settings store client for a Cattle-style settings API.

    `GET {url}/settings/{key}` returns a JSON resource whose `activeValue` is the
    effective value; `PUT {url}/settings/{key}` with `{"value": ...}` updates it.

    Attributes:
        url (str): Base URL of the API (without trailing slash).
        attempts (int): Attempts per request on transport errors.
    """

    def __init__(
        self,
        url: str,
        access_key: str,
        secret_key: str,
        timeout: float,
        client: httpx.AsyncClient | None = None,
        attempts: int = 3,
    ) -> None:
        """
        Initialize the HTTPSettingsStore.

        Args:
            url: Base URL of the settings API (e.g. http://cattle:8080/v1).
            access_key: API access key (basic auth user).
            secret_key: API secret key (basic auth password).
            timeout: Timeout in seconds for each HTTP request.
            client: External async client (optional). If not provided, one is created and owned by the store.
            attempts: Attempts per request when the transport fails. Defaults to 3.
        """
        self.url = url.rstrip("/")
        self.attempts = attempts
        self._internal_client = client is None
        self._client = client or httpx.AsyncClient(auth=(access_key, secret_key), timeout=timeout)
        HTTPXClientInstrumentor().instrument_client(self._client)

    async def aclose(self) -> None:
        if self._internal_client:
            await self._client.aclose()

    def _setting_url(self, key: str) -> str:
        return f"{self.url}/settings/{key}"

    async def _request(self, method: str, key: str, **kwargs: Any) -> httpx.Response:
        """
        Sends a request, retrying transport errors with exponential backoff (initial=0.1s, max=1.0s).

        HTTP status errors are answers from the store and are not retried.

        Raises:
            StoreError: If the request fails after retries or the store answers with an error status.
        """
        wait_initial = 0.1
        wait_max = 1.0
        url = self._setting_url(key)

        for attempt in range(self.attempts):
            try:
                response = await self._client.request(method, url, **kwargs)
                response.raise_for_status()
                return response
            except httpx.HTTPStatusError as e:
                raise StoreError(
                    f"Settings store answered HTTP {e.response.status_code} for {method} setting '{key}'"
                ) from e
            except httpx.TransportError as e:
                if attempt == self.attempts - 1:
                    raise StoreError(f"Settings store unreachable for {method} setting '{key}': {e}") from e
                logger.warning(f"Settings store {method} '{key}' failed (attempt {attempt + 1}), retrying: {e}")
                await anyio.sleep(min(wait_initial * (2**attempt), wait_max))

        raise StoreError(f"Settings store request for '{key}' failed")  # pragma: no cover

    async def get_setting(self, key: str) -> str:
        response = await self._request("GET", key)
        try:
            data = response.json()
        except ValueError as e:
            raise StoreError(f"Invalid JSON for setting '{key}': {e}") from e
        if not isinstance(data, dict):
            raise StoreError(f"Unexpected response shape for setting '{key}'")

        value = data.get("activeValue")
        if value is None:
            value = data.get("value")
        return "" if value is None else str(value)

    async def update_setting(self, key: str, value: str) -> None:
        await self._request("PUT", key, json={"value": value})
