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
IdentityResolver component: turns the persisted allow-list into Identity records
and answers identity lookups against the active provider.
"""

from collections.abc import Awaitable, Callable, Iterable, Iterator
from typing import TypeVar

import anyio

from coreason_auth.exceptions import CoreasonAuthError, NoProviderConfiguredError, ProviderError
from coreason_auth.models import Identity
from coreason_auth.providers.base import IdentityProvider
from coreason_auth.state import ActiveState
from coreason_auth.utils.logger import logger

T = TypeVar("T")


def iter_allow_list(raw: str) -> Iterator[tuple[str, str, str]]:
    """
    Lazily splits a persisted allow-list into its entries.

    Entries are comma separated `<type>:<externalId>` pairs; only the first ':'
    separates the two, so external ids may contain ':' themselves. Blank entries
    are ignored and malformed ones are skipped with a warning.

    Args:
        raw: The persisted allow-list string.

    Yields:
        tuple[str, str, str]: (entry, external_id_type, external_id) for every well-formed entry.
    """
    for chunk in raw.split(","):
        entry = chunk.strip()
        if not entry:
            continue
        id_type, sep, external_id = entry.partition(":")
        if not sep or not id_type or not external_id:
            logger.warning(f"Malformed allowed identity '{entry}', skipping it")
            continue
        yield entry, id_type, external_id


def serialize_allow_list(identities: Iterable[Identity]) -> str:
    return ",".join(identity.allow_list_entry for identity in identities)


class IdentityResolver:
    """
    Resolves identities through the active provider.

    Attributes:
        state (ActiveState): The process-wide provider/config cell.
        provider_timeout (float): Upper bound in seconds for a single provider call.
    """

    def __init__(self, state: ActiveState, provider_timeout: float = 10.0) -> None:
        self.state = state
        self.provider_timeout = provider_timeout

    async def _call(self, operation: str, call: Callable[[], Awaitable[T]]) -> T:
        try:
            with anyio.fail_after(self.provider_timeout):
                return await call()
        except TimeoutError as e:
            raise ProviderError(f"Identity provider timed out during {operation}") from e

    async def resolve_allow_list(
        self, raw: str, access_token: str = "", provider: IdentityProvider | None = None
    ) -> list[Identity]:
        """
        Expands a persisted allow-list into Identity records.

        Every well-formed entry yields exactly one Identity: the provider's record
        when `provider` and `access_token` are both available and the lookup
        succeeds, otherwise a stub built from the entry itself. The caller is
        expected to hold the state lock that `provider` was taken under.

        Args:
            raw: The persisted allow-list string.
            access_token: The caller's provider access token, or "".
            provider: The provider to resolve against, or None.

        Returns:
            list[Identity]: One identity per well-formed entry, in order.
        """
        identities: list[Identity] = []
        for entry, id_type, external_id in iter_allow_list(raw):
            if provider is not None and access_token:
                try:
                    identity = await self._call(
                        "allow-list resolution",
                        lambda: provider.get_identity(external_id, id_type, access_token),
                    )
                    identities.append(identity)
                    continue
                except CoreasonAuthError as e:
                    logger.debug(f"Could not resolve allowed identity {entry}, using a stub: {e}")
            identities.append(Identity.stub(entry, id_type, external_id))
        return identities

    async def get_identities(self, access_token: str) -> list[Identity]:
        """
        Lists the caller's own identity and memberships.

        Raises:
            NoProviderConfiguredError: If no provider is active.
            AuthFailedError: If the provider rejects the token.
            ProviderError: If the provider fails or times out.
        """
        async with self.state.read_lock():
            provider = self._active_provider()
            return await self._call("identity listing", lambda: provider.get_identities(access_token))

    async def get_identity(self, external_id: str, external_id_type: str, access_token: str) -> Identity:
        """
        Looks a single identity up by its external id and type.

        Raises:
            NoProviderConfiguredError: If no provider is active.
            IdentityNotFoundError: If the provider does not know the identity.
            ProviderError: If the provider fails or times out.
        """
        async with self.state.read_lock():
            provider = self._active_provider()
            return await self._call(
                "identity lookup", lambda: provider.get_identity(external_id, external_id_type, access_token)
            )

    async def search_identities(self, name: str, exact_match: bool, access_token: str) -> list[Identity]:
        """
        Searches identities by name through the active provider.

        Raises:
            NoProviderConfiguredError: If no provider is active.
            ProviderError: If the provider fails or times out.
        """
        async with self.state.read_lock():
            provider = self._active_provider()
            return await self._call(
                "identity search", lambda: provider.search_identities(name, exact_match, access_token)
            )

    def _active_provider(self) -> IdentityProvider:
        provider = self.state.snapshot().provider
        if provider is None:
            raise NoProviderConfiguredError("No auth provider configured")
        return provider
