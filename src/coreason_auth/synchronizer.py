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
Moves flat settings maps between coreason-auth and the settings store.
"""

import anyio

from coreason_auth.exceptions import StoreError
from coreason_auth.settings_store import BatchSettingsStore, SettingsStore
from coreason_auth.utils.logger import logger

ACCESS_MODE_SETTING = "api.auth.github.access.mode"
ALLOWED_IDENTITIES_SETTING = "api.auth.github.allowed.identities"
CONFIGURED_PROVIDER_SETTING = "api.auth.provider.configured"
PROVIDER_NAME_SETTING = "api.auth.provider.name.configured"
SECURITY_SETTING = "api.security.enabled"

GENERIC_SETTINGS: tuple[str, ...] = (
    ACCESS_MODE_SETTING,
    ALLOWED_IDENTITIES_SETTING,
    SECURITY_SETTING,
    CONFIGURED_PROVIDER_SETTING,
    PROVIDER_NAME_SETTING,
)

_TRUE_VALUES = frozenset({"1", "t", "T", "TRUE", "true", "True"})


def format_bool(value: bool) -> str:
    return "true" if value else "false"


def parse_bool(value: str) -> bool:
    """Reads a persisted boolean. Anything that is not a recognised true spelling is False."""
    return value.strip() in _TRUE_VALUES


class SettingsSynchronizer:
    """
    Reads and writes settings maps, one store round-trip per key.

    Attributes:
        store (SettingsStore): The settings store client.
        timeout (float): Upper bound in seconds for each store call.
    """

    def __init__(self, store: SettingsStore, timeout: float = 10.0) -> None:
        self.store = store
        self.timeout = timeout

    async def _get(self, key: str) -> str:
        try:
            with anyio.fail_after(self.timeout):
                return await self.store.get_setting(key)
        except TimeoutError as e:
            raise StoreError(f"Timed out reading setting '{key}'") from e

    async def _put(self, key: str, value: str) -> None:
        try:
            with anyio.fail_after(self.timeout):
                await self.store.update_setting(key, value)
        except TimeoutError as e:
            raise StoreError(f"Timed out writing setting '{key}'") from e

    async def read(self, keys: list[str] | tuple[str, ...]) -> dict[str, str]:
        """
        Reads `keys` from the store.

        Returns:
            dict[str, str]: The value of every requested key.

        Raises:
            StoreError: On the first key that cannot be read.
        """
        settings: dict[str, str] = {}
        for key in keys:
            try:
                settings[key] = await self._get(key)
            except StoreError:
                logger.error(f"Error reading setting {key}")
                raise
        return settings

    async def write(self, settings: dict[str, str]) -> None:
        """
        Persists `settings`.

        Batch-capable stores receive everything in a single call. Other stores get
        a two-step write: every key's current value is read first (nothing is
        written if any read fails), then keys are written one by one. If a write
        fails, keys already written are put back to their previous values before
        the error is raised. A rollback write can fail too; that is logged and the
        store is then left with a mix of old and new values.

        Raises:
            StoreError: If the settings could not be persisted.
        """
        staged = dict(settings)
        if not staged:
            return

        if isinstance(self.store, BatchSettingsStore):
            try:
                with anyio.fail_after(self.timeout):
                    await self.store.update_settings(staged)
            except TimeoutError as e:
                raise StoreError("Timed out writing settings batch") from e
            return

        previous = await self.read(list(staged))

        written: list[str] = []
        try:
            for key, value in staged.items():
                await self._put(key, value)
                written.append(key)
        except StoreError:
            logger.error(f"Error storing settings, rolling back {len(written)} already written key(s)")
            await self._rollback(written, previous)
            raise

    async def _rollback(self, keys: list[str], previous: dict[str, str]) -> None:
        for key in reversed(keys):
            try:
                await self._put(key, previous[key])
            except StoreError as e:
                logger.error(f"Rollback of setting {key} failed, store left inconsistent: {e}")
