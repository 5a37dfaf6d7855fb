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
The process-wide active (provider, config) pair and the lock guarding it.
"""

from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import NamedTuple

import anyio

from coreason_auth.models import AuthConfig
from coreason_auth.providers.base import IdentityProvider


class ReadWriteLock:
    """
    Async reader/writer lock: any number of readers, or a single writer.

    Writers are preferred: once a writer is waiting, new readers queue behind it,
    so a steady stream of token requests cannot starve a config update.
    """

    def __init__(self) -> None:
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0
        self._condition: anyio.Condition | None = None

    @property
    def _cond(self) -> anyio.Condition:
        # Created on first use so the lock can be built outside an event loop
        if self._condition is None:
            self._condition = anyio.Condition()
        return self._condition

    @property
    def writing(self) -> bool:
        return self._writer

    @asynccontextmanager
    async def read_lock(self) -> AsyncIterator[None]:
        cond = self._cond
        async with cond:
            while self._writer or self._waiting_writers:
                await cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with anyio.CancelScope(shield=True):
                async with cond:
                    self._readers -= 1
                    if self._readers == 0:
                        cond.notify_all()

    @asynccontextmanager
    async def write_lock(self) -> AsyncIterator[None]:
        cond = self._cond
        async with cond:
            self._waiting_writers += 1
            try:
                while self._writer or self._readers:
                    await cond.wait()
            finally:
                self._waiting_writers -= 1
                # Readers blocked only by this waiting writer may proceed if it gave up
                cond.notify_all()
            self._writer = True
        try:
            yield
        finally:
            with anyio.CancelScope(shield=True):
                async with cond:
                    self._writer = False
                    cond.notify_all()


class ActiveSnapshot(NamedTuple):
    provider: IdentityProvider | None
    config: AuthConfig | None


class ActiveState:
    """
    Owns the active provider and the config it was loaded from.

    Both are replaced together by `swap`, which must only be called while holding
    `write_lock()`. Readers take `read_lock()` for as long as they use the pair,
    so a request never sees a provider and a config from two different updates.
    Empty until the first successful update or reload.
    """

    def __init__(self) -> None:
        self._lock = ReadWriteLock()
        self._provider: IdentityProvider | None = None
        self._config: AuthConfig | None = None

    def read_lock(self) -> AbstractAsyncContextManager[None]:
        return self._lock.read_lock()

    def write_lock(self) -> AbstractAsyncContextManager[None]:
        return self._lock.write_lock()

    def snapshot(self) -> ActiveSnapshot:
        return ActiveSnapshot(self._provider, self._config)

    def swap(self, provider: IdentityProvider, config: AuthConfig) -> None:
        if not self._lock.writing:
            raise RuntimeError("ActiveState.swap() requires the write lock")
        self._provider = provider
        self._config = config
