# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_auth

import anyio
import pytest

from coreason_auth.exceptions import StoreError
from coreason_auth.settings_store import BatchSettingsStore, InMemorySettingsStore
from coreason_auth.synchronizer import SettingsSynchronizer, format_bool, parse_bool


class KeyByKeyStore:
    """Non-batch store recording every call, with optional failures per key."""

    def __init__(self, data: dict[str, str] | None = None) -> None:
        self.data = dict(data or {})
        self.calls: list[tuple[str, str]] = []
        self.fail_reads: set[str] = set()
        self.fail_writes: set[str] = set()
        self.slow_keys: set[str] = set()

    async def get_setting(self, key: str) -> str:
        self.calls.append(("get", key))
        if key in self.slow_keys:
            await anyio.sleep(5)
        if key in self.fail_reads:
            raise StoreError(f"cannot read {key}")
        return self.data.get(key, "")

    async def update_setting(self, key: str, value: str) -> None:
        self.calls.append(("put", key))
        if key in self.fail_writes:
            raise StoreError(f"cannot write {key}")
        self.data[key] = value

    async def aclose(self) -> None:
        return None


def test_bool_formatting() -> None:
    assert format_bool(True) == "true"
    assert format_bool(False) == "false"


@pytest.mark.parametrize("value", ["true", "True", "TRUE", "1", "t", " true "])
def test_parse_bool_true(value: str) -> None:
    assert parse_bool(value) is True


@pytest.mark.parametrize("value", ["false", "0", "", "yes", "garbage"])
def test_parse_bool_false(value: str) -> None:
    assert parse_bool(value) is False


def test_store_batch_detection() -> None:
    assert isinstance(InMemorySettingsStore(), BatchSettingsStore)
    assert not isinstance(KeyByKeyStore(), BatchSettingsStore)


@pytest.mark.asyncio
async def test_read_one_round_trip_per_key() -> None:
    store = KeyByKeyStore({"a": "1", "b": "2"})
    sync = SettingsSynchronizer(store)

    assert await sync.read(["a", "b", "c"]) == {"a": "1", "b": "2", "c": ""}
    assert store.calls == [("get", "a"), ("get", "b"), ("get", "c")]


@pytest.mark.asyncio
async def test_read_aborts_on_first_failure() -> None:
    store = KeyByKeyStore({"a": "1"})
    store.fail_reads.add("b")
    sync = SettingsSynchronizer(store)

    with pytest.raises(StoreError):
        await sync.read(["a", "b", "c"])
    assert ("get", "c") not in store.calls


@pytest.mark.asyncio
async def test_read_timeout_is_store_error() -> None:
    store = KeyByKeyStore()
    store.slow_keys.add("a")
    sync = SettingsSynchronizer(store, timeout=0.1)

    with pytest.raises(StoreError, match="Timed out"):
        await sync.read(["a"])


@pytest.mark.asyncio
async def test_write_uses_single_batch_call() -> None:
    store = InMemorySettingsStore({"a": "old"})
    calls: list[dict[str, str]] = []
    original = store.update_settings

    async def recording(settings: dict[str, str]) -> None:
        calls.append(settings)
        await original(settings)

    store.update_settings = recording  # type: ignore[method-assign]
    sync = SettingsSynchronizer(store)

    await sync.write({"a": "new", "b": "2"})

    assert calls == [{"a": "new", "b": "2"}]
    assert store.data == {"a": "new", "b": "2"}


@pytest.mark.asyncio
async def test_write_prepares_then_applies() -> None:
    store = KeyByKeyStore({"a": "old"})
    sync = SettingsSynchronizer(store)

    await sync.write({"a": "new", "b": "2"})

    assert store.data == {"a": "new", "b": "2"}
    assert store.calls == [("get", "a"), ("get", "b"), ("put", "a"), ("put", "b")]


@pytest.mark.asyncio
async def test_write_writes_nothing_when_prepare_fails() -> None:
    store = KeyByKeyStore({"a": "old"})
    store.fail_reads.add("b")
    sync = SettingsSynchronizer(store)

    with pytest.raises(StoreError):
        await sync.write({"a": "new", "b": "2"})

    assert store.data == {"a": "old"}
    assert not any(op == "put" for op, _ in store.calls)


@pytest.mark.asyncio
async def test_write_rolls_back_on_partial_failure(log_messages: list[str]) -> None:
    store = KeyByKeyStore({"a": "old-a", "b": "old-b", "c": "old-c"})
    store.fail_writes.add("c")
    sync = SettingsSynchronizer(store)

    with pytest.raises(StoreError):
        await sync.write({"a": "new-a", "b": "new-b", "c": "new-c"})

    assert store.data == {"a": "old-a", "b": "old-b", "c": "old-c"}
    assert any("rolling back 2" in m for m in log_messages)


@pytest.mark.asyncio
async def test_write_reports_failed_rollback(log_messages: list[str]) -> None:
    store = KeyByKeyStore({"a": "old-a", "b": "old-b"})
    sync = SettingsSynchronizer(store)

    original_update = store.update_setting

    async def flaky(key: str, value: str) -> None:
        # "b" fails going forward; "a" cannot be restored either
        if key == "b" or (key == "a" and value == "old-a"):
            raise StoreError(f"cannot write {key}")
        await original_update(key, value)

    store.update_setting = flaky  # type: ignore[method-assign]

    with pytest.raises(StoreError):
        await sync.write({"a": "new-a", "b": "new-b"})

    assert store.data["a"] == "new-a"
    assert any("store left inconsistent" in m for m in log_messages)


@pytest.mark.asyncio
async def test_write_empty_is_noop() -> None:
    store = KeyByKeyStore()
    await SettingsSynchronizer(store).write({})
    assert store.calls == []
