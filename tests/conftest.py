"""Shared fixtures for Mini-KV tests."""

from datetime import datetime, timedelta, timezone

import pytest

from mini_kv.commands import CommandHandler
from mini_kv.counters import NumberOps
from mini_kv.hashes import HashOps
from mini_kv.storage import KeyStore, LockTable
from mini_kv.strings import StringOps


class FakeClock:
    """Manually advanced clock for timestamp assertions."""

    def __init__(self) -> None:
        self.now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 1) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def locks() -> LockTable:
    return LockTable(8)


@pytest.fixture
def strings(locks: LockTable, clock: FakeClock) -> StringOps:
    return StringOps(KeyStore("strings", locks, clock=clock))


@pytest.fixture
def numbers(locks: LockTable) -> NumberOps:
    return NumberOps(KeyStore("numbers", locks))


@pytest.fixture
def hashes(locks: LockTable) -> HashOps:
    return HashOps(KeyStore("hashes", locks))


@pytest.fixture
def handler(strings: StringOps, numbers: NumberOps, hashes: HashOps) -> CommandHandler:
    return CommandHandler(strings, numbers, hashes)
