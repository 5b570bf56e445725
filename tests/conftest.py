"""
Pytest configuration and shared fixtures.
"""

import time

import pytest

from tierlist.ingestion.submission import submit
from tierlist.storage import InMemoryTierStore


class FailingStore(InMemoryTierStore):
    """Raises on gamemode writes for selected IGNs."""

    def __init__(self, fail_igns):
        super().__init__()
        self.fail_igns = set(fail_igns)

    def upsert_gamemode_score(self, player_id, gamemode, tier, points, raw_score=None):
        if self.get_player(player_id).ign in self.fail_igns:
            raise RuntimeError("connection reset by backend")
        super().upsert_gamemode_score(player_id, gamemode, tier, points, raw_score)


class SlowStore(InMemoryTierStore):
    """Delays gamemode writes for selected IGNs."""

    def __init__(self, slow_igns, delay):
        super().__init__()
        self.slow_igns = set(slow_igns)
        self.delay = delay

    def upsert_gamemode_score(self, player_id, gamemode, tier, points, raw_score=None):
        if self.get_player(player_id).ign in self.slow_igns:
            time.sleep(self.delay)
        super().upsert_gamemode_score(player_id, gamemode, tier, points, raw_score)


class CorruptingStore(InMemoryTierStore):
    """Writes a wrong global score once when `corrupt_next` is set."""

    def __init__(self):
        super().__init__()
        self.corrupt_next = False

    def update_global_score(self, player_id, new_score):
        if self.corrupt_next:
            self.corrupt_next = False
            new_score += 1
        super().update_global_score(player_id, new_score)


@pytest.fixture
def store():
    """Empty in-memory store"""
    return InMemoryTierStore()


@pytest.fixture
def ranked_store():
    """Players A(95), B(95), C(50), created in that order"""
    store = InMemoryTierStore()
    submit(store, "PlayerA", "Crystal", "HT1")
    submit(store, "PlayerA", "Sword", "LT1")
    submit(store, "PlayerB", "Mace", "HT1")
    submit(store, "PlayerB", "Axe", "LT1")
    submit(store, "PlayerC", "SMP", "HT1")
    return store


@pytest.fixture
def failing_store():
    return FailingStore(fail_igns={"Broken"})


@pytest.fixture
def corrupting_store():
    return CorruptingStore()


@pytest.fixture
def slow_store():
    """Gamemode writes for 'Sleepy' take half a second"""
    return SlowStore(slow_igns={"Sleepy"}, delay=0.5)
