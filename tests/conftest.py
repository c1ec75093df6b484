"""
conftest.py - Shared pytest fixtures for Daily Ledger tests

Provides:
- A repository facade over a temporary SQLite database
- A fixed clock (2024-03-15 12:00 UTC) shared by the cache and services
- Stats service and reconciliation trigger wired to both
- A seeded roster for service-level tests
"""

from datetime import date

import pytest

from dailyledger.db import LedgerRepository
from dailyledger.services import (
    AggregateCache,
    ReconciliationTrigger,
    SharingService,
    StatsService,
)

from tests.builders import TODAY, USER, FixedClock, at_noon


@pytest.fixture
def repository(tmp_path):
    return LedgerRepository(tmp_path / "ledger.db")


@pytest.fixture
def clock():
    return FixedClock(at_noon(TODAY))


@pytest.fixture
def cache(repository, clock):
    return AggregateCache(repository.stats, freshness_seconds=10.0, clock=clock)


@pytest.fixture
def stats_service(repository, cache, clock):
    return StatsService(repository, cache=cache, clock=clock)


@pytest.fixture
def trigger(repository, stats_service):
    return ReconciliationTrigger(repository, stats_service)


@pytest.fixture
def sharing_service(repository, clock):
    return SharingService(repository, clock=clock)


@pytest.fixture
def roster(repository):
    """
    Two members created on 2024-01-01 with a 1000/month target.

    Alice paid 2000 on 2024-02-10 and 500 on 2024-03-01.
    Bob never paid.
    """
    alice = repository.members.add(
        USER, "Alice", 1000.0, default_daily_payment=50.0, created_on=at_noon(date(2024, 1, 1))
    )
    bob = repository.members.add(
        USER, "Bob", 1000.0, created_on=at_noon(date(2024, 1, 1))
    )
    repository.transactions.insert(
        USER, alice.id, 2000.0, date(2024, 2, 10), member_name="Alice"
    )
    repository.transactions.insert(
        USER, alice.id, 500.0, date(2024, 3, 1), member_name="Alice"
    )
    return alice, bob
