"""
test_sharing.py - Tests for shared list views

Tests:
- Period resolution for every share mode
- Access control (unshared, view not allowed, revoked, missing list)
- Views restricted to the list's members
"""

import asyncio
from datetime import date

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from dailyledger.errors import AccessDenied, ListNotFound
from dailyledger.models import ShareMode, ShareSettings, StatsView
from dailyledger.services import resolve_period

from tests.builders import OTHER_USER, TODAY, USER

REQUESTED = date(2024, 1, 20)


class TestResolvePeriod:
    """Tests for resolve_period."""

    def test_dynamic_uses_requested_day(self):
        assert resolve_period(ShareSettings(), REQUESTED, TODAY) == REQUESTED

    def test_current_day_ignores_request(self):
        settings = ShareSettings(mode=ShareMode.CURRENT_DAY)
        assert resolve_period(settings, REQUESTED, TODAY) == TODAY

    def test_last_month(self):
        settings = ShareSettings(mode=ShareMode.LAST_MONTH)
        assert resolve_period(settings, REQUESTED, TODAY) == date(2024, 2, 1)
        assert resolve_period(settings, REQUESTED, date(2024, 1, 10)) == date(2023, 12, 1)

    def test_custom_day(self):
        settings = ShareSettings(mode=ShareMode.CUSTOM_DAY, custom_day=date(2023, 6, 5))
        assert resolve_period(settings, REQUESTED, TODAY) == date(2023, 6, 5)

    def test_custom_month(self):
        settings = ShareSettings(mode=ShareMode.CUSTOM_MONTH, custom_month="2023-11")
        assert resolve_period(settings, REQUESTED, TODAY) == date(2023, 11, 1)

    @pytest.mark.parametrize("mode", [ShareMode.CUSTOM_DAY, ShareMode.CUSTOM_MONTH])
    def test_unset_custom_period_falls_back_to_request(self, mode):
        assert resolve_period(ShareSettings(mode=mode), REQUESTED, TODAY) == REQUESTED

    @given(today=st.dates(min_value=date(2000, 1, 1), max_value=date(2100, 12, 31)))
    @settings(max_examples=50)
    def test_last_month_is_first_of_previous_month(self, today):
        resolved = resolve_period(ShareSettings(mode=ShareMode.LAST_MONTH), today, today)
        assert resolved.day == 1
        assert resolved < today.replace(day=1)
        assert (today.replace(day=1) - resolved).days <= 31


@pytest.fixture
def shared_list(repository, roster):
    """A list holding only Alice, shared with OTHER_USER for daily views."""
    alice, bob = roster
    repository.transactions.insert(USER, bob.id, 70.0, date(2024, 3, 1))
    member_list = repository.lists.create_list(USER, "Alice only", member_ids=[alice.id])
    repository.lists.share_list(
        USER,
        member_list.id,
        OTHER_USER,
        "viewer",
        settings=ShareSettings(allowed_views=[StatsView.DAILY]),
    )
    return member_list


class TestSharedViews:
    """Tests for SharingService views."""

    def test_daily_view_covers_list_members_only(self, sharing_service, shared_list, roster):
        alice, _ = roster
        stats = asyncio.run(
            sharing_service.view_daily(OTHER_USER, shared_list.id, date(2024, 3, 1))
        )

        assert stats.date == date(2024, 3, 1)
        assert stats.total_members == 1
        assert stats.total_collected == 500.0
        assert [m.member_id for m in stats.paid_members] == [alice.id]
        assert stats.pending_members == []

    def test_view_defaults_to_today(self, sharing_service, shared_list):
        stats = asyncio.run(sharing_service.view_daily(OTHER_USER, shared_list.id))
        assert stats.date == TODAY

    def test_disallowed_view_is_denied(self, sharing_service, shared_list):
        with pytest.raises(AccessDenied):
            asyncio.run(sharing_service.view_monthly(OTHER_USER, shared_list.id))

    def test_unshared_list_is_denied(self, sharing_service, shared_list):
        with pytest.raises(AccessDenied):
            asyncio.run(sharing_service.view_daily("user-3", shared_list.id))

    def test_missing_list(self, sharing_service, shared_list):
        with pytest.raises(ListNotFound):
            asyncio.run(sharing_service.view_daily(OTHER_USER, shared_list.id + 100))

    def test_revoked_access_is_denied(self, sharing_service, repository, shared_list):
        repository.lists.revoke_access(USER, shared_list.id, OTHER_USER)
        with pytest.raises(AccessDenied):
            asyncio.run(sharing_service.view_daily(OTHER_USER, shared_list.id))

    def test_last_month_mode_pins_monthly_view(self, sharing_service, repository, shared_list):
        repository.lists.update_list(
            USER,
            shared_list.id,
            settings=ShareSettings(
                mode=ShareMode.LAST_MONTH, allowed_views=[StatsView.MONTHLY]
            ),
        )

        stats = asyncio.run(
            sharing_service.view_monthly(OTHER_USER, shared_list.id, date(2023, 7, 1))
        )

        assert stats.month_year == "2024-02"
        assert stats.total_collected == 2000.0
        assert stats.total_target == 1000.0
        assert stats.members_with_dues == []

    def test_current_day_mode_ignores_requested_day(
        self, sharing_service, repository, shared_list
    ):
        repository.lists.update_list(
            USER, shared_list.id, settings=ShareSettings(mode=ShareMode.CURRENT_DAY)
        )
        stats = asyncio.run(
            sharing_service.view_daily(OTHER_USER, shared_list.id, date(2024, 3, 1))
        )
        assert stats.date == TODAY
        assert stats.total_collected == 0.0

    def test_views_do_not_touch_owner_snapshots(
        self, sharing_service, repository, shared_list
    ):
        asyncio.run(sharing_service.view_daily(OTHER_USER, shared_list.id, date(2024, 3, 1)))
        assert repository.stats.read_daily(USER, date(2024, 3, 1)) is None
