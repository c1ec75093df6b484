"""
Read-only stats views over shared member lists.

A recipient never reads the owner's cached snapshots; views are computed on
demand for the list's members only, for the period the share mode allows.
"""

import logging
from datetime import date
from typing import Optional

from dailyledger.db.models import MemberList
from dailyledger.db.repository import LedgerRepository
from dailyledger.errors import AccessDenied, ListNotFound
from dailyledger.models import (
    DailyStats,
    MonthlyStats,
    ShareMode,
    ShareSettings,
    StatsView,
)

from .accounting import (
    add_months,
    compute_daily_stats,
    compute_monthly_stats,
    month_end,
    month_key,
    parse_month,
)
from .cache import Clock, run_io, utc_now

logger = logging.getLogger(__name__)


def resolve_period(settings: ShareSettings, requested: date, today: date) -> date:
    """
    The day a recipient gets to see under the list's share mode.

    Monthly views use the month containing the returned day.
    """
    if settings.mode is ShareMode.CURRENT_DAY:
        return today
    if settings.mode is ShareMode.LAST_MONTH:
        return add_months(today, -1)
    if settings.mode is ShareMode.CUSTOM_DAY:
        return settings.custom_day or requested
    if settings.mode is ShareMode.CUSTOM_MONTH:
        if settings.custom_month:
            return parse_month(settings.custom_month)
        return requested
    return requested


class SharingService:
    """Service serving stats of lists shared with other users."""

    def __init__(self, repository: LedgerRepository, clock: Optional[Clock] = None):
        self.repository = repository
        self._clock = clock or utc_now

    def resolve_period(
        self, settings: ShareSettings, requested: Optional[date] = None
    ) -> date:
        today = self._clock().date()
        return resolve_period(settings, requested or today, today)

    async def _shared_list(
        self, recipient_id: str, list_id: int, view: StatsView
    ) -> MemberList:
        member_list = await run_io(
            self.repository.lists.get_shared_list, recipient_id, list_id
        )
        if member_list is None:
            exists = await run_io(self.repository.lists.exists, list_id)
            if not exists:
                raise ListNotFound(list_id)
            logger.warning(f"User {recipient_id} denied access to list {list_id}")
            raise AccessDenied(f"List {list_id} is not shared with you")

        if not member_list.share_settings.allows(view):
            logger.warning(
                f"User {recipient_id} denied {view.value} view of list {list_id}"
            )
            raise AccessDenied(f"The {view.value} view of this list is not shared")
        return member_list

    async def view_daily(
        self, recipient_id: str, list_id: int, requested: Optional[date] = None
    ) -> DailyStats:
        """
        Daily stats of a shared list.

        Raises:
            ListNotFound: If the list does not exist
            AccessDenied: If the list or its daily view is not shared
        """
        member_list = await self._shared_list(recipient_id, list_id, StatsView.DAILY)
        day = self.resolve_period(member_list.share_settings, requested)

        members = await run_io(
            self.repository.members.list_members,
            member_list.owner_id,
            member_ids=member_list.member_ids,
        )
        transactions = await run_io(
            self.repository.transactions.query,
            member_list.owner_id,
            date_range=(date.min, day),
        )
        return compute_daily_stats(
            members, transactions, day, computed_at=self._clock()
        )

    async def view_monthly(
        self, recipient_id: str, list_id: int, requested: Optional[date] = None
    ) -> MonthlyStats:
        """
        Monthly stats of a shared list.

        Raises:
            ListNotFound: If the list does not exist
            AccessDenied: If the list or its monthly view is not shared
        """
        member_list = await self._shared_list(recipient_id, list_id, StatsView.MONTHLY)
        day = self.resolve_period(member_list.share_settings, requested)

        members = await run_io(
            self.repository.members.list_members,
            member_list.owner_id,
            member_ids=member_list.member_ids,
        )
        transactions = await run_io(
            self.repository.transactions.query,
            member_list.owner_id,
            date_range=(date.min, month_end(day)),
        )
        return compute_monthly_stats(
            members, transactions, month_key(day), computed_at=self._clock()
        )
