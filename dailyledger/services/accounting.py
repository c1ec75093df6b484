"""
Balance accounting engine.

Pure functions that reconcile what a member should have paid (accrual)
against what the ledger shows they paid. Nothing here touches storage or
suspends; the stats service loads data and hands it in.

Accrual is month granular: a member owes their full monthly target from the
first day of each month, starting with the month they were created in. The
month a member is archived in is pro-rated by day; later months accrue
nothing.
"""

import calendar
import logging
import math
import warnings
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Iterable, Optional

from dailyledger.db.models import Member, Transaction
from dailyledger.errors import DataQualityWarning
from dailyledger.models import (
    DailyStats,
    MemberDue,
    MonthlyStats,
    PaidMember,
    PendingMember,
    RecentTransaction,
)

logger = logging.getLogger(__name__)

# Fallback creation date for legacy members without one
EPOCH = date(1970, 1, 1)


# =============================================================================
# Calendar helpers
# =============================================================================


def month_start(day: date) -> date:
    return day.replace(day=1)


def month_end(day: date) -> date:
    return day.replace(day=calendar.monthrange(day.year, day.month)[1])


def month_key(day: date) -> str:
    return day.strftime("%Y-%m")


def parse_month(month_year: str) -> date:
    """Parse a YYYY-MM key into the first day of that month."""
    try:
        year, month = month_year.split("-")
        return date(int(year), int(month), 1)
    except (AttributeError, ValueError) as e:
        raise ValueError(f"Invalid month (expected YYYY-MM): {month_year!r}") from e


def months_between(start: date, end: date) -> int:
    """Number of month boundaries from start's month to end's month."""
    return (end.year - start.year) * 12 + (end.month - start.month)


def add_months(day: date, months: int) -> date:
    """First day of the month `months` after day's month."""
    index = day.year * 12 + (day.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


# =============================================================================
# Per-member accounting
# =============================================================================


def creation_date(member: Member) -> date:
    """
    The day accrual starts from.

    Legacy members without created_on fall back to the Unix epoch and a
    DataQualityWarning is issued. Roster aggregations resolve it once per
    member.
    """
    if member.created_on is None:
        message = (
            f"Member {member.id} ({member.name}) has no created_on; "
            f"accruing from {EPOCH.isoformat()}"
        )
        logger.warning(f"Data quality: {message}")
        warnings.warn(message, DataQualityWarning, stacklevel=3)
        return EPOCH
    if isinstance(member.created_on, datetime):
        return member.created_on.date()
    return member.created_on


def _archive_month(member: Member) -> Optional[date]:
    if member.archived and member.archived_on:
        return month_start(member.archived_on.date())
    return None


def _prorated_target(member: Member) -> float:
    """Target for the archive month, pro-rated by the archive day."""
    archived_day = member.archived_on.date()
    days_in_month = calendar.monthrange(archived_day.year, archived_day.month)[1]
    return float(
        _round_half_up(archived_day.day / days_in_month * member.monthly_target)
    )


def _target_for_month(member: Member, created: date, month: date) -> float:
    month = month_start(month)
    if member.monthly_target <= 0 or month < month_start(created):
        return 0.0
    archive_month = _archive_month(member)
    if archive_month is not None:
        if month > archive_month:
            return 0.0
        if month == archive_month:
            return _prorated_target(member)
    return float(member.monthly_target)


def _accrual(member: Member, created: date, as_of: date) -> float:
    if member.monthly_target <= 0:
        return 0.0

    first = month_start(created)
    last = month_start(as_of)
    if last < first:
        return 0.0

    archive_month = _archive_month(member)
    last_full = last
    if archive_month is not None and archive_month <= last:
        last_full = add_months(archive_month, -1)

    full_months = max(0, months_between(first, last_full) + 1)
    total = full_months * float(member.monthly_target)

    if archive_month is not None and first <= archive_month <= last:
        total += _prorated_target(member)
    return total


def target_for_month(member: Member, month: date) -> float:
    """What the member is expected to pay in the month containing `month`."""
    return _target_for_month(member, creation_date(member), month)


def expected_accrual(member: Member, as_of: date) -> float:
    """
    Total the member should have paid by the month containing as_of.

    Every month from the creation month through as_of's month counts in full,
    whatever day of the month as_of falls on. Returns 0 when as_of precedes
    the creation month or the target is zero.
    """
    return _accrual(member, creation_date(member), as_of)


def _member_transactions(
    member: Member, transactions: Iterable[Transaction]
) -> list[Transaction]:
    return [t for t in transactions if t.member_id == member.id]


def outstanding_balance(
    member: Member, transactions: Iterable[Transaction], as_of: date
) -> float:
    """
    Accrual minus everything paid up to and including as_of.

    Clearing transactions count as payment. Positive means owed; zero or
    negative means current or in credit.
    """
    return _outstanding(member, creation_date(member), transactions, as_of)


def _outstanding(
    member: Member, created: date, transactions: Iterable[Transaction], as_of: date
) -> float:
    paid = sum(
        t.amount for t in _member_transactions(member, transactions) if t.date <= as_of
    )
    return _accrual(member, created, as_of) - paid


@dataclass
class Reconciliation:
    """A member's position for one month."""

    month_year: str
    monthly_target: float
    previous_balance: float
    paid_this_month: float
    final_balance: float

    @property
    def has_dues(self) -> bool:
        return self.final_balance > 0


def monthly_reconciliation(
    member: Member, transactions: Iterable[Transaction], month_year: str
) -> Reconciliation:
    """
    Reconcile a member for one month.

    previous_balance carries forward everything owed before the month;
    final_balance adds this month's target and subtracts this month's
    payments (clearing transactions included).
    """
    return _reconcile(member, creation_date(member), transactions, month_year)


def _reconcile(
    member: Member,
    created: date,
    transactions: Iterable[Transaction],
    month_year: str,
) -> Reconciliation:
    first = parse_month(month_year)
    last = month_end(first)
    member_txns = _member_transactions(member, transactions)

    paid_before = sum(t.amount for t in member_txns if t.date < first)
    previous_balance = (
        _accrual(member, created, first - timedelta(days=1)) - paid_before
    )
    paid_this_month = sum(t.amount for t in member_txns if first <= t.date <= last)
    monthly_target = _target_for_month(member, created, first)

    return Reconciliation(
        month_year=month_key(first),
        monthly_target=monthly_target,
        previous_balance=previous_balance,
        paid_this_month=paid_this_month,
        final_balance=monthly_target + previous_balance - paid_this_month,
    )


class Classification(str, Enum):
    PAID = "paid"
    PENDING = "pending"


@dataclass
class DailyClassification:
    status: Classification
    amount: float  # paid today for PAID, outstanding for PENDING


def daily_classification(
    member: Member,
    transactions_today: Iterable[Transaction],
    transactions: Iterable[Transaction],
    day: date,
) -> Optional[DailyClassification]:
    """
    Place a member in the paid or pending list for a day, or in neither.

    Clearing transactions are not payments for the "who paid today" view,
    but they still reduce the outstanding balance.
    """
    return _classify(member, None, transactions_today, transactions, day)


def _classify(
    member: Member,
    created: Optional[date],
    transactions_today: Iterable[Transaction],
    transactions: Iterable[Transaction],
    day: date,
) -> Optional[DailyClassification]:
    paid_today = sum(
        t.amount
        for t in _member_transactions(member, transactions_today)
        if t.type.is_payment
    )
    if paid_today > 0:
        return DailyClassification(Classification.PAID, paid_today)

    if created is None:
        created = creation_date(member)
    outstanding = _outstanding(member, created, transactions, day)
    if outstanding > 0:
        return DailyClassification(Classification.PENDING, outstanding)
    return None


# =============================================================================
# Roster aggregation
# =============================================================================


def group_by_member(
    transactions: Iterable[Transaction],
) -> dict[int, list[Transaction]]:
    grouped: dict[int, list[Transaction]] = defaultdict(list)
    for t in transactions:
        grouped[t.member_id].append(t)
    return grouped


def active_on_day(member: Member, day: date) -> bool:
    """Archived members drop out of daily views from their archive day on."""
    if not member.archived:
        return True
    if member.archived_on is None:
        return False
    return day < member.archived_on.date()


def active_in_month(member: Member, first: date) -> bool:
    """Archived members still appear in the month they were archived in."""
    if not member.archived:
        return True
    if member.archived_on is None:
        return False
    return first <= month_start(member.archived_on.date())


def by_rank(members: Iterable[Member]) -> list[Member]:
    return sorted(members, key=lambda m: (m.rank or 0, m.id or 0))


def _roster_transactions(
    members: list[Member], transactions: Iterable[Transaction]
) -> list[Transaction]:
    """Transactions of the given members only; a shared list sees no others."""
    ids = {m.id for m in members}
    return [t for t in transactions if t.member_id in ids]


def compute_daily_stats(
    members: Iterable[Member],
    transactions: Iterable[Transaction],
    day: date,
    recent_limit: Optional[int] = None,
    computed_at: Optional[datetime] = None,
) -> DailyStats:
    """
    Build the daily snapshot for a roster.

    Members archived on or before `day` are left out. Clearing transactions
    are excluded from the collected total and the activity feed.
    """
    members = list(members)
    transactions = _roster_transactions(members, transactions)
    grouped = group_by_member(transactions)
    today = [t for t in transactions if t.date == day]
    today_grouped = group_by_member(today)

    roster = [m for m in by_rank(members) if active_on_day(m, day)]

    paid: list[PaidMember] = []
    pending: list[PendingMember] = []
    for member in roster:
        result = _classify(
            member,
            creation_date(member),
            today_grouped.get(member.id, []),
            grouped.get(member.id, []),
            day,
        )
        if result is None:
            continue
        if result.status is Classification.PAID:
            paid.append(
                PaidMember(member.id, member.name, member.rank or 0, result.amount)
            )
        else:
            pending.append(
                PendingMember(member.id, member.name, member.rank or 0, result.amount)
            )

    payments_today = [t for t in today if t.type.is_payment]
    names = {m.id: m.name for m in members}
    recent = sorted(payments_today, key=lambda t: t.timestamp, reverse=True)
    if recent_limit is not None:
        recent = recent[:recent_limit]

    return DailyStats(
        date=day,
        total_collected=sum(t.amount for t in payments_today),
        total_members=len(roster),
        paid_members=paid,
        pending_members=pending,
        recent_transactions=[
            RecentTransaction(
                transaction_id=t.id,
                member_id=t.member_id,
                member_name=names.get(t.member_id) or t.member_name or "",
                amount=t.amount,
                timestamp=t.timestamp,
            )
            for t in recent
        ],
        updated_at=computed_at,
    )


def compute_monthly_stats(
    members: Iterable[Member],
    transactions: Iterable[Transaction],
    month_year: str,
    computed_at: Optional[datetime] = None,
) -> MonthlyStats:
    """
    Build the monthly snapshot for a roster.

    total_outstanding only sums positive final balances; members in credit
    never offset members who owe. The dues list follows rank order.
    """
    first = parse_month(month_year)
    last = month_end(first)
    members = by_rank(members)
    transactions = _roster_transactions(members, transactions)
    grouped = group_by_member(transactions)
    roster = [m for m in members if active_in_month(m, first)]

    total_collected = sum(
        t.amount for t in transactions if first <= t.date <= last and t.type.is_payment
    )

    total_target = 0.0
    total_outstanding = 0.0
    dues: list[MemberDue] = []
    for member in roster:
        rec = _reconcile(
            member, creation_date(member), grouped.get(member.id, []), month_year
        )
        total_target += rec.monthly_target
        if rec.has_dues:
            total_outstanding += rec.final_balance
            dues.append(
                MemberDue(
                    member_id=member.id,
                    member_name=member.name,
                    rank=member.rank or 0,
                    monthly_target=rec.monthly_target,
                    previous_balance=rec.previous_balance,
                    paid_this_month=rec.paid_this_month,
                    due=rec.final_balance,
                )
            )

    collection_rate = (
        _round_half_up(total_collected / total_target * 100) if total_target > 0 else 0
    )

    return MonthlyStats(
        month_year=month_key(first),
        total_collected=total_collected,
        total_outstanding=total_outstanding,
        total_target=total_target,
        collection_rate=collection_rate,
        total_members=sum(1 for m in members if not m.archived),
        members_with_dues=dues,
        updated_at=computed_at,
    )
