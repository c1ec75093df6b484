"""
Stats Cog for the daily and monthly dashboards.

Handles the /today and /month commands. Both read cached snapshots; a
snapshot that is still being computed shows as an empty placeholder.
"""

import logging
from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands

from dailyledger.config import MAX_LISTED_MEMBERS
from dailyledger.models import DailyStats, MonthlyStats
from dailyledger.services import StatsService

from .base import LedgerCogBase, format_amount, parse_date_arg, parse_month_arg

logger = logging.getLogger(__name__)

PLACEHOLDER_NOTE = "⏳ Stats are being calculated, try again in a moment."


def format_daily_stats(stats: DailyStats) -> str:
    """Format a daily snapshot for display in Discord."""
    lines = [f"📅 **{stats.date.strftime('%A, %d %B %Y')}**"]
    if stats.is_placeholder:
        lines.append(PLACEHOLDER_NOTE)
        return "\n".join(lines)

    lines.extend(
        [
            "```",
            f"Collected:  {format_amount(stats.total_collected):>14}",
            f"Members:    {stats.total_members:>14}",
            f"Paid:       {stats.paid_count:>14}",
            f"Pending:    {stats.pending_count:>14}",
            "```",
        ]
    )
    if stats.paid_members:
        lines.append("✅ **Paid today**")
        lines.extend(
            f"• {m.member_name}: {format_amount(m.amount)}"
            for m in stats.paid_members[:MAX_LISTED_MEMBERS]
        )
    if stats.pending_members:
        lines.append("⏳ **Pending**")
        lines.extend(
            f"• {m.member_name}: owes {format_amount(m.outstanding)}"
            for m in stats.pending_members[:MAX_LISTED_MEMBERS]
        )
    return "\n".join(lines)


def format_monthly_stats(stats: MonthlyStats) -> str:
    """Format a monthly snapshot for display in Discord."""
    lines = [f"📊 **{stats.month_year}**"]
    if stats.is_placeholder:
        lines.append(PLACEHOLDER_NOTE)
        return "\n".join(lines)

    lines.extend(
        [
            "```",
            f"Collected:    {format_amount(stats.total_collected):>14}",
            f"Target:       {format_amount(stats.total_target):>14}",
            f"Outstanding:  {format_amount(stats.total_outstanding):>14}",
            f"Rate:         {stats.collection_rate:>13}%",
            f"Members:      {stats.total_members:>14}",
            "```",
        ]
    )
    if stats.members_with_dues:
        lines.append("💸 **Members with dues**")
        lines.extend(
            f"• {d.member_name}: {format_amount(d.due)} "
            f"(prev {format_amount(d.previous_balance)}, "
            f"paid {format_amount(d.paid_this_month)})"
            for d in stats.members_with_dues[:MAX_LISTED_MEMBERS]
        )
    else:
        lines.append("🎉 Nobody owes anything this month.")
    return "\n".join(lines)


class StatsCog(LedgerCogBase):
    """Cog for stats dashboards."""

    def __init__(self, bot: commands.Bot, stats_service: StatsService):
        self.bot = bot
        self.stats_service = stats_service

    @app_commands.command(name="today", description="Who paid and who is pending")
    @app_commands.describe(on_date="Date as YYYY-MM-DD (defaults to today)")
    async def today_command(
        self, interaction: discord.Interaction, on_date: Optional[str] = None
    ):
        """Show the daily dashboard."""
        try:
            user_id = str(interaction.user.id)
            day = parse_date_arg(on_date) or self.stats_service.today()
            stats = await self.stats_service.get_daily_stats(user_id, day)
            await self._reply(interaction, format_daily_stats(stats))
        except Exception as e:
            await self._reply_error(interaction, "today", e)

    @app_commands.command(name="month", description="Monthly collection and dues")
    @app_commands.describe(month="Month as YYYY-MM (defaults to this month)")
    async def month_command(
        self, interaction: discord.Interaction, month: Optional[str] = None
    ):
        """Show the monthly dashboard."""
        try:
            user_id = str(interaction.user.id)
            month_year = parse_month_arg(month, self.stats_service.current_month())
            stats = await self.stats_service.get_monthly_stats(user_id, month_year)
            await self._reply(interaction, format_monthly_stats(stats))
        except Exception as e:
            await self._reply_error(interaction, "month", e)
