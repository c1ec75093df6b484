"""
Ledger Cog for recording and viewing payments.

Handles the /pay, /correct, /clear and /history commands.
"""

import logging
from datetime import date
from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands

from dailyledger.db import LedgerRepository, Transaction
from dailyledger.models import TransactionType
from dailyledger.services import ReconciliationTrigger
from dailyledger.services.accounting import month_end, parse_month
from dailyledger.services.cache import run_io

from .base import LedgerCogBase, format_amount, parse_date_arg, parse_month_arg

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 25


def format_transaction(transaction: Transaction) -> str:
    """Format a transaction for display in Discord."""
    emoji = "🧹" if transaction.type is TransactionType.OUTSTANDING_CLEARED else "💵"
    kind = (
        " (cleared outstanding)"
        if transaction.type is TransactionType.OUTSTANDING_CLEARED
        else ""
    )
    return (
        f"`#{transaction.id}` {emoji} {transaction.date.isoformat()} | "
        f"**{transaction.member_name or transaction.member_id}** | "
        f"{format_amount(transaction.amount)}{kind}"
    )


class LedgerCog(LedgerCogBase):
    """Cog for recording and viewing payments."""

    def __init__(
        self,
        bot: commands.Bot,
        repository: LedgerRepository,
        trigger: ReconciliationTrigger,
    ):
        self.bot = bot
        self.repository = repository
        self.trigger = trigger

    @app_commands.command(name="pay", description="Record a payment for a member")
    @app_commands.describe(
        member_id="ID of the paying member",
        amount="Amount paid (defaults to the member's daily amount)",
        on_date="Payment date as YYYY-MM-DD (defaults to today)",
    )
    async def pay_command(
        self,
        interaction: discord.Interaction,
        member_id: int,
        amount: Optional[float] = None,
        on_date: Optional[str] = None,
    ):
        """Record a payment."""
        try:
            user_id = str(interaction.user.id)
            day = parse_date_arg(on_date)

            if amount is None:
                member = await self.trigger.get_member(user_id, member_id)
                amount = member.default_daily_payment
                if not amount:
                    await self._reply(
                        interaction,
                        "❌ This member has no default daily amount. "
                        "Please give an amount.",
                    )
                    return

            transaction = await self.trigger.record_payment(
                user_id, member_id, amount, on_date=day
            )
            await self._reply(
                interaction, f"✅ Recorded:\n{format_transaction(transaction)}"
            )
        except Exception as e:
            await self._reply_error(interaction, "pay", e)

    @app_commands.command(name="correct", description="Correct a recorded amount")
    @app_commands.describe(
        transaction_id="ID of the transaction", amount="Correct amount"
    )
    async def correct_command(
        self, interaction: discord.Interaction, transaction_id: int, amount: float
    ):
        """Correct the amount of a transaction."""
        try:
            user_id = str(interaction.user.id)
            transaction = await self.trigger.correct_amount(
                user_id, transaction_id, amount
            )
            await self._reply(
                interaction, f"✏️ Corrected:\n{format_transaction(transaction)}"
            )
            logger.info(f"User {user_id} corrected transaction {transaction_id}")
        except Exception as e:
            await self._reply_error(interaction, "correct", e)

    @app_commands.command(
        name="clear", description="Wipe a member's outstanding balance for a month"
    )
    @app_commands.describe(
        member_id="ID of the member", month="Month as YYYY-MM (defaults to this month)"
    )
    async def clear_command(
        self,
        interaction: discord.Interaction,
        member_id: int,
        month: Optional[str] = None,
    ):
        """Clear a member's outstanding balance."""
        try:
            user_id = str(interaction.user.id)
            month_year = parse_month_arg(month, self.trigger.stats.current_month())

            await interaction.response.defer(ephemeral=not self._is_dm(interaction))
            transaction = await self.trigger.clear_outstanding(
                user_id, member_id, month_year
            )
            await self._reply(
                interaction,
                f"🧹 Cleared {format_amount(transaction.amount)} outstanding for "
                f"**{transaction.member_name}** in {month_year}.",
            )
        except Exception as e:
            await self._reply_error(interaction, "clear", e)

    @app_commands.command(name="history", description="View recorded payments")
    @app_commands.describe(
        member_id="Only this member's payments",
        month="Month as YYYY-MM (defaults to this month)",
    )
    async def history_command(
        self,
        interaction: discord.Interaction,
        member_id: Optional[int] = None,
        month: Optional[str] = None,
    ):
        """Show payments for a month, newest first."""
        try:
            user_id = str(interaction.user.id)
            month_year = parse_month_arg(month, self.trigger.stats.current_month())
            first = parse_month(month_year)
            date_range: tuple[date, date] = (first, month_end(first))

            transactions = await run_io(
                self.repository.transactions.query,
                user_id,
                member_id=member_id,
                date_range=date_range,
            )
            if not transactions:
                await self._reply(
                    interaction, f"📭 No payments found for {month_year}."
                )
                return

            shown = list(reversed(transactions))[:HISTORY_LIMIT]
            lines = [
                f"📜 **Payments in {month_year}** "
                f"(showing {len(shown)} of {len(transactions)}):\n"
            ]
            lines.extend(format_transaction(t) for t in shown)
            await self._reply(interaction, "\n".join(lines))
            logger.info(f"Showed {len(shown)} history entries for user {user_id}")
        except Exception as e:
            await self._reply_error(interaction, "history", e)
