"""
Shared helpers for the Daily Ledger cogs.

Every command replies ephemerally outside DMs and turns ledger errors into
emoji-prefixed messages.
"""

import logging
import sqlite3
from datetime import date
from typing import Optional

import discord
from discord.ext import commands

from dailyledger.config import (
    CURRENCY_SYMBOL,
    DISCORD_MESSAGE_MAX_LENGTH,
    ERROR_MESSAGES,
)
from dailyledger.errors import (
    AccessDenied,
    AlreadyCleared,
    LedgerError,
    ListNotFound,
    MemberNotFound,
    NothingToClear,
    TransactionNotFound,
)
from dailyledger.services.accounting import month_key, parse_month

logger = logging.getLogger(__name__)


def format_amount(amount: float) -> str:
    return f"{CURRENCY_SYMBOL}{amount:,.0f}"


def parse_date_arg(value: Optional[str]) -> Optional[date]:
    """Parse a YYYY-MM-DD command argument."""
    if not value:
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        raise ValueError(f"`{value}` is not a date (use YYYY-MM-DD)")


def parse_month_arg(value: Optional[str], default: str) -> str:
    """Parse a YYYY-MM command argument, falling back to default."""
    if not value:
        return default
    return month_key(parse_month(value.strip()))


def truncate(message: str) -> str:
    if len(message) > DISCORD_MESSAGE_MAX_LENGTH:
        return message[: DISCORD_MESSAGE_MAX_LENGTH - 3] + "..."
    return message


def error_message(error: Exception) -> str:
    """User-facing text for an error raised by a command."""
    if isinstance(error, AlreadyCleared):
        return f"ℹ️ {ERROR_MESSAGES['already_cleared']}"
    if isinstance(error, NothingToClear):
        return f"ℹ️ {ERROR_MESSAGES['nothing_to_clear']}"
    if isinstance(error, MemberNotFound):
        return f"❌ {ERROR_MESSAGES['member_not_found']}"
    if isinstance(error, TransactionNotFound):
        return f"❌ Transaction `#{error.transaction_id}` not found."
    if isinstance(error, ListNotFound):
        return f"❌ {ERROR_MESSAGES['list_not_found']}"
    if isinstance(error, AccessDenied):
        return f"🔒 {ERROR_MESSAGES['access_denied']}"
    if isinstance(error, ValueError):
        return f"❌ Invalid input: {error}"
    if isinstance(error, sqlite3.Error):
        return f"❌ {ERROR_MESSAGES['database_error']}"
    return f"❌ {ERROR_MESSAGES['internal_error']}"


class LedgerCogBase(commands.Cog):
    """Base cog with reply and error handling helpers."""

    def _is_dm(self, interaction: discord.Interaction) -> bool:
        """Check if interaction is in a DM."""
        return interaction.guild is None

    async def _reply(self, interaction: discord.Interaction, message: str, **kwargs):
        """Send a response, or a followup if the interaction was deferred."""
        ephemeral = not self._is_dm(interaction)
        if interaction.response.is_done():
            await interaction.followup.send(
                truncate(message), ephemeral=ephemeral, **kwargs
            )
        else:
            await interaction.response.send_message(
                truncate(message), ephemeral=ephemeral, **kwargs
            )

    async def _reply_error(
        self, interaction: discord.Interaction, command: str, error: Exception
    ):
        if isinstance(error, (LedgerError, ValueError)):
            logger.warning(f"{command} rejected for user {interaction.user.id}: {error}")
        else:
            logger.error(f"Error in {command}: {error}", exc_info=True)
        try:
            await self._reply(interaction, error_message(error))
        except discord.HTTPException:
            logger.error(f"Could not send error message for {command}", exc_info=True)
