"""
Export Cog for monthly sheet export.

Handles the /export command for exporting a month to XLSX and CSV formats.
"""

import logging
from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands

from dailyledger.db import LedgerRepository
from dailyledger.errors import ListNotFound
from dailyledger.services.cache import run_io, utc_now
from dailyledger.services.export import ExportFormat, ExportService

from .base import LedgerCogBase, parse_month_arg

logger = logging.getLogger(__name__)


class ExportCog(LedgerCogBase):
    """Cog for data export functionality."""

    def __init__(
        self,
        bot: commands.Bot,
        repository: LedgerRepository,
        export_service: ExportService,
    ):
        self.bot = bot
        self.repository = repository
        self.export_service = export_service

    @app_commands.command(name="export", description="Export a month to a file")
    @app_commands.describe(
        month="Month as YYYY-MM (defaults to this month)",
        format="Export format (xlsx or csv)",
        list_id="Only export the members of this list",
    )
    @app_commands.choices(
        format=[
            app_commands.Choice(name="Excel (XLSX)", value="xlsx"),
            app_commands.Choice(name="CSV", value="csv"),
        ],
    )
    async def export_command(
        self,
        interaction: discord.Interaction,
        month: Optional[str] = None,
        format: str = "xlsx",
        list_id: Optional[int] = None,
    ):
        """Export a month to XLSX or CSV file."""
        try:
            user_id = str(interaction.user.id)
            month_year = parse_month_arg(month, utc_now().strftime("%Y-%m"))
            export_format = ExportFormat(format)

            await interaction.response.defer(ephemeral=not self._is_dm(interaction))

            member_ids = None
            list_name = None
            if list_id is not None:
                member_list = await run_io(
                    self.repository.lists.get_list, user_id, list_id
                )
                if member_list is None:
                    raise ListNotFound(list_id)
                member_ids = member_list.member_ids
                list_name = member_list.name

            members = await run_io(
                self.repository.members.list_members, user_id, member_ids=member_ids
            )
            if not members:
                await self._reply(
                    interaction, "📭 No members found to export. Add members first!"
                )
                return

            try:
                if export_format == ExportFormat.XLSX:
                    buffer = await run_io(
                        self.export_service.export_to_xlsx,
                        user_id,
                        month_year,
                        member_ids,
                        list_name,
                    )
                else:
                    buffer = await run_io(
                        self.export_service.export_to_csv,
                        user_id,
                        month_year,
                        member_ids,
                    )
            except Exception as e:
                logger.error(f"Error generating export: {e}", exc_info=True)
                await self._reply(
                    interaction, "❌ Error generating export file. Please try again."
                )
                return

            filename = self.export_service.get_filename(
                month_year, export_format, list_name
            )

            try:
                await self._reply(
                    interaction,
                    f"📁 Here's your ledger for {month_year}:",
                    file=discord.File(buffer, filename=filename),
                )
                logger.info(f"Exported {month_year} for user {user_id} ({format})")
            except discord.HTTPException as e:
                logger.error(f"Discord API error sending file: {e}", exc_info=True)
                await self._reply(
                    interaction, "❌ Error uploading file. The export may be too large."
                )
            finally:
                buffer.close()
        except Exception as e:
            await self._reply_error(interaction, "export", e)
