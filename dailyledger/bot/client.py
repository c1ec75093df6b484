"""
Discord client for Daily Ledger.

Builds the repository and the core services once, then hands them to the
cogs. Shutdown waits for background stats recomputes so no snapshot write is
cut off half way.
"""

import logging
from typing import Optional

import discord
from discord.ext import commands

from dailyledger.db import LedgerRepository, get_repository
from dailyledger.services import (
    ExportService,
    ReconciliationTrigger,
    SharingService,
    StatsService,
)

from .cogs import (
    ExportCog,
    GeneralCog,
    LedgerCog,
    ListsCog,
    MembersCog,
    StatsCog,
)

logger = logging.getLogger(__name__)


class DailyLedgerBot(commands.Bot):
    """Bot wiring the ledger services into slash-command cogs."""

    def __init__(self, repository: Optional[LedgerRepository] = None):
        super().__init__(command_prefix="!", intents=discord.Intents.default())

        try:
            self.repository = repository or get_repository()
            self.stats_service = StatsService(self.repository)
            self.trigger = ReconciliationTrigger(self.repository, self.stats_service)
            self.sharing_service = SharingService(self.repository)
            self.export_service = ExportService(self.repository)
        except Exception as e:
            logger.error(f"Failed to initialize ledger services: {e}", exc_info=True)
            raise
        logger.info(f"Ledger services ready on {self.repository.db_path}")

    def _build_cogs(self) -> list[commands.Cog]:
        return [
            GeneralCog(self),
            MembersCog(self, self.repository, self.trigger),
            LedgerCog(self, self.repository, self.trigger),
            StatsCog(self, self.stats_service),
            ListsCog(self, self.repository, self.sharing_service),
            ExportCog(self, self.repository, self.export_service),
        ]

    async def setup_hook(self):
        """Register the cogs and publish the slash commands."""
        try:
            for cog in self._build_cogs():
                await self.add_cog(cog)
                logger.debug(f"Added {type(cog).__name__}")

            synced = await self.tree.sync()
            logger.info(f"Registered {len(self.cogs)} cogs, synced {len(synced)} commands")
        except Exception as e:
            logger.error(f"Error in setup_hook: {e}", exc_info=True)
            raise

    async def on_ready(self):
        if self.user is None:
            logger.warning("Connected without a bot user")
            return
        logger.info(f"Daily Ledger online as {self.user} (ID: {self.user.id})")
        print(f"Daily Ledger online as {self.user}")

    async def on_error(self, event_method: str, *args, **kwargs):
        logger.error(f"Unhandled error in '{event_method}'", exc_info=True)

    async def close(self):
        """Let pending stats recomputes finish before disconnecting."""
        pending = self.stats_service.cache.pending_tasks
        if pending:
            logger.info(f"Waiting for {pending} stats recomputes before shutdown")
            await self.stats_service.cache.drain()
        await super().close()


def create_bot(repository: Optional[LedgerRepository] = None) -> DailyLedgerBot:
    """
    Create the bot.

    Args:
        repository: Repository to use; the default database when omitted
    """
    return DailyLedgerBot(repository=repository)
