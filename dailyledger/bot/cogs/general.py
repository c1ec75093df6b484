"""
General Cog for help and utility commands.

Handles the /help and /ping commands.
"""

import discord
from discord import app_commands
from discord.ext import commands

HELP_TEXT = """
**Daily Ledger** 📒

I track what each member of your group pays every day against their monthly target.

**👥 Members**
• `/member_add <name> <monthly_target>` - Add a member
• `/member_edit <member_id>` - Change name, target or daily amount
• `/members [include_archived]` - List members in order
• `/member_move <member_id> <position>` - Reorder a member
• `/member_archive <member_id> [reason]` - Stop accruing for a member
• `/member_unarchive <member_id>` - Bring a member back
• `/member_delete <member_id>` - Delete a member and all their payments

**💵 Payments**
• `/pay <member_id> [amount] [date]` - Record a payment (defaults to the daily amount)
• `/correct <transaction_id> <amount>` - Fix a recorded amount
• `/clear <member_id> [month]` - Wipe a member's outstanding balance for a month
• `/history [member_id] [month]` - View payments

**📊 Stats**
• `/today [date]` - Who paid and who is pending
• `/month [month]` - Collection rate and dues for a month

**📋 Lists & Sharing**
• `/list_create <name> <member_ids>` - Group members into a list
• `/lists` - View your lists and the lists shared with you
• `/list_share <list_id> <user> [mode]` - Share a list read-only
• `/list_revoke <list_id> <user>` - Revoke access
• `/shared_view <list_id> [view] [date]` - View stats of a list shared with you

**📁 Export**
• `/export [month] [format] [list_id]` - Monthly sheet as XLSX or CSV

**🔧 Utility**
• `/ping` - Check if the bot is responsive
• `/help` - Show this help message

Dates use `YYYY-MM-DD`, months use `YYYY-MM`.
"""


class GeneralCog(commands.Cog):
    """Cog for general bot commands."""

    def __init__(self, bot: commands.Bot):
        self.bot = bot

    def _is_dm(self, interaction: discord.Interaction) -> bool:
        """Check if interaction is in a DM."""
        return interaction.guild is None

    @app_commands.command(name="help", description="Show help for using Daily Ledger")
    async def help_command(self, interaction: discord.Interaction):
        """Show help information."""
        await interaction.response.send_message(
            HELP_TEXT.strip(), ephemeral=not self._is_dm(interaction)
        )

    @app_commands.command(name="ping", description="Check if the bot is responsive")
    async def ping_command(self, interaction: discord.Interaction):
        """Check bot latency."""
        latency = round(self.bot.latency * 1000)
        await interaction.response.send_message(
            f"🏓 Pong! Latency: {latency}ms",
            ephemeral=not self._is_dm(interaction),
        )
