"""
Members Cog for managing the member roster.

Handles /member_add, /member_edit, /members, /member_move, /member_archive,
/member_unarchive and /member_delete. Every change goes through the
reconciliation trigger so stats snapshots stay consistent.
"""

import logging
from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands

from dailyledger.config import MAX_LISTED_MEMBERS
from dailyledger.db import LedgerRepository, Member
from dailyledger.services import ReconciliationTrigger
from dailyledger.services.cache import run_io

from .base import LedgerCogBase, format_amount

logger = logging.getLogger(__name__)


def format_member(member: Member) -> str:
    """Format a member for display in Discord."""
    line = (
        f"`{member.rank:>2}.` `#{member.id}` **{member.name}** | "
        f"target {format_amount(member.monthly_target)}/month"
    )
    if member.default_daily_payment:
        line += f" | {format_amount(member.default_daily_payment)}/day"
    if member.archived:
        archived_on = (
            member.archived_on.strftime("%Y-%m-%d") if member.archived_on else "?"
        )
        line += f" | 🗄️ archived {archived_on}"
        if member.archived_reason:
            line += f" ({member.archived_reason})"
    return line


class EditMemberModal(discord.ui.Modal, title="Edit Member"):
    """Modal for editing a member."""

    name = discord.ui.TextInput(
        label="Name",
        placeholder="Leave empty to keep current",
        required=False,
        max_length=100,
    )

    monthly_target = discord.ui.TextInput(
        label="Monthly target",
        placeholder="Leave empty to keep current",
        required=False,
        max_length=20,
    )

    default_daily_payment = discord.ui.TextInput(
        label="Default daily payment",
        placeholder="Leave empty to keep current",
        required=False,
        max_length=20,
    )

    def __init__(self, trigger: ReconciliationTrigger, user_id: str, member: Member):
        super().__init__()
        self.trigger = trigger
        self.user_id = user_id
        self.member_id = member.id

        # Pre-fill with current values
        self.name.default = member.name
        self.monthly_target.default = f"{member.monthly_target:g}"
        self.default_daily_payment.default = f"{member.default_daily_payment:g}"

    def _number(self, field: discord.ui.TextInput) -> Optional[float]:
        value = field.value.strip().replace(",", "")
        return float(value) if value else None

    async def on_submit(self, interaction: discord.Interaction):
        """Handle modal submission."""
        try:
            monthly_target = self._number(self.monthly_target)
            default_daily_payment = self._number(self.default_daily_payment)
        except ValueError:
            await interaction.response.send_message(
                "❌ Invalid amount format. Please enter a number.", ephemeral=True
            )
            return

        try:
            member = await self.trigger.get_member(self.user_id, self.member_id)
            if member.monthly_target == monthly_target:
                monthly_target = None

            updated = await self.trigger.update_member(
                self.user_id,
                self.member_id,
                name=self.name.value.strip() or None,
                monthly_target=monthly_target,
                default_daily_payment=default_daily_payment,
            )
            await interaction.response.send_message(
                f"✅ Updated member:\n{format_member(updated)}", ephemeral=True
            )
            logger.info(f"User {self.user_id} updated member {self.member_id}")
        except ValueError as e:
            await interaction.response.send_message(
                f"❌ Invalid input: {e}", ephemeral=True
            )
        except Exception as e:
            logger.error(f"Error in EditMemberModal.on_submit: {e}", exc_info=True)
            await interaction.response.send_message(
                "❌ An error occurred while updating the member. Please try again.",
                ephemeral=True,
            )


class MembersCog(LedgerCogBase):
    """Cog for member roster management."""

    def __init__(
        self,
        bot: commands.Bot,
        repository: LedgerRepository,
        trigger: ReconciliationTrigger,
    ):
        self.bot = bot
        self.repository = repository
        self.trigger = trigger

    @app_commands.command(name="member_add", description="Add a member to your ledger")
    @app_commands.describe(
        name="Member name",
        monthly_target="Amount the member should pay each month",
        daily_payment="Usual daily payment (used by /pay when no amount is given)",
    )
    async def add_command(
        self,
        interaction: discord.Interaction,
        name: str,
        monthly_target: float,
        daily_payment: float = 0.0,
    ):
        """Add a member."""
        try:
            user_id = str(interaction.user.id)
            member = await self.trigger.add_member(
                user_id, name, monthly_target, default_daily_payment=daily_payment
            )
            await self._reply(interaction, f"✅ Added member:\n{format_member(member)}")
        except Exception as e:
            await self._reply_error(interaction, "member_add", e)

    @app_commands.command(name="member_edit", description="Edit a member")
    @app_commands.describe(member_id="ID of the member to edit")
    async def edit_command(self, interaction: discord.Interaction, member_id: int):
        """Open the edit modal for a member."""
        try:
            user_id = str(interaction.user.id)
            member = await self.trigger.get_member(user_id, member_id)
            await interaction.response.send_modal(
                EditMemberModal(self.trigger, user_id, member)
            )
        except Exception as e:
            await self._reply_error(interaction, "member_edit", e)

    @app_commands.command(name="members", description="List your members")
    @app_commands.describe(include_archived="Also show archived members")
    async def list_command(
        self, interaction: discord.Interaction, include_archived: bool = False
    ):
        """List members in rank order."""
        try:
            user_id = str(interaction.user.id)
            members = await run_io(
                self.repository.members.list_members,
                user_id,
                include_archived=include_archived,
            )
            if not members:
                await self._reply(
                    interaction, "📭 No members yet. Add one with `/member_add`."
                )
                return

            lines = [f"👥 **Members** ({len(members)}):\n"]
            lines.extend(format_member(m) for m in members[:MAX_LISTED_MEMBERS])
            if len(members) > MAX_LISTED_MEMBERS:
                lines.append(f"... and {len(members) - MAX_LISTED_MEMBERS} more")
            await self._reply(interaction, "\n".join(lines))
        except Exception as e:
            await self._reply_error(interaction, "members", e)

    @app_commands.command(name="member_move", description="Move a member to a position")
    @app_commands.describe(member_id="ID of the member", position="New position (1 = first)")
    async def move_command(
        self, interaction: discord.Interaction, member_id: int, position: int
    ):
        """Reorder a member."""
        try:
            user_id = str(interaction.user.id)
            await self.trigger.move_member(user_id, member_id, max(1, position))
            await self._reply(
                interaction, f"↕️ Moved member `#{member_id}` to position {position}."
            )
        except Exception as e:
            await self._reply_error(interaction, "member_move", e)

    @app_commands.command(name="member_archive", description="Archive a member")
    @app_commands.describe(member_id="ID of the member", reason="Why the member left")
    async def archive_command(
        self,
        interaction: discord.Interaction,
        member_id: int,
        reason: Optional[str] = None,
    ):
        """Archive a member; accrual stops after today."""
        try:
            user_id = str(interaction.user.id)
            member = await self.trigger.archive_member(user_id, member_id, reason=reason)
            await self._reply(interaction, f"🗄️ Archived:\n{format_member(member)}")
        except Exception as e:
            await self._reply_error(interaction, "member_archive", e)

    @app_commands.command(name="member_unarchive", description="Restore an archived member")
    @app_commands.describe(member_id="ID of the member")
    async def unarchive_command(self, interaction: discord.Interaction, member_id: int):
        """Return a member to the active roster."""
        try:
            user_id = str(interaction.user.id)
            member = await self.trigger.unarchive_member(user_id, member_id)
            await self._reply(interaction, f"✅ Restored:\n{format_member(member)}")
        except Exception as e:
            await self._reply_error(interaction, "member_unarchive", e)

    @app_commands.command(
        name="member_delete",
        description="Delete a member and all of their payments",
    )
    @app_commands.describe(member_id="ID of the member")
    async def delete_command(self, interaction: discord.Interaction, member_id: int):
        """Delete a member."""
        try:
            user_id = str(interaction.user.id)
            member = await self.trigger.get_member(user_id, member_id)
            await self.trigger.delete_member(user_id, member_id)
            await self._reply(
                interaction,
                f"🗑️ Deleted member **{member.name}** and their payments.",
            )
            logger.info(f"User {user_id} deleted member {member_id}")
        except Exception as e:
            await self._reply_error(interaction, "member_delete", e)
