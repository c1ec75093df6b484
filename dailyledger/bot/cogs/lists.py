"""
Lists Cog for member lists and read-only sharing.

Handles /list_create, /lists, /list_delete, /list_share, /list_revoke and
/shared_view.
"""

import logging
from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands

from dailyledger.db import LedgerRepository, MemberList
from dailyledger.errors import ListNotFound
from dailyledger.models import ShareMode, ShareSettings, StatsView
from dailyledger.services import SharingService
from dailyledger.services.cache import run_io

from .base import LedgerCogBase, parse_date_arg, parse_month_arg
from .stats import format_daily_stats, format_monthly_stats

logger = logging.getLogger(__name__)


def parse_member_ids(value: str) -> list[int]:
    """Parse a comma or space separated list of member IDs."""
    try:
        return [int(part.lstrip("#")) for part in value.replace(",", " ").split()]
    except ValueError:
        raise ValueError(f"`{value}` is not a list of member IDs")


def format_list(member_list: MemberList, shared: bool = False) -> str:
    """Format a member list for display in Discord."""
    line = (
        f"`#{member_list.id}` **{member_list.name}** | "
        f"{len(member_list.member_ids)} members | "
        f"mode: {member_list.share_settings.mode.value}"
    )
    if shared:
        line += f" | from <@{member_list.owner_id}>"
    elif member_list.shared_with:
        names = ", ".join(g.username for g in member_list.shared_with.values())
        line += f" | shared with {names}"
    return line


class ListsCog(LedgerCogBase):
    """Cog for member lists and sharing."""

    def __init__(
        self,
        bot: commands.Bot,
        repository: LedgerRepository,
        sharing_service: SharingService,
    ):
        self.bot = bot
        self.repository = repository
        self.sharing_service = sharing_service

    @app_commands.command(name="list_create", description="Group members into a list")
    @app_commands.describe(
        name="List name",
        member_ids="Member IDs separated by commas or spaces",
        description="Optional description",
    )
    async def create_command(
        self,
        interaction: discord.Interaction,
        name: str,
        member_ids: str,
        description: str = "",
    ):
        """Create a list."""
        try:
            user_id = str(interaction.user.id)
            ids = parse_member_ids(member_ids)
            members = await run_io(
                self.repository.members.list_members, user_id, member_ids=ids
            )
            unknown = set(ids) - {m.id for m in members}
            if unknown:
                await self._reply(
                    interaction,
                    f"❌ Unknown member IDs: {', '.join(str(i) for i in sorted(unknown))}",
                )
                return

            member_list = await run_io(
                self.repository.lists.create_list,
                user_id,
                name,
                description=description,
                member_ids=ids,
            )
            await self._reply(interaction, f"✅ Created list:\n{format_list(member_list)}")
        except Exception as e:
            await self._reply_error(interaction, "list_create", e)

    @app_commands.command(name="lists", description="View your lists and shared lists")
    async def lists_command(self, interaction: discord.Interaction):
        """Show owned and shared lists."""
        try:
            user_id = str(interaction.user.id)
            owned = await run_io(self.repository.lists.get_user_lists, user_id)
            shared = await run_io(self.repository.lists.get_shared_lists, user_id)

            if not owned and not shared:
                await self._reply(
                    interaction, "📭 No lists yet. Create one with `/list_create`."
                )
                return

            lines = []
            if owned:
                lines.append("📋 **Your lists**")
                lines.extend(format_list(m) for m in owned)
            if shared:
                lines.append("🤝 **Shared with you**")
                lines.extend(format_list(m, shared=True) for m in shared)
            await self._reply(interaction, "\n".join(lines))
        except Exception as e:
            await self._reply_error(interaction, "lists", e)

    @app_commands.command(name="list_delete", description="Delete one of your lists")
    @app_commands.describe(list_id="ID of the list")
    async def delete_command(self, interaction: discord.Interaction, list_id: int):
        """Delete a list."""
        try:
            user_id = str(interaction.user.id)
            deleted = await run_io(self.repository.lists.delete_list, user_id, list_id)
            if not deleted:
                raise ListNotFound(list_id)
            await self._reply(interaction, f"🗑️ Deleted list `#{list_id}`.")
        except Exception as e:
            await self._reply_error(interaction, "list_delete", e)

    @app_commands.command(name="list_share", description="Share a list read-only")
    @app_commands.describe(
        list_id="ID of the list",
        user="User to share with",
        mode="Which period the user may look at",
        views="Which views the user may open",
        period="Day (YYYY-MM-DD) or month (YYYY-MM) for the custom modes",
    )
    @app_commands.choices(
        mode=[
            app_commands.Choice(name="Any date", value=ShareMode.DYNAMIC.value),
            app_commands.Choice(name="Today only", value=ShareMode.CURRENT_DAY.value),
            app_commands.Choice(name="Last month", value=ShareMode.LAST_MONTH.value),
            app_commands.Choice(name="A fixed day", value=ShareMode.CUSTOM_DAY.value),
            app_commands.Choice(
                name="A fixed month", value=ShareMode.CUSTOM_MONTH.value
            ),
        ],
        views=[
            app_commands.Choice(name="Daily and monthly", value="both"),
            app_commands.Choice(name="Daily only", value=StatsView.DAILY.value),
            app_commands.Choice(name="Monthly only", value=StatsView.MONTHLY.value),
        ],
    )
    async def share_command(
        self,
        interaction: discord.Interaction,
        list_id: int,
        user: discord.User,
        mode: str = ShareMode.DYNAMIC.value,
        views: str = "both",
        period: Optional[str] = None,
    ):
        """Share a list with another user."""
        try:
            owner_id = str(interaction.user.id)
            settings = ShareSettings(
                mode=ShareMode(mode),
                allowed_views=(
                    [StatsView.DAILY, StatsView.MONTHLY]
                    if views == "both"
                    else [StatsView(views)]
                ),
            )
            if settings.mode is ShareMode.CUSTOM_DAY:
                settings.custom_day = parse_date_arg(period)
                if settings.custom_day is None:
                    raise ValueError("a fixed day needs a period (YYYY-MM-DD)")
            elif settings.mode is ShareMode.CUSTOM_MONTH:
                if not period:
                    raise ValueError("a fixed month needs a period (YYYY-MM)")
                settings.custom_month = parse_month_arg(period, period)

            await run_io(
                self.repository.lists.share_list,
                owner_id,
                list_id,
                str(user.id),
                user.name,
                settings,
            )
            await self._reply(
                interaction,
                f"🤝 Shared list `#{list_id}` with {user.mention} ({settings.mode.value}).",
            )
        except Exception as e:
            await self._reply_error(interaction, "list_share", e)

    @app_commands.command(name="list_revoke", description="Revoke access to a list")
    @app_commands.describe(list_id="ID of the list", user="User to revoke")
    async def revoke_command(
        self, interaction: discord.Interaction, list_id: int, user: discord.User
    ):
        """Revoke a user's access to a list."""
        try:
            owner_id = str(interaction.user.id)
            revoked = await run_io(
                self.repository.lists.revoke_access, owner_id, list_id, str(user.id)
            )
            if revoked:
                await self._reply(
                    interaction, f"🔒 Revoked {user.mention} from list `#{list_id}`."
                )
            else:
                await self._reply(
                    interaction, f"ℹ️ {user.mention} had no access to list `#{list_id}`."
                )
        except Exception as e:
            await self._reply_error(interaction, "list_revoke", e)

    @app_commands.command(name="shared_view", description="View a list shared with you")
    @app_commands.describe(
        list_id="ID of the shared list",
        view="Daily or monthly stats",
        on_date="Date as YYYY-MM-DD, if the owner lets you pick",
    )
    @app_commands.choices(
        view=[
            app_commands.Choice(name="Daily", value=StatsView.DAILY.value),
            app_commands.Choice(name="Monthly", value=StatsView.MONTHLY.value),
        ]
    )
    async def shared_view_command(
        self,
        interaction: discord.Interaction,
        list_id: int,
        view: str = StatsView.DAILY.value,
        on_date: Optional[str] = None,
    ):
        """Show stats of a shared list."""
        try:
            recipient_id = str(interaction.user.id)
            requested = parse_date_arg(on_date)
            if StatsView(view) is StatsView.DAILY:
                stats = await self.sharing_service.view_daily(
                    recipient_id, list_id, requested
                )
                message = format_daily_stats(stats)
            else:
                stats = await self.sharing_service.view_monthly(
                    recipient_id, list_id, requested
                )
                message = format_monthly_stats(stats)
            await self._reply(interaction, message)
        except Exception as e:
            await self._reply_error(interaction, "shared_view", e)
