from discord import app_commands
import discord
import logging
from typing import Callable, Optional
from config import AUCTIONEER_ROLE, BOT_ADMINS

logger = logging.getLogger("AuctionBot.AdminChecks")


async def _owner_id(client: discord.Client) -> Optional[int]:
    app_info = getattr(client, "_cached_app_info", None)
    if app_info is None:
        try:
            app_info = await client.application_info()
        except discord.HTTPException as e:
            logger.debug(f"app_info lookup failed: {e}")
            return None
        setattr(client, "_cached_app_info", app_info)
    owner = getattr(app_info, "owner", None)
    return getattr(owner, "id", None)


def has_auctioneer_role(member) -> bool:
    roles = getattr(member, "roles", None) or []
    return any(role.name == AUCTIONEER_ROLE for role in roles)


async def can_run_auction(interaction: discord.Interaction) -> bool:
    """
    Auction controls are allowed for:
      - the application owner
      - user IDs in config.BOT_ADMINS
      - guild members holding the auctioneer role (config.AUCTIONEER_ROLE)
      - guild members with Administrator permission
    """
    user = interaction.user
    permissions = getattr(user, "guild_permissions", None)

    if user.id in BOT_ADMINS:
        reason = "BOT_ADMINS"
    elif interaction.guild and has_auctioneer_role(user):
        reason = f"role {AUCTIONEER_ROLE}"
    elif interaction.guild and permissions is not None and permissions.administrator:
        reason = "guild admin"
    elif user.id == await _owner_id(interaction.client):
        reason = "app owner"
    else:
        logger.info(f"auctioneer check: DENIED for user {user.id}")
        return False

    logger.debug(f"auctioneer check: allowed by {reason} (user={user.id})")
    return True


def admin_or_owner_check() -> Callable:
    """Slash-command check restricting auction controls to auctioneers"""
    return app_commands.check(can_run_auction)
