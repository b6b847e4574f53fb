# Bot.py
"""
Cricket Auction Console - Discord front end
The auctioneer drives the auction room with slash commands; SOLD / UNSOLD
outcomes are confirmed with buttons before anything is written.
"""

import discord
from discord import app_commands
from discord.ext import commands
import asyncio
import os
import logging
import tempfile
from typing import Optional
from dotenv import load_dotenv

load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[
        logging.FileHandler("auction_bot.log", encoding="utf-8"),
        logging.StreamHandler(),  # Also print to console
    ],
)
logger = logging.getLogger("AuctionBot")

from config import BOT_TOKEN, DB_PATH, DEFAULT_TEAM_BUDGET, MESSAGES
from admin_checks import admin_or_owner_check
from auction_manager import ACTION_SOLD, AuctionManager, PendingAction
from database import Database
from exceptions import AuctionError, RemoteUnavailable
from models import crore_to_lakh
from utils import FileManager, MessageFormatter, format_price


class AuctionBot(commands.Bot):
    """Custom bot class with auction manager and slash commands"""

    def __init__(self):
        intents = discord.Intents.default()
        intents.guilds = True

        super().__init__(command_prefix="!", intents=intents)

        self.auction_manager = AuctionManager(Database(DB_PATH))
        self.formatter = MessageFormatter()
        self.auction_channel: Optional[discord.abc.Messageable] = None

    async def setup_hook(self):
        logger.info("Syncing slash commands globally...")
        await self.tree.sync()
        logger.info("Slash commands synced!")

    async def on_ready(self):
        logger.info(f"Logged in as {self.user.name} (ID: {self.user.id})")
        logger.info("Bot is ready! Use /help to see all commands.")

    def current_player_message(self) -> str:
        manager = self.auction_manager
        player = manager.current_player
        if player is None:
            return MESSAGES["no_players"]
        msg = self.formatter.format_player_announcement(
            player, manager.queue.index + 1, len(manager.queue), manager.session.current_bid
        )
        outcome = manager.session.resolved.get(player.id)
        if outcome:
            msg += f"\nAlready marked **{outcome}** this session"
        return msg

    async def announce_player(self, player=None):
        """Post the current player to the auction channel"""
        if self.auction_channel is None:
            return
        await self.auction_channel.send(self.current_player_message())


bot = AuctionBot()


# ============================================================
# CONFIRMATION VIEW (SOLD / UNSOLD)
# ============================================================


class ConfirmActionView(discord.ui.View):
    """Confirm / Cancel buttons bound to one staged action"""

    def __init__(self, bot_ref: AuctionBot, user_id: int, summary: str, pending: PendingAction):
        super().__init__(timeout=60)
        self.bot_ref = bot_ref
        self.user_id = user_id
        self.summary = summary
        self.pending = pending
        self.message: Optional[discord.Message] = None

    def _disable(self):
        for item in self.children:
            item.disabled = True

    async def on_timeout(self):
        self.bot_ref.auction_manager.cancel_pending(expected=self.pending)
        self._disable()
        if self.message:
            try:
                await self.message.edit(content=f"{self.summary}\n*Timed out.*", view=self)
            except discord.HTTPException:
                pass

    @discord.ui.button(label="Confirm", style=discord.ButtonStyle.success)
    async def confirm(self, interaction: discord.Interaction, button: discord.ui.Button):
        if interaction.user.id != self.user_id:
            await interaction.response.send_message(
                "This is not your confirmation!", ephemeral=True
            )
            return

        self._disable()
        self.stop()
        manager = self.bot_ref.auction_manager

        # UNSOLD: the next player is announced below, after the result is posted
        on_advance = self.bot_ref.announce_player if self.pending.action == ACTION_SOLD else None
        try:
            result = await manager.confirm_pending(on_advance=on_advance, expected=self.pending)
        except RemoteUnavailable as e:
            logger.error(f"Failed to update player/team status: {e}")
            await interaction.response.edit_message(
                content=f"{self.summary}\n{MESSAGES['transaction_failed']}", view=self
            )
            return
        except AuctionError as e:
            await interaction.response.edit_message(
                content=f"{self.summary}\n**Rejected:** {e}", view=self
            )
            return

        await interaction.response.edit_message(content=f"{self.summary}\nConfirmed.", view=self)
        if result.action == ACTION_SOLD:
            await interaction.followup.send(
                self.bot_ref.formatter.format_sold_message(result.player, result.team, result.price)
            )
        else:
            await interaction.followup.send(
                self.bot_ref.formatter.format_unsold_message(result.player)
            )
            await self.bot_ref.announce_player(result.next_player)

    @discord.ui.button(label="Cancel", style=discord.ButtonStyle.danger)
    async def cancel(self, interaction: discord.Interaction, button: discord.ui.Button):
        if interaction.user.id != self.user_id:
            await interaction.response.send_message(
                "This is not your confirmation!", ephemeral=True
            )
            return

        self.bot_ref.auction_manager.cancel_pending(expected=self.pending)
        self._disable()
        self.stop()
        await interaction.response.edit_message(
            content=f"{self.summary}\n*Cancelled.*", view=self
        )


async def send_confirmation(interaction: discord.Interaction, summary: str, pending: PendingAction):
    view = ConfirmActionView(bot, interaction.user.id, summary, pending)
    await interaction.response.send_message(summary, view=view)
    view.message = await interaction.original_response()


# ============================================================
# AUCTION ROOM COMMANDS
# ============================================================


@bot.tree.command(name="loadqueue", description="Load all UNSOLD players into the auction room")
@admin_or_owner_check()
async def load_queue(interaction: discord.Interaction):
    await interaction.response.defer()
    count = await bot.auction_manager.load_queue()
    bot.auction_channel = interaction.channel
    if count == 0:
        await interaction.followup.send(MESSAGES["no_players"])
        return
    await interaction.followup.send(
        f"{MESSAGES['queue_loaded'].format(count=count)}\n\n{bot.current_player_message()}"
    )


@bot.tree.command(name="current", description="Show the player currently on the block")
async def current(interaction: discord.Interaction):
    await interaction.response.send_message(bot.current_player_message())


@bot.tree.command(name="next", description="Move to the next player")
@admin_or_owner_check()
async def next_player(interaction: discord.Interaction):
    bot.auction_manager.advance(1)
    await interaction.response.send_message(bot.current_player_message())


@bot.tree.command(name="prev", description="Move to the previous player")
@admin_or_owner_check()
async def prev_player(interaction: discord.Interaction):
    bot.auction_manager.advance(-1)
    await interaction.response.send_message(bot.current_player_message())


@bot.tree.command(name="open", description="Start bidding at the player's base price")
@admin_or_owner_check()
async def open_bidding(interaction: discord.Interaction):
    bid = bot.auction_manager.open_bidding()
    player = bot.auction_manager.current_player
    await interaction.response.send_message(
        f"Bidding open for **{bot.formatter.player_display(player)}** at **{format_price(bid)}**"
    )


@bot.tree.command(name="raise", description="Raise the bid by the next increment")
@admin_or_owner_check()
async def raise_bid(interaction: discord.Interaction):
    manager = bot.auction_manager
    bid = manager.increment_bid()
    await interaction.response.send_message(
        bot.formatter.format_bid_message(
            manager.current_player, bid, manager.session.ladder.next_increment(bid)
        )
    )


@bot.tree.command(name="sold", description="Mark the current player SOLD to a team")
@app_commands.describe(team="Team id, name or short name")
@admin_or_owner_check()
async def sold(interaction: discord.Interaction, team: str):
    manager = bot.auction_manager
    found = manager.find_team(team)
    if found is None:
        await interaction.response.send_message(f"Invalid team: {team}", ephemeral=True)
        return

    pending = manager.request_sold(found.id)
    player = manager.current_player
    summary = (
        f"Confirm **SOLD**: **{bot.formatter.player_display(player)}** to "
        f"**{found.name}** for **{format_price(pending.price)}**?"
    )
    await send_confirmation(interaction, summary, pending)


@bot.tree.command(name="unsold", description="Mark the current player UNSOLD")
@admin_or_owner_check()
async def unsold(interaction: discord.Interaction):
    manager = bot.auction_manager
    pending = manager.request_unsold()
    player = manager.current_player
    summary = f"Confirm **UNSOLD**: **{bot.formatter.player_display(player)}**?"
    await send_confirmation(interaction, summary, pending)


@bot.tree.command(name="cancel", description="Discard a staged SOLD / UNSOLD action")
@admin_or_owner_check()
async def cancel(interaction: discord.Interaction):
    bot.auction_manager.cancel_pending()
    await interaction.response.send_message("Pending action cleared.", ephemeral=True)


# ============================================================
# TEAM COMMANDS
# ============================================================


@bot.tree.command(name="showteams", description="Show every team's budget and squad size")
async def show_teams(interaction: discord.Interaction):
    stats = bot.auction_manager.get_team_stats()
    await interaction.response.send_message(
        bot.formatter.format_team_summary(stats, bot.auction_manager.max_overseas)
    )


@bot.tree.command(name="squad", description="View a team's squad")
@app_commands.describe(team="Team id, name or short name")
async def squad(interaction: discord.Interaction, team: str):
    manager = bot.auction_manager
    found = manager.find_team(team)
    if found is None:
        await interaction.response.send_message(f"Invalid team: {team}", ephemeral=True)
        return
    found, players = manager.get_team_squad(found.id)
    await interaction.response.send_message(
        bot.formatter.format_squad_display(found, players, manager.max_overseas)
    )


@bot.tree.command(name="addteam", description="Create a team")
@app_commands.describe(
    name="Team name",
    number="Jersey / serial number",
    budget="Budget in Crore (default 100)",
)
@admin_or_owner_check()
async def add_team(
    interaction: discord.Interaction, name: str, number: int, budget: Optional[float] = None
):
    amount = DEFAULT_TEAM_BUDGET if budget is None else crore_to_lakh(budget)
    team = bot.auction_manager.add_team(name, number, amount)
    await interaction.response.send_message(
        f"Team **{team.name}** added with budget **{format_price(team.budget)}** (id `{team.id}`)"
    )


@bot.tree.command(name="removeteam", description="Delete a team")
@app_commands.describe(team="Team id, name or short name")
@admin_or_owner_check()
async def remove_team(interaction: discord.Interaction, team: str):
    found = bot.auction_manager.find_team(team)
    if found is None or not bot.auction_manager.delete_team(found.id):
        await interaction.response.send_message(f"Invalid team: {team}", ephemeral=True)
        return
    await interaction.response.send_message(f"Team **{found.name}** deleted.")


# ============================================================
# PLAYER COMMANDS
# ============================================================


@bot.tree.command(name="players", description="List players")
@app_commands.describe(status="Only players with this status")
@app_commands.choices(
    status=[
        app_commands.Choice(name="UNSOLD", value="UNSOLD"),
        app_commands.Choice(name="SOLD", value="SOLD"),
    ]
)
async def players(
    interaction: discord.Interaction, status: Optional[app_commands.Choice[str]] = None
):
    listed = bot.auction_manager.list_players(status.value if status else None)
    await interaction.response.send_message(bot.formatter.format_player_list(listed))


@bot.tree.command(name="addplayer", description="Create a player")
@app_commands.describe(
    name="Player name",
    role="Batter / Bowler / All-Rounder / Wicketkeeper",
    base_price="Base price in Crore",
    overseas="Overseas player?",
)
@admin_or_owner_check()
async def add_player(
    interaction: discord.Interaction,
    name: str,
    role: str,
    base_price: float,
    overseas: bool = False,
):
    player = bot.auction_manager.add_player(name, role, base_price, overseas)
    await interaction.response.send_message(
        f"Player **{bot.formatter.player_display(player)}** added "
        f"(base {format_price(player.base_price)}, id `{player.id}`)"
    )


@bot.tree.command(name="removeplayer", description="Delete a player by id")
@app_commands.describe(player_id="Player document id")
@admin_or_owner_check()
async def remove_player(interaction: discord.Interaction, player_id: str):
    if not bot.auction_manager.delete_player(player_id):
        await interaction.response.send_message(
            f"Player not found: {player_id}", ephemeral=True
        )
        return
    await interaction.response.send_message(f"Player `{player_id}` deleted.")


@bot.tree.command(name="import", description="Bulk import players from an .xlsx or .csv file")
@app_commands.describe(
    file="Spreadsheet; first sheet, first row is the header",
    mapping='Optional "Header=field, Header=field" (default: match headers to field names)',
)
@admin_or_owner_check()
async def import_players(
    interaction: discord.Interaction,
    file: discord.Attachment,
    mapping: Optional[str] = None,
):
    if not file.filename.lower().endswith((".xlsx", ".csv")):
        await interaction.response.send_message(
            "Please upload an .xlsx or .csv file", ephemeral=True
        )
        return
    try:
        parsed = FileManager.parse_mapping(mapping) if mapping else None
    except ValueError as e:
        await interaction.response.send_message(str(e), ephemeral=True)
        return

    await interaction.response.defer()
    with tempfile.TemporaryDirectory() as tmp:
        path = os.path.join(tmp, os.path.basename(file.filename))
        await file.save(path)
        try:
            imported, total = await asyncio.to_thread(
                bot.auction_manager.import_players, path, parsed
            )
        except (OSError, ValueError) as e:
            logger.error(f"Import of {file.filename} failed: {e}")
            await interaction.followup.send(f"Could not read {file.filename}: {e}")
            return
    await interaction.followup.send(
        MESSAGES["import_complete"].format(imported=imported, total=total)
    )


@bot.tree.command(name="help", description="Show auction console commands")
async def help_command(interaction: discord.Interaction):
    help_text = """
**Cricket Auction Console**

**Auction Room (auctioneer):**
`/loadqueue` - Load all UNSOLD players (Batters, Bowlers, All-Rounders, Wicketkeepers, others).
`/current` - Show the player on the block.
`/next` / `/prev` - Move through the queue (wraps around).
`/open` - Start bidding at the base price.
`/raise` - Raise the bid (+10L below 1 Cr, +25L below 2 Cr, +50L above).
`/sold <team>` - Stage a sale at the current bid, then confirm.
`/unsold` - Stage an UNSOLD outcome, then confirm.
`/cancel` - Drop the staged action.

**Teams:**
`/showteams` - Budgets, spend and overseas count for all teams.
`/squad <team>` - A team's squad.
`/addteam` / `/removeteam` - Manage teams.

**Players:**
`/players [status]` - List players.
`/addplayer` / `/removeplayer` - Manage players.
`/import <file> [mapping]` - Bulk import from a spreadsheet.
"""
    await interaction.response.send_message(help_text, ephemeral=True)


# ============================================================
# MISC (errors / main)
# ============================================================


@bot.tree.error
async def on_app_command_error(
    interaction: discord.Interaction, error: app_commands.AppCommandError
):
    original = getattr(error, "original", error)
    if isinstance(error, app_commands.CheckFailure):
        message = "You don't have permission to use this command."
    elif isinstance(original, RemoteUnavailable):
        logger.error(f"Store error: {original}")
        message = MESSAGES["transaction_failed"]
    elif isinstance(original, (AuctionError, ValueError)):
        message = str(original)
    else:
        logger.error(f"Command error: {error}", exc_info=True)
        message = f"An error occurred: {str(error)}"

    try:
        if not interaction.response.is_done():
            await interaction.response.send_message(message, ephemeral=True)
        else:
            await interaction.followup.send(message, ephemeral=True)
    except discord.HTTPException:
        logger.error(f"Could not send error message to user: {message}")


if __name__ == "__main__":
    token = BOT_TOKEN or os.getenv("DISCORD_TOKEN")
    if not token:
        logger.critical(
            "Please set your bot token in DISCORD_TOKEN environment variable or .env"
        )
    else:
        logger.info("Starting Cricket Auction Console...")
        bot.run(token)
