"""
Configuration for the Cricket Auction Console
"""

import os

# Bot token is loaded from environment variable DISCORD_TOKEN (put it in .env)
BOT_TOKEN = os.getenv("DISCORD_TOKEN", "")
# BOT ADMINS (superusers of the bot). Can be set as a comma-separated env var
# Example .env:
#   BOT_ADMINS="123456789012345678,987654321098765432"

_raw_bot_admins = os.getenv("BOT_ADMINS", "").strip()
BOT_ADMINS = []
for part in _raw_bot_admins.split(","):
    part = part.strip()
    if not part:
        continue
    try:
        BOT_ADMINS.append(int(part))
    except ValueError:
        # skip invalid entries (non-numeric)
        pass

# Members holding this Discord role may run the auction room
AUCTIONEER_ROLE = os.getenv("AUCTIONEER_ROLE", "Auctioneer")

# Document store (SQLite file)
DB_PATH = os.getenv("AUCTION_DB_PATH", "auction.db")

# Money
# =========================================
# All amounts are handled internally as integer Lakh (1 Crore = 100 Lakh).
LAKH_PER_CRORE = 100

# Fallback opening bid when a player has no base price (20 Lakh)
DEFAULT_BASE_PRICE = int(os.getenv("DEFAULT_BASE_PRICE", "20"))

# Budget for teams created without an explicit amount (100 Crore)
DEFAULT_TEAM_BUDGET = 10000

# Squad rules
MAX_OVERSEAS_LIMIT = 4

# Seconds the SOLD banner stays up before moving to the next player
AUTO_ADVANCE_DELAY = float(os.getenv("AUTO_ADVANCE_DELAY", "3"))

# Queue ordering: lower rank goes first, unknown roles last
ROLE_PRIORITY = {
    "Batter": 1,
    "Bowler": 2,
    "All-Rounder": 3,
    "Wicketkeeper": 4,
}
UNKNOWN_ROLE_PRIORITY = 99


# Bid Increment Rules
def get_bid_increment(current_bid: int) -> int:
    """Calculate the next bid increment (Lakh) based on current bid (Lakh)"""
    # < 1 Cr -> +10 Lakh
    # 1 - 2 Cr -> +25 Lakh
    # >= 2 Cr -> +50 Lakh
    if current_bid < 100:
        return 10
    elif current_bid < 200:
        return 25
    else:
        return 50


# Messages
MESSAGES = {
    "no_players": "No players available. All players have been auctioned.",
    "queue_loaded": "Auction queue loaded with {count} players.",
    "no_team_selected": "Please select a team before confirming.",
    "player_sold": "SOLD to {team} for {amount}",
    "player_unsold": "Player {player} went UNSOLD.",
    "transaction_failed": "An error occurred while processing the transaction.",
    "import_complete": "Upload complete! {imported}/{total} players uploaded successfully.",
}
