"""
Utility functions for the Cricket Auction Console
Contains helpers for price formatting, spreadsheet import and messages.
"""

import csv
import logging
import math
import os
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import openpyxl

from config import MESSAGES
from models import (
    PLAYER_FIELDS,
    Player,
    Team,
    default_player_document,
)

# Set up module-level logger
logger = logging.getLogger(__name__)


# -----------------------------------------------------------
#  PRICE FORMATTER  → Lakh amounts to "X.XX Cr" / "Y.YY Lakh"
# -----------------------------------------------------------
def format_price(lakh: Optional[int]) -> str:
    """Render an amount held in Lakh.

    Rules:
      - >= 1 Crore (100 Lakh) -> crores with 2 decimals, suffixed "Cr"
      - below that -> lakhs with 2 decimals, suffixed "Lakh"
    """
    if lakh is None:
        lakh = 0
    if lakh >= 100:
        return f"{lakh / 100:.2f} Cr"
    return f"{lakh:.2f} Lakh"


# -----------------------------------------------------------
#  SPREADSHEET IMPORT
# -----------------------------------------------------------
# Header spellings accepted without an explicit mapping, besides the field
# name itself (compared lower-cased with spaces/underscores removed).
HEADER_ALIASES: Dict[str, List[str]] = {
    "name": ["player", "playername", "fullname"],
    "role": ["playingrole", "position", "speciality"],
    "is_overseas": ["overseas", "isoverseas", "foreign"],
    "image_url": ["image", "photo", "imagelink", "imageurl"],
    "base_price": ["baseprice", "base", "startingbid"],
    "batting_matches": ["matches", "mat"],
    "batting_runs": ["runs"],
    "batting_high_score": ["highscore", "hs"],
    "batting_average": ["average", "avg"],
    "batting_strike_rate": ["strikerate", "sr"],
    "batting_centuries": ["centuries", "100s", "100"],
    "batting_half_centuries": ["halfcenturies", "50s", "50"],
    "fours": ["4s"],
    "sixes": ["6s"],
    "wickets": ["wkts"],
    "best_bowling": ["bbi", "best"],
    "economy": ["econ"],
}

_TRUE_VALUES = ("true", "yes", "y", "1")


def _header_key(header: Any) -> str:
    return re.sub(r"[\s_\-\.]+", "", str(header or "")).lower()


def coerce_value(field_name: str, raw: Any) -> Any:
    """Convert a spreadsheet cell to the type the schema declares for a field"""
    expected, _ = PLAYER_FIELDS[field_name]
    if expected is bool:
        return str(raw).strip().lower() in _TRUE_VALUES
    if expected in (int, float):
        try:
            number = float(str(raw).replace(",", "").strip())
        except (ValueError, TypeError):
            return 0
        if not math.isfinite(number):
            return 0
        return int(number) if expected is int else number
    return str(raw).strip()


def make_player_id(name: str, year: Any) -> str:
    slug = re.sub(r"\s+", "-", name.strip().lower())
    return f"{slug}-{year}"


class FileManager:
    """Handles spreadsheet files for the player importer"""

    @staticmethod
    def read_sheet(filepath: str) -> Tuple[List[str], List[Dict[str, Any]]]:
        """Read the first sheet of an .xlsx or a .csv file.

        Returns (headers, rows) where each row maps header -> cell value.
        Blank rows are dropped.
        """
        try:
            if filepath.lower().endswith(".csv"):
                with open(filepath, "r", encoding="utf-8-sig", newline="") as f:
                    reader = csv.reader(f)
                    table = [r for r in reader if any(c.strip() for c in r)]
            else:
                wb = openpyxl.load_workbook(filepath, read_only=True, data_only=True)
                try:
                    ws = wb.worksheets[0]
                    table = [
                        list(row)
                        for row in ws.iter_rows(values_only=True)
                        if row and any(c not in (None, "") for c in row)
                    ]
                finally:
                    wb.close()
        except FileNotFoundError:
            logger.error(f"Sheet not found: {filepath}")
            raise
        except csv.Error as e:
            logger.error(f"CSV parsing error in {filepath}: {e}")
            raise ValueError(f"Error parsing CSV file: {str(e)}")
        except UnicodeDecodeError as e:
            logger.error(f"Encoding error in {filepath}: {e}")
            raise ValueError(f"File encoding error. Please use UTF-8: {str(e)}")

        if not table:
            return [], []

        headers = [str(h).strip() if h is not None else "" for h in table[0]]
        rows = []
        for values in table[1:]:
            rows.append(
                {h: v for h, v in zip(headers, values) if h}
            )
        return headers, rows

    @staticmethod
    def auto_mapping(headers: List[str]) -> Dict[str, str]:
        """Guess header -> field for headers that name a field or a known alias"""
        lookup: Dict[str, str] = {}
        for field_name in PLAYER_FIELDS:
            lookup[_header_key(field_name)] = field_name
        for field_name, aliases in HEADER_ALIASES.items():
            for alias in aliases:
                lookup.setdefault(alias, field_name)

        mapping: Dict[str, str] = {}
        taken = set()
        for header in headers:
            field_name = lookup.get(_header_key(header))
            if field_name and field_name not in taken:
                mapping[header] = field_name
                taken.add(field_name)
        return mapping

    @staticmethod
    def parse_mapping(text: str) -> Dict[str, str]:
        """Parse "Header=field, Other Header=field" into a mapping"""
        mapping: Dict[str, str] = {}
        for part in (text or "").split(","):
            if not part.strip():
                continue
            if "=" not in part:
                raise ValueError(f"Invalid mapping entry '{part.strip()}' (expected Header=field)")
            header, field_name = (s.strip() for s in part.split("=", 1))
            if field_name not in PLAYER_FIELDS:
                raise ValueError(f"Unknown player field '{field_name}'")
            mapping[header] = field_name
        return mapping

    @staticmethod
    def build_player_document(
        row: Dict[str, Any], mapping: Dict[str, str]
    ) -> Dict[str, Any]:
        """Apply a header -> field mapping to one row on top of the defaults"""
        doc = default_player_document()
        for header, field_name in mapping.items():
            raw = row.get(header)
            if raw is None or raw == "":
                continue
            doc[field_name] = coerce_value(field_name, raw)

        # Best bowling may come through as a bare "0"
        if doc["best_bowling"] == "0" and doc["wickets"] > 0:
            doc["best_bowling"] = f"{doc['wickets']}/{doc['runs_conceded']}"
        return doc

    @staticmethod
    def is_header_echo(row: Dict[str, Any], headers: List[str]) -> bool:
        return any(str(v) in headers for v in row.values() if v not in (None, ""))

    @classmethod
    def load_players_from_sheet(
        cls, filepath: str, mapping: Optional[Dict[str, str]] = None
    ) -> Tuple[List[Tuple[str, Dict[str, Any]]], int]:
        """Parse a sheet into (player_id, document) pairs.

        Returns (documents, total_rows). Rows without a name are skipped.
        """
        headers, rows = cls.read_sheet(filepath)
        if mapping is None:
            mapping = cls.auto_mapping(headers)
        logger.info(f"Importing {os.path.basename(filepath)} with mapping {mapping}")

        documents = []
        for i, row in enumerate(rows):
            # A repeated header line inside the data
            if i == 0 and cls.is_header_echo(row, headers):
                continue
            try:
                doc = cls.build_player_document(row, mapping)
            except (ValueError, TypeError, OverflowError) as e:
                logger.warning(f"Skipping row {i + 2}: {e}")
                continue
            if not doc["name"]:
                logger.warning(f"Skipping row {i + 2}: no player name")
                continue
            documents.append((make_player_id(doc["name"], doc["year"]), doc))
        return documents, len(rows)


# -----------------------------------------------------------
# TEAM STATS
# -----------------------------------------------------------
@dataclass
class TeamStats:
    team: Team
    total_players: int
    total_spent: int  # Lakh
    overseas_count: int
    total_credits: float


# -----------------------------------------------------------
# MESSAGE FORMATTER
# -----------------------------------------------------------
class MessageFormatter:

    @staticmethod
    def player_display(player: Player) -> str:
        return f"{player.name} ✈️" if player.is_overseas else player.name

    @staticmethod
    def format_player_announcement(
        player: Player, position: int, total: int, current_bid: int
    ) -> str:
        role = player.role or "Unknown role"
        bid_line = (
            f"Current Bid: **{format_price(current_bid)}**"
            if current_bid
            else "Bidding not started. Use `/open`"
        )
        msg = (
            f"**Player {position}/{total}: {MessageFormatter.player_display(player)}**\n"
            f"Role: {role}\n"
            f"Base Price: {format_price(player.base_price)}\n"
            f"{bid_line}"
        )
        if player.status != "UNSOLD" or player.sold_to:
            msg += f"\nStatus: {player.status}"
        return msg

    @staticmethod
    def format_bid_message(player: Player, amount: int, next_step: int) -> str:
        return (
            f"Bid for **{MessageFormatter.player_display(player)}**: "
            f"**{format_price(amount)}** (next +{format_price(next_step)})"
        )

    @staticmethod
    def format_sold_message(player: Player, team: Team, amount: int) -> str:
        return (
            f"**SOLD!** {MESSAGES['player_sold'].format(team=team.name, amount=format_price(amount))}\n"
            f"Player: **{MessageFormatter.player_display(player)}**"
        )

    @staticmethod
    def format_unsold_message(player: Player) -> str:
        return (
            f"**UNSOLD** {MESSAGES['player_unsold'].format(player=player.name)}\n"
            f"Player: **{MessageFormatter.player_display(player)}**\n"
            f"Base Price: **{format_price(player.base_price)}**"
        )

    @staticmethod
    def format_team_summary(stats: List[TeamStats], max_overseas: int) -> str:
        """Format team budgets with squad info"""
        if not stats:
            return "No teams created yet."
        msg = "**Team Summary:**\n```\n"
        msg += f"{'#':>3} {'Team':<16} {'Budget':>12} {'Spent':>12} {'Players':>8} {'Overseas':>9}\n"
        msg += "=" * 64 + "\n"
        for s in stats:
            msg += (
                f"{s.team.number:>3} {s.team.name[:16]:<16} "
                f"{format_price(s.team.budget):>12} {format_price(s.total_spent):>12} "
                f"{s.total_players:>8} {f'{s.overseas_count}/{max_overseas}':>9}\n"
            )
        msg += "```"
        return msg

    @staticmethod
    def format_squad_display(
        team: Team, players: List[Player], max_overseas: int
    ) -> str:
        """Format a team's squad for display."""
        total_spent = sum(p.sold_price for p in players)
        overseas_count = sum(1 for p in players if p.is_overseas)

        msg = f"**{team.name} Squad:**\n```\n"
        if players:
            for p in players:
                symbol = "✈️" if p.is_overseas else "  "
                msg += f"{symbol} {p.name:25} {p.role:14} : {format_price(p.sold_price)}\n"
        else:
            msg += "No players yet.\n"

        msg += f"\n{'='*50}\n"
        msg += f"{'Total Spent':30} : {format_price(total_spent)}\n"
        msg += f"{'Remaining Budget':30} : {format_price(team.budget)}\n"
        msg += f"{'Total Players':30} : {len(players)}\n"
        msg += f"{'Overseas Players':30} : {overseas_count}/{max_overseas}\n"
        msg += "```"
        return msg

    @staticmethod
    def format_player_list(players: List[Player], limit: int = 25) -> str:
        if not players:
            return "No players found."
        msg = f"**Players ({len(players)}):**\n```\n"
        for i, p in enumerate(players[:limit], start=1):
            msg += f"{i:>3}. {p.name:25} {p.role:14} {format_price(p.base_price):>12} {p.status}\n"
        if len(players) > limit:
            msg += f"... and {len(players) - limit} more\n"
        msg += "```"
        return msg
