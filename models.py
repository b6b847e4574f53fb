# models.py
"""
Player / Team records and the player field schema.

Documents in the store keep player prices in Crore (as entered in the
spreadsheets) and the team budget as a decimal string in Lakh. Inside the
application every amount is an integer number of Lakh; conversion happens only
in from_document / to_document.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, List, Optional, Tuple

from config import LAKH_PER_CRORE, ROLE_PRIORITY, UNKNOWN_ROLE_PRIORITY

STATUS_UNSOLD = "UNSOLD"
STATUS_SOLD = "SOLD"

PLAYERS = "players"
TEAMS = "teams"


def _to_decimal(value: Any) -> Decimal:
    if value is None or value == "":
        return Decimal(0)
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return Decimal(0)


def crore_to_lakh(value: Any) -> int:
    """Crore (float/str) -> whole Lakh, rounded half up"""
    lakh = _to_decimal(value) * LAKH_PER_CRORE
    return int(lakh.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def lakh_to_crore(lakh: int) -> float:
    return float(Decimal(lakh) / LAKH_PER_CRORE)


def parse_lakh(value: Any) -> int:
    """Team budget string ("9500", "9500.0") -> whole Lakh"""
    return int(_to_decimal(value).quantize(Decimal(1), rounding=ROUND_HALF_UP))


# -----------------------------------------------------------
# PLAYER FIELD SCHEMA
# -----------------------------------------------------------
# name -> (type, default). The importer coerces spreadsheet cells with this
# table and the store adapter fills missing document fields from it.
PLAYER_FIELDS: Dict[str, Tuple[type, Any]] = {
    # Basic info
    "name": (str, ""),
    "role": (str, ""),
    "is_overseas": (bool, False),
    "image_url": (str, ""),
    "status": (str, STATUS_UNSOLD),
    "sold_to": (str, ""),
    "base_price": (float, 0),
    "credits": (float, 0),
    "sold_price": (float, 0),
    "year": (int, None),
    # Batting stats
    "batting_matches": (int, 0),
    "batting_not_outs": (int, 0),
    "batting_runs": (int, 0),
    "batting_high_score": (int, 0),
    "batting_average": (float, 0),
    "balls_faced": (int, 0),
    "batting_strike_rate": (float, 0),
    "batting_centuries": (int, 0),
    "batting_half_centuries": (int, 0),
    "fours": (int, 0),
    "sixes": (int, 0),
    "catches": (int, 0),
    "stumpings": (int, 0),
    # Bowling stats
    "bowling_matches": (int, 0),
    "balls_bowled": (int, 0),
    "runs_conceded": (int, 0),
    "wickets": (int, 0),
    "best_bowling": (str, "0/0"),
    "bowling_average": (float, 0),
    "economy": (float, 0),
    "bowling_strike_rate": (float, 0),
    "four_wicket_hauls": (int, 0),
    "five_wicket_hauls": (int, 0),
}

AUCTION_FIELDS = (
    "name",
    "role",
    "is_overseas",
    "image_url",
    "status",
    "sold_to",
    "base_price",
    "credits",
    "sold_price",
    "year",
)
STAT_FIELDS = tuple(f for f in PLAYER_FIELDS if f not in AUCTION_FIELDS)


def field_default(name: str) -> Any:
    """Default value for a player field (year defaults to the current year)"""
    if name == "year":
        return datetime.now().year
    return PLAYER_FIELDS[name][1]


def default_player_document() -> Dict[str, Any]:
    return {name: field_default(name) for name in PLAYER_FIELDS}


def role_rank(role: str) -> int:
    return ROLE_PRIORITY.get(role, UNKNOWN_ROLE_PRIORITY)


@dataclass
class Player:
    id: str
    name: str
    role: str = ""
    is_overseas: bool = False
    base_price: int = 0  # Lakh
    status: str = STATUS_UNSOLD
    sold_to: str = ""
    sold_price: int = 0  # Lakh
    credits: float = 0
    year: Optional[int] = None
    image_url: str = ""
    stats: Dict[str, Any] = field(default_factory=dict)

    @property
    def sort_key(self) -> Tuple[int, str, str]:
        # case-insensitive name order, exact name breaks ties
        return (role_rank(self.role), self.name.casefold(), self.name)

    @classmethod
    def from_document(cls, doc_id: str, data: Dict[str, Any]) -> "Player":
        return cls(
            id=doc_id,
            name=data.get("name") or "",
            role=data.get("role") or "",
            is_overseas=bool(data.get("is_overseas", False)),
            base_price=crore_to_lakh(data.get("base_price")),
            status=data.get("status") or STATUS_UNSOLD,
            sold_to=data.get("sold_to") or "",
            sold_price=crore_to_lakh(data.get("sold_price")),
            credits=data.get("credits") or 0,
            year=data.get("year"),
            image_url=data.get("image_url") or "",
            stats={
                name: data.get(name, PLAYER_FIELDS[name][1]) for name in STAT_FIELDS
            },
        )


@dataclass
class Team:
    id: str
    name: str
    budget: int  # remaining, Lakh
    number: int = 0
    overseas: int = 0
    players: List[str] = field(default_factory=list)
    short_name: str = ""

    def __post_init__(self):
        if not self.short_name:
            self.short_name = self.name[:3].upper()

    @classmethod
    def from_document(cls, doc_id: str, data: Dict[str, Any]) -> "Team":
        """Build a Team; ``players`` must already be normalized to ids"""
        return cls(
            id=doc_id,
            name=data.get("name") or "",
            budget=parse_lakh(data.get("amount")),
            number=int(data.get("number") or 0),
            overseas=int(data.get("overseas") or 0),
            players=list(data.get("players") or []),
            short_name=data.get("short_name") or "",
        )

    def to_document(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "short_name": self.short_name,
            "number": self.number,
            "amount": str(self.budget),
            "overseas": self.overseas,
            "players": list(self.players),
        }
