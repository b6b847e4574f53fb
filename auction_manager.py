# auction_manager.py
"""
Auction Manager Module
Player queue, bid ladder and sale resolution for the live auction room
"""

import asyncio
import itertools
import logging
from typing import Awaitable, Callable, Dict, List, Optional, Tuple
from dataclasses import dataclass, field

# Get logger from main bot module
logger = logging.getLogger("AuctionBot.Manager")

from config import (
    AUTO_ADVANCE_DELAY,
    DEFAULT_BASE_PRICE,
    DEFAULT_TEAM_BUDGET,
    MAX_OVERSEAS_LIMIT,
    get_bid_increment,
)
from database import Database
from exceptions import (
    AuctionError,
    BiddingNotOpen,
    EmptyQueue,
    NoPendingAction,
    NoTeamSelected,
    PlayerAlreadyResolved,
    RemoteUnavailable,
    StaleConfirmation,
)
from models import (
    PLAYERS,
    STATUS_SOLD,
    STATUS_UNSOLD,
    TEAMS,
    Player,
    Team,
    crore_to_lakh,
    default_player_document,
    lakh_to_crore,
)
from utils import FileManager, TeamStats, format_price

ACTION_SOLD = STATUS_SOLD
ACTION_UNSOLD = STATUS_UNSOLD

PHASE_UNOPENED = "UNOPENED"
PHASE_BIDDING = "BIDDING"

AdvanceCallback = Callable[[Optional[Player]], Awaitable[None]]


@dataclass
class SaleResult:
    """Outcome of a confirmed SOLD / UNSOLD action"""

    action: str
    player: Player
    team: Optional[Team] = None
    price: int = 0
    # set for UNSOLD, which moves the queue on immediately
    next_player: Optional[Player] = None


# ==================== PLAYER QUEUE ====================


class PlayerQueue:
    """Players up for auction, in role/name order, navigated cyclically.

    The order is fixed when the queue is loaded; resolved players keep their
    position until the next load.
    """

    def __init__(self, players: Optional[List[Player]] = None):
        self.players: List[Player] = []
        self.index = 0
        self.load(players or [])

    def load(self, players: List[Player]):
        self.players = sorted(players, key=lambda p: p.sort_key)
        self.index = 0

    def __len__(self) -> int:
        return len(self.players)

    @property
    def is_empty(self) -> bool:
        return not self.players

    @property
    def current(self) -> Optional[Player]:
        if self.is_empty:
            return None
        return self.players[self.index]

    def advance(self, direction: int = 1) -> int:
        if direction not in (1, -1):
            raise ValueError("direction must be 1 or -1")
        if self.is_empty:
            raise EmptyQueue()

        index = self.index + direction
        if index > len(self.players) - 1:
            index = 0
        elif index < 0:
            index = len(self.players) - 1
        self.index = index
        return index

    def replace_current(self, player: Player):
        if not self.is_empty and self.players[self.index].id == player.id:
            self.players[self.index] = player


# ==================== BID LADDER ====================


class BidLadder:
    """Current bid for the active player (Lakh). 0 means bidding not started."""

    def __init__(self, default_base_price: int = DEFAULT_BASE_PRICE):
        self.default_base_price = default_base_price
        self.current_bid = 0

    @property
    def is_open(self) -> bool:
        return self.current_bid > 0

    @staticmethod
    def next_increment(bid: int) -> int:
        return get_bid_increment(bid)

    def open(self, player: Player) -> int:
        self.current_bid = player.base_price or self.default_base_price
        return self.current_bid

    def increment(self) -> int:
        if not self.is_open:
            raise BiddingNotOpen()
        self.current_bid += self.next_increment(self.current_bid)
        return self.current_bid

    def reset(self):
        self.current_bid = 0


# ==================== SESSION STATE ====================


@dataclass(frozen=True)
class PendingAction:
    """A staged SOLD / UNSOLD action, as shown in one confirmation dialog"""

    serial: int
    player_id: str
    action: str
    team_id: str = ""
    price: int = 0


@dataclass
class AuctionSession:
    """In-progress state for the auction room; never persisted"""

    ladder: BidLadder = field(default_factory=BidLadder)
    selected_team: str = ""
    pending: Optional[PendingAction] = None
    validation_error: str = ""
    # player id -> SOLD / UNSOLD, for players resolved since the queue loaded
    resolved: Dict[str, str] = field(default_factory=dict)

    @property
    def current_bid(self) -> int:
        return self.ladder.current_bid

    @property
    def pending_action(self) -> Optional[str]:
        return self.pending.action if self.pending else None

    @property
    def pending_price(self) -> int:
        return self.pending.price if self.pending else 0

    def clear_pending(self):
        self.pending = None

    def reset_auction_state(self):
        self.ladder.reset()
        self.selected_team = ""
        self.validation_error = ""
        self.clear_pending()


# ==================== SALE RESOLVER ====================


class SaleResolver:
    """Commits SOLD / UNSOLD outcomes to the store.

    Validation and both record updates run inside one store transaction
    (Database.commit_sale), so a rejected or failed sale leaves the team and
    the player exactly as they were.
    """

    def __init__(self, db: Database, max_overseas: int = MAX_OVERSEAS_LIMIT):
        self.db = db
        self.max_overseas = max_overseas

    async def propose_sale(self, player: Player, team_id: str, price: int) -> SaleResult:
        try:
            team, sold = await asyncio.to_thread(
                self.db.commit_sale,
                player.id,
                team_id,
                price,
                player.is_overseas,
                self.max_overseas,
            )
        except AuctionError as e:
            logger.warning(f"Sale of {player.name} to {team_id} rejected: {e}")
            raise

        logger.info(
            f"SOLD {player.name} to {team.name} for {format_price(price)} "
            f"(budget left {format_price(team.budget)}, overseas {team.overseas})"
        )
        return SaleResult(ACTION_SOLD, sold, team, price)

    async def record_unsold(self, player: Player) -> SaleResult:
        try:
            unsold = await asyncio.to_thread(self.db.record_unsold, player.id)
        except AuctionError as e:
            logger.warning(f"Could not mark {player.name} unsold: {e}")
            raise

        logger.info(f"UNSOLD {player.name}")
        return SaleResult(ACTION_UNSOLD, unsold)


# ==================== AUCTION MANAGER ====================


class AuctionManager:
    """
    Main auction management class. The bot talks only to this object.
    """

    def __init__(
        self,
        db: Database,
        auto_advance_delay: float = AUTO_ADVANCE_DELAY,
        max_overseas: int = MAX_OVERSEAS_LIMIT,
        default_base_price: int = DEFAULT_BASE_PRICE,
    ):
        self.db = db
        self.auto_advance_delay = auto_advance_delay
        self.max_overseas = max_overseas
        self.default_base_price = default_base_price
        self.file_manager = FileManager()

        self.queue = PlayerQueue()
        self.session = AuctionSession(BidLadder(default_base_price))
        self.resolver = SaleResolver(db, max_overseas)
        self.loaded = False

        self._confirm_lock = asyncio.Lock()
        self._advance_task: Optional[asyncio.Task] = None
        self._pending_serial = itertools.count(1)

    # ==================== QUEUE ====================

    async def load_queue(self) -> int:
        """(Re)load every UNSOLD player into the queue"""
        players = await asyncio.to_thread(self.db.get_players, STATUS_UNSOLD)
        self.cancel_auto_advance()
        self.queue.load(players)
        self.session = AuctionSession(BidLadder(self.default_base_price))
        self.loaded = True
        logger.info(f"Auction queue loaded with {len(players)} players")
        return len(players)

    @property
    def current_player(self) -> Optional[Player]:
        return self.queue.current

    def _require_player(self) -> Player:
        player = self.queue.current
        if player is None:
            raise EmptyQueue()
        return player

    def _require_unresolved(self) -> Player:
        player = self._require_player()
        outcome = self.session.resolved.get(player.id)
        if outcome:
            raise PlayerAlreadyResolved(player.name, outcome)
        return player

    def phase(self, player: Optional[Player] = None) -> str:
        """UNOPENED / BIDDING / SOLD / UNSOLD for a queued player"""
        player = player or self._require_player()
        outcome = self.session.resolved.get(player.id)
        if outcome:
            return outcome
        if player is self.queue.current and self.session.ladder.is_open:
            return PHASE_BIDDING
        return PHASE_UNOPENED

    def advance(self, direction: int = 1) -> Optional[Player]:
        """Operator navigation; drops any scheduled auto-advance"""
        self.cancel_auto_advance()
        return self._advance(direction)

    def _advance(self, direction: int) -> Optional[Player]:
        self.queue.advance(direction)
        self.session.reset_auction_state()
        player = self.queue.current
        logger.info(f"Now at player {self.queue.index + 1}/{len(self.queue)}: {player.name}")
        return player

    # ==================== BIDDING ====================

    def open_bidding(self) -> int:
        player = self._require_unresolved()
        self.session.clear_pending()
        bid = self.session.ladder.open(player)
        logger.info(f"Bidding opened for {player.name} at {format_price(bid)}")
        return bid

    def increment_bid(self) -> int:
        self._require_unresolved()
        self.session.clear_pending()
        return self.session.ladder.increment()

    def select_team(self, team_id: str):
        self._require_unresolved()
        self.session.selected_team = team_id
        self.session.validation_error = ""

    # ==================== CONFIRMATION ====================

    def _stage(self, player: Player, action: str, team_id: str = "", price: int = 0) -> PendingAction:
        pending = PendingAction(next(self._pending_serial), player.id, action, team_id, price)
        self.session.pending = pending
        return pending

    def request_sold(self, team_id: Optional[str] = None) -> PendingAction:
        """Stage a SOLD action at the current bid; returns the staged action"""
        player = self._require_unresolved()
        if not self.session.ladder.is_open:
            raise BiddingNotOpen()
        if team_id:
            self.session.selected_team = team_id
        if not self.session.selected_team:
            self.session.validation_error = str(NoTeamSelected())
            raise NoTeamSelected()

        self.session.validation_error = ""
        return self._stage(player, ACTION_SOLD, self.session.selected_team, self.session.current_bid)

    def request_unsold(self) -> PendingAction:
        player = self._require_unresolved()
        return self._stage(player, ACTION_UNSOLD)

    def cancel_pending(self, expected: Optional[PendingAction] = None) -> bool:
        """Drop the staged action.

        With ``expected`` only that exact action is dropped; a newer one
        staged since is left alone. Returns whether anything was cleared.
        """
        pending = self.session.pending
        if pending is None or (expected is not None and pending != expected):
            return False
        self.session.clear_pending()
        return True

    async def confirm_pending(
        self,
        on_advance: Optional[AdvanceCallback] = None,
        expected: Optional[PendingAction] = None,
    ) -> SaleResult:
        """Commit the staged action.

        A sale schedules the auto-advance; an unsold outcome advances
        straight away and reports the new current player as
        ``result.next_player``. ``on_advance`` is awaited with it.
        When ``expected`` is given it must still be the staged action,
        otherwise StaleConfirmation is raised and nothing is committed.
        """
        async with self._confirm_lock:
            pending = self.session.pending
            if pending is None:
                raise NoPendingAction()
            if expected is not None and pending != expected:
                raise StaleConfirmation()
            player = self._require_unresolved()
            if player.id != pending.player_id:
                self.session.clear_pending()
                raise StaleConfirmation()

            try:
                if pending.action == ACTION_SOLD:
                    result = await self.resolver.propose_sale(player, pending.team_id, pending.price)
                else:
                    result = await self.resolver.record_unsold(player)
            except RemoteUnavailable:
                self.session.clear_pending()
                self.session.selected_team = ""
                raise
            except AuctionError as e:
                self.session.clear_pending()
                self.session.validation_error = str(e)
                raise

            self.session.resolved[player.id] = pending.action
            self.session.clear_pending()
            self.queue.replace_current(result.player)

        if pending.action == ACTION_SOLD:
            self.schedule_auto_advance(on_advance)
        else:
            result.next_player = self.advance()
            if on_advance:
                await on_advance(result.next_player)
        return result

    # ==================== AUTO ADVANCE ====================

    def schedule_auto_advance(
        self, on_advance: Optional[AdvanceCallback] = None, delay: Optional[float] = None
    ) -> asyncio.Task:
        """Advance after a delay, but only if the same player is still active"""
        self.cancel_auto_advance()
        player_id = self._require_player().id
        delay = self.auto_advance_delay if delay is None else delay

        async def _run():
            await asyncio.sleep(delay)
            current = self.queue.current
            if current is None or current.id != player_id:
                return
            next_player = self._advance(1)
            if on_advance:
                try:
                    await on_advance(next_player)
                except Exception as e:
                    logger.error(f"Error announcing next player: {e}", exc_info=True)

        task = asyncio.create_task(_run())
        self._advance_task = task
        task.add_done_callback(self._clear_advance_task)
        return task

    def _clear_advance_task(self, task: asyncio.Task):
        if self._advance_task is task:
            self._advance_task = None

    def cancel_auto_advance(self) -> bool:
        task = self._advance_task
        if task and not task.done():
            task.cancel()
            self._advance_task = None
            return True
        return False

    @property
    def auto_advance_pending(self) -> bool:
        return self._advance_task is not None and not self._advance_task.done()

    # ==================== TEAMS ====================

    def list_teams(self) -> List[Team]:
        return sorted(self.db.get_teams(), key=lambda t: (t.number, t.name))

    def find_team(self, query: str) -> Optional[Team]:
        """Look a team up by id, name or short name (case-insensitive)"""
        query = (query or "").strip()
        if not query:
            return None
        team = self.db.get_team(query)
        if team:
            return team
        q = query.lower()
        for team in self.db.get_teams():
            if q in (team.name.lower(), team.short_name.lower()):
                return team
        return None

    def add_team(
        self,
        name: str,
        number: int = 0,
        budget: int = DEFAULT_TEAM_BUDGET,
        short_name: str = "",
    ) -> Team:
        if not name.strip():
            raise ValueError("Team name is required")
        if budget < 0:
            raise ValueError("Budget cannot be negative")
        team = Team(id="", name=name.strip(), budget=budget, number=number, short_name=short_name)
        doc = self.db.add_document(TEAMS, team.to_document())
        logger.info(f"Team added: {team.name} ({format_price(budget)})")
        return Team.from_document(doc["id"], doc)

    def delete_team(self, team_id: str) -> bool:
        deleted = self.db.delete_document(TEAMS, team_id)
        if deleted:
            logger.info(f"Team deleted: {team_id}")
        return deleted

    def get_team_squad(self, team_id: str) -> Tuple[Optional[Team], List[Player]]:
        team = self.db.get_team(team_id)
        if team is None:
            return None, []
        players = []
        for player_id in team.players:
            player = self.db.get_player(player_id)
            if player is None:
                logger.warning(f"{team.name} lists missing player {player_id}")
                continue
            players.append(player)
        return team, players

    def get_team_stats(self) -> List[TeamStats]:
        stats = []
        for team in self.list_teams():
            _, players = self.get_team_squad(team.id)
            stats.append(
                TeamStats(
                    team=team,
                    total_players=len(team.players),
                    total_spent=sum(p.sold_price for p in players),
                    overseas_count=sum(1 for p in players if p.is_overseas),
                    total_credits=sum(p.credits for p in players),
                )
            )
        return stats

    # ==================== PLAYERS ====================

    def list_players(self, status: Optional[str] = None) -> List[Player]:
        return sorted(self.db.get_players(status), key=lambda p: p.sort_key)

    def add_player(
        self,
        name: str,
        role: str = "",
        base_price: float = 0,
        is_overseas: bool = False,
    ) -> Player:
        """Create a player; ``base_price`` is in Crore like the spreadsheets"""
        if not name.strip():
            raise ValueError("Player name is required")
        doc = default_player_document()
        doc.update(
            name=name.strip(),
            role=role,
            base_price=lakh_to_crore(crore_to_lakh(base_price)),
            is_overseas=is_overseas,
        )
        saved = self.db.add_document(PLAYERS, doc)
        logger.info(f"Player added: {doc['name']}")
        return Player.from_document(saved["id"], saved)

    def delete_player(self, player_id: str) -> bool:
        deleted = self.db.delete_document(PLAYERS, player_id)
        if deleted:
            logger.info(f"Player deleted: {player_id}")
        return deleted

    def import_players(
        self, filepath: str, mapping: Optional[Dict[str, str]] = None
    ) -> Tuple[int, int]:
        """Bulk import from a spreadsheet. Returns (imported, total_rows)."""
        documents, total = self.file_manager.load_players_from_sheet(filepath, mapping)
        imported = 0
        for player_id, doc in documents:
            try:
                self.db.set_document(PLAYERS, player_id, doc)
                imported += 1
            except RemoteUnavailable as e:
                logger.error(f"Error uploading {doc['name']}: {e}")
        logger.info(f"Import complete: {imported}/{total} players")
        return imported, total
