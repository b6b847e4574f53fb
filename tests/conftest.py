import pytest

from auction_manager import AuctionManager
from database import Database
from models import PLAYERS, TEAMS, default_player_document


@pytest.fixture
def db(tmp_path):
    return Database(str(tmp_path / "auction.db"))


@pytest.fixture
def manager(db):
    return AuctionManager(db, auto_advance_delay=0)


@pytest.fixture
def add_team(db):
    def _add(team_id, name=None, amount="10000", overseas=0, players=None, number=1):
        db.set_document(
            TEAMS,
            team_id,
            {
                "name": name or team_id.upper(),
                "short_name": (name or team_id)[:3].upper(),
                "number": number,
                "amount": amount,
                "overseas": overseas,
                "players": players or [],
            },
        )
        return db.get_team(team_id)

    return _add


@pytest.fixture
def add_player(db):
    def _add(
        player_id,
        name=None,
        role="Batter",
        base_price=0.5,
        is_overseas=False,
        status="UNSOLD",
        **extra,
    ):
        doc = default_player_document()
        doc.update(
            name=name or player_id.title(),
            role=role,
            base_price=base_price,
            is_overseas=is_overseas,
            status=status,
            **extra,
        )
        db.set_document(PLAYERS, player_id, doc)
        return db.get_player(player_id)

    return _add
