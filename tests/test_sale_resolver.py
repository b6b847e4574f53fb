import asyncio
import threading
from datetime import datetime
import sqlite3

import pytest

from auction_manager import SaleResolver
from database import Database
from exceptions import (
    InsufficientBudget,
    OverseasLimitExceeded,
    PlayerAlreadySold,
    RemoteUnavailable,
    TeamNotFound,
)
from models import PLAYERS, TEAMS


def propose(db, player, team_id, price):
    return asyncio.run(SaleResolver(db).propose_sale(player, team_id, price))


def test_domestic_sale_debits_budget(db, add_team, add_player):
    add_team("mi", amount="10000")
    player = add_player("rohit", base_price=2)

    result = propose(db, player, "mi", 500)

    team = db.get_team("mi")
    assert team.budget == 9500
    assert db.get_document(TEAMS, "mi")["amount"] == "9500"
    assert team.overseas == 0
    assert team.players == ["rohit"]
    assert result.team.budget == 9500

    sold = db.get_document(PLAYERS, "rohit")
    assert sold["status"] == "SOLD"
    assert sold["sold_price"] == 5.0
    assert sold["sold_to"] == "mi"


def test_overseas_sale_increments_count(db, add_team, add_player):
    add_team("csk", overseas=3)
    player = add_player("conway", is_overseas=True)

    propose(db, player, "csk", 150)

    assert db.get_team("csk").overseas == 4


def test_overseas_limit_blocks_sale(db, add_team, add_player):
    add_team("rcb", amount="10000", overseas=4, players=["a", "b", "c", "d"])
    player = add_player("maxwell", is_overseas=True)
    before = db.get_document(TEAMS, "rcb")

    with pytest.raises(OverseasLimitExceeded):
        propose(db, player, "rcb", 200)

    assert db.get_document(TEAMS, "rcb") == before
    assert db.get_document(PLAYERS, "maxwell")["status"] == "UNSOLD"


def test_domestic_player_ignores_overseas_limit(db, add_team, add_player):
    add_team("rcb", overseas=4)
    player = add_player("kohli")

    propose(db, player, "rcb", 200)

    assert db.get_team("rcb").overseas == 4


def test_insufficient_budget(db, add_team, add_player):
    add_team("kkr", amount="200")
    player = add_player("russell")
    before = db.get_document(TEAMS, "kkr")

    with pytest.raises(InsufficientBudget):
        propose(db, player, "kkr", 500)

    assert db.get_document(TEAMS, "kkr") == before
    assert db.get_document(PLAYERS, "russell")["sold_to"] == ""


def test_exact_budget_is_allowed(db, add_team, add_player):
    add_team("kkr", amount="500")
    player = add_player("narine")

    propose(db, player, "kkr", 500)

    assert db.get_team("kkr").budget == 0


def test_missing_team(db, add_player):
    player = add_player("gill")

    with pytest.raises(TeamNotFound):
        propose(db, player, "gt", 100)

    assert db.get_document(PLAYERS, "gill")["status"] == "UNSOLD"


def test_team_check_comes_before_overseas_check(db, add_player):
    player = add_player("rashid", is_overseas=True)
    with pytest.raises(TeamNotFound):
        propose(db, player, "nope", 100)


def test_overseas_check_comes_before_budget_check(db, add_team, add_player):
    add_team("srh", amount="10", overseas=4)
    player = add_player("head", is_overseas=True)
    with pytest.raises(OverseasLimitExceeded):
        propose(db, player, "srh", 500)


def test_player_cannot_be_sold_twice(db, add_team, add_player):
    add_team("mi")
    add_team("dc")
    player = add_player("bumrah")
    propose(db, player, "mi", 300)
    before = db.get_document(TEAMS, "dc")

    with pytest.raises(PlayerAlreadySold):
        propose(db, player, "dc", 400)

    assert db.get_document(TEAMS, "dc") == before


def test_store_failure_rolls_back_team_update(db, add_team, add_player, monkeypatch):
    add_team("pbks", amount="10000")
    player = add_player("arshdeep")
    before = db.get_document(TEAMS, "pbks")

    original_write = Database._write

    def failing_write(conn, collection, doc_id, data):
        if collection == PLAYERS:
            raise sqlite3.OperationalError("disk I/O error")
        return original_write(conn, collection, doc_id, data)

    monkeypatch.setattr(db, "_write", failing_write)

    with pytest.raises(RemoteUnavailable):
        propose(db, player, "pbks", 500)

    assert db.get_document(TEAMS, "pbks") == before
    assert db.get_document(PLAYERS, "arshdeep")["status"] == "UNSOLD"


def test_hydrated_player_refs_are_normalized(db, add_team, add_player):
    add_team("lsg", players=[{"id": "pooran", "name": "Pooran"}, "players/rahul", "bishnoi"])
    player = add_player("mayers")

    result = propose(db, player, "lsg", 100)

    assert result.team.players == ["pooran", "rahul", "bishnoi", "mayers"]
    assert db.get_document(TEAMS, "lsg")["players"] == result.team.players


def test_unsold_leaves_teams_untouched(db, add_team, add_player):
    add_team("rr")
    player = add_player("buttler", is_overseas=True)
    before = db.get_documents(TEAMS)

    result = asyncio.run(SaleResolver(db).record_unsold(player))

    assert db.get_documents(TEAMS) == before
    assert result.player.status == "UNSOLD"
    doc = db.get_document(PLAYERS, "buttler")
    assert doc["sold_price"] == 0
    assert doc["sold_to"] == ""


def test_concurrent_sales_cannot_overspend(db, add_team, add_player):
    add_team("mi", amount="500")
    add_player("rohit")
    add_player("bumrah")
    barrier = threading.Barrier(2)
    outcomes = {}

    def sell(player_id):
        # separate connection per bidder, same database file
        store = Database(db.db_path)
        barrier.wait()
        try:
            store.commit_sale(player_id, "mi", 400, False, 4)
            outcomes[player_id] = "ok"
        except InsufficientBudget:
            outcomes[player_id] = "InsufficientBudget"

    threads = [threading.Thread(target=sell, args=(pid,)) for pid in ("rohit", "bumrah")]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(outcomes.values()) == ["InsufficientBudget", "ok"]
    team = db.get_team("mi")
    assert team.budget == 100
    assert len(team.players) == 1
    winner = next(pid for pid, outcome in outcomes.items() if outcome == "ok")
    assert team.players == [winner]


def test_write_timestamps_are_utc(db, add_team):
    add_team("mi")
    conn = sqlite3.connect(db.db_path)
    try:
        created_at, updated_at = conn.execute(
            "SELECT created_at, updated_at FROM documents WHERE collection = ? AND id = ?",
            (TEAMS, "mi"),
        ).fetchone()
    finally:
        conn.close()

    for stamp in (created_at, updated_at):
        assert datetime.fromisoformat(stamp).utcoffset().total_seconds() == 0
