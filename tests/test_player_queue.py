import pytest

from auction_manager import PlayerQueue
from exceptions import EmptyQueue
from models import Player


def make_players(*specs):
    return [Player(id=name.lower(), name=name, role=role) for name, role in specs]


def test_orders_by_role_then_name():
    queue = PlayerQueue(
        make_players(
            ("Zed", "Wicketkeeper"),
            ("Moe", "Coach"),
            ("Bob", "Bowler"),
            ("Amy", "All-Rounder"),
            ("Yan", "Batter"),
            ("Abe", "Batter"),
            ("Cal", ""),
        )
    )

    assert [p.name for p in queue.players] == [
        "Abe",
        "Yan",
        "Bob",
        "Amy",
        "Zed",
        "Cal",
        "Moe",
    ]
    assert queue.current.name == "Abe"


def test_name_order_ignores_case():
    queue = PlayerQueue(make_players(("Zed", "Batter"), ("abe", "Batter"), ("Bob", "Batter")))

    assert [p.name for p in queue.players] == ["abe", "Bob", "Zed"]


@pytest.mark.parametrize("length", [1, 2, 5])
def test_forward_cycle_returns_to_start(length):
    queue = PlayerQueue(make_players(*[(f"P{i}", "Batter") for i in range(length)]))
    for start in range(length):
        queue.index = start
        for _ in range(length):
            queue.advance(1)
        assert queue.index == start


def test_backward_is_inverse_of_forward():
    queue = PlayerQueue(make_players(("A", "Batter"), ("B", "Batter"), ("C", "Batter")))
    for start in range(3):
        queue.index = start
        queue.advance(1)
        queue.advance(-1)
        assert queue.index == start


def test_wraps_in_both_directions():
    queue = PlayerQueue(make_players(("A", "Batter"), ("B", "Batter"), ("C", "Batter")))

    assert queue.advance(-1) == 2
    assert queue.advance(1) == 0


def test_empty_queue():
    queue = PlayerQueue()
    assert queue.is_empty
    assert queue.current is None
    with pytest.raises(EmptyQueue):
        queue.advance(1)


def test_rejects_bad_direction():
    queue = PlayerQueue(make_players(("A", "Batter")))
    with pytest.raises(ValueError):
        queue.advance(2)
