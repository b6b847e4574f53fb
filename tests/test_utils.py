import pytest

from database import normalize_refs
from models import Player, Team, crore_to_lakh, lakh_to_crore, parse_lakh
from utils import MessageFormatter, TeamStats, format_price


@pytest.mark.parametrize(
    "lakh, text",
    [
        (0, "0.00 Lakh"),
        (20, "20.00 Lakh"),
        (85, "85.00 Lakh"),
        (100, "1.00 Cr"),
        (110, "1.10 Cr"),
        (9500, "95.00 Cr"),
    ],
)
def test_format_price(lakh, text):
    assert format_price(lakh) == text


def test_crore_lakh_conversion():
    assert crore_to_lakh(0.1) == 10
    assert crore_to_lakh("0.85") == 85
    assert crore_to_lakh(None) == 0
    assert crore_to_lakh("abc") == 0
    assert lakh_to_crore(110) == 1.1
    assert parse_lakh("9500.0") == 9500


def test_normalize_refs():
    refs = ["a", "players/b", {"id": "c", "name": "C"}, {"name": "no id"}, None, ""]
    assert normalize_refs(refs) == ["a", "b", "c"]
    assert normalize_refs(None) == []


def test_team_short_name_default():
    assert Team(id="t", name="Mumbai Indians", budget=0).short_name == "MUM"
    assert Team(id="t", name="Mumbai", budget=0, short_name="MI").short_name == "MI"


def test_sold_message_names_team_and_price():
    player = Player(id="p", name="Rashid Khan", is_overseas=True)
    team = Team(id="gt", name="Gujarat Titans", budget=5000)

    msg = MessageFormatter.format_sold_message(player, team, 1500)

    assert "SOLD" in msg
    assert "Gujarat Titans" in msg
    assert "15.00 Cr" in msg
    assert "✈️" in msg


def test_team_summary():
    team = Team(id="mi", name="Mumbai", budget=9500, number=1, overseas=1)
    msg = MessageFormatter.format_team_summary([TeamStats(team, 2, 500, 1, 10)], 4)

    assert "Mumbai" in msg
    assert "95.00 Cr" in msg
    assert "1/4" in msg
    assert MessageFormatter.format_team_summary([], 4) == "No teams created yet."
