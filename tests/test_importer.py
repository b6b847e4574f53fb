import csv

import openpyxl
import pytest

from models import PLAYERS
from utils import FileManager, coerce_value, make_player_id


def write_csv(path, rows):
    with open(path, "w", encoding="utf-8", newline="") as f:
        csv.writer(f).writerows(rows)
    return str(path)


def write_xlsx(path, rows):
    wb = openpyxl.Workbook()
    ws = wb.active
    for row in rows:
        ws.append(row)
    wb.save(path)
    return str(path)


def test_coerce_value_follows_schema():
    assert coerce_value("batting_runs", "1,234") == 1234
    assert coerce_value("batting_runs", "n/a") == 0
    assert coerce_value("batting_runs", "nan") == 0
    assert coerce_value("batting_matches", "inf") == 0
    assert coerce_value("economy", float("nan")) == 0
    assert coerce_value("economy", "7.5") == 7.5
    assert coerce_value("is_overseas", "TRUE") is True
    assert coerce_value("is_overseas", True) is True
    assert coerce_value("is_overseas", "no") is False
    assert coerce_value("role", " Bowler ") == "Bowler"


def test_player_id_from_name_and_year():
    assert make_player_id("Virat  Kohli", 2025) == "virat-kohli-2025"


def test_explicit_mapping_with_defaults(tmp_path):
    path = write_csv(
        tmp_path / "players.csv",
        [
            ["Player Name", "Type", "Foreign", "Price", "Wkts", "Runs Given", "BBI"],
            ["Jasprit Bumrah", "Bowler", "false", "2", "165", "3500", "0"],
        ],
    )
    mapping = FileManager.parse_mapping(
        "Player Name=name, Type=role, Foreign=is_overseas, Price=base_price, "
        "Wkts=wickets, Runs Given=runs_conceded, BBI=best_bowling"
    )

    docs, total = FileManager.load_players_from_sheet(path, mapping)

    assert total == 1
    (player_id, doc), = docs
    assert doc["name"] == "Jasprit Bumrah"
    assert doc["role"] == "Bowler"
    assert doc["is_overseas"] is False
    assert doc["base_price"] == 2.0
    assert doc["status"] == "UNSOLD"
    assert doc["sold_to"] == ""
    assert doc["best_bowling"] == "165/3500"
    assert doc["sixes"] == 0
    assert player_id == f"jasprit-bumrah-{doc['year']}"


def test_auto_mapping_matches_field_names_and_aliases():
    mapping = FileManager.auto_mapping(["Player", "Role", "Overseas", "Base Price", "Notes"])
    assert mapping == {
        "Player": "name",
        "Role": "role",
        "Overseas": "is_overseas",
        "Base Price": "base_price",
    }


def test_parse_mapping_rejects_unknown_field():
    with pytest.raises(ValueError):
        FileManager.parse_mapping("Name=nickname")
    with pytest.raises(ValueError):
        FileManager.parse_mapping("Name")


def test_xlsx_import_skips_nameless_rows_and_header_echo(manager, db, tmp_path):
    path = write_xlsx(
        tmp_path / "players.xlsx",
        [
            ["name", "role", "is_overseas", "base_price", "year"],
            ["name", "role", "is_overseas", "base_price", "year"],
            ["Jos Buttler", "Wicketkeeper", True, 1.5, 2025],
            [None, "Bowler", False, 0.5, 2025],
            ["Shubman Gill", "Batter", False, 0.75, 2025],
        ],
    )

    imported, total = manager.import_players(path)

    assert (imported, total) == (2, 4)
    buttler = db.get_player("jos-buttler-2025")
    assert buttler.is_overseas
    assert buttler.base_price == 150
    assert db.get_player("shubman-gill-2025").base_price == 75
    assert len(db.get_documents(PLAYERS)) == 2


def test_reimport_overwrites_same_player(manager, db, tmp_path):
    rows = [["name", "base_price", "year"], ["Jos Buttler", 1.5, 2025]]
    manager.import_players(write_xlsx(tmp_path / "a.xlsx", rows))
    rows[1][1] = 2
    manager.import_players(write_xlsx(tmp_path / "b.xlsx", rows))

    assert len(db.get_documents(PLAYERS)) == 1
    assert db.get_player("jos-buttler-2025").base_price == 200


def test_missing_file(manager, tmp_path):
    with pytest.raises(FileNotFoundError):
        manager.import_players(str(tmp_path / "nope.xlsx"))


def test_nan_cells_import_as_zero(manager, db, tmp_path):
    path = write_csv(
        tmp_path / "players.csv",
        [
            ["name", "batting_runs", "year"],
            ["Good", "10", "2025"],
            ["Bad", "nan", "2025"],
            ["Also Good", "5", "2025"],
        ],
    )

    assert manager.import_players(path) == (3, 3)
    assert db.get_document(PLAYERS, "bad-2025")["batting_runs"] == 0
    assert db.get_document(PLAYERS, "also-good-2025")["batting_runs"] == 5


def test_bad_row_is_skipped_not_fatal(manager, db, tmp_path, monkeypatch):
    path = write_csv(
        tmp_path / "players.csv",
        [["name", "year"], ["Good", "2025"], ["Bad", "2025"], ["Also Good", "2025"]],
    )
    build = FileManager.build_player_document

    def failing_build(row, mapping):
        if row.get("name") == "Bad":
            raise ValueError("unreadable row")
        return build(row, mapping)

    monkeypatch.setattr(FileManager, "build_player_document", staticmethod(failing_build))

    assert manager.import_players(path) == (2, 3)
    assert db.get_document(PLAYERS, "bad-2025") is None
