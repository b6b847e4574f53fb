# database.py
"""
Database Module - SQLite document store
Keeps the players and teams collections as JSON documents and runs the
sale / unsold commits as single transactions.
"""

import sqlite3
import json
import logging
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple
from contextlib import contextmanager

from exceptions import (
    AuctionError,
    InsufficientBudget,
    OverseasLimitExceeded,
    PlayerAlreadySold,
    PlayerNotFound,
    RemoteUnavailable,
    TeamNotFound,
)
from models import (
    PLAYERS,
    STATUS_SOLD,
    STATUS_UNSOLD,
    TEAMS,
    Player,
    Team,
    lakh_to_crore,
)

logger = logging.getLogger("AuctionBot.Database")

_FIELD_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def normalize_refs(refs: Optional[Iterable[Any]], collection: str = PLAYERS) -> List[str]:
    """Reduce stored references to plain document ids.

    A reference may be a bare id, a "<collection>/<id>" path or an already
    hydrated document ({"id": ...}). Anything else is dropped.
    """
    ids: List[str] = []
    prefix = f"{collection}/"
    for ref in refs or []:
        if isinstance(ref, dict):
            ref = ref.get("id")
        if not isinstance(ref, str) or not ref:
            continue
        if ref.startswith(prefix):
            ref = ref[len(prefix):]
        ids.append(ref)
    return ids


class Database:
    """SQLite document store for players and teams"""

    def __init__(self, db_path: str = "auction.db"):
        self.db_path = db_path
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection with row factory and timeout"""
        conn = sqlite3.connect(self.db_path, timeout=30.0, isolation_level=None)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _transaction(self, operation: str, immediate: bool = False):
        """Context manager for database transactions.

        ``immediate`` takes the write lock up front so everything read inside
        the block stays valid until commit.
        """
        try:
            conn = self._get_connection()
        except sqlite3.Error as e:
            logger.error(f"Could not open store for {operation}: {e}")
            raise RemoteUnavailable(operation, e) from e
        try:
            conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
            yield conn
            conn.commit()
        except AuctionError:
            conn.rollback()
            raise
        except sqlite3.Error as e:
            conn.rollback()
            logger.error(f"Store error during {operation}: {e}")
            raise RemoteUnavailable(operation, e) from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self):
        """Initialize database tables"""
        conn = self._get_connection()
        try:
            # Enable WAL mode for better concurrency
            conn.execute("PRAGMA journal_mode=WAL")
        finally:
            conn.close()

        with self._transaction("init") as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS documents (
                    collection TEXT NOT NULL,
                    id TEXT NOT NULL,
                    data TEXT NOT NULL,
                    version INTEGER NOT NULL DEFAULT 1,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    PRIMARY KEY (collection, id)
                )
            """
            )

    # ==================== LOW-LEVEL DOCUMENT HELPERS ====================

    @staticmethod
    def _row_to_document(row: sqlite3.Row) -> Dict[str, Any]:
        doc = json.loads(row["data"])
        doc["id"] = row["id"]
        doc["version"] = row["version"]
        return doc

    @staticmethod
    def _read(conn, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        row = conn.execute(
            "SELECT id, data, version FROM documents WHERE collection = ? AND id = ?",
            (collection, doc_id),
        ).fetchone()
        return Database._row_to_document(row) if row else None

    @staticmethod
    def _write(conn, collection: str, doc_id: str, data: Dict[str, Any]) -> int:
        body = {k: v for k, v in data.items() if k not in ("id", "version")}
        cursor = conn.execute(
            """UPDATE documents SET data = ?, version = version + 1, updated_at = ?
               WHERE collection = ? AND id = ?""",
            (json.dumps(body), datetime.now(timezone.utc).isoformat(), collection, doc_id),
        )
        return cursor.rowcount

    # ==================== DOCUMENT OPERATIONS ====================

    def get_document(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        with self._transaction(f"read {collection}/{doc_id}") as conn:
            return self._read(conn, collection, doc_id)

    def get_documents(
        self, collection: str, filter_dict: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        """Query a collection, optionally with field == value filters"""
        sql = "SELECT id, data, version FROM documents WHERE collection = ?"
        params: List[Any] = [collection]
        for key, value in (filter_dict or {}).items():
            if not _FIELD_NAME.match(key):
                raise ValueError(f"Invalid field name: {key}")
            sql += f" AND json_extract(data, '$.{key}') = ?"
            params.append(value)
        sql += " ORDER BY created_at, id"

        with self._transaction(f"query {collection}") as conn:
            rows = conn.execute(sql, params).fetchall()
            return [self._row_to_document(row) for row in rows]

    def set_document(self, collection: str, doc_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Create or overwrite a document under a known id"""
        body = {k: v for k, v in data.items() if k not in ("id", "version")}
        now = datetime.now(timezone.utc).isoformat()
        with self._transaction(f"write {collection}/{doc_id}") as conn:
            conn.execute(
                """INSERT INTO documents (collection, id, data, version, created_at, updated_at)
                   VALUES (?, ?, ?, 1, ?, ?)
                   ON CONFLICT(collection, id) DO UPDATE SET
                       data = excluded.data,
                       version = version + 1,
                       updated_at = excluded.updated_at""",
                (collection, doc_id, json.dumps(body), now, now),
            )
            return self._read(conn, collection, doc_id)

    def add_document(self, collection: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Create a document under a generated id"""
        return self.set_document(collection, uuid.uuid4().hex, data)

    def update_document(
        self, collection: str, doc_id: str, fields: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        """Field-level update; returns None when the document doesn't exist"""
        with self._transaction(f"update {collection}/{doc_id}") as conn:
            doc = self._read(conn, collection, doc_id)
            if doc is None:
                return None
            doc.update(fields)
            self._write(conn, collection, doc_id, doc)
            return self._read(conn, collection, doc_id)

    def delete_document(self, collection: str, doc_id: str) -> bool:
        with self._transaction(f"delete {collection}/{doc_id}") as conn:
            cursor = conn.execute(
                "DELETE FROM documents WHERE collection = ? AND id = ?",
                (collection, doc_id),
            )
            return cursor.rowcount > 0

    # ==================== TYPED READS ====================

    @staticmethod
    def _team_from_document(doc: Dict[str, Any]) -> Team:
        data = dict(doc)
        data["players"] = normalize_refs(doc.get("players"))
        return Team.from_document(doc["id"], data)

    def get_team(self, team_id: str) -> Optional[Team]:
        doc = self.get_document(TEAMS, team_id)
        return self._team_from_document(doc) if doc else None

    def get_teams(self) -> List[Team]:
        return [self._team_from_document(doc) for doc in self.get_documents(TEAMS)]

    def get_player(self, player_id: str) -> Optional[Player]:
        doc = self.get_document(PLAYERS, player_id)
        return Player.from_document(doc["id"], doc) if doc else None

    def get_players(self, status: Optional[str] = None) -> List[Player]:
        filter_dict = {"status": status} if status else None
        return [
            Player.from_document(doc["id"], doc)
            for doc in self.get_documents(PLAYERS, filter_dict)
        ]

    # ==================== ATOMIC SALE OPERATIONS ====================

    def commit_sale(
        self,
        player_id: str,
        team_id: str,
        price: int,
        is_overseas: bool,
        max_overseas: int,
    ) -> Tuple[Team, Player]:
        """Validate and apply a sale in one write transaction.

        Checks run in order: team exists, overseas quota, budget, player
        exists and is unsold. The team document is written before the player
        document; a failure anywhere rolls both back.
        """
        with self._transaction(f"sale {player_id} -> {team_id}", immediate=True) as conn:
            team_doc = self._read(conn, TEAMS, team_id)
            if team_doc is None:
                raise TeamNotFound(team_id)
            team = self._team_from_document(team_doc)

            if is_overseas and team.overseas >= max_overseas:
                raise OverseasLimitExceeded(team.name, max_overseas)

            if team.budget < price:
                raise InsufficientBudget(team.name, team.budget, price)

            player_doc = self._read(conn, PLAYERS, player_id)
            if player_doc is None:
                raise PlayerNotFound(player_id)
            if player_doc.get("status") == STATUS_SOLD:
                raise PlayerAlreadySold(
                    player_doc.get("name") or player_id, player_doc.get("sold_to", "")
                )

            team.budget -= price
            team.players.append(player_id)
            if is_overseas:
                team.overseas += 1
            self._write(conn, TEAMS, team_id, {**team_doc, **team.to_document()})

            player_doc.update(
                status=STATUS_SOLD,
                sold_price=lakh_to_crore(price),
                sold_to=team_id,
            )
            self._write(conn, PLAYERS, player_id, player_doc)

            return team, Player.from_document(player_id, player_doc)

    def record_unsold(self, player_id: str) -> Player:
        with self._transaction(f"unsold {player_id}", immediate=True) as conn:
            player_doc = self._read(conn, PLAYERS, player_id)
            if player_doc is None:
                raise PlayerNotFound(player_id)
            if player_doc.get("status") == STATUS_SOLD:
                raise PlayerAlreadySold(
                    player_doc.get("name") or player_id, player_doc.get("sold_to", "")
                )

            player_doc.update(status=STATUS_UNSOLD, sold_price=0, sold_to="")
            self._write(conn, PLAYERS, player_id, player_doc)
            return Player.from_document(player_id, player_doc)
