import sqlite3
import json
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import List, Optional, Iterator

import numpy as np

from ..store import Idea, IdeaStatus, Theme, GraphEdge, StoreError, encode_vector, decode_vector


def _iso(value: datetime) -> str:
    return value.isoformat(timespec="microseconds")


def _dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class SqliteStore:
    """
    Durable idea store on a single SQLite connection.

    Writes commit immediately unless they run inside transaction(), in which
    case the whole group commits (or rolls back) together.
    """

    def __init__(self, path: str):
        self.path = path
        self.conn = sqlite3.connect(path, check_same_thread=False)
        self._lock = threading.RLock()
        self._depth = 0
        self._init_schema()

    def _init_schema(self):
        with self.conn:
            self.conn.execute("""
                CREATE TABLE IF NOT EXISTS ideas (
                    idea_id TEXT PRIMARY KEY,
                    content TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    keywords TEXT,
                    theme_tags TEXT,
                    status TEXT,
                    vector TEXT,
                    embedding BLOB,
                    has_reminder INTEGER DEFAULT 0
                )
            """)
            self.conn.execute("CREATE INDEX IF NOT EXISTS idx_ideas_created ON ideas(created_at)")
            self.conn.execute("""
                CREATE TABLE IF NOT EXISTS themes (
                    name TEXT PRIMARY KEY,
                    total_frequency INTEGER,
                    weekly_frequency INTEGER,
                    last_emerging_date TEXT
                )
            """)
            self.conn.execute("""
                CREATE TABLE IF NOT EXISTS edges (
                    edge_id TEXT PRIMARY KEY,
                    source_id TEXT NOT NULL,
                    target_id TEXT NOT NULL,
                    score REAL
                )
            """)
            self.conn.execute("CREATE INDEX IF NOT EXISTS idx_edges_source ON edges(source_id)")
            self.conn.execute("CREATE INDEX IF NOT EXISTS idx_edges_target ON edges(target_id)")

    # --- Transactions ---
    @contextmanager
    def transaction(self) -> Iterator["SqliteStore"]:
        with self._lock:
            if self._depth > 0:
                # Nested groups roll back on their own without aborting the outer one
                savepoint = f"sp_{self._depth}"
                self._depth += 1
                try:
                    self.conn.execute(f"SAVEPOINT {savepoint}")
                    try:
                        yield self
                    except BaseException:
                        self.conn.execute(f"ROLLBACK TO {savepoint}")
                        self.conn.execute(f"RELEASE {savepoint}")
                        raise
                    self.conn.execute(f"RELEASE {savepoint}")
                finally:
                    self._depth -= 1
                return
            try:
                self.conn.execute("BEGIN")
            except sqlite3.ProgrammingError as e:
                raise StoreError(str(e)) from e
            self._depth = 1
            try:
                with self.conn:
                    yield self
            finally:
                self._depth = 0

    def _write(self, sql: str, params: tuple = ()):
        with self._lock:
            if self._depth > 0:
                return self.conn.execute(sql, params)
            with self.conn:
                return self.conn.execute(sql, params)

    def _query(self, sql: str, params: tuple = ()) -> list:
        with self._lock:
            try:
                return self.conn.execute(sql, params).fetchall()
            except sqlite3.ProgrammingError as e:
                raise StoreError(str(e)) from e

    # --- Row mapping ---
    _IDEA_COLUMNS = "idea_id, content, created_at, keywords, theme_tags, status, vector, embedding, has_reminder"

    @staticmethod
    def _row_to_idea(row) -> Idea:
        idea_id, content, created_at, keywords, theme_tags, status, vector, emb_blob, has_reminder = row
        embedding = np.frombuffer(emb_blob, dtype=np.float32).copy() if emb_blob else None
        return Idea(
            idea_id=idea_id,
            content=content,
            created_at=datetime.fromisoformat(created_at),
            keywords=json.loads(keywords) if keywords else [],
            theme_tags=json.loads(theme_tags) if theme_tags else [],
            status=IdeaStatus(status or IdeaStatus.ACTIVE.value),
            vector=decode_vector(vector),
            embedding=embedding,
            has_reminder=bool(has_reminder),
        )

    @staticmethod
    def _idea_params(idea: Idea) -> tuple:
        emb_bytes = idea.embedding.astype(np.float32).tobytes() if idea.embedding is not None else None
        return (
            idea.idea_id,
            idea.content,
            _iso(idea.created_at),
            json.dumps(idea.keywords),
            json.dumps(idea.theme_tags),
            idea.status.value,
            encode_vector(idea.vector),
            emb_bytes,
            int(idea.has_reminder),
        )

    # --- Idea operations ---
    def insert_idea(self, idea: Idea) -> Idea:
        self._write(
            f"INSERT OR REPLACE INTO ideas ({self._IDEA_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            self._idea_params(idea),
        )
        return idea

    def get_idea(self, idea_id: str) -> Optional[Idea]:
        rows = self._query(f"SELECT {self._IDEA_COLUMNS} FROM ideas WHERE idea_id = ?", (idea_id,))
        return self._row_to_idea(rows[0]) if rows else None

    def update_idea(self, idea: Idea):
        with self._lock:
            if not self._query("SELECT 1 FROM ideas WHERE idea_id = ?", (idea.idea_id,)):
                raise StoreError(f"Unknown idea: {idea.idea_id}")
            self.insert_idea(idea)

    def delete_idea(self, idea_id: str) -> bool:
        with self.transaction():
            cur = self._write("DELETE FROM ideas WHERE idea_id = ?", (idea_id,))
            deleted = cur.rowcount > 0
            self._write("DELETE FROM edges WHERE source_id = ? OR target_id = ?", (idea_id, idea_id))
        return deleted

    def all_ideas(self) -> List[Idea]:
        rows = self._query(f"SELECT {self._IDEA_COLUMNS} FROM ideas ORDER BY created_at ASC")
        return [self._row_to_idea(r) for r in rows]

    def count_ideas(self) -> int:
        return self._query("SELECT COUNT(*) FROM ideas")[0][0]

    def recent_ideas(
        self,
        limit: int,
        exclude_id: Optional[str] = None,
        before: Optional[datetime] = None,
    ) -> List[Idea]:
        sql = f"SELECT {self._IDEA_COLUMNS} FROM ideas WHERE idea_id != ?"
        params: list = [exclude_id or ""]
        if before is not None:
            sql += " AND created_at < ?"
            params.append(_iso(before))
        sql += " ORDER BY created_at DESC LIMIT ?"
        params.append(limit)
        return [self._row_to_idea(r) for r in self._query(sql, tuple(params))]

    def ideas_with_tag(self, tag: str) -> List[Idea]:
        needle = tag.lower()
        return [i for i in self.all_ideas() if any(t.lower() == needle for t in i.theme_tags)]

    def ideas_created_between(self, start: datetime, end: datetime) -> List[Idea]:
        rows = self._query(
            f"SELECT {self._IDEA_COLUMNS} FROM ideas WHERE created_at >= ? AND created_at < ? ORDER BY created_at ASC",
            (_iso(start), _iso(end)),
        )
        return [self._row_to_idea(r) for r in rows]

    # --- Theme operations ---
    def get_theme(self, name: str) -> Optional[Theme]:
        rows = self._query(
            "SELECT name, total_frequency, weekly_frequency, last_emerging_date FROM themes WHERE name = ?",
            (name,),
        )
        if not rows:
            return None
        name, total, weekly, last = rows[0]
        return Theme(name, total, weekly, _dt(last))

    def all_themes(self) -> List[Theme]:
        rows = self._query("SELECT name, total_frequency, weekly_frequency, last_emerging_date FROM themes")
        return [Theme(name, total, weekly, _dt(last)) for name, total, weekly, last in rows]

    def upsert_theme(self, theme: Theme):
        last = theme.last_emerging_date.isoformat() if theme.last_emerging_date else None
        self._write(
            "INSERT OR REPLACE INTO themes (name, total_frequency, weekly_frequency, last_emerging_date) "
            "VALUES (?, ?, ?, ?)",
            (theme.name, theme.total_frequency, theme.weekly_frequency, last),
        )

    def clear_themes(self):
        self._write("DELETE FROM themes")

    # --- Edge operations ---
    def add_edge(self, edge: GraphEdge):
        self._write(
            "INSERT OR REPLACE INTO edges (edge_id, source_id, target_id, score) VALUES (?, ?, ?, ?)",
            (edge.edge_id, edge.source_id, edge.target_id, float(edge.score)),
        )

    def all_edges(self) -> List[GraphEdge]:
        rows = self._query("SELECT source_id, target_id, score, edge_id FROM edges")
        return [GraphEdge(*r) for r in rows]

    def edges_for(self, idea_id: str) -> List[GraphEdge]:
        rows = self._query(
            "SELECT source_id, target_id, score, edge_id FROM edges WHERE source_id = ? OR target_id = ?",
            (idea_id, idea_id),
        )
        return [GraphEdge(*r) for r in rows]

    def clear_edges(self):
        self._write("DELETE FROM edges")

    def close(self):
        self.conn.close()
