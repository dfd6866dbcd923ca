import sqlite3
import threading
from pathlib import Path
from typing import Dict, List

from closet.utils.logger import get_logger

logger = get_logger("storage.sqlite")


class SQLiteAdapter:
    """
    SQLite backend for per-user preferences.

    Provides:
    1. Wishlists: set of product ids per user, in insertion order.
    2. Search history: ordered queries per user, position 0 = most recent.
    """

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._conn_local = threading.local()

        if not db_path.parent.exists():
            db_path.parent.mkdir(parents=True, exist_ok=True)

        self._init_schema()

    def _get_conn(self) -> sqlite3.Connection:
        """Get or create connection for current thread."""
        if not hasattr(self._conn_local, "conn"):
            self._conn_local.conn = sqlite3.connect(
                self.db_path,
                timeout=30.0,
                check_same_thread=False
            )
            self._conn_local.conn.row_factory = sqlite3.Row
            self._conn_local.conn.execute("PRAGMA journal_mode=WAL;")
            self._conn_local.conn.execute("PRAGMA synchronous=NORMAL;")
        return self._conn_local.conn

    def close(self):
        """Close the connection of the current thread."""
        conn = getattr(self._conn_local, "conn", None)
        if conn is not None:
            conn.close()
            del self._conn_local.conn

    def _init_schema(self):
        """Initialize database schema."""
        conn = self._get_conn()
        with conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS wishlist (
                    user_id TEXT NOT NULL,
                    product_id TEXT NOT NULL,
                    seq INTEGER NOT NULL,
                    PRIMARY KEY (user_id, product_id)
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_wishlist_product ON wishlist(product_id);")

            conn.execute("""
                CREATE TABLE IF NOT EXISTS search_history (
                    user_id TEXT NOT NULL,
                    position INTEGER NOT NULL,
                    query TEXT NOT NULL,
                    PRIMARY KEY (user_id, position)
                )
            """)

    # =========================================================================
    # Wishlist Operations
    # =========================================================================

    def add_wishlist_item(self, user_id: str, product_id: str):
        """Add a product; existing entries keep their position."""
        conn = self._get_conn()
        with conn:
            conn.execute(
                """
                INSERT OR IGNORE INTO wishlist (user_id, product_id, seq)
                VALUES (?, ?, (SELECT COALESCE(MAX(seq), 0) + 1 FROM wishlist WHERE user_id = ?))
                """,
                (user_id, product_id, user_id)
            )

    def remove_wishlist_item(self, user_id: str, product_id: str):
        conn = self._get_conn()
        with conn:
            conn.execute(
                "DELETE FROM wishlist WHERE user_id = ? AND product_id = ?",
                (user_id, product_id)
            )

    def get_wishlist(self, user_id: str) -> List[str]:
        """Product ids of a user's wishlist in insertion order."""
        conn = self._get_conn()
        cursor = conn.execute(
            "SELECT product_id FROM wishlist WHERE user_id = ? ORDER BY seq ASC",
            (user_id,)
        )
        return [row['product_id'] for row in cursor]

    def get_wishlist_counts(self) -> Dict[str, int]:
        """Number of distinct users wishlisting each product."""
        conn = self._get_conn()
        cursor = conn.execute(
            "SELECT product_id, COUNT(DISTINCT user_id) AS cnt FROM wishlist GROUP BY product_id"
        )
        return {row['product_id']: row['cnt'] for row in cursor}

    # =========================================================================
    # Search History Operations
    # =========================================================================

    def get_search_history(self, user_id: str) -> List[str]:
        """Queries of a user, most recent first."""
        conn = self._get_conn()
        cursor = conn.execute(
            "SELECT query FROM search_history WHERE user_id = ? ORDER BY position ASC",
            (user_id,)
        )
        return [row['query'] for row in cursor]

    def replace_search_history(self, user_id: str, queries: List[str]):
        """Atomically replace a user's history."""
        conn = self._get_conn()
        with conn:
            conn.execute("DELETE FROM search_history WHERE user_id = ?", (user_id,))
            conn.executemany(
                "INSERT INTO search_history (user_id, position, query) VALUES (?, ?, ?)",
                [(user_id, i, q) for i, q in enumerate(queries)]
            )

    def clear_search_history(self, user_id: str):
        conn = self._get_conn()
        with conn:
            conn.execute("DELETE FROM search_history WHERE user_id = ?", (user_id,))
