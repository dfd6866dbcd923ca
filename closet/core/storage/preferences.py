from pathlib import Path
from typing import Dict, List, Optional

from closet.core.storage.sqlite_adapter import SQLiteAdapter
from closet.utils.logger import get_logger

logger = get_logger("storage.preferences")

DEFAULT_HISTORY_LIMIT = 5


class PreferenceStore:
    """
    Persists per-user browsing preferences across sessions.

    Handles:
    - Wishlists (set of product ids, keyed by user id)
    - Search history (bounded, most recent first, case-insensitive dedup)
    - Wishlist popularity counts for ranking

    Anonymous viewers (user_id None) have no stored preferences; writes
    for them are ignored.
    """

    def __init__(
        self,
        data_dir: Path,
        db_name: str = "preferences.db",
        history_limit: int = DEFAULT_HISTORY_LIMIT,
    ):
        self.data_dir = data_dir
        self.db_path = data_dir / db_name
        self.history_limit = history_limit
        self.adapter = SQLiteAdapter(self.db_path)

        logger.info(f"PreferenceStore initialized at {self.db_path}")

    @classmethod
    def from_config(cls, config) -> "PreferenceStore":
        """Open the store under config.data_dir with its search history limit."""
        config.data_dir.mkdir(exist_ok=True, parents=True)
        return cls(config.data_dir, history_limit=config.search_history_limit)

    def close(self):
        self.adapter.close()

    # =========================================================================
    # Wishlist
    # =========================================================================

    def add_to_wishlist(self, user_id: Optional[str], product_id: str) -> List[str]:
        """Add a product to the wishlist. Returns the updated wishlist."""
        if user_id is None:
            return []
        self.adapter.add_wishlist_item(user_id, product_id)
        return self.adapter.get_wishlist(user_id)

    def remove_from_wishlist(self, user_id: Optional[str], product_id: str) -> List[str]:
        if user_id is None:
            return []
        self.adapter.remove_wishlist_item(user_id, product_id)
        return self.adapter.get_wishlist(user_id)

    def wishlist(self, user_id: Optional[str]) -> List[str]:
        if user_id is None:
            return []
        return self.adapter.get_wishlist(user_id)

    def wishlist_counts(self) -> Dict[str, int]:
        """Distinct users per wishlisted product id."""
        return self.adapter.get_wishlist_counts()

    def wishlist_count(self, product_id: str) -> int:
        return self.wishlist_counts().get(product_id, 0)

    # =========================================================================
    # Search History
    # =========================================================================

    def record_search(self, user_id: Optional[str], query: str) -> List[str]:
        """
        Push a query to the front of the user's history.

        Earlier entries equal to the query ignoring case are dropped and
        the history is cut to ``history_limit`` entries.

        Returns:
            Updated history, most recent first
        """
        if user_id is None:
            return []
        query = query.strip()
        if not query:
            return self.adapter.get_search_history(user_id)

        previous = self.adapter.get_search_history(user_id)
        history = [query] + [h for h in previous if h.lower() != query.lower()]
        history = history[:self.history_limit]

        self.adapter.replace_search_history(user_id, history)
        return history

    def search_history(self, user_id: Optional[str]) -> List[str]:
        if user_id is None:
            return []
        return self.adapter.get_search_history(user_id)

    def clear_search_history(self, user_id: Optional[str]):
        if user_id is None:
            return
        self.adapter.clear_search_history(user_id)
