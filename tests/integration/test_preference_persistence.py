import pytest

from closet.core.storage import PreferenceStore


@pytest.fixture
def prefs_dir(tmp_path):
    """Create a temporary directory for preference data."""
    data_dir = tmp_path / "prefs"
    data_dir.mkdir()
    return data_dir


def test_wishlist_survives_restart(prefs_dir):
    """Wishlists are restored when the store is reopened."""
    # 1. First session
    prefs_a = PreferenceStore(prefs_dir)
    prefs_a.add_to_wishlist("alice", "prod-3")
    prefs_a.add_to_wishlist("alice", "prod-1")
    prefs_a.add_to_wishlist("alice", "prod-3")  # already present
    prefs_a.add_to_wishlist("bob", "prod-1")
    prefs_a.close()

    # 2. Second session on the same database
    prefs_b = PreferenceStore(prefs_dir)
    assert prefs_b.wishlist("alice") == ["prod-3", "prod-1"]
    assert prefs_b.wishlist_counts() == {"prod-3": 1, "prod-1": 2}
    assert prefs_b.wishlist_count("prod-1") == 2
    assert prefs_b.wishlist_count("prod-9") == 0

    assert prefs_b.remove_from_wishlist("alice", "prod-3") == ["prod-1"]
    prefs_b.close()


def test_search_history_bounded_and_deduplicated(prefs_dir):
    """History keeps the five most recent distinct queries, newest first."""
    prefs = PreferenceStore(prefs_dir)
    for query in ["boots", "denim", "scarf", "coat", "dress", "BOOTS", "  "]:
        prefs.record_search("alice", query)
    prefs.close()

    reopened = PreferenceStore(prefs_dir)
    assert reopened.search_history("alice") == ["BOOTS", "dress", "coat", "scarf", "denim"]

    reopened.clear_search_history("alice")
    assert reopened.search_history("alice") == []
    reopened.close()


def test_custom_history_limit(prefs_dir):
    prefs = PreferenceStore(prefs_dir, history_limit=2)
    for query in ["a", "b", "c"]:
        prefs.record_search("alice", query)
    assert prefs.search_history("alice") == ["c", "b"]
    prefs.close()


def test_anonymous_viewer_has_no_preferences(prefs_dir):
    """Writes for an anonymous viewer are ignored."""
    prefs = PreferenceStore(prefs_dir)
    assert prefs.add_to_wishlist(None, "prod-1") == []
    assert prefs.record_search(None, "boots") == []
    assert prefs.wishlist(None) == []
    assert prefs.search_history(None) == []
    assert prefs.wishlist_counts() == {}
    prefs.close()


def test_users_are_isolated(prefs_dir):
    prefs = PreferenceStore(prefs_dir)
    prefs.record_search("alice", "boots")
    prefs.add_to_wishlist("alice", "prod-1")

    assert prefs.search_history("bob") == []
    assert prefs.wishlist("bob") == []
    prefs.close()


def test_history_limit_from_environment(prefs_dir, monkeypatch, tmp_path):
    """CLOSET_DATA_DIR and CLOSET_SEARCH_HISTORY_LIMIT reach the store."""
    from closet.core.config import load_config

    monkeypatch.setenv("CLOSET_DATA_DIR", str(prefs_dir / "env"))
    monkeypatch.setenv("CLOSET_SEARCH_HISTORY_LIMIT", "2")
    cfg = load_config(str(tmp_path / "missing.env"))

    prefs = PreferenceStore.from_config(cfg)
    for query in ["a", "b", "c"]:
        prefs.record_search("alice", query)
    assert prefs.search_history("alice") == ["c", "b"]
    assert prefs.db_path == prefs_dir / "env" / "preferences.db"
    prefs.close()
