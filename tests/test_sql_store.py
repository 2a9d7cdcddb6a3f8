from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone

import pytest

from statement_importer.models import Category
from statement_importer.stores.sql_store import SqlRuleStore


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite:///{tmp_path / 'rules.db'}"

@pytest.fixture
def store(database_url):
    return SqlRuleStore(database_url)

def test_upsert_creates_then_updates(store):
    first = store.upsert("STARBUCKS", "Starbucks", Category(id="c", name="Coffee"), "ws")
    second = store.upsert("STARBUCKS", "Starbucks Coffee", None, "ws")

    rules = store.fetch_all("ws")
    assert list(rules) == ["STARBUCKS"]
    assert rules["STARBUCKS"].preferred_name == "Starbucks Coffee"
    assert rules["STARBUCKS"].preferred_category is None
    assert second.updated_at >= first.updated_at

def test_category_reference_round_trips(store):
    store.upsert("COSTCO", None, Category(id="g-1", name="Groceries"), "ws")
    rule = store.get("ws", "COSTCO")
    assert rule.preferred_category == Category(id="g-1", name="Groceries")
    assert rule.preferred_name is None

def test_timestamps_are_timezone_aware(store):
    rule = store.upsert("SHELL", "Shell", None, "ws")
    assert rule.updated_at.tzinfo is not None
    assert store.get("ws", "SHELL").updated_at <= datetime.now(timezone.utc)

def test_blank_key_is_a_silent_noop(store):
    assert store.upsert("   ", "Name", None, "ws") is None
    assert store.fetch_all("ws") == {}
    assert store.get("ws", " ") is None

def test_workspaces_are_isolated(store):
    store.upsert("TARGET", "Target", None, "ws-a")
    store.upsert("TARGET", "Target (B)", None, "ws-b")
    assert store.get("ws-a", "TARGET").preferred_name == "Target"
    assert store.get("ws-b", "TARGET").preferred_name == "Target (B)"

def test_rules_survive_a_new_store(database_url):
    SqlRuleStore(database_url).upsert("COSTCO", "Costco", None, "ws")
    assert SqlRuleStore(database_url).get("ws", "COSTCO").preferred_name == "Costco"

def test_missing_database_url():
    with pytest.raises(RuntimeError):
        SqlRuleStore(None)

def test_concurrent_upserts_on_one_key_create_one_rule(store):
    names = [f"Name {i}" for i in range(16)]
    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(lambda name: store.upsert("TARGET", name, None, "ws"), names))

    rules = store.fetch_all("ws")
    assert list(rules) == ["TARGET"]
    assert rules["TARGET"].preferred_name in names
