from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient

from statement_importer.engine import ImportMatchingEngine
from statement_importer.main import app
from statement_importer.models import Category
from statement_importer.stores.json_store import JsonRuleStore

client = TestClient(app)

CSV_TEXT = (
    "Date,Description,Amount,Category\n"
    "2024-01-02,POS STARBUCKS #1234,4.50,Coffee\n"
    "2024-01-03,Corner Grocer,12.00,\n"
    "2024-01-04,AUTOPAY PAYMENT - THANK YOU,500.00,\n"
)

@pytest.fixture
def store() -> Generator[JsonRuleStore, None, None]:
    had_store = hasattr(app.state, "store")
    had_engine = hasattr(app.state, "engine")
    original_store = getattr(app.state, "store", None)
    original_engine = getattr(app.state, "engine", None)
    rule_store = JsonRuleStore(data_path=None)
    app.state.store = rule_store
    app.state.engine = ImportMatchingEngine(rule_store, ready_threshold=0.9, fuzzy_threshold=0, sign_convention="card")
    yield rule_store
    if had_store:
        app.state.store = original_store
    else:
        delattr(app.state, "store")
    if had_engine:
        app.state.engine = original_engine
    else:
        delattr(app.state, "engine")

def test_preview_infers_mapping_and_buckets(store: JsonRuleStore) -> None:
    store.upsert("STARBUCKS", "Starbucks", Category(id="c1", name="Coffee"), "ws")

    response = client.post("/imports/preview", json={"csv_text": CSV_TEXT, "workspace_id": "ws"})
    assert response.status_code == 200
    data = response.json()
    assert data["headers"] == ["Date", "Description", "Amount", "Category"]
    assert data["mapping"]["description"] == "Description"
    assert data["bucket_counts"] == {"ready": 1, "needsMoreData": 1, "payment": 1}

    first, second, third = data["rows"]
    assert first["merchant"] == "Starbucks"
    assert first["suggested_category"]["name"] == "Coffee"
    assert first["match_reason"] == "Matched learned rule"
    assert first["transaction_date"] == "2024-01-02"
    assert first["include_in_import"] is True
    assert second["merchant"] == "CORNER GROCER"
    assert second["display_merchant"] == "Corner Grocer"
    assert second["is_missing_required_data"] is True
    assert third["kind"] == "income"
    assert third["bucket"] == "payment"

def test_preview_with_mapping_and_hints(store: JsonRuleStore) -> None:
    response = client.post("/imports/preview", json={
        "csv_text": "name,amount\nCoffee,3.50\nCoffee,3.50",
        "workspace_id": "ws",
        "mapping": {"description": "name", "amount": "amount"},
        "duplicate_hints": [False, True],
    })
    assert response.status_code == 200
    rows = response.json()["rows"]
    assert rows[0]["bucket"] != "possibleDuplicate"
    assert rows[1]["bucket"] == "possibleDuplicate"
    assert rows[1]["include_in_import"] is False

def test_preview_uses_supplied_categories(store: JsonRuleStore) -> None:
    response = client.post("/imports/preview", json={
        "csv_text": CSV_TEXT,
        "workspace_id": "ws",
        "categories": [{"id": "c9", "name": "Coffee"}],
    })
    first = response.json()["rows"][0]
    assert first["suggested_category"] == {"id": "c9", "name": "Coffee"}
    assert first["bucket"] == "ready"

def test_preview_empty_file(store: JsonRuleStore) -> None:
    response = client.post("/imports/preview", json={"csv_text": "\n \n", "workspace_id": "ws"})
    assert response.status_code == 422
    assert "no usable lines" in response.json()["detail"]

def test_preview_bad_mapping(store: JsonRuleStore) -> None:
    response = client.post("/imports/preview", json={
        "csv_text": CSV_TEXT,
        "workspace_id": "ws",
        "mapping": {"description": "Memo", "amount": "Amount"},
    })
    assert response.status_code == 422
    assert "Memo" in response.json()["detail"]

def test_preview_without_service() -> None:
    had_engine = hasattr(app.state, "engine")
    original = getattr(app.state, "engine", None)
    app.state.engine = None
    try:
        response = client.post("/imports/preview", json={"csv_text": CSV_TEXT, "workspace_id": "ws"})
    finally:
        if had_engine:
            app.state.engine = original
        else:
            delattr(app.state, "engine")
    assert response.status_code == 500

def test_commit_learns_remembered_rows(store: JsonRuleStore) -> None:
    response = client.post("/imports/commit", json={
        "workspace_id": "ws",
        "rows": [
            {
                "source_merchant_key": "CORNER SHOP",
                "description_merchant_key": "CORNER SHOP",
                "merchant": "Corner Shop",
                "kind": "expense",
                "selected_category": {"id": "g", "name": "Groceries"},
                "remember_mapping": True,
            },
            {
                "source_merchant_key": "SHELL",
                "merchant": "Shell",
                "kind": "expense",
                "remember_mapping": True,
            },
            {
                "source_merchant_key": "AUTOPAY PAYMENT - THANK YOU",
                "merchant": "Card payment",
                "kind": "income",
            },
        ],
    })
    assert response.status_code == 200
    assert response.json() == {
        "imported": 2,
        "expenses": 1,
        "incomes": 1,
        "skipped": 1,
        "learned_keys": ["CORNER SHOP"],
    }
    assert store.get("ws", "CORNER SHOP").preferred_category.name == "Groceries"
    assert store.get("ws", "SHELL") is None

def test_commit_normalizes_client_keys(store: JsonRuleStore) -> None:
    response = client.post("/imports/commit", json={
        "workspace_id": "ws",
        "rows": [
            {
                "source_merchant_key": "pos debit starbucks #1234",
                "description_merchant_key": "  starbucks  ",
                "merchant": "Starbucks",
                "kind": "expense",
                "selected_category": {"name": "Coffee"},
                "remember_mapping": True,
            },
        ],
    })
    assert response.status_code == 200
    assert response.json()["learned_keys"] == ["STARBUCKS"]
    assert list(store.fetch_all("ws")) == ["STARBUCKS"]

def test_rules_endpoints(store: JsonRuleStore) -> None:
    response = client.put("/rules/ws", json={
        "merchant_key": "POS TARGET 1234",
        "preferred_name": "Target",
        "preferred_category": {"name": "Shopping"},
    })
    assert response.status_code == 200
    assert response.json()["merchant_key"] == "TARGET"

    client.put("/rules/ws", json={"merchant_key": "costco", "preferred_name": "Costco"})

    listed = client.get("/rules/ws").json()
    assert [rule["merchant_key"] for rule in listed] == ["COSTCO", "TARGET"]
    assert client.get("/rules/other").json() == []

def test_blank_rule_key_is_ignored(store: JsonRuleStore) -> None:
    response = client.put("/rules/ws", json={"merchant_key": "   "})
    assert response.status_code == 200
    assert response.json() is None
    assert store.fetch_all("ws") == {}
