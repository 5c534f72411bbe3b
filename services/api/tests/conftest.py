import pytest
from fastapi.testclient import TestClient

from stash_api import config
from stash_api import db as db_mod
from stash_api.main import app
from stash_api.notifications import hub
from stash_api.repositories import transactions_repo, users_repo


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path, monkeypatch):
    monkeypatch.setenv("DB_PATH", str(tmp_path / "test.db"))
    monkeypatch.setenv("STASH_CONFIG", str(tmp_path / "config.json"))
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.setenv("ENABLE_REAL_LLM", "false")
    config.reload_config()
    db_mod.init_db()
    hub.reset()
    yield
    hub.reset()
    config.reload_config()


@pytest.fixture
def conn():
    c = db_mod.get_connection()
    yield c
    c.commit()
    c.close()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_user(conn):
    def _make(user_id="u1", personality="Medium Spender", **extra):
        user = users_repo.create_user(conn, dict(
            {"id": user_id, "name": user_id.title(), "age": 28, "spending_personality": personality},
            **extra))
        conn.commit()
        return user
    return _make


@pytest.fixture
def add_tx(conn):
    counter = {"n": 0}

    def _add(user_id, day, amount, category, merchant="Test Merchant", simulated=False):
        counter["n"] += 1
        row = {
            "id": f"tx_{counter['n']:04d}",
            "user_id": user_id,
            "date": day.isoformat(),
            "merchant": merchant,
            "amount": amount,
            "category": category,
            "payment_mode": "UPI",
            "is_simulated": simulated,
        }
        transactions_repo.insert_transaction(conn, row)
        conn.commit()
        return row
    return _add
