from datetime import date

import pytest

from stash_api.notifications import hub


def _register(client, username="asha", personality="Medium Spender", **extra):
    body = dict({"username": username, "name": username.title(), "age": 30, "theme": "light",
                 "spending_personality": personality}, **extra)
    return client.post("/api/auth/register", json=body)


def test_root_and_index(client):
    assert client.get("/").json()["status"] == "ok"
    endpoints = client.get("/api").json()["endpoints"]
    assert endpoints["insights"] == "/api/agentic/insights"
    assert endpoints["notifications"] == "/ws/notifications"


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "healthy"
    assert body["connected_clients"] == 0
    assert client.get("/api/system/health").status_code == 200


def test_register_and_profile(client):
    r = _register(client, theme="dark")
    assert r.status_code == 201
    assert r.json()["user"]["theme"] == "dark"
    assert _register(client).status_code == 409
    assert client.get("/api/auth/profile/asha").json()["user"]["spending_personality"] == "Medium Spender"
    assert client.get("/api/auth/me", headers={"X-User-Id": "asha"}).json()["user"]["id"] == "asha"
    assert client.get("/api/auth/me").status_code == 401


@pytest.mark.parametrize("override, detail", [
    ({"age": 12}, "invalid_age"),
    ({"theme": "neon"}, "invalid_theme"),
    ({"spending_personality": "Impulse Buyer"}, "invalid_spending_personality"),
    ({"name": " "}, "all_fields_required"),
])
def test_register_validation(client, override, detail):
    r = _register(client, **override)
    assert r.status_code == 400
    assert r.json()["detail"] == detail


def test_login_test_user_requires_onboarding(client):
    assert client.post("/api/auth/login", json={"username": "test1", "password": "wrong"}).status_code == 401
    r = client.post("/api/auth/login", json={"username": "test1", "password": "test@123"})
    assert r.status_code == 404
    _register(client, username="test1")
    r = client.post("/api/auth/login", json={"username": "test1", "password": "test@123"})
    assert r.status_code == 200
    assert r.json()["user"]["username"] == "test1"


def test_login_with_registered_password(client):
    _register(client, password="s3cret-pass")
    assert client.post("/api/auth/login", json={"username": "asha", "password": "s3cret-pass"}).status_code == 200
    assert client.post("/api/auth/login", json={"username": "asha", "password": "nope"}).status_code == 401


def test_theme_and_personality_updates(client):
    _register(client)
    assert client.patch("/api/auth/theme/asha", json={"theme": "dark"}).json() == {"theme": "dark"}
    assert client.patch("/api/auth/theme/asha", json={"theme": "neon"}).status_code == 400
    r = client.patch("/api/auth/personality/asha", json={"spending_personality": "Max Saver"})
    assert r.json()["user"]["spending_personality"] == "Max Saver"
    assert client.patch("/api/auth/theme/ghost", json={"theme": "dark"}).status_code == 404


def test_salary_validation(client):
    assert client.get("/api/salary/asha").json() == {"salary": 100000, "created_at": None}
    r = client.put("/api/salary/asha", json={"salary": "a lot"})
    assert (r.status_code, r.json()["detail"]) == (400, "salary_must_be_numeric")
    r = client.put("/api/salary/asha", json={"salary": 50000})
    assert (r.status_code, r.json()["detail"]) == (400, "salary_below_minimum")
    assert client.put("/api/salary/asha", json={"salary": 150000}).json()["salary"] == 150000
    assert client.get("/api/salary/asha").json()["salary"] == 150000
    assert client.delete("/api/salary/asha").json() == {"deleted": 1}


def test_budget_caps(client):
    assert client.get("/api/budget/asha").status_code == 404
    _register(client)
    caps = client.get("/api/budget/asha").json()["budget_caps"]
    assert caps["Shopping"] == 12000
    assert client.put("/api/budget/asha/Shopping", json={"budget_cap": 9000}).status_code == 200
    assert client.get("/api/budget/asha").json()["budget_caps"]["Shopping"] == 9000
    r = client.put("/api/budget/asha/Shopping", json={"budget_cap": 0})
    assert r.json()["detail"] == "budget_cap_must_be_positive"
    assert client.delete("/api/budget/asha").json() == {"deleted": 1}
    assert client.get("/api/budget/asha").json()["budget_caps"]["Shopping"] == 12000


def _manual_tx(**overrides):
    return dict({"date": date.today().isoformat(), "merchant": "Mall", "amount": 5000,
                 "category": "Shopping", "payment_mode": "Card"}, **overrides)


def test_manual_transaction_requires_matching_header(client):
    _register(client)
    assert client.post("/api/transactions/asha", json=_manual_tx()).status_code == 401
    r = client.post("/api/transactions/asha", json=_manual_tx(), headers={"X-User-Id": "someone"})
    assert r.status_code == 401


def test_manual_transaction_validation(client):
    _register(client)
    headers = {"X-User-Id": "asha"}
    r = client.post("/api/transactions/asha", json=_manual_tx(payment_mode="Barter"), headers=headers)
    assert r.json()["detail"] == "invalid_payment_mode"
    r = client.post("/api/transactions/asha", json=_manual_tx(amount=-5), headers=headers)
    assert r.json()["detail"] == "invalid_amount"
    r = client.post("/api/transactions/asha", json=_manual_tx(date="yesterday"), headers=headers)
    assert r.json()["detail"] == "invalid_date"


def test_manual_transaction_alerts_and_insights(client):
    _register(client)
    r = client.post("/api/transactions/asha", json=_manual_tx(), headers={"X-User-Id": "asha"})
    assert r.status_code == 201
    body = r.json()
    assert body["transaction"]["is_simulated"] is False
    assert "🚨 High Daily Spending Alert" in [a["title"] for a in body["alerts"]]
    assert body["insights"]
    assert len(hub.pending("asha")) >= len(body["alerts"])

    recent = client.get("/api/transactions/asha/recent").json()["transactions"]
    assert any(t["is_manual"] and t["id"] == body["transaction"]["id"] for t in recent)
    stats = client.get("/api/transactions/asha/stats?period=week").json()
    assert stats["transaction_count"] == 1
    assert client.get("/api/transactions/asha/stats?period=decade").status_code == 400

    tx_id = body["transaction"]["id"]
    assert client.delete(f"/api/transactions/asha/{tx_id}").json() == {"deleted": True}
    assert client.delete(f"/api/transactions/asha/{tx_id}").status_code == 404


def test_simulate_is_idempotent(client):
    _register(client, personality="Heavy Spender")
    first = client.post("/api/transactions/asha/simulate")
    assert first.status_code == 201
    assert first.json()["persona_type"] == "heavy"
    count = first.json()["count"]
    assert count > 0
    assert client.post("/api/transactions/asha/simulate").json()["count"] == 0
    page = client.get("/api/transactions/asha?limit=5").json()
    assert page["pagination"]["total"] == count
    assert len(page["transactions"]) == min(5, count)


def test_latest_persona_transactions(client):
    body = client.get("/api/transactions/latest/Max Saver?limit=4").json()
    assert body["persona_type"] == "max"
    assert 0 < body["total_transactions"] <= 4
    assert body["total_transactions"] == len(body["transactions"])


def test_insight_endpoints(client):
    _register(client)
    assert client.post("/api/agentic/insights/ghost/generate").status_code == 404
    generated = client.post("/api/agentic/insights/asha/generate").json()
    assert generated["count"] == len(generated["insights"]) > 0

    active = client.get("/api/agentic/insights/asha").json()["insights"]
    assert 0 < len(active) <= 3
    iid = active[0]["id"]
    r = client.put(f"/api/agentic/insights/asha/{iid}/response", json={"response": "maybe"})
    assert r.status_code == 400
    r = client.put(f"/api/agentic/insights/asha/{iid}/response", json={"response": "acted_on"})
    assert r.json()["user_response"] == "acted_on"
    assert client.put("/api/agentic/insights/asha/insight_x/response",
                      json={"response": "ignored"}).status_code == 404

    behavior = client.get("/api/agentic/insights/asha/behavior").json()
    assert behavior["profile"]["response_patterns"][active[0]["type"]]["accepted"] == 1

    assert client.delete(f"/api/agentic/insights/asha/{iid}").json() == {"deactivated": True}
    assert client.delete("/api/agentic/insights/asha/insight_x").status_code == 404
    history = client.get("/api/agentic/insights/asha/history").json()["insights"]
    assert any(x["id"] == iid and not x["is_active"] for x in history)


def test_nudge_endpoints(client):
    _register(client)
    client.post("/api/transactions/asha", json=_manual_tx(amount=2000), headers={"X-User-Id": "asha"})
    generated = client.post("/api/nudges/asha/generate").json()
    assert generated["count"] == len(generated["nudges"])
    listing = client.get("/api/nudges/asha").json()
    assert listing["unread_count"] == len(listing["nudges"]) > 0
    nid = listing["nudges"][0]["id"]
    assert client.patch(f"/api/nudges/{nid}/respond", json={"response": "accepted"}).json()["user_response"] == "accepted"
    assert client.patch(f"/api/nudges/{nid}/respond", json={"response": "later"}).status_code == 400
    assert client.patch("/api/nudges/missing/read").status_code == 404
    assert client.delete(f"/api/nudges/{nid}").status_code == 200
    assert client.delete(f"/api/nudges/{nid}").status_code == 404


def test_chatbot_session_flow(client):
    _register(client)
    opened = client.post("/api/agentic/chatbot/asha/context/transaction",
                         json={"transaction": {"category": "Dining", "amount": 1800}}).json()
    sid = opened["session_id"]
    reply = client.post("/api/agentic/chatbot/asha/chat", json={"message": "Was that too much?", "session_id": sid})
    assert reply.json()["session_id"] == sid
    messages = client.get(f"/api/agentic/chatbot/asha/chat/{sid}/history").json()["messages"]
    assert len(messages) == 2
    assert client.get("/api/agentic/chatbot/asha/context/active").json()["session_id"] == sid
    assert client.delete(f"/api/agentic/chatbot/asha/context/{sid}").json() == {"deactivated": True}
    assert client.get("/api/agentic/chatbot/asha/context/active").status_code == 404
    r = client.post("/api/agentic/chatbot/asha/context/insight", json={"insight_id": "insight_missing"})
    assert r.status_code == 404


def test_plain_chat(client):
    _register(client)
    r = client.post("/api/chat/asha/message", json={"message": "help me save"})
    assert r.json()["ai_message"]["is_user"] is False
    assert len(client.get("/api/chat/asha").json()["messages"]) == 2
    assert client.delete("/api/chat/asha").json() == {"deleted": 2}


def test_analytics_and_financial_routes(client):
    _register(client)
    assert client.get("/api/analytics/asha/health-score").json()["overall"] > 0
    assert client.get("/api/analytics/asha/forecast").json() == {"last_month": None, "forecasts": []}
    assert "summary" in client.get("/api/analytics/asha/report").json()
    metrics = client.get("/api/financial/metrics/asha").json()
    assert metrics["emi"] == 20000
    assert len(client.get("/api/financial/weekly/asha").json()["days"]) == 7
    assert client.get("/api/financial/metrics/ghost").status_code == 404


def test_persona_routes(client):
    types = client.get("/api/personas/types").json()["persona_types"]
    assert {t["id"] for t in types} == {"heavy", "medium", "max"}
    body = client.get("/api/personas/heavy/transactions/2025-01-17").json()
    assert body["total_transactions"] == 10
    assert client.get("/api/personas/heavy/transactions/17-01-2025").json()["detail"] == "invalid_date_format"
    assert client.get("/api/personas/bogus/transactions/2025-01-17").json()["detail"] == "invalid_user_type"


def test_phase4_routes(client):
    assert client.get("/api/phase4/ghost/budget-optimization").status_code == 404
    assert client.get("/api/phase4/ghost/comprehensive-report").json()["detail"] == "user_not_found"
    _register(client)
    client.post("/api/transactions/asha", json=_manual_tx(amount=40000), headers={"X-User-Id": "asha"})

    opt = client.get("/api/phase4/asha/budget-optimization").json()
    assert opt["optimizations"][0]["category"] == "Shopping"
    assert opt["total_potential_savings"] == opt["optimizations"][0]["potential_savings"]
    goals = client.get("/api/phase4/asha/financial-goals").json()
    assert (goals["total_goals"], goals["high_priority_goals"]) == (3, 2)
    insights = client.get("/api/phase4/asha/personalized-insights").json()
    assert insights["total_insights"] == 1
    assert insights["average_confidence"] == pytest.approx(0.8)
    education = client.get("/api/phase4/asha/financial-education").json()
    assert [t["topic"] for t in education["education"]] == ["investment"]

    report = client.get("/api/phase4/asha/comprehensive-report").json()
    assert report["summary"]["total_education_topics"] == 1
    assert set(report) >= {"optimizations", "goals", "insights", "education", "summary"}
    assert client.get("/api").json()["endpoints"]["phase4"] == "/api/phase4"
