from app.core.config import Settings


def _seed(client, account_id="u1", **fields):
    from app.models.user_account import UserAccount
    fields.setdefault("email", f"{account_id}@example.com")
    client.app.state.store.accounts[account_id] = UserAccount(id=account_id, **fields)


def test_mercadopago_approved_grants_credits(client):
    _seed(client, credit_balance=5)
    r = client.post(
        "/webhook/mercadopago",
        json={"email": "u1@example.com", "monto": 10, "estado": "approved", "payment_id": 123456},
    )
    assert r.status_code == 200
    body = r.json()
    assert body["ok"] is True
    assert body["result"]["benefit_kind"] == "credits"
    assert body["result"]["new_balance"] == 68
    assert body["result"]["payment_reference"] == "123456"
    assert body["result"]["message"]["title"] == "Créditos activados"


def test_flow_paid_grants_unlimited(client):
    _seed(client)
    r = client.post(
        "/webhook/flow",
        json={"uid": "u1", "amount": "60", "status": "paid", "reference": "flow-1"},
    )
    assert r.status_code == 200
    assert r.json()["result"]["benefit_kind"] == "unlimited"
    assert client.app.state.store.accounts["u1"].plan_kind == "unlimited"


def test_duplicate_delivery(client):
    _seed(client)
    payload = {"uid": "u1", "monto": 20, "estado": "pagado", "reference": "mp-dup"}
    assert client.post("/webhook/mercadopago", json=payload).json()["result"]["benefit_kind"] == "credits"
    r = client.post("/webhook/mercadopago", json=payload)
    assert r.status_code == 200
    assert r.json()["result"]["benefit_kind"] == "duplicate"
    assert client.app.state.store.accounts["u1"].credit_balance == 128


def test_not_confirmed_status_is_200(client):
    _seed(client)
    r = client.post("/webhook/flow", json={"uid": "u1", "monto": 10, "estado": "pending", "reference": "f-2"})
    assert r.status_code == 200
    assert r.json() == {"ok": False, "message": "Pago no confirmado."}
    assert client.app.state.store.payments == {}


def test_mercadopago_rejects_flow_status(client):
    _seed(client)
    r = client.post("/webhook/mercadopago", json={"uid": "u1", "monto": 10, "estado": "paid", "reference": "m-3"})
    assert r.json()["ok"] is False


def test_missing_fields_400(client):
    r = client.post("/webhook/flow", json={"monto": 10, "estado": "paid", "reference": "x"})
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "BAD_REQUEST"
    r = client.post("/webhook/flow", json={"email": "a@b.c", "estado": "paid", "reference": "x"})
    assert r.status_code == 400
    r = client.post("/webhook/flow", json={"email": "a@b.c", "monto": 10, "estado": "paid"})
    assert r.status_code == 400


def test_malformed_body_400(client):
    r = client.post("/webhook/flow", content=b"not json", headers={"Content-Type": "application/json"})
    assert r.status_code == 400


def test_invalid_amount_422(client):
    _seed(client)
    r = client.post("/webhook/flow", json={"uid": "u1", "monto": 999, "estado": "paid", "reference": "f-4"})
    assert r.status_code == 422
    assert r.json()["error"]["code"] == "INVALID_AMOUNT"
    assert client.app.state.store.payments == {}


def test_unknown_user_404_and_marker_removed(client):
    r = client.post(
        "/webhook/flow", json={"email": "nobody@example.com", "monto": 10, "estado": "paid", "reference": "f-5"}
    )
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "USER_NOT_FOUND"
    assert "request_id" in r.json()
    assert "f-5" not in client.app.state.store.payments


def test_disabled_processor(store):
    from fastapi.testclient import TestClient

    from app.main import create_app
    settings = Settings(store_backend="memory", flow_enabled=False)
    with TestClient(create_app(settings, store=store)) as c:
        r = c.post("/webhook/flow", json={"uid": "u1", "monto": 10, "estado": "paid", "reference": "f-6"})
        assert r.status_code == 404
        assert r.json()["error"]["code"] == "PROCESSOR_DISABLED"


def test_list_packages(client):
    r = client.get("/v1/packages")
    assert r.status_code == 200
    amounts = [p["amount"] for p in r.json()["packages"]]
    assert 10 in amounts and 60 in amounts
