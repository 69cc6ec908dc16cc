from datetime import timedelta

from app.models.payment_record import PaymentRecord

HEADERS = {"X-Admin-Token": "admin-secret"}


def test_admin_requires_token(client):
    assert client.get("/v1/admin/payments/stale").status_code == 401
    r = client.get("/v1/admin/payments/stale", headers={"X-Admin-Token": "wrong"})
    assert r.status_code == 401


def test_stale_payments_listed(client):
    from app.services.idempotency import utcnow
    store = client.app.state.store
    old = utcnow() - timedelta(hours=3)
    store.payments["stuck"] = PaymentRecord(
        reference="stuck", payer_identifier="u1", amount=10, processor_name="flow", created_at=old
    )
    store.payments["new"] = PaymentRecord(
        reference="new", payer_identifier="u1", amount=10, processor_name="flow", created_at=utcnow()
    )
    r = client.get("/v1/admin/payments/stale", params={"minutes": 60}, headers=HEADERS)
    assert r.status_code == 200
    assert [p["reference"] for p in r.json()["payments"]] == ["stuck"]


def test_payment_and_account_lookup(client):
    from app.models.user_account import UserAccount
    client.app.state.store.accounts["u1"] = UserAccount(id="u1", email="u1@example.com")
    client.post("/webhook/flow", json={"uid": "u1", "monto": 10, "estado": "paid", "reference": "f-1"})
    r = client.get("/v1/admin/payments/f-1", headers=HEADERS)
    assert r.status_code == 200
    assert r.json()["status"] == "succeeded"
    r = client.get("/v1/admin/accounts/u1", headers=HEADERS)
    assert r.json()["credit_balance"] == 63
    assert client.get("/v1/admin/payments/nope", headers=HEADERS).status_code == 404
