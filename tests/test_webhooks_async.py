import asyncio

import pytest

pytestmark = pytest.mark.asyncio


async def test_approved_payment_over_asgi(async_client, store, seed):
    seed(store, "u1", credit_balance=5)
    r = await async_client.post(
        "/webhook/mercadopago",
        json={"uid": "u1", "monto": 10, "estado": "approved", "payment_id": "mp-a1"},
    )
    assert r.status_code == 200
    assert r.json()["result"]["new_balance"] == 68
    assert (await store.get_payment("mp-a1")).status == "succeeded"


async def test_parallel_redeliveries_grant_once(async_client, store, seed):
    seed(store, "u1")
    payload = {"uid": "u1", "amount": 20, "status": "paid", "reference": "flow-par"}
    responses = await asyncio.gather(*[async_client.post("/webhook/flow", json=payload) for _ in range(5)])
    assert [r.status_code for r in responses] == [200] * 5
    kinds = sorted(r.json()["result"]["benefit_kind"] for r in responses)
    assert kinds == ["credits"] + ["duplicate"] * 4
    assert store.accounts["u1"].credit_balance == 128
    assert store.accounts["u1"].successful_purchase_count == 1


async def test_health_over_asgi(async_client):
    r = await async_client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "store": "memory", "store_ok": True}
