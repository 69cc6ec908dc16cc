import base64
import json

import httpx
import pytest

from app.core.audit import AuditLogger, GitHubAuditMirror
from app.core.config import Settings

pytestmark = pytest.mark.asyncio


def _github_handler(files: dict, calls: list):
    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        path = request.url.path
        if request.method == "GET":
            if path not in files:
                return httpx.Response(404, json={"message": "Not Found"})
            content, sha = files[path]
            return httpx.Response(200, json={"sha": sha, "content": base64.b64encode(content).decode()})
        body = json.loads(request.content)
        if path in files and body.get("sha") != files[path][1]:
            return httpx.Response(409, json={"message": "sha mismatch"})
        files[path] = (base64.b64decode(body["content"]), f"sha-{len(calls)}")
        return httpx.Response(201, json={})
    return handler


def _mirror(files, calls) -> GitHubAuditMirror:
    client = httpx.AsyncClient(
        base_url="https://api.github.com", transport=httpx.MockTransport(_github_handler(files, calls))
    )
    return GitHubAuditMirror("acme/payment-logs", "tok", "logs/payments.jsonl", client=client)


async def test_events_go_to_store_and_github(store):
    files, calls = {}, []
    audit = AuditLogger(store, _mirror(files, calls))
    await audit.log_event("u1", "payment_granted", "payment", "ref-1", {"amount": 10})
    await audit.log_event("u1", "payment_granted", "payment", "ref-2", {"amount": 20})
    await audit.drain()

    assert [e.entity_id for e in store.audit_entries] == ["ref-1", "ref-2"]
    content, _ = files["/repos/acme/payment-logs/contents/logs/payments.jsonl"]
    lines = [json.loads(x) for x in content.decode().splitlines()]
    assert [x["entity_id"] for x in lines] == ["ref-1", "ref-2"]
    assert calls[0].headers["Authorization"] == "Bearer tok"
    await audit.aclose()


async def test_github_failure_is_swallowed(store):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"message": "boom"})

    client = httpx.AsyncClient(base_url="https://api.github.com", transport=httpx.MockTransport(handler))
    audit = AuditLogger(store, GitHubAuditMirror("acme/logs", "tok", "a.jsonl", client=client))
    await audit.log_event(None, "grant_marker_aborted", "payment", "ref-3")
    await audit.drain()
    assert len(store.audit_entries) == 1
    await audit.aclose()


async def test_from_settings_enables_mirror_only_when_configured(store):
    assert AuditLogger.from_settings(store, Settings()).mirror is None
    audit = AuditLogger.from_settings(
        store, Settings(audit_github_repo="acme/logs", audit_github_token="tok")
    )
    assert isinstance(audit.mirror, GitHubAuditMirror)
    await audit.aclose()
