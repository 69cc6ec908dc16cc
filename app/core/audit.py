"""Audit log for payment events. Best effort: failures are logged, never raised."""

import asyncio
import base64
from datetime import datetime, timezone
from typing import Any

import httpx
import orjson

from app.core.config import Settings
from app.core.logging import get_logger
from app.models.audit_log import AuditEntry
from app.store.base import DocumentStore

log = get_logger(__name__)

GITHUB_API = "https://api.github.com"


class GitHubAuditMirror:
    """Appends JSON lines to one file of a GitHub repository via the contents API."""

    def __init__(
        self,
        repo: str,
        token: str,
        path: str,
        branch: str = "main",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.repo = repo
        self.path = path
        self.branch = branch
        self._client = client or httpx.AsyncClient(base_url=GITHUB_API, timeout=10.0)
        self._headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
        }
        # The contents API rejects concurrent writes with a stale sha
        self._lock = asyncio.Lock()

    @property
    def _url(self) -> str:
        return f"/repos/{self.repo}/contents/{self.path}"

    async def append(self, entry: AuditEntry) -> None:
        line = orjson.dumps(entry.model_dump(mode="json")) + b"\n"
        async with self._lock:
            r = await self._client.get(self._url, params={"ref": self.branch}, headers=self._headers)
            sha = None
            existing = b""
            if r.status_code == 200:
                data = r.json()
                sha = data["sha"]
                existing = base64.b64decode(data.get("content", ""))
            elif r.status_code != 404:
                r.raise_for_status()
            body: dict[str, Any] = {
                "message": f"audit: {entry.event_type} {entry.entity_id or ''}".strip(),
                "content": base64.b64encode(existing + line).decode(),
                "branch": self.branch,
            }
            if sha:
                body["sha"] = sha
            r = await self._client.put(self._url, json=body, headers=self._headers)
            r.raise_for_status()

    async def aclose(self) -> None:
        await self._client.aclose()


class AuditLogger:
    def __init__(self, store: DocumentStore, mirror: GitHubAuditMirror | None = None) -> None:
        self.store = store
        self.mirror = mirror
        self._pending: set[asyncio.Task] = set()

    @classmethod
    def from_settings(cls, store: DocumentStore, settings: Settings) -> "AuditLogger":
        mirror = None
        if settings.audit_github_enabled:
            mirror = GitHubAuditMirror(
                settings.audit_github_repo,
                settings.audit_github_token,
                settings.audit_github_path,
                settings.audit_github_branch,
            )
        return cls(store, mirror)

    async def log_event(
        self,
        user_id: str | None,
        event_type: str,
        entity_type: str,
        entity_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Append to audit_logs; the GitHub mirror runs in the background."""
        entry = AuditEntry(
            user_id=user_id,
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            metadata=metadata or {},
            created_at=datetime.now(timezone.utc),
        )
        try:
            await self.store.append_audit(entry)
        except Exception as e:
            log.warning("audit_failed", sink="store", event_type=event_type, entity_id=entity_id, error=str(e))
        if self.mirror is not None:
            task = asyncio.create_task(self._mirror(entry))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def _mirror(self, entry: AuditEntry) -> None:
        try:
            await self.mirror.append(entry)
        except Exception as e:
            log.warning("audit_failed", sink="github", event_type=entry.event_type, entity_id=entry.entity_id, error=str(e))

    async def drain(self) -> None:
        """Wait for in-flight mirror writes (shutdown, tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending))

    async def aclose(self) -> None:
        await self.drain()
        if self.mirror is not None:
            await self.mirror.aclose()
