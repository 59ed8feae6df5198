"""
IndexNow Client
===============

Notifies search engines that URLs changed. Pings can be sent right away with
``submit`` or queued as ``indexnow-ping`` jobs and drained later by
``process_queue``. Every submission attempt is written to a bounded log
(``data/indexnow/logs.json``, last 100 entries).

Usage:
    from torquepress.indexnow import IndexNowClient

    async with IndexNowClient() as client:
        result = await client.submit(["/articles/rav4-vs-cr-v"], reason="manual")
"""

from __future__ import annotations

import logging
import secrets
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from torquepress.config import abs_url, get_base_url, get_indexnow_key
from torquepress.http_client import AsyncHTTPClient, HTTPError
from torquepress.jobs import JobQueue, get_queue
from torquepress.persistence import DATA_DIR, load_json, now_iso, save_json

logger = logging.getLogger("torquepress.indexnow")

INDEXNOW_ENDPOINT = "https://api.indexnow.org/indexnow"
INDEXNOW_DATA_DIR = DATA_DIR / "indexnow"
MAX_LOGS = 100
PING_JOB_TYPE = "indexnow-ping"


def generate_key() -> str:
    """Random 32-character hex ownership key."""
    return secrets.token_hex(16)


@dataclass
class IndexNowLog:
    urls: List[str]
    status: int
    success: bool
    reason: Optional[str] = None
    error: Optional[str] = None
    response_body: Optional[str] = None
    id: str = field(default_factory=lambda: f"indexnow-{int(time.time() * 1000)}-{secrets.token_hex(5)[:9]}")
    timestamp: str = field(default_factory=now_iso)

    def to_dict(self) -> dict:
        return asdict(self)


class IndexNowClient(AsyncHTTPClient):
    """Submits URL lists to IndexNow and keeps the submission log."""

    service = "IndexNow"
    # 429 means the host is flagged as spamming; it is never retried.
    retry_statuses = frozenset({500, 502, 503, 504})
    max_retries = 2

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        data_dir: Optional[Path] = None,
        queue: Optional[JobQueue] = None,
        timeout: int = 30,
    ) -> None:
        super().__init__(timeout=timeout)
        self.api_key = api_key or get_indexnow_key() or generate_key()
        self.base_url = (base_url or get_base_url()).rstrip("/")
        self._logs_file = Path(data_dir or INDEXNOW_DATA_DIR) / "logs.json"
        self._queue = queue

    def default_headers(self) -> Dict[str, str]:
        headers = super().default_headers()
        headers["Content-Type"] = "application/json; charset=utf-8"
        return headers

    @property
    def queue(self) -> JobQueue:
        return self._queue or get_queue()

    # -- Logs ---------------------------------------------------------------

    def _append_log(self, log: IndexNowLog) -> None:
        logs = load_json(self._logs_file, [])
        logs.append(log.to_dict())
        save_json(self._logs_file, logs[-MAX_LOGS:])

    def get_logs(self, limit: int = MAX_LOGS) -> List[Dict[str, Any]]:
        """Submission log, most recent first."""
        return list(reversed(load_json(self._logs_file, [])))[:limit]

    # -- Submission ---------------------------------------------------------

    def build_payload(self, urls: List[str]) -> Dict[str, Any]:
        return {
            "host": urlparse(self.base_url).hostname or "",
            "key": self.api_key,
            "keyLocation": f"{self.base_url}/indexnow-key.txt",
            "urlList": [abs_url(url, self.base_url) for url in urls],
        }

    async def submit(
        self, urls: List[str], reason: Optional[str] = None,
    ) -> Dict[str, Any]:
        """POST the URL list. Never raises; the outcome is returned and logged."""
        if not urls:
            return {"success": False, "error": "No URLs provided"}

        try:
            status, body, _ = await self._request(
                "POST", INDEXNOW_ENDPOINT, json_data=self.build_payload(urls),
            )
        except HTTPError as exc:
            log = IndexNowLog(
                urls=list(urls), status=exc.status_code, success=False, reason=reason,
                error=f"IndexNow submission failed: {exc}",
                response_body=exc.response_body or None,
            )
            self._append_log(log)
            logger.error("[IndexNow] %s (log %s)", log.error, log.id)
            return {"success": False, "error": log.error, "log_id": log.id}

        log = IndexNowLog(
            urls=list(urls), status=status, success=True, reason=reason,
            response_body=str(body) if body else None,
        )
        self._append_log(log)
        logger.info("[IndexNow] submitted %d URL(s), status %d, reason=%s", len(urls), status, reason)
        return {"success": True, "log_id": log.id}

    # -- Queue --------------------------------------------------------------

    def queue_ping(self, urls: List[str], reason: Optional[str] = None) -> Dict[str, str]:
        logger.info("Queueing IndexNow ping for %d URL(s) %s", len(urls), reason or "")
        return self.queue.enqueue(PING_JOB_TYPE, {
            "urls": list(urls),
            "reason": reason,
            "timestamp": now_iso(),
        })

    async def process_queue(self) -> Dict[str, int]:
        """Submit every queued ping job, marking each completed or failed."""
        processed = {"completed": 0, "failed": 0}
        for job in self.queue.list(status="queued", job_type=PING_JOB_TYPE):
            self.queue.update_status(job.id, "processing", progress=50, current_step="Submitting")
            result = await self.submit(job.payload.get("urls", []), job.payload.get("reason"))
            if result["success"]:
                self.queue.update_status(job.id, "completed", current_step="Submitted")
                processed["completed"] += 1
            else:
                self.queue.update_status(
                    job.id, "failed", current_step="Submission failed", error=result.get("error"),
                )
                processed["failed"] += 1
        logger.info("IndexNow queue processed: %s", processed)
        return processed

    async def ping_on_publish(self, slug: str, base_url: Optional[str] = None) -> Dict[str, Any]:
        base = (base_url or self.base_url).rstrip("/")
        urls = [
            f"{base}/articles/{slug}",
            f"{base}/video/{slug}",
            f"{base}/sitemap.xml",
            f"{base}/video-sitemap.xml",
        ]
        return await self.submit(urls, reason="article-published")


def queue_ping(urls: List[str], reason: Optional[str] = None) -> Dict[str, str]:
    return IndexNowClient().queue_ping(urls, reason)


def get_logs(limit: int = MAX_LOGS) -> List[Dict[str, Any]]:
    return IndexNowClient().get_logs(limit)
