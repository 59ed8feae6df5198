"""
Publish Pipeline
================

Takes a validated article through the QC gate and writes it to its
publish target:

    1. QC gate            -- blocked on any failed error-severity rule
    2. Write              -- GitHub contents API when GITHUB_TOKEN/OWNER/REPO
                             are set, otherwise the local article store
    3. Video render job   -- ``video-render`` queued for the article
    4. IndexNow ping      -- article and video URLs queued for submission
    5. History            -- one entry appended to data/publish/history.json

Usage:
    from torquepress.publish import Publisher

    publisher = Publisher()
    result = await publisher.publish_article(article)
    print(result.url)
"""

from __future__ import annotations

import base64
import json
import logging
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from torquepress.article_schema import Article
from torquepress.config import GitHubSettings, get_base_url, get_github_settings
from torquepress.errors import TorquepressError
from torquepress.http_client import (
    MAX_RETRY_DELAY,
    AsyncHTTPClient,
    HTTPError,
    ResourceNotFoundError,
    header_value,
)
from torquepress.indexnow import IndexNowClient
from torquepress.jobs import JobQueue, get_queue
from torquepress.persistence import DATA_DIR, load_json, now_iso, save_json
from torquepress.qc import QCEngine, get_engine
from torquepress.storage import ArticleStore
from torquepress.taxonomy import Taxonomy, get_taxonomy

logger = logging.getLogger("torquepress.publish")

PUBLISH_DATA_DIR = DATA_DIR / "publish"
MAX_HISTORY = 500
VIDEO_JOB_TYPE = "video-render"


class PublishError(TorquepressError):
    """Writing the article to its target failed."""


class PublishBlockedError(PublishError):
    """The article failed the QC gate."""

    def __init__(self, reasons: List[str], summary: Optional[Dict[str, int]] = None):
        self.reasons = reasons
        self.summary = summary or {}
        super().__init__(f"Publish blocked by QC: {'; '.join(reasons)}")


def article_repo_path(slug: str) -> str:
    return f"content/articles/{slug}.json"


@dataclass
class PublishResult:
    slug: str
    url: str
    target: str
    path: str
    qc_summary: Optional[Dict[str, int]] = None
    video_job_id: Optional[str] = None
    indexnow_job_id: Optional[str] = None
    published_at: str = field(default_factory=now_iso)

    def to_dict(self) -> dict:
        return asdict(self)


# ---------------------------------------------------------------------------
# GitHub target
# ---------------------------------------------------------------------------


class GitHubContentClient(AsyncHTTPClient):
    """Create-or-update files through the GitHub contents API."""

    service = "GitHub"

    def __init__(self, settings: GitHubSettings, timeout: int = 30):
        super().__init__(timeout=timeout)
        self.settings = settings

    def default_headers(self) -> Dict[str, str]:
        headers = super().default_headers()
        headers["Authorization"] = f"Bearer {self.settings.token}"
        headers["Accept"] = "application/vnd.github.v3+json"
        return headers

    def is_rate_limited(self, status: int, headers: Mapping[str, str]) -> bool:
        # GitHub signals primary and secondary rate limits with 403 as well as 429.
        if status == 429:
            return True
        return status == 403 and (
            header_value(headers, "X-RateLimit-Remaining") == "0"
            or header_value(headers, "Retry-After") is not None
        )

    def retry_delay(self, attempt: int, headers: Mapping[str, str]) -> float:
        delay = super().retry_delay(attempt, headers)
        reset = header_value(headers, "X-RateLimit-Reset")
        if reset and reset.isdigit():
            delay = max(delay, min(int(reset) - time.time(), MAX_RETRY_DELAY))
        return delay

    def file_url(self, path: str) -> str:
        return f"{self.settings.contents_url}/{path}"

    async def get_sha(self, path: str) -> Optional[str]:
        """Blob sha of an existing file, None when it does not exist yet."""
        params = {"ref": self.settings.branch} if self.settings.branch else None
        try:
            _, body, _ = await self._request("GET", self.file_url(path), params=params)
        except ResourceNotFoundError:
            return None
        return body.get("sha") if isinstance(body, dict) else None

    async def put_file(self, path: str, content: str, slug: str) -> str:
        """Write ``content`` at ``path``. Returns ``"add"`` or ``"update"``."""
        sha = await self.get_sha(path)
        action = "update" if sha else "add"
        payload: Dict[str, Any] = {
            "message": f"feat(content): {action} {slug}",
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
        }
        if sha:
            payload["sha"] = sha
        if self.settings.branch:
            payload["branch"] = self.settings.branch

        await self._request("PUT", self.file_url(path), json_data=payload)
        logger.info("GitHub %s %s/%s:%s", action, self.settings.owner, self.settings.repo, path)
        return action


# ---------------------------------------------------------------------------
# Publisher
# ---------------------------------------------------------------------------


class Publisher:
    """Runs the publish pipeline and keeps its history."""

    def __init__(
        self,
        store: Optional[ArticleStore] = None,
        engine: Optional[QCEngine] = None,
        queue: Optional[JobQueue] = None,
        taxonomy: Optional[Taxonomy] = None,
        github: Optional[GitHubSettings] = None,
        base_url: Optional[str] = None,
        data_dir: Optional[Path] = None,
    ) -> None:
        self.store = store or ArticleStore()
        self.engine = engine or get_engine()
        self.queue = queue or get_queue()
        self.taxonomy = taxonomy
        self.github = github if github is not None else get_github_settings()
        self.base_url = (base_url or get_base_url()).rstrip("/")
        self._history_file = Path(data_dir or PUBLISH_DATA_DIR) / "history.json"

    # -- Pipeline -----------------------------------------------------------

    async def publish_article(
        self, article: Article, skip_qc: bool = False, overwrite: bool = False,
    ) -> PublishResult:
        """
        Publish ``article``.

        ``overwrite`` treats a stored article with the same slug as the
        previous revision, so the duplicate checks ignore it.

        Raises:
            PublishBlockedError: the QC gate failed.
            PublishError: the write to the target failed.
        """
        qc_summary: Optional[Dict[str, int]] = None
        if not skip_qc:
            taxonomy = self.taxonomy if self.taxonomy is not None else get_taxonomy()
            report = self.engine.run(
                article, self.store.list_articles(), taxonomy, update=overwrite,
            )
            qc_summary = report.summary
            passed, reasons = self.engine.check_gate(report)
            if not passed:
                logger.warning("Publish of %s blocked: %d QC failure(s)", article.slug, len(reasons))
                self._record(article.slug, "blocked", qc_summary=qc_summary, reasons=reasons)
                raise PublishBlockedError(reasons, qc_summary)

        path = article_repo_path(article.slug)
        if self.github:
            target = "github"
            await self._write_github(article, path)
        else:
            target = "local"
            self._write_local(article)

        video = self.queue.enqueue(VIDEO_JOB_TYPE, {
            "slug": article.slug,
            "aspect": "landscape",
            "articlePath": path,
        }, title=article.title)

        url = f"{self.base_url}/articles/{article.slug}"
        ping = IndexNowClient(base_url=self.base_url, queue=self.queue).queue_ping(
            [url, f"{self.base_url}/video/{article.slug}"], reason="article-published",
        )

        result = PublishResult(
            slug=article.slug,
            url=url,
            target=target,
            path=path,
            qc_summary=qc_summary,
            video_job_id=video["id"],
            indexnow_job_id=ping["id"],
        )
        self._record(article.slug, "published", result=result)
        logger.info("Published %s to %s: %s", article.slug, target, url)
        return result

    def _write_local(self, article: Article) -> None:
        try:
            self.store.save_article(article)
        except (OSError, ValueError) as exc:
            self._record(article.slug, "failed", reasons=[str(exc)])
            raise PublishError(f"Failed to save {article.slug} to the article store: {exc}") from exc

    async def _write_github(self, article: Article, path: str) -> None:
        content = json.dumps(article.to_dict(), indent=2, ensure_ascii=False)
        async with GitHubContentClient(self.github) as client:
            try:
                await client.put_file(path, content, article.slug)
            except HTTPError as exc:
                self._record(article.slug, "failed", reasons=[str(exc)])
                raise PublishError(f"Failed to publish to GitHub: {exc}") from exc

    # -- History ------------------------------------------------------------

    def _record(
        self,
        slug: str,
        status: str,
        result: Optional[PublishResult] = None,
        qc_summary: Optional[Dict[str, int]] = None,
        reasons: Optional[List[str]] = None,
    ) -> None:
        entry: Dict[str, Any] = {"slug": slug, "status": status, "timestamp": now_iso()}
        if result is not None:
            entry.update(result.to_dict())
        if qc_summary is not None:
            entry["qc_summary"] = qc_summary
        if reasons:
            entry["reasons"] = reasons
        history = load_json(self._history_file, [])
        history.append(entry)
        save_json(self._history_file, history[-MAX_HISTORY:])

    def get_history(self, slug: Optional[str] = None, limit: int = 50) -> List[Dict[str, Any]]:
        """Publish attempts newest first, optionally for one slug."""
        history = list(reversed(load_json(self._history_file, [])))
        if slug:
            history = [h for h in history if h.get("slug") == slug]
        return history[:limit]
