"""
Torquepress API Server
======================

FastAPI server exposing the content pipeline over HTTP: taxonomy graph,
editorial direction, planner, QC, publishing, the article store, the job
queue, the roadmap, site search, IndexNow logs, sitemaps and robots.txt.

Run directly:
    python -m torquepress.api
    uvicorn torquepress.api:app --host 0.0.0.0 --port 8780

Port configurable via TORQUEPRESS_API_PORT environment variable (default 8780).
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from pydantic import BaseModel, Field

from torquepress import __version__
from torquepress.article_schema import ArticleValidationError, parse_article
from torquepress.config import get_api_host, get_api_port, get_base_url, get_cors_origins
from torquepress.direction import DirectionError, patch_direction, read_direction
from torquepress.errors import NotFoundError
from torquepress.graph import build_graph, graph_to_dict
from torquepress.http_client import HTTPError
from torquepress.indexnow import IndexNowClient
from torquepress.jobs import JobQueue, get_queue
from torquepress.persistence import now_iso
from torquepress.planner import next_batch_size, peek_batch_size, plan_next
from torquepress.publish import PublishBlockedError, PublishError, Publisher
from torquepress.qc import QCEngine, get_engine
from torquepress.roadmap import RoadmapBoard, get_roadmap
from torquepress.search import DEFAULT_PAGE_SIZE, DEFAULT_SUGGEST_LIMIT, SearchIndex, build_search_index
from torquepress.sitemap import (
    build_sitemap_urls,
    page_count,
    render_robots,
    render_sitemap,
    render_sitemap_index,
    render_video_sitemap,
)
from torquepress.storage import ArticleStore
from torquepress.taxonomy import Taxonomy, get_taxonomy

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logger = logging.getLogger("torquepress.api")
logger.setLevel(logging.INFO)

if not logger.handlers:
    _h = logging.StreamHandler()
    _h.setFormatter(logging.Formatter(
        "[%(asctime)s] %(name)s %(levelname)s: %(message)s", datefmt="%H:%M:%S",
    ))
    logger.addHandler(_h)

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

API_HOST = get_api_host()
API_PORT = get_api_port()
ALLOWED_ORIGINS = get_cors_origins()

XML_MEDIA_TYPE = "application/xml"

# ---------------------------------------------------------------------------
# Pydantic Models -- Requests
# ---------------------------------------------------------------------------


class PlannerNextRequest(BaseModel):
    n: Optional[int] = None


class QCRequest(BaseModel):
    article: Optional[Dict[str, Any]] = None
    update: bool = False


class PublishRequest(BaseModel):
    article: Optional[Dict[str, Any]] = None
    skip_qc: bool = False
    overwrite: bool = False


class JobCreateRequest(BaseModel):
    type: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    title: Optional[str] = None


class JobUpdateRequest(BaseModel):
    status: str
    progress: Optional[int] = None
    current_step: Optional[str] = None
    error: Optional[str] = None


class RoadmapCreateRequest(BaseModel):
    title: str
    intent: str
    make: Optional[str] = None
    model: Optional[str] = None
    year: Optional[int] = None
    locale: Optional[str] = None
    target_schema: Optional[str] = None
    priority: str = "medium"
    assignee: Optional[str] = None
    status: str = "idea"
    notes: Optional[str] = None


class RoadmapUpdateRequest(BaseModel):
    title: Optional[str] = None
    intent: Optional[str] = None
    make: Optional[str] = None
    model: Optional[str] = None
    year: Optional[int] = None
    locale: Optional[str] = None
    target_schema: Optional[str] = None
    priority: Optional[str] = None
    assignee: Optional[str] = None
    status: Optional[str] = None
    notes: Optional[str] = None


class IndexNowSubmitRequest(BaseModel):
    urls: List[str] = Field(default_factory=list)
    reason: Optional[str] = None


# ---------------------------------------------------------------------------
# Pydantic Models -- Responses
# ---------------------------------------------------------------------------


class StatusResponse(BaseModel):
    status: str
    timestamp: str
    subsystems: Dict[str, str] = Field(default_factory=dict)
    version: str = __version__


class ActionResponse(BaseModel):
    success: bool
    message: str = ""
    data: Optional[Dict[str, Any]] = None
    duration_ms: float = 0.0


# ---------------------------------------------------------------------------
# Application State
# ---------------------------------------------------------------------------


class AppState:
    """Holds references to the pipeline subsystems."""

    def __init__(self) -> None:
        self.taxonomy: Optional[Taxonomy] = None
        self.store: Optional[ArticleStore] = None
        self.engine: Optional[QCEngine] = None
        self.queue: Optional[JobQueue] = None
        self.roadmap: Optional[RoadmapBoard] = None
        self.search: Optional[SearchIndex] = None
        self.publisher: Optional[Publisher] = None
        self.indexnow: Optional[IndexNowClient] = None
        self.direction_path: Optional[Path] = None
        self.base_url: str = ""
        self.start_time: float = 0.0

    def load_search_docs(self):
        return build_search_index(self.taxonomy or Taxonomy(), self.store.list_articles() if self.store else [])


state = AppState()


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize subsystems on startup, close HTTP sessions on shutdown."""
    logger.info("Starting Torquepress API on port %d", API_PORT)
    state.start_time = time.monotonic()
    state.base_url = get_base_url()

    state.taxonomy = get_taxonomy()
    state.store = ArticleStore()
    state.engine = get_engine()
    state.queue = get_queue()
    state.roadmap = get_roadmap()
    state.search = SearchIndex(loader=state.load_search_docs)
    state.indexnow = IndexNowClient(base_url=state.base_url, queue=state.queue)
    state.publisher = Publisher(
        store=state.store,
        engine=state.engine,
        queue=state.queue,
        taxonomy=state.taxonomy,
        base_url=state.base_url,
    )
    logger.info(
        "Subsystems ready (base_url=%s, taxonomy empty=%s)",
        state.base_url, state.taxonomy.is_empty,
    )

    yield

    logger.info("Shutting down Torquepress API")
    if state.indexnow is not None:
        await state.indexnow.close()


app = FastAPI(
    title="Torquepress API",
    description="Planning, QC and publishing pipeline for automotive comparison articles",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _taxonomy() -> Taxonomy:
    if state.taxonomy is None:
        raise HTTPException(503, "Taxonomy not loaded")
    return state.taxonomy


def _require_store() -> ArticleStore:
    if state.store is None:
        raise HTTPException(503, "Article store not initialized")
    return state.store


def _require_engine() -> QCEngine:
    if state.engine is None:
        raise HTTPException(503, "QC engine not initialized")
    return state.engine


def _require_queue() -> JobQueue:
    if state.queue is None:
        raise HTTPException(503, "Job queue not initialized")
    return state.queue


def _require_roadmap() -> RoadmapBoard:
    if state.roadmap is None:
        raise HTTPException(503, "Roadmap not initialized")
    return state.roadmap


def _require_search() -> SearchIndex:
    if state.search is None:
        raise HTTPException(503, "Search index not initialized")
    return state.search


def _require_publisher() -> Publisher:
    if state.publisher is None:
        raise HTTPException(503, "Publisher not initialized")
    return state.publisher


def _require_indexnow() -> IndexNowClient:
    if state.indexnow is None:
        raise HTTPException(503, "IndexNow client not initialized")
    return state.indexnow


def _parse_article_or_400(data: Optional[Dict[str, Any]]):
    if not data:
        raise HTTPException(400, "Missing article data")
    try:
        return parse_article(data)
    except ArticleValidationError as exc:
        raise HTTPException(400, {"error": "Invalid article", "errors": exc.errors})


# ===================================================================
# Health
# ===================================================================


@app.get("/health", response_model=StatusResponse, tags=["Health"])
async def health():
    """Server health check with subsystem status."""
    subs: Dict[str, str] = {}
    subs["taxonomy"] = "loaded" if state.taxonomy and not state.taxonomy.is_empty else "empty"
    subs["store"] = "ready" if state.store else "unavailable"
    subs["qc"] = "ready" if state.engine else "unavailable"
    subs["jobs"] = "ready" if state.queue else "unavailable"
    subs["publish_target"] = (
        "github" if state.publisher and state.publisher.github else "local"
    )
    uptime = time.monotonic() - state.start_time if state.start_time else 0
    subs["uptime_seconds"] = f"{uptime:.0f}"
    return StatusResponse(status="ok", timestamp=now_iso(), subsystems=subs)


# ===================================================================
# Graph, Direction & Planner
# ===================================================================


@app.get("/graph", tags=["Planning"])
async def get_graph():
    """Content graph built from the taxonomy."""
    return graph_to_dict(build_graph(_taxonomy()))


@app.get("/direction", tags=["Planning"])
async def get_direction():
    return read_direction(state.direction_path).model_dump()


@app.patch("/direction", tags=["Planning"])
async def update_direction(updates: Dict[str, Any]):
    """Merge a partial update into the direction document."""
    try:
        direction = patch_direction(updates, state.direction_path)
    except DirectionError as exc:
        raise HTTPException(400, f"Invalid direction: {exc}")
    return direction.model_dump()


@app.post("/planner/next", tags=["Planning"])
async def planner_next(req: Optional[PlannerNextRequest] = None):
    """Picks for today's batch, capped at ``publish_per_day``."""
    direction = read_direction(state.direction_path)
    n = next_batch_size(req.n if req else None, direction)
    plan = plan_next(build_graph(_taxonomy()), direction, n)
    return plan.model_dump()


@app.get("/planner/peek", tags=["Planning"])
async def planner_peek(n: Optional[int] = None):
    """Preview up to 20 upcoming picks."""
    direction = read_direction(state.direction_path)
    plan = plan_next(build_graph(_taxonomy()), direction, peek_batch_size(n))
    return plan.model_dump()


# ===================================================================
# QC
# ===================================================================


@app.post("/qc", tags=["QC"])
async def run_qc(req: QCRequest):
    """Run every enabled QC rule against an article."""
    article = _parse_article_or_400(req.article)
    engine = _require_engine()
    existing = _require_store().list_articles()
    report = engine.run(article, existing, _taxonomy(), update=req.update)
    data = report.to_dict()
    data["gate_passed"], data["reasons"] = engine.check_gate(report)
    return data


@app.get("/qc/rules", tags=["QC"])
async def qc_rules():
    return {"rules": [rule.to_dict() for rule in _require_engine().rules]}


@app.get("/qc/history", tags=["QC"])
async def qc_history(slug: Optional[str] = None, limit: int = Query(50, ge=1, le=500)):
    engine = _require_engine()
    history = engine.get_history(slug=slug, limit=limit)
    return {"count": len(history), "history": history}


# ===================================================================
# Publishing
# ===================================================================


@app.post("/publish", tags=["Publishing"])
async def publish(req: PublishRequest):
    """QC-gate an article and write it to the publish target."""
    if not req.article:
        return JSONResponse(status_code=400, content={"ok": False, "error": "Missing article data"})
    article = _parse_article_or_400(req.article)
    publisher = _require_publisher()
    start = time.monotonic()
    try:
        result = await publisher.publish_article(
            article, skip_qc=req.skip_qc, overwrite=req.overwrite,
        )
    except PublishBlockedError as exc:
        return JSONResponse(status_code=422, content={
            "ok": False,
            "error": str(exc),
            "reasons": exc.reasons,
            "summary": exc.summary,
        })
    except PublishError as exc:
        raise HTTPException(500, f"Publish failed: {exc}")
    elapsed = (time.monotonic() - start) * 1000
    return {
        "ok": True,
        "url": result.url,
        "result": result.to_dict(),
        "duration_ms": round(elapsed, 1),
    }


@app.get("/publish/history", tags=["Publishing"])
async def publish_history(slug: Optional[str] = None, limit: int = Query(50, ge=1, le=500)):
    history = _require_publisher().get_history(slug=slug, limit=limit)
    return {"count": len(history), "history": history}


# ===================================================================
# Articles
# ===================================================================


@app.get("/articles", tags=["Articles"])
async def list_articles():
    """Stored articles, newest first."""
    return [article.to_dict() for article in _require_store().list_articles()]


@app.get("/articles/{slug}", tags=["Articles"])
async def get_article(slug: str):
    store = _require_store()
    try:
        article = store.get_article(slug)
    except NotFoundError:
        raise HTTPException(404, "Article not found")
    except ValueError as exc:
        raise HTTPException(400, str(exc))
    return {"article": article.to_dict()}


# ===================================================================
# Jobs
# ===================================================================


@app.get("/jobs", tags=["Jobs"])
async def list_jobs(status: Optional[str] = None, type: Optional[str] = None):
    try:
        jobs = _require_queue().list(status=status, job_type=type)
    except ValueError as exc:
        raise HTTPException(400, str(exc))
    return {"jobs": [job.to_dict() for job in jobs]}


@app.post("/jobs", tags=["Jobs"])
async def create_job(req: JobCreateRequest):
    queue = _require_queue()
    try:
        created = queue.enqueue(req.type, req.payload, title=req.title)
    except ValueError as exc:
        raise HTTPException(400, str(exc))
    return {"job": queue.get(created["id"]).to_dict()}


@app.get("/jobs/stats", tags=["Jobs"])
async def job_stats():
    return _require_queue().get_stats()


@app.get("/jobs/{job_id}", tags=["Jobs"])
async def get_job(job_id: str):
    try:
        job = _require_queue().get(job_id)
    except NotFoundError:
        raise HTTPException(404, "Job not found")
    return {"job": job.to_dict()}


@app.patch("/jobs/{job_id}", tags=["Jobs"])
async def update_job(job_id: str, req: JobUpdateRequest):
    try:
        job = _require_queue().update_status(
            job_id, req.status,
            progress=req.progress, current_step=req.current_step, error=req.error,
        )
    except NotFoundError:
        raise HTTPException(404, "Job not found")
    except ValueError as exc:
        raise HTTPException(400, str(exc))
    return {"job": job.to_dict()}


# ===================================================================
# Roadmap
# ===================================================================


@app.get("/roadmap", tags=["Roadmap"])
async def list_roadmap(
    status: Optional[str] = None,
    intent: Optional[str] = None,
    make: Optional[str] = None,
    priority: Optional[str] = None,
    search: Optional[str] = None,
):
    try:
        items = _require_roadmap().list_items(
            status=status, intent=intent, make=make, priority=priority, search=search,
        )
    except ValueError as exc:
        raise HTTPException(400, str(exc))
    return {"items": [item.to_dict() for item in items]}


@app.post("/roadmap", tags=["Roadmap"])
async def create_roadmap_item(req: RoadmapCreateRequest):
    fields = req.model_dump(exclude_none=True)
    title = fields.pop("title")
    intent = fields.pop("intent")
    try:
        item = _require_roadmap().add_item(title, intent, **fields)
    except ValueError as exc:
        raise HTTPException(400, str(exc))
    return item.to_dict()


@app.patch("/roadmap/{item_id}", tags=["Roadmap"])
async def update_roadmap_item(item_id: str, req: RoadmapUpdateRequest):
    try:
        item = _require_roadmap().update_item(item_id, **req.model_dump(exclude_unset=True))
    except NotFoundError:
        raise HTTPException(404, "Roadmap item not found")
    except ValueError as exc:
        raise HTTPException(400, str(exc))
    return item.to_dict()


@app.delete("/roadmap/{item_id}", response_model=ActionResponse, tags=["Roadmap"])
async def delete_roadmap_item(item_id: str):
    if not _require_roadmap().remove_item(item_id):
        raise HTTPException(404, "Roadmap item not found")
    return ActionResponse(success=True, message=f"Removed {item_id}")


# ===================================================================
# Search
# ===================================================================


@app.get("/search", tags=["Search"])
async def search(
    q: str = "",
    kind: Optional[str] = None,
    pillar: Optional[str] = None,
    section: Optional[str] = None,
    cluster: Optional[str] = None,
    sort: str = "relevance",
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100),
):
    """Keyword search; ``kind`` is a comma-separated list of document kinds."""
    kinds = [k.strip() for k in kind.split(",") if k.strip()] if kind else None
    try:
        return _require_search().search(
            q, kinds=kinds, pillar=pillar, section=section, cluster=cluster,
            sort=sort, page=page, limit=limit,
        )
    except ValueError as exc:
        raise HTTPException(400, str(exc))


@app.get("/search/suggest", tags=["Search"])
async def search_suggest(q: str = "", limit: int = Query(DEFAULT_SUGGEST_LIMIT, ge=1, le=20)):
    return _require_search().suggest(q, limit=limit)


# ===================================================================
# IndexNow
# ===================================================================


@app.get("/indexnow/logs", tags=["IndexNow"])
async def indexnow_logs(limit: int = Query(100, ge=1, le=100)):
    logs = _require_indexnow().get_logs(limit)
    return {"success": True, "count": len(logs), "logs": logs}


@app.post("/indexnow/submit", tags=["IndexNow"])
async def indexnow_submit(req: IndexNowSubmitRequest):
    """Submit URLs right away instead of queueing them."""
    if not req.urls:
        raise HTTPException(400, "No URLs provided")
    return await _require_indexnow().submit(req.urls, reason=req.reason or "manual")


@app.post("/indexnow/process", tags=["IndexNow"])
async def indexnow_process():
    """Drain queued ``indexnow-ping`` jobs."""
    try:
        return await _require_indexnow().process_queue()
    except HTTPError as exc:
        raise HTTPException(500, f"IndexNow processing failed: {exc}")


@app.get("/indexnow-key.txt", response_class=PlainTextResponse, tags=["IndexNow"])
async def indexnow_key():
    return _require_indexnow().api_key


# ===================================================================
# Sitemaps & robots
# ===================================================================


def _sitemap_urls():
    return build_sitemap_urls(state.base_url or get_base_url(), _taxonomy(), _require_store().list_articles())


def _sitemap_page(page: int) -> Response:
    urls = _sitemap_urls()
    if page < 1 or page > page_count(urls):
        raise HTTPException(404, "Sitemap page not found")
    return Response(content=render_sitemap(urls, page), media_type=XML_MEDIA_TYPE)


@app.get("/sitemap.xml", tags=["Sitemaps"])
async def sitemap(page: int = Query(1, ge=1)):
    return _sitemap_page(page)


@app.get("/sitemap-{page}.xml", tags=["Sitemaps"])
async def sitemap_numbered(page: int):
    """Pages 2 and up, named the way `torquepress sitemap --out` writes them."""
    if page < 2:
        raise HTTPException(404, "Sitemap page not found")
    return _sitemap_page(page)


@app.get("/video-sitemap.xml", tags=["Sitemaps"])
async def video_sitemap():
    return Response(
        content=render_video_sitemap(state.base_url or get_base_url(), _require_store().list_articles()),
        media_type=XML_MEDIA_TYPE,
    )


@app.get("/sitemap_index.xml", tags=["Sitemaps"])
async def sitemap_index():
    pages = page_count(_sitemap_urls())
    return Response(
        content=render_sitemap_index(state.base_url or get_base_url(), pages),
        media_type=XML_MEDIA_TYPE,
    )


@app.get("/robots.txt", response_class=PlainTextResponse, tags=["Sitemaps"])
async def robots():
    return render_robots(state.base_url or None)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    uvicorn.run(
        "torquepress.api:app",
        host=API_HOST,
        port=API_PORT,
        reload=False,
        log_level="info",
    )
