"""
Torquepress CLI -- Unified Command Line

Single entry point for the content pipeline: graph inspection, planning,
QC, publishing, editorial direction, sitemaps, search, the job queue and
the API server.

Usage:
    python -m torquepress.cli <command> [options]
    torquepress <command> [options]

Examples:
    torquepress graph
    torquepress plan next --n 3
    torquepress qc check --article content/drafts/rav4-vs-cr-v.json
    torquepress publish --article content/drafts/rav4-vs-cr-v.json
    torquepress direction patch '{"publish_per_day": 5}'
    torquepress sitemap --out public/
    torquepress search "hybrid towing" --kind article
    torquepress jobs list --status queued
    torquepress serve --port 8780
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, List, Optional

from torquepress import __version__
from torquepress import planner, qc

# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------

_NO_COLOR = os.environ.get("NO_COLOR") or not sys.stdout.isatty()

_RESET = "" if _NO_COLOR else "\033[0m"
_BOLD = "" if _NO_COLOR else "\033[1m"
_DIM = "" if _NO_COLOR else "\033[2m"
_RED = "" if _NO_COLOR else "\033[31m"
_GREEN = "" if _NO_COLOR else "\033[32m"
_YELLOW = "" if _NO_COLOR else "\033[33m"

_OK = f"{_GREEN}●{_RESET}"
_WARN = f"{_YELLOW}●{_RESET}"
_FAIL = f"{_RED}●{_RESET}"


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str, ensure_ascii=False))


def _print_header(title: str) -> None:
    print(f"\n{_BOLD}{title}{_RESET}")
    print(f"{_DIM}{'=' * len(title)}{_RESET}")


def _load_article_file(path_str: str):
    from torquepress.article_schema import ArticleValidationError, parse_article

    path = Path(path_str)
    if not path.exists():
        print(f"{_FAIL} File not found: {path}", file=sys.stderr)
        return None
    try:
        return parse_article(json.loads(path.read_text(encoding="utf-8")))
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        print(f"{_FAIL} Invalid JSON in {path}: {exc}", file=sys.stderr)
    except ArticleValidationError as exc:
        print(f"{_FAIL} {exc}", file=sys.stderr)
        for error in exc.errors:
            print(f"    - {error}", file=sys.stderr)
    return None


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_graph(args: argparse.Namespace) -> int:
    from torquepress.graph import build_graph, graph_to_dict
    from torquepress.taxonomy import get_taxonomy

    graph = build_graph(get_taxonomy())
    if args.json:
        _print_json(graph_to_dict(graph))
        return 0

    counts = graph.counts
    _print_header("Content Graph")
    print(f"  Pillars:  {counts.pillars}")
    print(f"  Sections: {counts.sections}")
    print(f"  Clusters: {counts.clusters}")
    print(f"  Articles: {counts.articles}")
    print(f"  Edges:    {len(graph.edges)}")
    if counts.byCluster:
        print(f"\n  {'Cluster':<32} Articles")
        for slug, count in sorted(counts.byCluster.items(), key=lambda x: -x[1]):
            print(f"  {slug:<32} {count:>8}")
    print()
    return 0


def _cmd_publish(args: argparse.Namespace) -> int:
    from torquepress.publish import PublishBlockedError, PublishError, Publisher

    article = _load_article_file(args.article)
    if article is None:
        return 1
    try:
        result = asyncio.run(Publisher().publish_article(
            article, skip_qc=args.skip_qc, overwrite=args.overwrite,
        ))
    except PublishBlockedError as exc:
        print(f"\n{_FAIL} Publish blocked by QC ({len(exc.reasons)} failure(s)):")
        for reason in exc.reasons:
            print(f"    - {reason}")
        print()
        return 2
    except PublishError as exc:
        print(f"\n{_FAIL} {exc}\n", file=sys.stderr)
        return 1

    if args.json:
        _print_json(result.to_dict())
        return 0
    print(f"\n{_OK} Published {result.slug} ({result.target})")
    print(f"    URL:          {result.url}")
    print(f"    Path:         {result.path}")
    print(f"    Video job:    {result.video_job_id}")
    print(f"    IndexNow job: {result.indexnow_job_id}\n")
    return 0


def _cmd_direction(args: argparse.Namespace) -> int:
    from torquepress.direction import DirectionError, patch_direction, read_direction

    if args.action == "show":
        _print_json(read_direction().model_dump())
        return 0

    try:
        updates = json.loads(args.updates)
    except json.JSONDecodeError as exc:
        print(f"{_FAIL} Invalid JSON: {exc}", file=sys.stderr)
        return 1
    try:
        direction = patch_direction(updates)
    except DirectionError as exc:
        print(f"{_FAIL} {exc}", file=sys.stderr)
        return 1
    print(f"{_OK} Direction updated")
    _print_json(direction.model_dump())
    return 0


def _cmd_sitemap(args: argparse.Namespace) -> int:
    from torquepress.config import get_base_url
    from torquepress.links import build_content_tree, save_content_tree
    from torquepress.sitemap import (
        SITEMAP_INDEX_NAME,
        VIDEO_SITEMAP_NAME,
        build_sitemap_urls,
        page_count,
        render_robots,
        render_sitemap,
        render_sitemap_index,
        render_video_sitemap,
        sitemap_filename,
    )
    from torquepress.storage import ArticleStore
    from torquepress.taxonomy import get_taxonomy

    base_url = (args.base_url or get_base_url()).rstrip("/")
    taxonomy = get_taxonomy()
    articles = ArticleStore().list_articles()
    urls = build_sitemap_urls(base_url, taxonomy, articles)
    pages = page_count(urls)

    if not args.out:
        print(render_sitemap(urls, 1), end="")
        return 0

    out = Path(args.out)
    out.mkdir(parents=True, exist_ok=True)
    for page in range(1, pages + 1):
        (out / sitemap_filename(page)).write_text(render_sitemap(urls, page), encoding="utf-8")
    (out / VIDEO_SITEMAP_NAME).write_text(render_video_sitemap(base_url, articles), encoding="utf-8")
    (out / SITEMAP_INDEX_NAME).write_text(render_sitemap_index(base_url, pages), encoding="utf-8")
    (out / "robots.txt").write_text(render_robots(base_url), encoding="utf-8")
    save_content_tree(build_content_tree(taxonomy, articles))

    print(f"{_OK} {len(urls)} URL(s) in {pages} sitemap page(s) written to {out}")
    return 0


def _cmd_search(args: argparse.Namespace) -> int:
    from torquepress.search import get_search_index

    kinds = [k.strip() for k in args.kind.split(",") if k.strip()] if args.kind else None
    try:
        response = get_search_index().search(
            args.query, kinds=kinds, sort=args.sort, page=args.page, limit=args.limit,
        )
    except ValueError as exc:
        print(f"{_FAIL} {exc}", file=sys.stderr)
        return 1

    if args.json:
        _print_json(response)
        return 0
    _print_header(f"Search: {args.query!r} ({response['total']} result(s), {response['took_ms']} ms)")
    for result in response["results"]:
        doc = result["doc"]
        print(f"  {result['score']:>7.1f}  [{doc['kind']}] {doc['title']}")
        print(f"           {_DIM}{doc['url']}{_RESET}")
    print()
    return 0


def _cmd_jobs(args: argparse.Namespace) -> int:
    from torquepress.jobs import get_queue

    queue = get_queue()
    if args.action == "stats":
        stats = queue.get_stats()
        _print_header("Job Queue")
        print(f"  Total: {stats['total']}")
        for status, count in stats["by_status"].items():
            print(f"  {status:<12} {count:>5}")
        for job_type, count in stats["by_type"].items():
            print(f"  {_DIM}{job_type:<20} {count:>5}{_RESET}")
        print()
        return 0

    if args.action == "process-indexnow":
        from torquepress.indexnow import IndexNowClient

        async def _drain():
            async with IndexNowClient(queue=queue) as client:
                return await client.process_queue()

        processed = asyncio.run(_drain())
        print(f"{_OK} IndexNow pings: {processed['completed']} completed, {processed['failed']} failed")
        return 0 if not processed["failed"] else 1

    try:
        jobs = queue.list(status=args.status, job_type=args.type)
    except ValueError as exc:
        print(f"{_FAIL} {exc}", file=sys.stderr)
        return 1
    if args.json:
        _print_json([job.to_dict() for job in jobs])
        return 0
    if not jobs:
        print("\nNo jobs found.\n")
        return 0
    print(f"\n  {'ID':<24} {'Type':<16} {'Status':<11} {'Progress':>8}  Step")
    for job in jobs[:args.limit]:
        marker = {"completed": _OK, "failed": _FAIL}.get(job.status, _WARN)
        print(
            f"  {job.id:<24} {job.type:<16} {job.status:<11} {job.progress:>7}%  "
            f"{marker} {job.current_step}"
        )
    print()
    return 0


def _cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    from torquepress.config import get_api_host, get_api_port

    uvicorn.run(
        "torquepress.api:app",
        host=args.host or get_api_host(),
        port=args.port or get_api_port(),
        reload=args.reload,
        log_level="info",
    )
    return 0


def _cmd_delegate(args: argparse.Namespace) -> int:
    """Run a module's own handler (``planner`` and ``qc`` subcommands)."""
    try:
        args.func(args)
    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else 1
    return 0


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="torquepress",
        description="Torquepress content pipeline",
    )
    parser.add_argument("--version", action="version", version=f"torquepress {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="module", help="Available commands")

    sub_graph = subparsers.add_parser("graph", help="Show the content graph")
    sub_graph.add_argument("--json", action="store_true", help="Output the full graph as JSON")
    sub_graph.set_defaults(handler=_cmd_graph)

    sub_plan = subparsers.add_parser("plan", help="Planner (next, peek, scores)")
    planner.build_parser(sub_plan)
    sub_plan.set_defaults(handler=_cmd_delegate)

    sub_qc = subparsers.add_parser("qc", help="QC engine (check, rules, history, ...)")
    qc.build_parser(sub_qc)
    sub_qc.set_defaults(handler=_cmd_delegate)

    sub_publish = subparsers.add_parser("publish", help="Publish an article JSON file")
    sub_publish.add_argument("--article", required=True, help="Path to article JSON")
    sub_publish.add_argument("--skip-qc", action="store_true", help="Bypass the QC gate")
    sub_publish.add_argument("--overwrite", action="store_true", help="Replace a stored article with the same slug")
    sub_publish.add_argument("--json", action="store_true", help="Output JSON")
    sub_publish.set_defaults(handler=_cmd_publish)

    sub_direction = subparsers.add_parser("direction", help="Show or patch the editorial direction")
    direction_actions = sub_direction.add_subparsers(dest="action")
    direction_actions.add_parser("show", help="Print the direction document")
    sub_patch = direction_actions.add_parser("patch", help="Merge a JSON object into the direction")
    sub_patch.add_argument("updates", help='JSON object, e.g. \'{"publish_per_day": 5}\'')
    sub_direction.set_defaults(handler=_cmd_direction, action="show")

    sub_sitemap = subparsers.add_parser("sitemap", help="Render sitemaps and robots.txt")
    sub_sitemap.add_argument("--out", default=None, help="Output directory (default: print sitemap.xml)")
    sub_sitemap.add_argument("--base-url", default=None, help="Override BASE_URL")
    sub_sitemap.set_defaults(handler=_cmd_sitemap)

    sub_search = subparsers.add_parser("search", help="Search articles and topics")
    sub_search.add_argument("query", help="Search query")
    sub_search.add_argument("--kind", default=None, help="Comma-separated kinds (article,pillar,section,cluster)")
    sub_search.add_argument("--sort", default="relevance", help="relevance, newest or popular")
    sub_search.add_argument("--page", type=int, default=1)
    sub_search.add_argument("--limit", type=int, default=10)
    sub_search.add_argument("--json", action="store_true", help="Output JSON")
    sub_search.set_defaults(handler=_cmd_search)

    sub_jobs = subparsers.add_parser("jobs", help="Inspect the job queue")
    sub_jobs.add_argument(
        "action", nargs="?", default="list", choices=["list", "stats", "process-indexnow"],
    )
    sub_jobs.add_argument("--status", default=None, help="Filter by status")
    sub_jobs.add_argument("--type", default=None, help="Filter by job type")
    sub_jobs.add_argument("--limit", type=int, default=50)
    sub_jobs.add_argument("--json", action="store_true", help="Output JSON")
    sub_jobs.set_defaults(handler=_cmd_jobs)

    sub_serve = subparsers.add_parser("serve", help="Run the API server")
    sub_serve.add_argument("--host", default=None)
    sub_serve.add_argument("--port", type=int, default=None)
    sub_serve.add_argument("--reload", action="store_true")
    sub_serve.set_defaults(handler=_cmd_serve)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point. Returns an exit code (0 ok, 1 error, 2 QC failure)."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    handler = getattr(args, "handler", None)
    if handler is None:
        parser.print_help()
        return 0
    if handler is _cmd_delegate and not getattr(args, "func", None):
        parser.parse_args([args.module, "--help"])
        return 0
    return handler(args)


if __name__ == "__main__":
    sys.exit(main())
