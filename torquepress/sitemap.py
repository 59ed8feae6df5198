"""
Sitemaps and robots.txt.

``build_sitemap_urls`` lists the home page, static pages, every taxonomy
page and every stored article (plus its video page when the article has a
TL;DR to narrate). ``render_sitemap`` pages the list at 50,000 URLs per
file as the sitemap protocol requires. Pages after the first are served
and written as ``sitemap-2.xml``, ``sitemap-3.xml`` and so on.
``render_video_sitemap`` lists the video page of each narrated article.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Optional, Sequence
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit
from xml.sax.saxutils import escape

from torquepress.article_schema import Article, TLDRModule
from torquepress.config import get_base_url
from torquepress.persistence import now_iso
from torquepress.taxonomy import Taxonomy, strip_prefix

MAX_URLS_PER_SITEMAP = 50000
MAX_VIDEO_ENTRIES = 100
SITEMAP_NS = "http://www.sitemaps.org/schemas/sitemap/0.9"
VIDEO_NS = "http://www.google.com/schemas/sitemap-video/1.1"
VIDEO_SITEMAP_NAME = "video-sitemap.xml"
SITEMAP_INDEX_NAME = "sitemap_index.xml"

XML_ENTITIES = {'"': "&quot;", "'": "&apos;"}

STATIC_PAGES = (
    ("/search", 0.5),
    ("/editorial-policy", 0.6),
    ("/review-process", 0.6),
)

TRACKING_PARAMS = {
    "utm_source", "utm_medium", "utm_campaign", "utm_term", "utm_content",
    "gclid", "fbclid", "msclkid", "ref", "source",
}

AI_CRAWLERS = ("GPTBot", "ChatGPT-User", "CCBot", "anthropic-ai", "Claude-Web")
DISALLOWED_PATHS = ("/admin/", "/api/", "/private/", "/*?*utm_source=", "/*?*sessionid=")


@dataclass
class SitemapUrl:
    loc: str
    priority: float
    lastmod: Optional[str] = None


def canonical_url(url: str) -> str:
    """Drop tracking query parameters (utm_*, gclid, fbclid, ...)."""
    parts = urlsplit(url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k not in TRACKING_PARAMS]
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


def build_sitemap_urls(
    base_url: str, taxonomy: Taxonomy, articles: Sequence[Article],
) -> List[SitemapUrl]:
    base = base_url.rstrip("/")
    stamp = now_iso()
    urls = [SitemapUrl(base, 1.0, stamp)]
    urls.extend(SitemapUrl(f"{base}{path}", priority) for path, priority in STATIC_PAGES)

    for pillar in taxonomy.list_pillars():
        urls.append(SitemapUrl(f"{base}/topics/{pillar.slug}", 0.9, stamp))
        for section in taxonomy.list_sections(pillar.id) or taxonomy.list_sections(pillar.slug):
            urls.append(SitemapUrl(f"{base}/topics/{pillar.slug}/{section.slug}", 0.8, stamp))
            for cluster in taxonomy.list_clusters(section.pillarId):
                if strip_prefix(cluster.sectionId, "section-") != section.slug and cluster.sectionId != section.id:
                    continue
                urls.append(SitemapUrl(
                    f"{base}/topics/{pillar.slug}/{section.slug}/{cluster.slug}", 0.7, stamp,
                ))

    for article in articles:
        lastmod = article.updatedAt or article.publishedAt or stamp
        urls.append(SitemapUrl(f"{base}/articles/{article.slug}", 0.8, lastmod))
        if any(isinstance(m, TLDRModule) for m in article.modules or []):
            urls.append(SitemapUrl(f"{base}/video/{article.slug}", 0.7, lastmod))

    return urls


def page_count(urls: Sequence[SitemapUrl]) -> int:
    return max(1, math.ceil(len(urls) / MAX_URLS_PER_SITEMAP))


def sitemap_filename(page: int) -> str:
    """File name of sitemap page ``page``: ``sitemap.xml``, then ``sitemap-2.xml`` and on."""
    return "sitemap.xml" if page <= 1 else f"sitemap-{page}.xml"


def render_sitemap(urls: Sequence[SitemapUrl], page: int = 1) -> str:
    """``<urlset>`` XML for one page (1-based) of ``urls``."""
    start = (max(1, page) - 1) * MAX_URLS_PER_SITEMAP
    lines = ['<?xml version="1.0" encoding="UTF-8"?>', f'<urlset xmlns="{SITEMAP_NS}">']
    for url in urls[start:start + MAX_URLS_PER_SITEMAP]:
        lines.append("  <url>")
        lines.append(f"    <loc>{escape(url.loc)}</loc>")
        if url.lastmod:
            lines.append(f"    <lastmod>{escape(url.lastmod)}</lastmod>")
        lines.append(f"    <priority>{url.priority:.1f}</priority>")
        lines.append("  </url>")
    lines.append("</urlset>")
    return "\n".join(lines) + "\n"


def render_sitemap_index(base_url: str, pages: int = 1) -> str:
    base = base_url.rstrip("/")
    stamp = now_iso()
    locs = [f"{base}/{sitemap_filename(n)}" for n in range(1, max(1, pages) + 1)]
    locs.append(f"{base}/{VIDEO_SITEMAP_NAME}")

    lines = ['<?xml version="1.0" encoding="UTF-8"?>', f'<sitemapindex xmlns="{SITEMAP_NS}">']
    for loc in locs:
        lines.append("  <sitemap>")
        lines.append(f"    <loc>{escape(loc)}</loc>")
        lines.append(f"    <lastmod>{stamp}</lastmod>")
        lines.append("  </sitemap>")
    lines.append("</sitemapindex>")
    return "\n".join(lines) + "\n"


def render_video_sitemap(base_url: str, articles: Sequence[Article]) -> str:
    """Video ``<urlset>`` for the newest articles that carry a TL;DR to narrate."""
    base = base_url.rstrip("/")
    stamp = now_iso()
    lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        f'<urlset xmlns="{SITEMAP_NS}" xmlns:video="{VIDEO_NS}">',
    ]
    for article in articles[:MAX_VIDEO_ENTRIES]:
        tldr = next((m for m in article.modules or [] if isinstance(m, TLDRModule)), None)
        if tldr is None:
            continue
        published = article.publishedAt or stamp
        lines.append("  <url>")
        lines.append(f"    <loc>{escape(f'{base}/video/{article.slug}')}</loc>")
        lines.append(f"    <lastmod>{escape(article.updatedAt or published)}</lastmod>")
        lines.append("    <video:video>")
        lines.append(f"      <video:thumbnail_loc>{escape(f'{base}/videos/{article.slug}.jpg')}</video:thumbnail_loc>")
        lines.append(f"      <video:title>{escape(article.title, XML_ENTITIES)}</video:title>")
        lines.append(
            f"      <video:description>{escape(tldr.content or article.description, XML_ENTITIES)}</video:description>"
        )
        lines.append(f"      <video:content_loc>{escape(f'{base}/videos/{article.slug}.mp4')}</video:content_loc>")
        lines.append(f"      <video:publication_date>{escape(published)}</video:publication_date>")
        lines.append("    </video:video>")
        lines.append("  </url>")
    lines.append("</urlset>")
    return "\n".join(lines) + "\n"


def render_robots(base_url: Optional[str] = None) -> str:
    """robots.txt: site open except admin/API, AI training crawlers blocked."""
    base = (base_url or get_base_url()).rstrip("/")
    lines = ["User-agent: *", "Allow: /"]
    lines.extend(f"Disallow: {path}" for path in DISALLOWED_PATHS)
    for agent in AI_CRAWLERS:
        lines.extend(["", f"User-agent: {agent}", "Disallow: /"])
    lines.append("")
    for name in (sitemap_filename(1), VIDEO_SITEMAP_NAME, SITEMAP_INDEX_NAME):
        lines.append(f"Sitemap: {base}/{name}")
    lines.append(f"Host: {base}")
    return "\n".join(lines) + "\n"
