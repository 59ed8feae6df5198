"""
Article store.

One JSON document per article under ``content/articles/{slug}.json``.
Writes are atomic; files that fail to parse or validate are skipped on
listing with a warning so one bad document never hides the rest.

Usage:
    from torquepress.storage import ArticleStore

    store = ArticleStore()
    store.save_article(article)
    for article in store.list_articles():
        print(article.slug)
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Optional

from torquepress.article_schema import Article, ArticleValidationError, parse_article
from torquepress.errors import NotFoundError
from torquepress.persistence import CONTENT_DIR, parse_iso, save_json

logger = logging.getLogger("torquepress.storage")

ARTICLES_DIR = CONTENT_DIR / "articles"


class ArticleNotFoundError(NotFoundError):
    """No stored article has the requested slug."""


def _sort_key(article: Article) -> float:
    stamp = parse_iso(article.updatedAt or article.publishedAt or "")
    return stamp.timestamp() if stamp else 0.0


class ArticleStore:
    """Filesystem-backed article documents."""

    def __init__(self, articles_dir: Optional[Path] = None) -> None:
        self.articles_dir = Path(articles_dir) if articles_dir else ARTICLES_DIR

    def path_for(self, slug: str) -> Path:
        if not slug or "/" in slug or "\\" in slug or slug.startswith("."):
            raise ValueError(f"Invalid article slug: {slug!r}")
        return self.articles_dir / f"{slug}.json"

    def exists(self, slug: str) -> bool:
        return self.path_for(slug).exists()

    def save_article(self, article: Article) -> Path:
        path = self.path_for(article.slug)
        save_json(path, article.to_dict())
        logger.info("Saved article %s -> %s", article.slug, path)
        return path

    def _read(self, path: Path) -> Article:
        with open(path, "r", encoding="utf-8") as f:
            return parse_article(json.load(f))

    def get_article(self, slug: str) -> Article:
        """Load one article.

        Raises:
            ArticleNotFoundError: if no file exists for ``slug``.
            ArticleValidationError: if the stored document is invalid.
        """
        path = self.path_for(slug)
        if not path.exists():
            raise ArticleNotFoundError(f"Article not found: {slug}")
        return self._read(path)

    def list_articles(self) -> List[Article]:
        """All valid articles, newest ``updatedAt``/``publishedAt`` first."""
        if not self.articles_dir.exists():
            return []
        articles: List[Article] = []
        for path in sorted(self.articles_dir.glob("*.json")):
            try:
                articles.append(self._read(path))
            except (
                json.JSONDecodeError, UnicodeDecodeError, OSError, ArticleValidationError,
            ) as exc:
                logger.warning("Skipping invalid article file %s: %s", path.name, exc)
        articles.sort(key=_sort_key, reverse=True)
        return articles

    def delete_article(self, slug: str) -> None:
        path = self.path_for(slug)
        if not path.exists():
            raise ArticleNotFoundError(f"Article not found: {slug}")
        path.unlink()
        logger.info("Deleted article %s", slug)
