"""
Environment configuration.

Values are read from the environment when called, so tests and long-running
processes pick up changes without re-importing modules.

    BASE_URL / VERCEL_URL            public site origin
    GITHUB_TOKEN / GITHUB_OWNER /
    GITHUB_REPO / GITHUB_BRANCH      publish target (optional)
    INDEXNOW_API_KEY                 IndexNow ownership key (optional)
    TORQUEPRESS_API_HOST / _PORT     API bind address
    TORQUEPRESS_CORS_ORIGINS         comma-separated allowed origins
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Optional

DEFAULT_BASE_URL = "http://localhost:3000"
DEFAULT_API_HOST = "0.0.0.0"
DEFAULT_API_PORT = 8780
DEFAULT_CORS_ORIGINS = "http://localhost:3000,http://localhost:8780"


def get_base_url() -> str:
    """Public site origin without trailing slash, always with a scheme."""
    raw = os.getenv("BASE_URL") or os.getenv("VERCEL_URL") or DEFAULT_BASE_URL
    url = raw if raw.startswith("http") else f"https://{raw}"
    return url.rstrip("/")


def abs_url(path: str, base: Optional[str] = None) -> str:
    """Join a site path onto the base URL. Absolute URLs pass through."""
    if path.startswith("http://") or path.startswith("https://"):
        return path
    base = (base or get_base_url()).rstrip("/")
    return f"{base}{path if path.startswith('/') else '/' + path}"


@dataclass
class GitHubSettings:
    token: str
    owner: str
    repo: str
    branch: Optional[str] = None

    @property
    def contents_url(self) -> str:
        return f"https://api.github.com/repos/{self.owner}/{self.repo}/contents"


def get_github_settings() -> Optional[GitHubSettings]:
    """GitHub publish target, or None unless token, owner and repo are all set."""
    token = os.getenv("GITHUB_TOKEN", "")
    owner = os.getenv("GITHUB_OWNER", "")
    repo = os.getenv("GITHUB_REPO", "")
    if not (token and owner and repo):
        return None
    return GitHubSettings(token=token, owner=owner, repo=repo, branch=os.getenv("GITHUB_BRANCH") or None)


def get_indexnow_key() -> Optional[str]:
    return os.getenv("INDEXNOW_API_KEY") or None


def get_api_host() -> str:
    return os.getenv("TORQUEPRESS_API_HOST", DEFAULT_API_HOST)


def get_api_port() -> int:
    return int(os.getenv("TORQUEPRESS_API_PORT", str(DEFAULT_API_PORT)))


def get_cors_origins() -> List[str]:
    raw = os.getenv("TORQUEPRESS_CORS_ORIGINS", DEFAULT_CORS_ORIGINS)
    return [origin.strip() for origin in raw.split(",") if origin.strip()]
