# settings.py

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

# Category folders under the content root. Not discovered from disk.
TARGET_CATEGORIES: Tuple[str, ...] = (
    "Devops",
    "GOlang",
    "DataBase",
    "Network",
    "Operating-System",
    "Data-Structure-and-Algorithm",
)

DEFAULT_CONTENT_ROOT = "study-content"
DEFAULT_GIT_HOST = "github.com"
DEFAULT_GIT_BRANCH = "main"
DEVELOPMENT = "development"

# Fallback store for running the API locally without POSTGRES_URL
LOCAL_DATABASE_URL = "sqlite+aiosqlite:///./posts.db"


class ConfigurationError(Exception):
    """Raised when required environment variables are missing."""

    def __init__(self, missing: List[str]):
        self.missing = list(missing)
        super().__init__(f"Missing environment variables: {', '.join(self.missing)}")


@dataclass
class Settings:
    database_url: str
    repo_owner: str
    repo_slug: str
    content_root: str = DEFAULT_CONTENT_ROOT
    repo_root: Path = field(default_factory=Path.cwd)
    app_env: str = "production"
    git_host: str = DEFAULT_GIT_HOST
    git_branch: str = DEFAULT_GIT_BRANCH
    categories: Tuple[str, ...] = TARGET_CATEGORIES

    @property
    def is_development(self) -> bool:
        return self.app_env == DEVELOPMENT

    @property
    def content_dir(self) -> Path:
        return self.repo_root / self.content_root

    @property
    def link_base(self) -> str:
        return f"https://{self.git_host}/{self.repo_owner}/{self.repo_slug}/blob/{self.git_branch}"

    def missing(self) -> List[str]:
        required = [
            ("POSTGRES_URL", self.database_url),
            ("VERCEL_GIT_REPO_OWNER", self.repo_owner),
            ("VERCEL_GIT_REPO_SLUG", self.repo_slug),
        ]
        return [name for name, value in required if not value]


def load_settings(environ: Optional[dict] = None) -> Settings:
    """Build Settings from the environment (``os.environ`` by default).

    Required values that are unset come back as empty strings so that
    ``Settings.missing()`` can report all of them at once.
    """
    env = os.environ if environ is None else environ
    repo_root = env.get("REPO_ROOT")
    return Settings(
        database_url=env.get("POSTGRES_URL", ""),
        repo_owner=env.get("VERCEL_GIT_REPO_OWNER", ""),
        repo_slug=env.get("VERCEL_GIT_REPO_SLUG", ""),
        content_root=(env.get("CONTENT_ROOT_PATH") or DEFAULT_CONTENT_ROOT).strip("/"),
        repo_root=Path(repo_root).expanduser() if repo_root else Path.cwd(),
        app_env=env.get("APP_ENV", "production").strip().lower(),
        git_host=env.get("GIT_HOST") or DEFAULT_GIT_HOST,
        git_branch=env.get("GIT_BRANCH") or DEFAULT_GIT_BRANCH,
    )


def normalize_database_url(url: str) -> str:
    """Point plain Postgres URLs at the asyncpg driver.

    ``postgres://`` and ``postgresql://`` become ``postgresql+asyncpg://`` and
    libpq's ``sslmode`` query parameter is renamed to asyncpg's ``ssl``.
    Anything else (sqlite+aiosqlite, explicit drivers) is returned unchanged.
    """
    parts = urlsplit(url)
    if parts.scheme not in ("postgres", "postgresql"):
        return url
    query = [("ssl" if key == "sslmode" else key, value) for key, value in parse_qsl(parts.query)]
    return urlunsplit(("postgresql+asyncpg", parts.netloc, parts.path, urlencode(query), parts.fragment))
