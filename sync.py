# sync.py
"""
Reconcile the Markdown study notes in the repository with the ``posts`` table.

Every run lists ``<content-root>/<category>/*.md`` for the fixed categories,
reads the rows already in the store, and diffs the two collections by their
canonical GitHub link:

- files whose link has no row are inserted (title, empty content, category, link)
- rows whose link has no file are deleted by id
- links present on both sides are left alone (title/category drift is never corrected)

Run with ``python -m sync`` (or the ``portfolio-sync`` script).
"""

import argparse
import asyncio
import logging
import os
import sys
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from database import create_tables, make_engine, make_session_factory
from posts import delete_post, insert_post, select_persisted
from settings import ConfigurationError, Settings, load_settings
from utils import mask_url, setup_logging

logger = logging.getLogger(__name__)

MARKDOWN_EXT = ".md"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Row-level store failures are logged and skipped, never re-raised
STORE_ERRORS = (SQLAlchemyError, OSError)


@dataclass(frozen=True)
class LocalDocument:
    title: str
    category: str
    link_url: str
    content: str = ""


@dataclass(frozen=True)
class PersistedPost:
    id: int
    title: str
    category: Optional[str]
    link_url: Optional[str]


@dataclass
class SyncPlan:
    to_add: List[LocalDocument] = field(default_factory=list)
    to_delete: List[PersistedPost] = field(default_factory=list)


@dataclass
class SyncReport:
    plan: SyncPlan
    added: List[LocalDocument] = field(default_factory=list)
    deleted: List[PersistedPost] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


def build_link_url(settings: Settings, category: str, filename: str) -> str:
    relative_path = f"{settings.content_root}/{category}/{filename}"
    return f"{settings.link_base}/{relative_path}"


def is_note_file(name: str) -> bool:
    return name.endswith(MARKDOWN_EXT) and "readme" not in name.lower()


def _log_repo_root(settings: Settings) -> None:
    try:
        dirs = sorted(entry.name for entry in os.scandir(settings.repo_root) if entry.is_dir())
    except OSError as e:
        logger.warning("Could not list repository root %s: %s", settings.repo_root, e)
        return
    logger.warning("Directories at %s: %s", settings.repo_root, ", ".join(dirs) or "(none)")


def scan_local(settings: Settings) -> List[LocalDocument]:
    """List the Markdown notes under the content root.

    Categories are visited in configured order and files in directory-listing
    order. A missing content root or category folder yields nothing for it.
    """
    content_dir = settings.content_dir
    logger.info("Scanning for %s files in: %s", MARKDOWN_EXT, content_dir)

    try:
        exists = content_dir.is_dir()
    except OSError as e:
        logger.error("Could not check content directory %s: %s", content_dir, e)
        return []
    if not exists:
        logger.warning("Content directory not found: %s. Skipping local file scan.", content_dir)
        _log_repo_root(settings)
        return []

    documents = []
    for category in settings.categories:
        category_dir = content_dir / category
        try:
            if not category_dir.is_dir():
                continue
            names = [entry.name for entry in os.scandir(category_dir) if entry.is_file()]
        except OSError as e:
            logger.warning("Could not list %s: %s", category_dir, e)
            continue
        for name in names:
            if not is_note_file(name):
                continue
            documents.append(
                LocalDocument(
                    title=name[: -len(MARKDOWN_EXT)],
                    category=category,
                    link_url=build_link_url(settings, category, name),
                )
            )

    logger.info("Found %d %s files locally.", len(documents), MARKDOWN_EXT)
    return documents


async def fetch_persisted(session: AsyncSession) -> List[PersistedPost]:
    """Read every post row. A failed read is logged and treated as an empty table."""
    logger.info("Fetching posts from the database...")
    try:
        rows = await select_persisted(session)
    except STORE_ERRORS as e:
        await session.rollback()
        logger.error("Error fetching from DB: %s", e)
        return []
    posts = [PersistedPost(id=row.id, title=row.title, category=row.category, link_url=row.link_url) for row in rows]
    logger.info("Found %d posts in DB.", len(posts))
    return posts


def plan_sync(local: List[LocalDocument], persisted: List[PersistedPost]) -> SyncPlan:
    local_map = {doc.link_url: doc for doc in local}
    db_map = {post.link_url: post for post in persisted}
    return SyncPlan(
        to_add=[doc for doc in local if doc.link_url not in db_map],
        to_delete=[post for post in persisted if post.link_url not in local_map],
    )


async def apply_plan(session: AsyncSession, plan: SyncPlan) -> SyncReport:
    """Insert, then delete, one row at a time. Each row commits on its own."""
    report = SyncReport(plan=plan)

    for doc in plan.to_add:
        logger.info("[+] ADDING: %s (Category: %s)", doc.title, doc.category)
        try:
            await insert_post(session, doc.title, doc.content, doc.category, doc.link_url)
        except STORE_ERRORS as e:
            await session.rollback()
            logger.error("Failed to add %s: %s", doc.title, e)
            report.failed.append(doc.link_url)
        else:
            report.added.append(doc)

    for post in plan.to_delete:
        logger.info("[-] DELETING: %s (ID: %s)", post.title, post.id)
        try:
            await delete_post(session, post.id)
        except STORE_ERRORS as e:
            await session.rollback()
            logger.error("Failed to delete %s: %s", post.title, e)
            report.failed.append(post.link_url)
        else:
            report.deleted.append(post)

    return report


async def reconcile(settings: Settings, dry_run: bool = False, create_schema: bool = False) -> Optional[SyncReport]:
    """Run one synchronization pass.

    Raises ConfigurationError when required settings are missing, unless
    running in development mode, where the pass is skipped and None returned.
    """
    logger.info("--- Starting Portfolio Sync ---")

    missing = settings.missing()
    if missing:
        logger.error("Missing environment variables: %s. Aborting sync.", ", ".join(missing))
        if not settings.is_development:
            raise ConfigurationError(missing)
        logger.warning("Continuing without sync (local development)...")
        return None

    logger.info("Using database %s", mask_url(settings.database_url))
    engine = make_engine(settings.database_url)
    session_factory = make_session_factory(engine)
    try:
        if create_schema:
            await create_tables(engine)
        async with session_factory() as session:
            local, persisted = await asyncio.gather(
                asyncio.to_thread(scan_local, settings),
                fetch_persisted(session),
            )
            plan = plan_sync(local, persisted)
            logger.info("%d to add, %d to delete.", len(plan.to_add), len(plan.to_delete))
            if dry_run:
                for doc in plan.to_add:
                    logger.info("[+] would add: %s (Category: %s)", doc.title, doc.category)
                for post in plan.to_delete:
                    logger.info("[-] would delete: %s (ID: %s)", post.title, post.id)
                report = SyncReport(plan=plan)
            else:
                report = await apply_plan(session, plan)
    finally:
        await engine.dispose()

    if report.failed:
        logger.warning("%d row operation(s) failed.", len(report.failed))
    logger.info("--- Sync Complete ---")
    return report


def parse_args(argv=None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Sync Markdown study notes with the posts table.")
    p.add_argument("--dry-run", action="store_true", help="Show what would change without writing.")
    p.add_argument("--create-tables", action="store_true", help="Create the posts table if it is missing.")
    p.add_argument("--log-level", default="INFO", type=str.upper, choices=LOG_LEVELS, help="Logging level (default: INFO).")
    return p.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level)
    settings = load_settings()
    try:
        asyncio.run(reconcile(settings, dry_run=args.dry_run, create_schema=args.create_tables))
    except ConfigurationError:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
