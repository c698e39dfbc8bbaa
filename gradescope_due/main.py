#!/usr/bin/env python3
"""Gradescope Due - Main Entry Point.

Runs one refresh: discovers courses on the dashboard, scrapes each course
page, and merges the results into the local store. Presentation is handled
separately.
"""

import os
import sys
from datetime import datetime
from pathlib import Path

from dotenv import load_dotenv

from gradescope_due import __version__
from gradescope_due.processor.merge_store import MergeStore
from gradescope_due.refresher import RefreshConfig, Refresher
from gradescope_due.scrapers.browser import GradescopeBrowser
from gradescope_due.utils.database import Database
from gradescope_due.utils.logger import setup_logger

# Load environment variables from .env file
load_dotenv(Path(__file__).parent.parent / ".env")


def env_flag(name: str, default: bool) -> bool:
    """Read a boolean environment variable ('1', 'true', 'yes' are true)."""
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def open_store(config: RefreshConfig) -> MergeStore:
    """Open the durable store named by DATABASE_PATH."""
    db = Database(os.getenv("DATABASE_PATH", "data/gradescope_due.db"))
    return MergeStore(db, base_url=config.base_url)


def open_browser(config: RefreshConfig) -> GradescopeBrowser:
    """Start a browser using the saved Gradescope session."""
    return GradescopeBrowser(
        storage_state=os.getenv("GRADESCOPE_STORAGE_STATE"),
        headless=env_flag("HEADLESS", True),
        page_timeout_seconds=config.page_timeout_seconds,
        settle_seconds=config.settle_seconds,
    )


def main():
    """Refresh workflow - scrape every course and store the results."""

    logger = setup_logger(
        log_file=os.getenv("LOG_FILE", "logs/refresh.log")
    )

    logger.info("=" * 50)
    logger.info(f"Gradescope Due v{__version__} started at {datetime.now()}")
    logger.info("=" * 50)

    config = RefreshConfig.from_env()
    store = None

    try:
        store = open_store(config)
        with open_browser(config) as browser:
            refresher = Refresher(store, browser, config)
            summary = refresher.refresh_all()

        if summary.discovery_error:
            logger.error(f"Course discovery failed: {summary.discovery_error}")
            sys.exit(1)

        failed = [r for r in summary.results if r.error]
        denied = [r for r in summary.results if not r.error and r.not_authorized]
        logger.info("=" * 50)
        logger.info(
            f"Refresh complete! {len(summary.discovered_course_ids)} courses, "
            f"{len(denied)} not authorized, {len(failed)} failed"
        )
        logger.info("=" * 50)

    except Exception as e:
        logger.error(f"Error during refresh: {e}", exc_info=True)
        sys.exit(1)
    finally:
        if store is not None:
            store.db.close()


if __name__ == "__main__":
    main()
