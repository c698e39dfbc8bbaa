"""Refresh orchestration: discover courses, scrape each one, merge results."""

import logging
import os
import threading
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, ContextManager, List, Optional, Protocol

from bs4 import BeautifulSoup

from gradescope_due.constants import (
    DEFAULT_BASE_URL,
    PAGE_TIMEOUT_SECONDS,
    RATE_LIMIT_SECONDS,
    SETTLE_SECONDS,
    SUMMARY_NOTES,
)
from gradescope_due.processor.merge_store import MergeStore
from gradescope_due.scrapers.browser import RenderedPage
from gradescope_due.scrapers.course_page import ScrapeResult, scrape_course
from gradescope_due.scrapers.dashboard import Course, discover_courses, terms_in_order

logger = logging.getLogger("gradescope_due")


class RefreshInProgressError(Exception):
    """Raised when a refresh is requested while another is running."""


class PageRenderer(Protocol):
    """What the orchestrator needs from a browser."""

    def render(self, url: str) -> ContextManager[RenderedPage]:
        ...

    def evaluate(self, rendered: RenderedPage, extract: Callable[[BeautifulSoup], Any]) -> Any:
        ...


@dataclass
class RefreshConfig:
    """Settings for one refresher instance."""

    base_url: str = DEFAULT_BASE_URL
    rate_limit_seconds: float = RATE_LIMIT_SECONDS
    page_timeout_seconds: float = PAGE_TIMEOUT_SECONDS
    settle_seconds: float = SETTLE_SECONDS

    @classmethod
    def from_env(cls) -> "RefreshConfig":
        """Build config from GRADESCOPE_BASE_URL and the timing variables."""
        return cls(
            base_url=os.getenv("GRADESCOPE_BASE_URL", DEFAULT_BASE_URL).rstrip("/"),
            rate_limit_seconds=float(os.getenv("RATE_LIMIT_SECONDS", RATE_LIMIT_SECONDS)),
            page_timeout_seconds=float(os.getenv("PAGE_TIMEOUT_SECONDS", PAGE_TIMEOUT_SECONDS)),
            settle_seconds=float(os.getenv("SETTLE_SECONDS", SETTLE_SECONDS)),
        )

    @property
    def dashboard_url(self) -> str:
        return f"{self.base_url}/"

    def course_url(self, course_id: str) -> str:
        return f"{self.base_url}/courses/{course_id}"


@dataclass
class CourseOutcome:
    """Diagnostic record for one attempted course."""

    id: str
    name: str
    term: Optional[str]
    url: str
    not_authorized: bool = False
    items_found: int = 0
    parsed_due_count: int = 0
    error: Optional[str] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        if self.error is None:
            del data["error"]
        else:
            for counter in ("not_authorized", "items_found", "parsed_due_count"):
                del data[counter]
        return data


@dataclass
class RefreshSummary:
    """What the latest refresh did. Diagnostics only."""

    last_refresh_at: str
    last_opened_urls: List[str] = field(default_factory=list)
    discovered_course_ids: List[str] = field(default_factory=list)
    discovered_terms: List[str] = field(default_factory=list)
    results: List[CourseOutcome] = field(default_factory=list)
    discovery_error: Optional[str] = None
    notes: str = SUMMARY_NOTES

    def to_dict(self) -> dict:
        return {
            "last_refresh_at": self.last_refresh_at,
            "last_opened_urls": list(self.last_opened_urls),
            "discovered_course_ids": list(self.discovered_course_ids),
            "discovered_terms": list(self.discovered_terms),
            "results": [r.to_dict() for r in self.results],
            "discovery_error": self.discovery_error,
            "notes": self.notes,
        }


class Refresher:
    """Run refreshes against one store, one at a time.

    Courses are processed strictly in sequence with a fixed pause between
    page loads. A failure on one course is recorded and the loop moves on;
    a store failure aborts the refresh.
    """

    def __init__(
        self,
        store: MergeStore,
        renderer: Optional[PageRenderer] = None,
        config: Optional[RefreshConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.store = store
        self.renderer = renderer
        self.config = config or RefreshConfig()
        self._sleep = sleep
        self._lock = threading.Lock()

    @property
    def is_refreshing(self) -> bool:
        return self._lock.locked()

    def refresh_all(self, renderer: Optional[PageRenderer] = None) -> RefreshSummary:
        """Discover courses, scrape each one, and merge the results.

        Args:
            renderer: Browser to use for this refresh instead of the one
                given at construction.

        Raises:
            RefreshInProgressError: If another refresh holds the store.
            PersistenceError: If the store cannot be read or written.
        """
        if not self._lock.acquire(blocking=False):
            raise RefreshInProgressError("A refresh is already running")
        try:
            return self._refresh_all(renderer if renderer is not None else self.renderer)
        finally:
            self._lock.release()

    def _refresh_all(self, renderer: Optional[PageRenderer]) -> RefreshSummary:
        if renderer is None:
            raise RuntimeError("No page renderer configured")

        summary = RefreshSummary(last_refresh_at=datetime.now(timezone.utc).isoformat())

        discovered = self._discover(renderer, summary)
        if discovered is None:
            # Keep the known course list rather than replacing it with nothing
            self.store.write_summary(summary.to_dict())
            return summary
        self.store.replace_courses(discovered)

        terms = terms_in_order(discovered)
        summary.discovered_course_ids = [c.id for c in discovered]
        summary.discovered_terms = terms
        default_term = self.store.apply_default_term(terms)
        if default_term:
            logger.info(f"Term filter defaulted to {default_term}")

        for index, course in enumerate(discovered):
            if index > 0:
                self._rate_limit()
            result = self._refresh_course(renderer, course, summary)
            if result is not None:
                self.store.merge(result)

        summary.last_refresh_at = datetime.now(timezone.utc).isoformat()
        self.store.write_summary(summary.to_dict())
        logger.info(
            f"Refresh complete: {len(discovered)} courses, "
            f"{sum(1 for r in summary.results if r.error)} failed"
        )
        return summary

    def _rate_limit(self) -> None:
        """Apply rate limiting between page loads."""
        if self.config.rate_limit_seconds > 0:
            self._sleep(self.config.rate_limit_seconds)

    def _discover(self, renderer: PageRenderer, summary: RefreshSummary) -> Optional[List[Course]]:
        url = self.config.dashboard_url
        summary.last_opened_urls.append(url)
        try:
            with renderer.render(url) as rendered:
                courses = renderer.evaluate(
                    rendered, lambda root: discover_courses(root, self.config.base_url)
                )
        except Exception as e:
            logger.warning(f"Course discovery failed: {e}")
            summary.discovery_error = str(e)
            return None
        logger.info(f"Discovered {len(courses)} courses")
        return courses

    def _refresh_course(self, renderer: PageRenderer, course: Course, summary: RefreshSummary) -> Optional[ScrapeResult]:
        """Scrape one course. Errors are recorded in the summary, not raised."""
        url = self.config.course_url(course.id)
        summary.last_opened_urls.append(url)

        try:
            with renderer.render(url) as rendered:
                result = renderer.evaluate(
                    rendered, lambda root: scrape_course(root, url, self.config.base_url)
                )
        except Exception as e:
            logger.warning(f"Course {course.id} ({course.name}) failed: {e}")
            summary.results.append(CourseOutcome(
                id=course.id, name=course.name, term=course.term, url=url, error=str(e),
            ))
            return None

        if result is None:
            result = ScrapeResult(course_id=course.id, course_name=course.name, items=[])
        if not result.course_id:
            result.course_id = course.id

        items = result.items or []
        outcome = CourseOutcome(
            id=course.id,
            name=course.name,
            term=course.term,
            url=url,
            not_authorized=result.not_authorized,
            items_found=len(items),
            parsed_due_count=sum(1 for it in items if it.due_text or it.due_iso),
        )
        summary.results.append(outcome)
        logger.info(
            f"  -> {course.id} ({course.name}): {outcome.items_found} items, "
            f"{outcome.parsed_due_count} with due dates"
            + (" [not authorized]" if outcome.not_authorized else "")
        )
        return result

    def apply_scrape_result(self, result: ScrapeResult) -> None:
        """Merge a result pushed from outside the refresh loop.

        Waits for a running refresh to finish rather than interleaving.
        """
        with self._lock:
            self.store.merge(result)

    def update_settings(self, changes: dict) -> dict:
        """Apply a settings change without racing a refresh that sets the term default."""
        with self._lock:
            return self.store.update_settings(changes)

    def clear_all(self) -> None:
        with self._lock:
            self.store.clear_all()

    def get_snapshot(self) -> dict:
        """Assignments, courses, settings, last summary and store size."""
        return self.store.snapshot()
