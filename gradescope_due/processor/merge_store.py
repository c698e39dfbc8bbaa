"""Keyed store of courses and assignments, and the scrape merge algorithm."""

import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urljoin

from gradescope_due.constants import (
    ACCESS_DENIED,
    ACCESS_OK,
    ALL_TERMS,
    DEFAULT_BASE_URL,
    DEFAULT_SETTINGS,
    STORAGE_KEYS,
    WINDOW_DAYS_MAX,
    WINDOW_DAYS_MIN,
)
from gradescope_due.processor.due_dates import format_instant, normalize_due_date
from gradescope_due.scrapers.course_page import UNTITLED, AssignmentCandidate, ScrapeResult
from gradescope_due.scrapers.dashboard import Course
from gradescope_due.utils.database import Database

logger = logging.getLogger("gradescope_due")

KEY_SEPARATOR = "|"
UNKNOWN_COURSE = "unknown"


@dataclass
class Assignment:
    """Latest known state of one assignment."""

    key: str
    course_id: str
    course_name: str
    assignment_id: Optional[str]
    assignment_name: str
    url: str
    due_at: Optional[str]  # canonical ISO instant
    due_text: Optional[str]
    submitted: bool
    last_updated: str

    def to_dict(self) -> dict:
        return asdict(self)


def assignment_key(course_id: str, assignment_ref: str) -> str:
    """Composite key, stable across scrapes even when display text changes."""
    return f"{course_id}{KEY_SEPARATOR}{assignment_ref}"


def placeholder_course_name(course_id: str) -> str:
    return f"Course {course_id}"


class MergeStore:
    """Courses, assignments, settings and the refresh summary.

    Every read and write is a whole-map snapshot against the durable store.
    There is no locking here: callers must not run two merges at once.
    """

    def __init__(
        self,
        db: Database,
        base_url: str = DEFAULT_BASE_URL,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db
        self.base_url = base_url
        self._clock = clock or (lambda: datetime.now().astimezone())

    def now(self) -> datetime:
        return self._clock()

    def course_url(self, course_id: str) -> str:
        return urljoin(self.base_url, f"/courses/{course_id}")

    def get_courses(self) -> Dict[str, dict]:
        return self.db.get(STORAGE_KEYS['courses'], {})

    def get_assignments(self) -> Dict[str, dict]:
        return self.db.get(STORAGE_KEYS['assignments'], {})

    def _new_course(self, course_id: str, name: Optional[str]) -> dict:
        return Course(
            id=course_id,
            name=name or placeholder_course_name(course_id),
            url=self.course_url(course_id),
        ).to_dict()

    def merge(self, result: Optional[ScrapeResult], now: Optional[datetime] = None) -> None:
        """Fold one scrape result into the store.

        Assignments are overwritten whole at their key (last write wins);
        only the course display name falls back to what is already known.
        A denied result touches the course record and nothing else.

        Args:
            result: Result of scraping one course page.
            now: Timestamp for last_seen / last_updated and the reference
                year for due dates without one (default: now).
        """
        if result is None:
            return

        now = now or self.now()
        stamp = now.isoformat()
        courses = self.get_courses()

        if result.not_authorized:
            if not result.course_id:
                logger.debug("Ignoring access-denied result without a course id")
                return
            course = courses.get(result.course_id) or self._new_course(result.course_id, result.course_name)
            course["access"] = ACCESS_DENIED
            course["last_seen"] = stamp
            courses[result.course_id] = course
            self.db.set({STORAGE_KEYS['courses']: courses})
            logger.info(f"Course {result.course_id}: not authorized")
            return

        if not isinstance(result.items, list):
            logger.debug(f"Ignoring result for course {result.course_id} without an item list")
            return

        assignments = self.get_assignments()
        course_id = result.course_id
        course_name = result.course_name
        if not course_name and course_id and course_id in courses:
            course_name = courses[course_id].get("name")

        if course_id:
            course = courses.get(course_id) or self._new_course(course_id, course_name)
            if result.course_name:
                course["name"] = result.course_name
            course["access"] = ACCESS_OK
            course["last_seen"] = stamp
            courses[course_id] = course

        merged = 0
        for item in result.items:
            record = self._assignment_from_item(item, course_id, course_name, courses, stamp, now)
            if record is None:
                continue
            assignments[record.key] = record.to_dict()
            merged += 1

        self.db.set({
            STORAGE_KEYS['assignments']: assignments,
            STORAGE_KEYS['courses']: courses,
        })
        logger.debug(f"Merged {merged} assignments for course {course_id}")

    def _assignment_from_item(
        self,
        item: Any,
        course_id: Optional[str],
        course_name: Optional[str],
        courses: Dict[str, dict],
        stamp: str,
        now: Optional[datetime],
    ) -> Optional[Assignment]:
        if not isinstance(item, AssignmentCandidate):
            logger.debug(f"Skipping malformed item: {item!r}")
            return None
        if not all(isinstance(v, (str, type(None))) for v in (item.name, item.href, item.due_text, item.due_iso)):
            logger.debug(f"Skipping item with non-text fields: {item!r}")
            return None

        ref = item.assignment_id or item.href
        if not ref:
            logger.debug(f"Skipping item '{item.name}' without id or url")
            return None

        cid = item.course_id or course_id or UNKNOWN_COURSE
        key = assignment_key(cid, ref)
        due_at = normalize_due_date(item.due_text, item.due_iso, now=now)

        return Assignment(
            key=key,
            course_id=cid,
            course_name=(
                item.course_name
                or course_name
                or courses.get(cid, {}).get("name")
                or placeholder_course_name(cid)
            ),
            assignment_id=item.assignment_id,
            assignment_name=item.name or UNTITLED,
            url=item.href or urljoin(self.course_url(cid) + "/", f"assignments/{ref}"),
            due_at=format_instant(due_at),
            due_text=item.due_text,
            submitted=bool(item.submitted),
            last_updated=stamp,
        )

    def replace_courses(self, discovered: List[Course], now: Optional[datetime] = None) -> Dict[str, dict]:
        """Make the discovered set the course list, dropping courses no longer listed.

        Access outcomes of courses that are still listed are carried over;
        a refresh's own merges then update them.
        """
        stamp = (now or self.now()).isoformat()
        previous = self.get_courses()
        courses: Dict[str, dict] = {}
        for course in discovered:
            record = course.to_dict()
            record["last_seen"] = stamp
            if course.id in previous and previous[course.id].get("access"):
                record["access"] = previous[course.id]["access"]
            courses[course.id] = record
        self.db.set({STORAGE_KEYS['courses']: courses})
        return courses

    def get_settings(self) -> dict:
        stored = self.db.get(STORAGE_KEYS['settings'], {})
        return {**DEFAULT_SETTINGS, **stored}

    def update_settings(self, changes: Dict[str, Any]) -> dict:
        """Apply a partial settings update and return the stored result.

        Raises:
            ValueError: For unknown keys or an unusable window size.
        """
        unknown = set(changes) - set(DEFAULT_SETTINGS)
        if unknown:
            raise ValueError(f"Unknown settings: {', '.join(sorted(unknown))}")

        settings = {**self.get_settings(), **changes}
        try:
            window = int(settings['window_days'])
        except (TypeError, ValueError) as e:
            raise ValueError(f"window_days must be a number: {e}") from e
        settings['window_days'] = max(WINDOW_DAYS_MIN, min(WINDOW_DAYS_MAX, window))
        settings['term_filter'] = settings.get('term_filter') or ALL_TERMS
        settings['show_past'] = bool(settings['show_past'])
        settings['show_submitted'] = bool(settings['show_submitted'])

        self.db.set({STORAGE_KEYS['settings']: settings})
        return settings

    def apply_default_term(self, terms: List[str]) -> Optional[str]:
        """Point an unset or "all terms" filter at the newest discovered term.

        Returns:
            The term chosen, or None if the filter was left alone.
        """
        if not terms:
            return None
        current = self.get_settings().get('term_filter')
        if current and current != ALL_TERMS:
            return None
        self.update_settings({'term_filter': terms[0]})
        return terms[0]

    def write_summary(self, summary: dict) -> None:
        """Replace the diagnostic summary of the last refresh."""
        self.db.set({STORAGE_KEYS['debug']: summary})

    def get_summary(self) -> dict:
        return self.db.get(STORAGE_KEYS['debug'], {})

    def snapshot(self) -> dict:
        """Everything the presentation layer reads, in one dict."""
        return {
            'assignments': self.get_assignments(),
            'courses': self.get_courses(),
            'settings': self.get_settings(),
            'debug': self.get_summary(),
            'bytes_in_use': self.db.bytes_in_use(),
        }

    def clear_all(self) -> None:
        """Forget courses, assignments and the last summary. Settings stay."""
        self.db.remove([
            STORAGE_KEYS['assignments'],
            STORAGE_KEYS['courses'],
            STORAGE_KEYS['debug'],
        ])
        logger.info("Cleared cached courses, assignments and refresh summary")
