"""Scraper for a single Gradescope course page."""

import logging
import re
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, List, Optional, Tuple
from urllib.parse import urljoin, urlparse

from bs4 import Tag

from gradescope_due.constants import DEFAULT_BASE_URL
from gradescope_due.scrapers.page_tree import closest, has_class, lines, parent_element, text
from gradescope_due.processor.due_dates import normalize_datetime_attr, pick_due_line

logger = logging.getLogger("gradescope_due")
UNTITLED = "(untitled)"

NOT_AUTHORIZED_PATTERN = re.compile(r"not authorized to access", re.IGNORECASE)
COURSE_ID_PATTERN = re.compile(r"/courses/(\d+)")
ASSIGNMENT_ID_PATTERN = re.compile(r"/assignments/(\d+)")
SUBMITTED_PATTERN = re.compile(r"submitted", re.IGNORECASE)
NO_SUBMISSION_PATTERN = re.compile(r"no submission", re.IGNORECASE)

# Header layouts seen across Gradescope versions, most common first
COURSE_NAME_SELECTORS = [
    "h1",
    ".courseHeader--title",
    "[data-testid='course-header-title']",
    ".courseHeader",
]

DUE_DATE_CLASS = "submissionTimeChart--dueDate"


@dataclass
class AssignmentCandidate:
    """One assignment row as read off a course page."""

    course_id: Optional[str]
    course_name: Optional[str]
    assignment_id: Optional[str]
    name: str
    href: Optional[str]
    due_iso: Optional[str] = None
    due_text: Optional[str] = None
    submitted: bool = False
    status_text: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "AssignmentCandidate":
        """Build a candidate from a pushed JSON object, tolerating gaps."""
        return cls(
            course_id=_optional_str(data.get("course_id")),
            course_name=_optional_text(data.get("course_name")),
            assignment_id=_optional_str(data.get("assignment_id")),
            name=_optional_text(data.get("name")) or UNTITLED,
            href=_optional_text(data.get("href")),
            due_iso=_optional_text(data.get("due_iso")),
            due_text=_optional_text(data.get("due_text")),
            submitted=data.get("submitted") is True,
            status_text=_optional_text(data.get("status_text")) or "",
        )


@dataclass
class ScrapeResult:
    """Outcome of scraping one course page. Consumed once by the merge step."""

    course_id: Optional[str]
    course_name: Optional[str]
    items: Optional[List[AssignmentCandidate]] = field(default_factory=list)
    not_authorized: bool = False

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "ScrapeResult":
        """Build a result from a pushed JSON object.

        A non-list ``items`` value is kept as None so the merge treats the
        result as a no-op. Entries that are not objects are dropped.
        """
        raw_items = data.get("items")
        items: Optional[List[AssignmentCandidate]] = None
        if isinstance(raw_items, list):
            items = [AssignmentCandidate.from_dict(it) for it in raw_items if isinstance(it, dict)]
        return cls(
            course_id=_optional_str(data.get("course_id")),
            course_name=_optional_text(data.get("course_name")),
            items=items,
            not_authorized=data.get("not_authorized") is True,
        )


def _optional_str(value: Any) -> Optional[str]:
    """Identifiers arrive as strings or numbers; anything else is dropped."""
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        return None
    value = str(value).strip()
    return value or None


def _optional_text(value: Any) -> Optional[str]:
    """Non-empty string, or None for blanks and non-string values."""
    if not isinstance(value, str) or not value.strip():
        return None
    return value


def course_id_from_url(url: Optional[str]) -> Optional[str]:
    """Extract the numeric course id from a course page URL."""
    if not url:
        return None
    match = COURSE_ID_PATTERN.search(urlparse(url).path)
    return match.group(1) if match else None


def _assignment_id_from_href(href: Optional[str]) -> Optional[str]:
    if not href:
        return None
    match = ASSIGNMENT_ID_PATTERN.search(href)
    return match.group(1) if match else None


def page_not_authorized(root: Tag) -> bool:
    """Check whether the page is Gradescope's access-denied notice."""
    body = root.find("body")
    if body is None:
        body = root
    return bool(NOT_AUTHORIZED_PATTERN.search(text(body)))


def read_course_name(root: Tag) -> Optional[str]:
    """Return the course title from the page header, if any."""
    for selector in COURSE_NAME_SELECTORS:
        for el in root.select(selector):
            name = text(el)
            if name:
                return name
    return None


def _aria_label(el: Tag) -> str:
    return el.get("aria-label") or ""


def _labelled_due_at(el: Tag) -> bool:
    return _aria_label(el).lower().startswith("due at")


def _labelled_due_not_late(el: Tag) -> bool:
    label = _aria_label(el).lower()
    return "due" in label and "late due" not in label


def _marked_due_date(el: Tag) -> bool:
    return has_class(el, DUE_DATE_CLASS)


# Ordered from most to least trustworthy
DUE_TIME_PREFERENCES = (_labelled_due_at, _labelled_due_not_late, _marked_due_date)


def pick_due_time(due_cell: Optional[Tag]) -> Optional[Tag]:
    """Choose the ``<time>`` element holding the due date inside the due column.

    Only the due column is searched. Rows also carry "Released" and
    "Late Due Date" timestamps that must not be mistaken for the due date.
    """
    if due_cell is None:
        return None
    times = due_cell.select("time[datetime]")
    for preferred in DUE_TIME_PREFERENCES:
        for el in times:
            if preferred(el):
                return el
    return None


def _due_from_column(due_cell: Optional[Tag]) -> Tuple[Optional[str], Optional[str]]:
    due_time = pick_due_time(due_cell)
    if due_time is not None:
        return normalize_datetime_attr(due_time.get("datetime")), text(due_time) or None
    if due_cell is not None:
        return None, pick_due_line(lines(due_cell))
    return None, None


def _submission_status(cells: List[Tag]) -> Tuple[bool, str]:
    if not cells:
        return False, ""
    status_cell = cells[0]
    status_el = status_cell.select_one(".submissionStatus--text")
    if status_el is None:
        status_el = status_cell
    status_text = text(status_el)
    submitted = bool(SUBMITTED_PATTERN.search(status_text)) and not NO_SUBMISSION_PATTERN.search(status_text)
    return submitted, status_text


def _assignment_url(base_url: str, course_id: Optional[str], assignment_id: str, href: Optional[str]) -> str:
    if course_id:
        return urljoin(base_url, f"/courses/{course_id}/assignments/{assignment_id}")
    return urljoin(base_url, href or f"/assignments/{assignment_id}")


def scrape_from_table(
    root: Tag,
    course_id: Optional[str],
    course_name: Optional[str],
    base_url: str = DEFAULT_BASE_URL,
) -> List[AssignmentCandidate]:
    """Read assignments from the student assignments table.

    Rows without a resolvable assignment id (section headers, placeholder
    rows) are skipped.
    """
    items: List[AssignmentCandidate] = []
    table = root.select_one("#assignments-student-table")
    if table is None:
        table = root.select_one("table")
    rows = (table if table is not None else root).select("tbody tr")

    for row in rows:
        # Newer layouts use a submit button carrying the id instead of a link
        button = row.select_one("button.js-submitAssignment[data-assignment-id]")
        link = row.select_one('a[href*="/assignments/"]')
        if link is None:
            link = row.select_one("a")
        link_href = link.get("href") if link is not None else None

        assignment_id = (button.get("data-assignment-id") if button is not None else None) \
            or _assignment_id_from_href(link_href)
        if not assignment_id:
            logger.debug(f"Skipping table row without assignment id in course {course_id}")
            continue

        name = text(button) or text(link) or UNTITLED
        cells = row.select("td")
        submitted, status_text = _submission_status(cells)
        due_iso, due_text = _due_from_column(cells[-1] if cells else None)

        items.append(AssignmentCandidate(
            course_id=course_id,
            course_name=course_name,
            assignment_id=assignment_id,
            name=name,
            href=_assignment_url(base_url, course_id, assignment_id, link_href),
            due_iso=due_iso,
            due_text=due_text,
            submitted=submitted,
            status_text=status_text,
        ))

    return items


def _container_due_time(container: Tag) -> Optional[Tag]:
    times = container.select("time[datetime]")
    for el in times:
        if _labelled_due_at(el):
            return el
    for el in times:
        if _marked_due_date(el):
            return el
    return times[0] if times else None


def scrape_by_link_scan(
    root: Tag,
    course_id: Optional[str],
    course_name: Optional[str],
    base_url: str = DEFAULT_BASE_URL,
) -> List[AssignmentCandidate]:
    """Fallback: collect every assignment link on the page, one per id."""
    items: List[AssignmentCandidate] = []
    seen = set()

    for anchor in root.select('a[href*="/assignments/"]'):
        href = anchor.get("href") or ""
        assignment_id = _assignment_id_from_href(href)
        if not assignment_id or assignment_id in seen:
            continue
        seen.add(assignment_id)

        container = closest(anchor, ["tr", "li", "div"])
        if container is None:
            container = parent_element(anchor)

        due_text = None
        due_iso = None
        if container is not None:
            due_text = pick_due_line(lines(container))
            due_time = _container_due_time(container)
            if due_time is not None:
                due_iso = normalize_datetime_attr(due_time.get("datetime"))

        items.append(AssignmentCandidate(
            course_id=course_id,
            course_name=course_name,
            assignment_id=assignment_id,
            name=text(anchor) or UNTITLED,
            href=urljoin(base_url, href),
            due_iso=due_iso,
            due_text=due_text,
        ))

    return items


Strategy = Callable[[Tag, Optional[str], Optional[str], str], List[AssignmentCandidate]]

EXTRACTION_STRATEGIES: Tuple[Strategy, ...] = (scrape_from_table, scrape_by_link_scan)


def scrape_course(root: Tag, page_url: Optional[str], base_url: str = DEFAULT_BASE_URL) -> ScrapeResult:
    """Extract assignment candidates from a rendered course page.

    Args:
        root: Parsed page tree.
        page_url: URL the page was loaded from; supplies the course id.
        base_url: Site origin used to build absolute assignment URLs.

    Returns:
        ScrapeResult. Item order is not meaningful.
    """
    course_id = course_id_from_url(page_url)
    course_name = read_course_name(root)

    if page_not_authorized(root):
        logger.debug(f"Course {course_id}: access denied page")
        return ScrapeResult(course_id=course_id, course_name=course_name, items=[], not_authorized=True)

    items: List[AssignmentCandidate] = []
    for strategy in EXTRACTION_STRATEGIES:
        items = strategy(root, course_id, course_name, base_url)
        if items:
            logger.debug(f"Course {course_id}: {len(items)} items via {strategy.__name__}")
            break

    return ScrapeResult(course_id=course_id, course_name=course_name, items=items, not_authorized=False)
