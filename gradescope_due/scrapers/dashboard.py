"""Course discovery from the Gradescope dashboard."""

import logging
import re
from dataclasses import asdict, dataclass
from typing import Dict, List, Optional
from urllib.parse import urljoin

from bs4 import Tag

from gradescope_due.constants import DEFAULT_BASE_URL
from gradescope_due.scrapers.page_tree import (
    box,
    child_element_count,
    parent_element,
    previous_element_sibling,
    text,
)

logger = logging.getLogger("gradescope_due")

COURSE_HREF_PATTERN = re.compile(r"/courses/(\d+)")
TERM_PATTERN = re.compile(r"\b(Spring|Summer|Fall|Winter)\s+20\d{2}\b", re.IGNORECASE)

# Course cards are large; sidebar and breadcrumb links share the href shape
CARD_MIN_WIDTH = 200
CARD_MIN_HEIGHT = 60
MAX_NAME_LENGTH = 120

TERM_WALK_DEPTH = 6
TERM_WALK_SIBLINGS = 8
TERM_LABEL_MAX_CHILDREN = 2
TERM_ABOVE_TOLERANCE = 5


@dataclass
class Course:
    """A course as known to the local store."""

    id: str
    name: str
    url: str
    term: Optional[str] = None
    access: Optional[str] = None  # 'ok', 'denied', or None if never scraped
    last_seen: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


def _looks_like_card(anchor: Tag) -> bool:
    anchor_box = box(anchor)
    if anchor_box is None:
        # Unmeasured snapshot; nothing to filter on
        return True
    return anchor_box.width > CARD_MIN_WIDTH and anchor_box.height > CARD_MIN_HEIGHT


def _course_name(anchor: Tag, course_id: str) -> str:
    title_el = anchor.select_one("h3, h2, h1, strong")
    name = text(title_el) if title_el is not None else ""
    if not name:
        name = text(anchor)
    return name[:MAX_NAME_LENGTH] or f"Course {course_id}"


def _term_above(anchor: Tag, root: Tag) -> Optional[str]:
    """Pick the nearest term label rendered at or above the anchor."""
    anchor_box = box(anchor)
    if anchor_box is None:
        return None

    best_top = None
    best_term = None
    for el in root.find_all(True):
        el_box = box(el)
        if el_box is None or child_element_count(el) > TERM_LABEL_MAX_CHILDREN:
            continue
        match = TERM_PATTERN.search(text(el))
        if not match:
            continue
        if el_box.top <= anchor_box.top + TERM_ABOVE_TOLERANCE and (best_top is None or el_box.top >= best_top):
            best_top = el_box.top
            best_term = match.group(0)
    return best_term


def find_term_near(anchor: Tag, root: Tag) -> Optional[str]:
    """Infer the academic term label for a course card.

    Gradescope groups cards under term headings. The heading is usually a
    preceding sibling of the card or of one of its ancestors; when the
    markup doesn't nest that way, the closest heading above the card on the
    rendered page is used instead.
    """
    cur: Optional[Tag] = anchor
    for _ in range(TERM_WALK_DEPTH):
        if cur is None:
            break
        sib = previous_element_sibling(cur)
        steps = 0
        while sib is not None and steps < TERM_WALK_SIBLINGS:
            match = TERM_PATTERN.search(text(sib))
            if match:
                return match.group(0)
            sib = previous_element_sibling(sib)
            steps += 1
        cur = parent_element(cur)

    return _term_above(anchor, root)


def discover_courses(root: Tag, base_url: str = DEFAULT_BASE_URL) -> List[Course]:
    """Extract the visible courses from a rendered dashboard page.

    Args:
        root: Parsed dashboard page tree.
        base_url: Site origin used to build absolute course URLs.

    Returns:
        Courses in the order they first appear on the page. When a course
        is listed twice, the later listing's details win.
    """
    found: Dict[str, Course] = {}

    for anchor in root.select('a[href^="/courses/"]'):
        href = anchor.get("href") or ""
        match = COURSE_HREF_PATTERN.search(href)
        if not match:
            continue
        if not _looks_like_card(anchor):
            continue

        course_id = match.group(1)
        found[course_id] = Course(
            id=course_id,
            name=_course_name(anchor, course_id),
            url=urljoin(base_url, href),
            term=find_term_near(anchor, root),
        )

    logger.debug(f"Discovered {len(found)} courses on dashboard")
    return list(found.values())


def terms_in_order(courses: List[Course]) -> List[str]:
    """Distinct term labels in first-seen order; the first is the newest term."""
    terms: List[str] = []
    for course in courses:
        if course.term and course.term not in terms:
            terms.append(course.term)
    return terms
