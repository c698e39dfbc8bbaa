"""Scrapers for Gradescope dashboard and course pages."""

from .course_page import AssignmentCandidate, ScrapeResult, scrape_course
from .dashboard import Course, discover_courses, terms_in_order

__all__ = [
    "AssignmentCandidate",
    "ScrapeResult",
    "scrape_course",
    "Course",
    "discover_courses",
    "terms_in_order",
]
