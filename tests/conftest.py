"""Pytest configuration and shared fixtures."""

from contextlib import contextmanager
from datetime import datetime, timezone

import pytest

from gradescope_due.processor.merge_store import MergeStore
from gradescope_due.scrapers.browser import RenderedPage
from gradescope_due.scrapers.page_tree import parse_page
from gradescope_due.utils.database import Database

BASE_URL = "https://www.gradescope.com"
FIXED_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

DASHBOARD_HTML = """
<html><body>
<nav><a href="/courses/101" data-gs-box="10,5,80,20">Algorithms</a></nav>
<div class="courseList">
  <div class="courseList--coursesForTerm">
    <a class="courseBox" href="/courses/102" data-gs-box="0,100,300,120">
      <h3 class="courseBox--shortname">Databases</h3>
      <div class="courseBox--name">Intro to Databases</div>
    </a>
  </div>
  <div class="courseList--term" data-gs-box="0,300,200,30">Fall 2025</div>
  <div class="courseList--coursesForTerm">
    <a class="courseBox" href="/courses/101" data-gs-box="0,350,300,120">
      <h3 class="courseBox--shortname">Algorithms</h3>
      <div class="courseBox--name">Design and Analysis of Algorithms</div>
    </a>
  </div>
</div>
</body></html>
"""

COURSE_101_HTML = """
<html><body>
<h1 class="courseHeader--title">Algorithms</h1>
<table id="assignments-student-table">
  <thead><tr><th>Name</th><th>Status</th><th>Released</th><th>Due</th></tr></thead>
  <tbody>
    <tr>
      <th class="table--primaryLink"><a href="/courses/101/assignments/5001/submissions/new">Homework 1</a></th>
      <td><div class="submissionStatus"><div class="submissionStatus--text">No Submission</div></div></td>
      <td><time datetime="2026-01-10 09:00:00 -0500" aria-label="Released at Jan 10 at 9:00AM">Jan 10</time></td>
      <td><time class="submissionTimeChart--dueDate" datetime="2026-01-27 23:59:00 -0500"
                aria-label="Due at Jan 27 at 11:59PM">Jan 27 at 11:59PM</time></td>
    </tr>
  </tbody>
</table>
</body></html>
"""

NOT_AUTHORIZED_HTML = """
<html><body>
<div class="alert">You are not authorized to access this page.</div>
</body></html>
"""


@pytest.fixture
def temp_db(tmp_path):
    """Create a temporary database for testing."""
    db = Database(str(tmp_path / "test.db"))
    yield db
    db.close()


@pytest.fixture
def store(temp_db):
    """Merge store on a temporary database with a fixed clock."""
    return MergeStore(temp_db, base_url=BASE_URL, clock=lambda: FIXED_NOW)


class FakeRenderer:
    """Serves canned HTML per URL in place of a real browser."""

    def __init__(self, pages=None, failures=None):
        self.pages = pages or {}
        self.failures = failures or {}
        self.opened = []
        self.closed = []

    @contextmanager
    def render(self, url):
        self.opened.append(url)
        try:
            if url in self.failures:
                raise self.failures[url]
            html = self.pages.get(url, "<html><body></body></html>")
            yield RenderedPage(url=url, final_url=url, html=html)
        finally:
            self.closed.append(url)

    def evaluate(self, rendered, extract):
        return extract(parse_page(rendered.html))


@pytest.fixture
def scenario_pages():
    """Dashboard with two courses: one readable, one access-denied."""
    return {
        f"{BASE_URL}/": DASHBOARD_HTML,
        f"{BASE_URL}/courses/101": COURSE_101_HTML,
        f"{BASE_URL}/courses/102": NOT_AUTHORIZED_HTML,
    }


@pytest.fixture
def fake_renderer(scenario_pages):
    return FakeRenderer(scenario_pages)


# Integration test marker
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test (requires a logged-in browser session)"
    )


@pytest.fixture
def make_renderer():
    """Build a FakeRenderer from a URL -> HTML map and URL -> exception map."""
    return FakeRenderer


@pytest.fixture
def course_page_html():
    return COURSE_101_HTML


@pytest.fixture
def not_authorized_html():
    return NOT_AUTHORIZED_HTML


@pytest.fixture
def dashboard_html():
    return DASHBOARD_HTML
