"""Tests for course page scraping."""

from gradescope_due.scrapers.course_page import (
    AssignmentCandidate,
    ScrapeResult,
    course_id_from_url,
    pick_due_time,
    read_course_name,
    scrape_by_link_scan,
    scrape_course,
)
from gradescope_due.scrapers.page_tree import parse_page

BASE_URL = "https://www.gradescope.com"
COURSE_URL = f"{BASE_URL}/courses/101"


def _row(link, status, due_cell, released="<td></td>"):
    return f"""
    <tr>
      <th>{link}</th>
      <td><div class="submissionStatus--text">{status}</div></td>
      {released}
      <td>{due_cell}</td>
    </tr>"""


def _table_page(*rows):
    return (
        '<html><body><h1>Algorithms</h1><table id="assignments-student-table">'
        "<thead><tr><th>Name</th><th>Status</th><th>Released</th><th>Due</th></tr></thead>"
        f"<tbody>{''.join(rows)}</tbody></table></body></html>"
    )


class TestScrapeFromTable:
    """Tests for the table strategy."""

    def test_scenario_row(self, course_page_html):
        """One row with a due column yields one candidate with id, status and due fields."""
        result = scrape_course(parse_page(course_page_html), COURSE_URL, BASE_URL)

        assert result.course_id == "101"
        assert result.course_name == "Algorithms"
        assert result.not_authorized is False
        assert len(result.items) == 1
        item = result.items[0]
        assert item.assignment_id == "5001"
        assert item.name == "Homework 1"
        assert item.href == f"{BASE_URL}/courses/101/assignments/5001"
        assert item.due_iso == "2026-01-27T23:59:00-05:00"
        assert item.due_text == "Jan 27 at 11:59PM"
        assert item.submitted is False
        assert item.status_text == "No Submission"

    def test_released_time_outside_due_column_ignored(self):
        html = _table_page(_row(
            '<a href="/courses/101/assignments/7">HW</a>',
            "No Submission",
            "",
            released='<td><time datetime="2026-01-10 09:00:00 -0500" aria-label="Due at Jan 10">Jan 10</time></td>',
        ))
        item = scrape_course(parse_page(html), COURSE_URL, BASE_URL).items[0]
        assert item.due_iso is None
        assert item.due_text is None

    def test_submitted_status(self):
        html = _table_page(_row('<a href="/courses/101/assignments/7">HW</a>', "Submitted", ""))
        item = scrape_course(parse_page(html), COURSE_URL, BASE_URL).items[0]
        assert item.submitted is True

    def test_graded_score_is_not_submitted(self):
        html = _table_page(_row('<a href="/courses/101/assignments/7">HW</a>', "9.0 / 10.0", ""))
        item = scrape_course(parse_page(html), COURSE_URL, BASE_URL).items[0]
        assert item.submitted is False
        assert item.status_text == "9.0 / 10.0"

    def test_submit_button_row(self):
        """Rows with a submit button instead of a link still resolve an id."""
        html = _table_page(_row(
            '<button class="js-submitAssignment" data-assignment-id="42">Lab 2</button>',
            "No Submission",
            "Feb 3 at 5:00PM",
        ))
        item = scrape_course(parse_page(html), COURSE_URL, BASE_URL).items[0]
        assert item.assignment_id == "42"
        assert item.name == "Lab 2"
        assert item.href == f"{BASE_URL}/courses/101/assignments/42"
        assert item.due_text == "Feb 3 at 5:00PM"
        assert item.due_iso is None

    def test_rows_without_id_skipped(self):
        html = _table_page(
            '<tr><th colspan="4">Unreleased</th></tr>',
            _row('<a href="/courses/101/assignments/8">HW</a>', "No Submission", ""),
        )
        items = scrape_course(parse_page(html), COURSE_URL, BASE_URL).items
        assert [i.assignment_id for i in items] == ["8"]


class TestPickDueTime:
    """Tests for due-time preference inside the due column."""

    def test_due_at_beats_late_due(self):
        cell = parse_page(
            '<td>'
            '<time class="submissionTimeChart--dueDate" datetime="2026-02-03T23:59:00-05:00"'
            ' aria-label="Late Due Date at Feb 03 at 11:59PM">Feb 03</time>'
            '<time datetime="2026-01-27T23:59:00-05:00" aria-label="Due at Jan 27 at 11:59PM">Jan 27</time>'
            '</td>'
        ).td
        assert pick_due_time(cell).get("datetime") == "2026-01-27T23:59:00-05:00"

    def test_due_label_not_late(self):
        cell = parse_page(
            '<td>'
            '<time datetime="2026-02-03T23:59:00-05:00" aria-label="Late Due Date: Feb 03">Feb 03</time>'
            '<time datetime="2026-01-27T23:59:00-05:00" aria-label="Assignment due Jan 27">Jan 27</time>'
            '</td>'
        ).td
        assert pick_due_time(cell).get("datetime") == "2026-01-27T23:59:00-05:00"

    def test_marker_class_last_resort(self):
        cell = parse_page(
            '<td>'
            '<time datetime="2026-01-10T09:00:00-05:00">Jan 10</time>'
            '<time class="submissionTimeChart--dueDate" datetime="2026-01-27T23:59:00-05:00">Jan 27</time>'
            '</td>'
        ).td
        assert pick_due_time(cell).get("datetime") == "2026-01-27T23:59:00-05:00"

    def test_unlabelled_time_not_chosen(self):
        cell = parse_page('<td><time datetime="2026-01-10T09:00:00-05:00">Jan 10</time></td>').td
        assert pick_due_time(cell) is None


class TestLinkScan:
    """Tests for the link-scan fallback."""

    def test_dedupes_by_assignment_id(self):
        html = """
        <html><body><h1>Algorithms</h1>
        <ul>
          <li><a href="/courses/7/assignments/1">HW1</a><div>Jan 27 at 11:59PM</div>
              <a href="/courses/7/assignments/1">Submit</a></li>
          <li><a href="/courses/7/assignments/2">HW2</a>
              <time datetime="2026-02-01 17:00:00 -0500" aria-label="Due at Feb 1">Feb 1</time></li>
        </ul>
        <div><a href="/courses/7/assignments/2">HW2 again</a></div>
        </body></html>
        """
        result = scrape_course(parse_page(html), f"{BASE_URL}/courses/7", BASE_URL)

        assert [i.assignment_id for i in result.items] == ["1", "2"]
        first, second = result.items
        assert first.name == "HW1"
        assert first.due_text == "Jan 27 at 11:59PM"
        assert second.due_iso == "2026-02-01T17:00:00-05:00"
        assert all(i.submitted is False for i in result.items)

    def test_absolute_links(self):
        root = parse_page('<div><a href="/courses/7/assignments/3">Quiz</a></div>')
        items = scrape_by_link_scan(root, "7", None, BASE_URL)
        assert items[0].href == f"{BASE_URL}/courses/7/assignments/3"

    def test_empty_page(self):
        result = scrape_course(parse_page("<html><body><p>Nothing yet</p></body></html>"), COURSE_URL, BASE_URL)
        assert result.items == []
        assert result.not_authorized is False


class TestPageSignals:
    """Tests for access denial, course id and course name."""

    def test_not_authorized(self, not_authorized_html):
        result = scrape_course(parse_page(not_authorized_html), f"{BASE_URL}/courses/102", BASE_URL)
        assert result.not_authorized is True
        assert result.course_id == "102"
        assert result.items == []

    def test_course_id_from_url(self):
        assert course_id_from_url(f"{BASE_URL}/courses/101/assignments") == "101"
        assert course_id_from_url(f"{BASE_URL}/account") is None
        assert course_id_from_url(None) is None

    def test_course_name_selectors(self):
        root = parse_page('<div class="courseHeader--title">CS 161</div>')
        assert read_course_name(root) == "CS 161"
        assert read_course_name(parse_page("<p>none</p>")) is None


class TestScrapeResultFromDict:
    """Tests for results pushed as JSON."""

    def test_items_parsed(self):
        result = ScrapeResult.from_dict({
            "course_id": 101,
            "course_name": "Algorithms",
            "items": [{"assignment_id": 5001, "name": "HW1", "due_text": "Jan 27 at 11:59PM"}, "junk"],
        })
        assert result.course_id == "101"
        assert result.items == [AssignmentCandidate(
            course_id=None, course_name=None, assignment_id="5001", name="HW1",
            href=None, due_text="Jan 27 at 11:59PM",
        )]

    def test_non_list_items(self):
        assert ScrapeResult.from_dict({"course_id": "1", "items": "oops"}).items is None

    def test_wrong_types_dropped(self):
        item = AssignmentCandidate.from_dict({
            "course_id": True,
            "assignment_id": 7,
            "name": 42,
            "href": {"url": "x"},
            "due_text": 123,
            "due_iso": ["2026-01-27"],
            "submitted": "false",
            "status_text": None,
        })
        assert item.course_id is None
        assert item.assignment_id == "7"
        assert item.name == "(untitled)"
        assert item.href is None
        assert item.due_text is None
        assert item.due_iso is None
        assert item.submitted is False
        assert item.status_text == ""

    def test_not_authorized_must_be_true(self):
        assert ScrapeResult.from_dict({"course_id": "1", "not_authorized": "no", "items": []}).not_authorized is False
