"""Tests for the Playwright page renderer."""

from unittest.mock import MagicMock, patch

import pytest
from playwright.sync_api import TimeoutError as PlaywrightTimeout

from gradescope_due.scrapers.browser import GradescopeBrowser, RenderError, RenderedPage


@pytest.fixture
def mock_playwright():
    """Patch sync_playwright and hand back the page mock."""
    with patch("gradescope_due.scrapers.browser.sync_playwright") as mock_sync:
        page = MagicMock()
        page.url = "https://www.gradescope.com/courses/101"
        page.content.return_value = "<html><body><h1>Algorithms</h1></body></html>"
        context = MagicMock()
        context.new_page.return_value = page
        playwright = mock_sync.return_value.start.return_value
        playwright.chromium.launch.return_value.new_context.return_value = context
        yield page


class TestGradescopeBrowser:
    """Tests for GradescopeBrowser."""

    def test_render_yields_snapshot(self, mock_playwright):
        browser = GradescopeBrowser(settle_seconds=0)
        with browser.render("https://www.gradescope.com/courses/101") as rendered:
            assert rendered.html.startswith("<html>")
            assert rendered.final_url == "https://www.gradescope.com/courses/101"
        mock_playwright.evaluate.assert_called_once()
        mock_playwright.close.assert_called_once()

    def test_timeout_scrapes_partial_content(self, mock_playwright):
        mock_playwright.goto.side_effect = PlaywrightTimeout("Timeout 20000ms exceeded")
        browser = GradescopeBrowser(settle_seconds=0)
        with browser.render("https://www.gradescope.com/") as rendered:
            assert "Algorithms" in rendered.html

    def test_page_closed_when_extraction_fails(self, mock_playwright):
        browser = GradescopeBrowser(settle_seconds=0)
        with pytest.raises(ValueError):
            with browser.render("https://www.gradescope.com/courses/101"):
                raise ValueError("bad markup")
        mock_playwright.close.assert_called_once()

    def test_settle_wait(self, mock_playwright):
        browser = GradescopeBrowser(settle_seconds=0.5)
        with browser.render("https://www.gradescope.com/"):
            pass
        mock_playwright.wait_for_timeout.assert_called_once_with(500.0)

    def test_evaluate_parses_snapshot(self, mock_playwright):
        browser = GradescopeBrowser()
        rendered = RenderedPage(url="u", final_url="u", html="<h1>Algorithms</h1>")
        assert browser.evaluate(rendered, lambda root: root.h1.get_text()) == "Algorithms"

    def test_render_without_browser(self, mock_playwright):
        browser = GradescopeBrowser()
        browser.close()
        with pytest.raises(RenderError):
            with browser.render("https://www.gradescope.com/"):
                pass

    def test_missing_storage_state_ignored(self, mock_playwright, tmp_path):
        with patch("gradescope_due.scrapers.browser.logger") as mock_logger:
            GradescopeBrowser(storage_state=str(tmp_path / "missing.json"))
        mock_logger.warning.assert_called_once()

    def test_context_manager_closes(self, mock_playwright):
        with GradescopeBrowser() as browser:
            assert browser.context is not None
        assert browser.context is None
        assert browser.playwright is None
