"""Refresh, clear and push-ingestion API endpoints."""
from typing import Any, Callable, ContextManager, Dict

from fastapi import APIRouter, Body, Depends, HTTPException

from gradescope_due.api.state import get_refresher, get_renderer_factory
from gradescope_due.refresher import PageRenderer, Refresher, RefreshInProgressError
from gradescope_due.scrapers.course_page import ScrapeResult

router = APIRouter(prefix="/api", tags=["refresh"])


@router.post("/refresh")
def refresh_all(
    refresher: Refresher = Depends(get_refresher),
    renderer_factory: Callable[[], ContextManager[PageRenderer]] = Depends(get_renderer_factory),
):
    """Run a full refresh and return its summary.

    Scrape problems are reported inside the summary; only a refresh that
    is already running is an error.
    """
    if refresher.is_refreshing:
        raise HTTPException(status_code=409, detail="A refresh is already running")
    try:
        with renderer_factory() as renderer:
            summary = refresher.refresh_all(renderer=renderer)
    except RefreshInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"ok": True, "summary": summary.to_dict()}


@router.post("/clear")
def clear_all(refresher: Refresher = Depends(get_refresher)):
    """Forget stored courses, assignments and the last summary."""
    refresher.clear_all()
    return {"ok": True}


@router.post("/scraped")
def apply_scraped(
    payload: Dict[str, Any] = Body(...),
    refresher: Refresher = Depends(get_refresher),
):
    """Merge a scrape result pushed by a page outside the refresh loop."""
    refresher.apply_scrape_result(ScrapeResult.from_dict(payload))
    return {"ok": True}
