"""Snapshot and settings API endpoints."""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from gradescope_due.api.state import get_refresher
from gradescope_due.refresher import Refresher

router = APIRouter(prefix="/api", tags=["data"])


class SettingsUpdate(BaseModel):
    """Partial settings update; omitted fields keep their stored value."""

    window_days: Optional[int] = None
    term_filter: Optional[str] = None
    show_past: Optional[bool] = None
    show_submitted: Optional[bool] = None


@router.get("/data")
def get_data(refresher: Refresher = Depends(get_refresher)):
    """Everything the presentation layer needs in one response."""
    return refresher.get_snapshot()


@router.get("/settings")
def get_settings(refresher: Refresher = Depends(get_refresher)):
    """Current display settings."""
    return {"ok": True, "settings": refresher.store.get_settings()}


@router.put("/settings")
def update_settings(update: SettingsUpdate, refresher: Refresher = Depends(get_refresher)):
    """Change display settings and return the stored values."""
    try:
        settings = refresher.update_settings(update.model_dump(exclude_none=True))
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return {"ok": True, "settings": settings}
