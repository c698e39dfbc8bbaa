"""Process-wide store and refresher for the API."""
import os
import threading
from typing import Callable, ContextManager, Optional

from fastapi import Request

from gradescope_due.processor.merge_store import MergeStore
from gradescope_due.refresher import PageRenderer, RefreshConfig, Refresher
from gradescope_due.utils.database import Database

# Default database path - can be overridden via environment variable
DB_PATH = os.getenv("DATABASE_PATH", "data/gradescope_due.db")

_init_lock = threading.Lock()


def default_renderer_factory(config: RefreshConfig) -> Callable[[], ContextManager[PageRenderer]]:
    """Start a fresh browser per refresh, in the worker thread that runs it."""
    from gradescope_due.main import open_browser

    return lambda: open_browser(config)


def get_refresher(request: Request) -> Refresher:
    """Return the app's refresher, creating the store on first use."""
    state = request.app.state
    with _init_lock:
        refresher: Optional[Refresher] = getattr(state, "refresher", None)
        if refresher is None:
            config = RefreshConfig.from_env()
            store = MergeStore(Database(DB_PATH), base_url=config.base_url)
            refresher = Refresher(store, config=config)
            state.refresher = refresher
            if getattr(state, "renderer_factory", None) is None:
                state.renderer_factory = default_renderer_factory(config)
    return refresher


def get_renderer_factory(request: Request) -> Callable[[], ContextManager[PageRenderer]]:
    get_refresher(request)
    return request.app.state.renderer_factory
