"""FastAPI application entry point."""
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from gradescope_due import __version__
from gradescope_due.api.routes import data, refresh
from gradescope_due.utils.database import PersistenceError

app = FastAPI(
    title="Gradescope Due API",
    description="API for reading and refreshing collected Gradescope due dates",
    version=__version__,
)

# Register routers
app.include_router(data.router)
app.include_router(refresh.router)


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError):
    """Store failures are reported, never leaked as a bare 500."""
    return JSONResponse(status_code=503, content={"ok": False, "detail": str(exc)})


@app.get("/api/health")
def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": __version__}
