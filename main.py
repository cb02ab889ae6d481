import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from roster.database import create_db_and_tables
from roster.errors import RosterError, RateLimited
from roster.log_config import configure_logging
from roster.routers import auth, teams, messages, players

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    configure_logging()
    create_db_and_tables()
    logger.info("Database ready")
    yield


app = FastAPI(
    title="Team Roster",
    description="Team rosters, invite codes and team messaging for youth sports coaches",
    version="1.0.0",
    lifespan=lifespan
)


@app.exception_handler(RosterError)
async def roster_error_handler(request: Request, exc: RosterError):
    headers = None
    if isinstance(exc, RateLimited) and exc.retry_after_seconds:
        headers = {"Retry-After": str(exc.retry_after_seconds)}
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message},
        headers=headers
    )


app.include_router(auth.router)
app.include_router(teams.router)
app.include_router(messages.router)
app.include_router(players.router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
