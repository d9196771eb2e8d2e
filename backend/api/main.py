"""
Main FastAPI application entry point.

Responsibilities:
- Initialize FastAPI app
- Include the Slack events router
- Setup startup/shutdown events
"""
from __future__ import annotations

import logging
import sys

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from api.routes import slack_events
from config import log_missing_env_vars
from services.redis_client import close_redis

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    stream=sys.stdout,
)
# Set agents module to DEBUG for detailed tool logging
logging.getLogger("agents").setLevel(logging.DEBUG)

app = FastAPI(title="GPT Slack Bridge API", version="1.0.0")


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log uncaught exceptions and answer with a generic 500."""
    logging.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


app.include_router(slack_events.router, prefix="/slack", tags=["slack"])


@app.on_event("startup")
async def startup() -> None:
    log_missing_env_vars(logging.getLogger("config"))


@app.on_event("shutdown")
async def shutdown() -> None:
    """Close the Redis client on shutdown."""
    await close_redis()
    logging.info("Redis connection closed")


@app.get("/")
async def root_health_check() -> dict[str, str]:
    """Root endpoint exposing the health check payload."""
    return await health_check()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    logging.info("Health check requested")
    return {"status": "ok"}
