from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse
from schemas.stats import HealthResponse, StatsResponse
from logging_config import get_logger

logger = get_logger(__name__)

stats_router = APIRouter(tags=["stats"])

USAGE_BANNER = (
    "Collaborative Todo List WebSocket Server\n"
    "Use WebSocket connection for real-time collaboration.\n"
    "\n"
    "Endpoints:\n"
    "/health - Health check\n"
    "/stats - Detailed statistics\n"
)


@stats_router.get("/health", response_model=HealthResponse)
async def health(request: Request):
    relay = request.app.state.relay
    logger.debug(f"Health check from {request.client.host if request.client else 'unknown'}")
    return relay.health()


@stats_router.get("/stats", response_model=StatsResponse)
async def stats(request: Request):
    return request.app.state.relay.stats()


# Registered last so /health and /stats win
@stats_router.get("/{path:path}", response_class=PlainTextResponse, include_in_schema=False)
async def usage(path: str):
    return USAGE_BANNER
