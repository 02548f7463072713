"""
Main FastAPI application bootstrap.
Configures logging and middleware and includes routers.
"""
import logging

from fastapi import FastAPI

from assetcost.core.config import config
from assetcost.api.assets import router as assets_router
from assetcost.middleware.request_size_limiter import RequestSizeLimiterMiddleware


logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Validate configuration on startup
try:
    config.validate()
except ValueError as error:
    raise RuntimeError(f"Configuration error: {error}") from error

logger.info(
    "Default network tier %s, projected uptime %s h/month, report currency %s",
    config.DEFAULT_NETWORK_TIER,
    config.PROJECTED_HOURS_PER_MONTH,
    config.REPORT_CURRENCY
)


app = FastAPI(
    title="Asset Cost Estimation",
    description="Reconciles cloud asset inventories and estimates their monthly cost",
)

app.add_middleware(RequestSizeLimiterMiddleware)

app.include_router(assets_router)


@app.get("/health")
async def health() -> dict:
    """Liveness check."""
    return {"status": "ok"}
