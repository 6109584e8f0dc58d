import logging

from fastapi import FastAPI

from management_api.api.permissions import router as permissions_router
from management_api.api.repos import router as repos_router
from management_api.core.dependencies import get_data_dir, get_settings

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


app = FastAPI(
    title="Repository Management API",
    version="0.1.0",
    description="Management API for repository configs and Artifactory-style permission targets.",
)


@app.on_event("startup")
async def startup_event() -> None:
    """
    Load the management settings and apply the configured log level.
    """
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())
    logger.info(f"Management API started, data directory: {get_data_dir()}")


@app.get("/health")
async def health() -> dict:
    """
    Lightweight health check endpoint.
    """
    return {"status": "ok"}


app.include_router(repos_router, tags=["repos"])
# Registered last: it carries the catch-all PUT route for malformed permission paths.
app.include_router(permissions_router, tags=["permissions"])


if __name__ == "__main__":
    """
    Allow running `python -m management_api.main` to start the Uvicorn
    development server.
    """
    import uvicorn

    uvicorn.run(
        "management_api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
