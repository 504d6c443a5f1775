from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn
from contextlib import asynccontextmanager

from src.api.fastapi import FastAPIApp
from src.core.config import get_settings
from src.core.supabase_client import clear_cached_client as clear_supabase_client
from src.services.github.github_app import clear_cached_client as clear_github_app_service
from src.utils.exception import add_exception_handlers
from src.utils.logging.otel_logger import logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logger.info(f"Starting up FaaSr backend (env={settings.env}, session provider={settings.SESSION_PROVIDER})")

    yield

    logger.info("Shutting down FaaSr backend")
    clear_github_app_service()
    clear_supabase_client()


settings = get_settings()

app_instance = FastAPIApp(lifespan=lifespan)
app = app_instance.get_app()

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.CORS_CREDENTIALS,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=settings.cors_headers,
)

add_exception_handlers(app, logger)

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000, log_level="info")
