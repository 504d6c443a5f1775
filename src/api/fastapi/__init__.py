from fastapi import FastAPI

from src.api.fastapi.routes import register_routes
from src.core.config import get_settings


class FastAPIApp:
    def __init__(self, lifespan=None):
        settings = get_settings()
        self.app = FastAPI(
            title="FaaSr Backend",
            description="GitHub App installation and workflow registration API",
            version="1.0.0",
            debug=not settings.is_production,
            lifespan=lifespan,
        )
        register_routes(self.app)

    def get_app(self) -> FastAPI:
        return self.app
