from fastapi import FastAPI
from . import health, install, auth, workflows

def register_routes(app: FastAPI):
    app.include_router(health.router)
    app.include_router(install.router)
    app.include_router(auth.router)
    app.include_router(workflows.router)
