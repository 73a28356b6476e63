import logging

from fastapi import FastAPI

from worklane.config import settings
from worklane.errors import register_exception_handlers
from worklane.routes.health import router as health_router
from worklane.routes.orgs import router as orgs_router
from worklane.routes.permissions import router as permissions_router
from worklane.routes.projects import router as projects_router
from worklane.routes.roles import router as roles_router
from worklane.routes.tasks import router as tasks_router

def create_app() -> FastAPI:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="worklane", version="0.1.0")
    register_exception_handlers(app)
    app.include_router(health_router)
    app.include_router(orgs_router)
    app.include_router(roles_router)
    app.include_router(permissions_router)
    app.include_router(projects_router)
    app.include_router(tasks_router)
    return app

app = create_app()
