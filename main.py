#main.py
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.workflow.errors import WorkflowError
from middleware import RequestContextMiddleware
from routes.admin_workflow import router as admin_workflow_router
from routes.health import router as health_router
from routes.invoices import router as invoices_router
from routes.quotes import router as quotes_router
from routes.webhooks import router as webhooks_router
from services.observability import configure_logging
from services.workflow_errors import http_status_for, workflow_error_body
from settings import settings, validate_env_settings

logger = logging.getLogger("catering.http")


def create_app() -> FastAPI:
    validate_env_settings()
    app = FastAPI(title="Catering Workflow API", version="1.0.0")
    app.add_middleware(RequestContextMiddleware)

    # -----------------------------
    # ROUTERS
    # -----------------------------

    app.include_router(health_router)
    app.include_router(quotes_router)
    app.include_router(invoices_router)
    app.include_router(admin_workflow_router)
    app.include_router(webhooks_router)

    @app.exception_handler(WorkflowError)
    async def workflow_error_handler(request: Request, exc: WorkflowError):
        status, _ = http_status_for(exc)
        if status >= 500:
            logger.error("workflow error path=%s code=%s err=%s", request.url.path, exc.code, exc)
        return JSONResponse(status_code=status, content=workflow_error_body(exc))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("unhandled error path=%s", request.url.path)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    return app


configure_logging(settings.LOG_LEVEL)

app = create_app()
