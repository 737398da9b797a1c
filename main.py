from typing import Dict

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import logging
from settings.config import settings
from budgets.budget_routes import router as budget_router
from budgets.errors import BudgetError
from db.postgres import init_postgres, close_postgres
from settings.logging_config import configure_logging

logger = logging.getLogger(__name__)


async def budget_error_handler(request: Request, exc: BudgetError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})


def get_app(connect_db: bool = True) -> FastAPI:
    configure_logging()
    logger.info("Starting StonkyStonk API")
    app = FastAPI(title="StonkyStonk API")

    # CORS: enable permissive defaults for local development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(BudgetError, budget_error_handler)

    # DB lifecycle
    if connect_db:
        @app.on_event("startup")
        async def on_startup() -> None:
            logger.info("Initializing database")
            await init_postgres()

        @app.on_event("shutdown")
        async def on_shutdown() -> None:
            logger.info("Closing database")
            await close_postgres()

    # Routers
    if settings.ENABLE_BUDGETS:
        app.include_router(budget_router)
    logger.info("Routers initialized successfully")

    # Health
    @app.get("/health")
    async def health_check() -> Dict[str, str]:
        return {"status": "ok"}

    logger.info("API started")
    return app


# ASGI app instance
app = get_app()
