from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cashflow.commands.router import router as commands_router
from cashflow.config import Settings
from cashflow.container import Container, build_container
from cashflow.dependencies import ContainerDep
from cashflow.event_store.router import router as events_router
from cashflow.exception_handlers import register_exception_handlers
from cashflow.logging_config import setup_logging
from cashflow.queries.router import router as queries_router


def create_app(settings: Settings | None = None, container: Container | None = None) -> FastAPI:
    settings = settings or (container.settings if container else Settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(settings.log_level, settings.log_json)
        owns_container = getattr(app.state, "container", None) is None
        if owns_container:
            app.state.container = await build_container(settings)
        yield
        if owns_container:
            await app.state.container.close()

    app = FastAPI(
        title="Cashflow",
        description="Event-sourced income and expense ledger",
        version="0.1.0",
        lifespan=lifespan,
    )
    if container is not None:
        app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[origin.strip() for origin in settings.cors_origins.split(",")],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(commands_router, prefix="/api/v1", tags=["commands"])
    app.include_router(queries_router, prefix="/api/v1", tags=["queries"])
    app.include_router(events_router, prefix="/api/v1", tags=["events"])

    @app.get("/api/v1/health")
    async def health(container: ContainerDep):
        if container.database is not None:
            await container.database.check_health()
        return {"status": "healthy", "store_backend": container.settings.store_backend}

    return app


app = create_app()


def run() -> None:
    settings = Settings()
    uvicorn.run(
        "cashflow.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
