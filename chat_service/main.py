"""
Chat Service - main application entry point.

FastAPI application: REST identity/conversation endpoints and the
real-time conversation engine over WebSocket.
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from chat_service.api.v1.endpoints import router as v1_router
from chat_service.core.config import AppConfig, config as default_config, logger
from chat_service.core.dependencies import ServiceContainer, build_container
from chat_service.core.errors import ChatServiceError, DomainError
from chat_service.middleware import JWTAuthMiddleware


def create_app(config: AppConfig | None = None, container: ServiceContainer | None = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        config: Settings (defaults to environment-based settings)
        container: Prebuilt service container (tests inject their own)
    """
    config = config or default_config

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting Chat Service v{config.version}...")
        app.state.container = container or build_container(config)
        try:
            await app.state.container.start()
            logger.info("✓ Service container started")
        except Exception as e:
            logger.error(f"Failed to initialize: {e}")
            raise

        yield

        logger.info("Shutting down Chat Service...")
        await app.state.container.stop()

    app = FastAPI(
        title="Chat Service",
        version=config.version,
        description="Real-time chat with generated replies and sentiment tagging",
        lifespan=lifespan,
    )

    app.add_middleware(JWTAuthMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ChatServiceError)
    async def chat_service_error_handler(request: Request, exc: ChatServiceError):
        if isinstance(exc, DomainError):
            logger.warning(f"{exc.error_code} on {request.url.path}: {exc.message}")
            return JSONResponse(status_code=400, content={"error": exc.message})

        logger.error(f"Unhandled error on {request.url.path}: {exc.to_dict()}")
        return JSONResponse(status_code=500, content={"error": exc.message})

    app.include_router(v1_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "chat_service.main:app",
        host=default_config.host,
        port=default_config.port,
        log_level=default_config.log_level.lower(),
    )
