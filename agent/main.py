"""Entry point for the local sync agent."""

import time
import uuid
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from common.logging_config import setup_logging
from agent.config import AGENT_HOST, AGENT_LISTEN_PORT, AgentSettings
from agent.engine import SyncEngine, build_engine
from agent.exceptions import (
    ErrorKind,
    NotFoundError,
    StorageExhaustedError,
    StoreError,
    SyncEngineError,
    ValidationError,
)
from agent.routes import submission_router, sync_router
from agent.schemas import ErrorResponse

logger = setup_logging('agent')


def create_app(engine: Optional[SyncEngine] = None, settings: Optional[AgentSettings] = None) -> FastAPI:
    """
    Build the agent application.

    Args:
        engine: Engine to serve; when None one is built from ``settings`` on startup
        settings: Settings for the engine built on startup
    """
    app = FastAPI(
        title="MediaSync Agent",
        description="Local offline media sync agent",
        version="1.0.0"
    )
    app.state.engine = engine
    app.state.owns_engine = False

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """
        Middleware to log all HTTP requests and responses.
        """
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        start_time = time.time()

        logger.info(
            f"Request started: {request.method} {request.url.path} [request_id={request_id}]"
        )

        response = await call_next(request)

        duration = time.time() - start_time

        logger.info(
            f"Request completed: {request.method} {request.url.path} "
            f"status={response.status_code} duration={duration:.3f}s [request_id={request_id}]"
        )

        response.headers["X-Request-ID"] = request_id

        return response

    @app.on_event("startup")
    async def startup_event():
        """
        Build the engine if none was injected and start its background tasks.
        """
        logger.info("Sync agent starting up...")

        if app.state.engine is None:
            app.state.engine = build_engine(settings)
            app.state.owns_engine = True

        await app.state.engine.start()
        logger.info("Sync engine started")

    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info("Sync agent shutting down...")

        if app.state.engine is not None and app.state.owns_engine:
            await app.state.engine.close()
            logger.info("Sync engine stopped")

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        request_id = getattr(request.state, 'request_id', 'unknown')
        logger.warning(
            f"Validation error: {exc} [request_id={request_id}] path={request.url.path}"
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=ErrorResponse(detail=str(exc), code=exc.kind.value).model_dump()
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        request_id = getattr(request.state, 'request_id', 'unknown')
        logger.warning(
            f"Malformed request: {exc.errors()} [request_id={request_id}] path={request.url.path}"
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=ErrorResponse(detail="Malformed request", code=ErrorKind.VALIDATION.value).model_dump()
        )

    @app.exception_handler(StorageExhaustedError)
    async def storage_exhausted_handler(request: Request, exc: StorageExhaustedError):
        request_id = getattr(request.state, 'request_id', 'unknown')
        logger.error(
            f"Storage exhausted error: {exc} [request_id={request_id}] path={request.url.path}"
        )
        return JSONResponse(
            status_code=status.HTTP_507_INSUFFICIENT_STORAGE,
            content={
                **ErrorResponse(detail=str(exc), code=exc.kind.value).model_dump(),
                "available": exc.available,
                "needed": exc.needed
            }
        )

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        request_id = getattr(request.state, 'request_id', 'unknown')
        logger.warning(
            f"Not found error: {exc} [request_id={request_id}] path={request.url.path}"
        )
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content=ErrorResponse(detail=str(exc), code=exc.kind.value).model_dump()
        )

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError):
        request_id = getattr(request.state, 'request_id', 'unknown')
        logger.error(
            f"Store error: {exc} [request_id={request_id}] path={request.url.path}",
            exc_info=True
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(detail=str(exc), code=exc.kind.value).model_dump()
        )

    @app.exception_handler(SyncEngineError)
    async def sync_engine_error_handler(request: Request, exc: SyncEngineError):
        request_id = getattr(request.state, 'request_id', 'unknown')
        logger.error(
            f"Sync engine error: {exc} [request_id={request_id}] path={request.url.path}",
            exc_info=True
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(detail=str(exc), code="INTERNAL_ERROR").model_dump()
        )

    app.include_router(submission_router)
    app.include_router(sync_router)

    @app.get("/")
    async def root():
        """
        Root endpoint for health check.
        """
        return {"message": "MediaSync Agent API", "status": "running"}

    @app.get("/health")
    async def health_check():
        """
        Liveness probe. Returns 200 if the agent process is serving requests.
        """
        return {"status": "healthy", "service": "agent"}

    return app


app = create_app()


def main() -> None:
    """
    Start the FastAPI server with uvicorn.
    """
    uvicorn.run(
        "agent.main:app",
        host=AGENT_HOST,
        port=AGENT_LISTEN_PORT
    )


if __name__ == "__main__":
    main()
