"""
CotaMarket - consortium cota marketplace API.
Hosts the valuation engine and the proposal review pipeline.
Features strict input validation, audit logging, and distributed tracing.
"""
from typing import Callable, Awaitable, Dict, Any
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
import time
from uuid import uuid4

from cotamarket.core.config import settings
from cotamarket.core.database import init_db
from cotamarket.core.exceptions import (
    CotaMarketError,
    ConflictingReservation,
    EntityNotFound,
    PermissionDenied,
)
from cotamarket.core.logger import logger
from cotamarket.auth.router import router as auth_router
from cotamarket.valuation.router import router as valuation_router
from cotamarket.cotas.router import router as cotas_router, admin_router as cotas_admin_router
from cotamarket.proposals.router import router as proposals_router, admin_router as proposals_admin_router
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle management (startup/shutdown hooks)."""
    logger.info(f"Initializing {settings.APP_NAME} v{settings.VERSION}")
    init_db()
    logger.info("Database initialized")

    yield

    logger.info("Shutting down application")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.VERSION,
    description=(
        "Marketplace for contracted consortium cotas: valuation, purchase proposals "
        "and the staff review pipeline."
    ),
    lifespan=lifespan
)

# Trust X-Forwarded-Proto headers from the load balancer
app.add_middleware(ProxyHeadersMiddleware, trusted_hosts="*")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_correlation_id(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
    """
    Middleware for distributed tracing.
    Injects a unique Correlation ID into the request context and propagates it to the response headers.
    """
    correlation_id = request.headers.get("X-Correlation-ID", str(uuid4()))
    request.state.correlation_id = correlation_id

    start_time = time.time()

    logger.info(
        f"Request: {request.method} {request.url.path}",
        extra={"correlation_id": correlation_id}
    )

    response = await call_next(request)

    process_time = time.time() - start_time
    response.headers["X-Correlation-ID"] = correlation_id
    response.headers["X-Process-Time"] = str(process_time)

    logger.info(
        f"Response: {response.status_code} | {process_time:.3f}s",
        extra={"correlation_id": correlation_id}
    )

    return response


app.include_router(auth_router, prefix="/auth", tags=["Auth"])
app.include_router(valuation_router, prefix="/valuation")
app.include_router(cotas_router, prefix="/cotas")
app.include_router(cotas_admin_router, prefix="/admin/cotas")
app.include_router(proposals_router, prefix="/proposals")
app.include_router(proposals_admin_router, prefix="/admin/proposals")


@app.get("/api-info", tags=["Health"])
def api_info() -> Dict[str, Any]:
    """
    Endpoint exposing API metadata and service discovery links.
    """
    return {
        "app": settings.APP_NAME,
        "version": settings.VERSION,
        "status": "online",
        "endpoints": {
            "valuation": "/valuation/simulate",
            "cotas": "/cotas",
            "proposals": "/proposals",
            "review_queue": "/admin/proposals",
            "docs": "/docs",
            "redoc": "/redoc"
        }
    }


@app.get("/health", tags=["Health"])
def health_check() -> Dict[str, str]:
    """
    Liveness probe endpoint for orchestration systems.
    """
    return {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.VERSION
    }


def _status_code_for(exc: CotaMarketError) -> int:
    if isinstance(exc, ConflictingReservation):
        return 409
    if isinstance(exc, EntityNotFound):
        return 404
    if isinstance(exc, PermissionDenied):
        return 403
    return 400


@app.exception_handler(CotaMarketError)
async def domain_exception_handler(request: Request, exc: CotaMarketError):
    """
    Maps engine failures to HTTP responses.
    Reservation conflicts are legitimate contention and are raised as operational alerts.
    """
    correlation_id = getattr(request.state, "correlation_id", "N/A")
    status_code = _status_code_for(exc)

    if isinstance(exc, ConflictingReservation):
        logger.warning(
            f"Operational alert: {exc.message}",
            extra={"correlation_id": correlation_id}
        )
    else:
        logger.info(
            f"Request rejected: {exc.code} | {exc.message}",
            extra={"correlation_id": correlation_id}
        )

    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "code": exc.code, "correlation_id": correlation_id}
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    correlation_id = getattr(request.state, "correlation_id", "N/A")

    logger.info(
        f"HTTPException: {exc.status_code} | {exc.detail}",
        extra={"correlation_id": correlation_id}
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "correlation_id": correlation_id},
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Global exception barrier.
    Captures unhandled exceptions, logs stack traces with Correlation IDs,
    and returns a sanitized 500 Internal Server Error response.
    """
    correlation_id = getattr(request.state, "correlation_id", "N/A")

    logger.error(
        f"Unhandled exception: {str(exc)}",
        exc_info=True,
        extra={"correlation_id": correlation_id}
    )

    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal Server Error",
            "correlation_id": correlation_id
        }
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "cotamarket.main:app",
        host="0.0.0.0",  # nosec
        port=8000,
        reload=settings.DEBUG
    )
