"""
FastAPI main application for the Summer Camp Planner
"""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.routes import health_router, planning_router, validation_router
from .config import settings
from .logging_config import request_logger, setup_logging
from .utils.exceptions import ErrorKind, PlannerError, to_error_object

# Setup logging
setup_logging()
logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    ErrorKind.INVALID_INPUT: 422,
    ErrorKind.NOT_OWNER: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.STORE_ERROR: 502,
    ErrorKind.INVALID_DATE_RANGE: 422,
    ErrorKind.PREVIEW_CONFLICT: 409,
    ErrorKind.UNKNOWN: 500,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan events"""
    logger.info("Starting Summer Camp Planner")
    logger.info(f"Version: {settings.app_version}")
    logger.info(f"Environment: {'Development' if settings.DEBUG else 'Production'}")
    logger.info(f"Store: {'remote' if settings.store_configured else 'in-memory'}")

    yield

    logger.info("Shutting down Summer Camp Planner")


app = FastAPI(
    title=settings.app_name,
    description="""
    Planning core for a family summer camp planner.

    Features:
    - Summer season weeks and pre/post season gaps
    - Coverage, cost, conflicts and budget for a child
    - Registration urgency and work-hour fit for camps
    - Mutation payload validation with free-text sanitization
    """,
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.DEBUG else ["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.middleware("http")(request_logger.log_request)

app.include_router(health_router)
app.include_router(planning_router, prefix="/api")
app.include_router(validation_router, prefix="/api")


@app.exception_handler(PlannerError)
async def planner_exception_handler(request: Request, exc: PlannerError):
    """Map planner errors onto HTTP statuses"""
    status_code = STATUS_BY_KIND.get(exc.kind, 500)
    logger.warning(f"{exc.kind.value} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=status_code, content=exc.to_dict())


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions"""
    logger.warning(f"HTTP {exc.status_code}: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail, "status_code": exc.status_code},
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions"""
    logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)
    return JSONResponse(status_code=500, content=to_error_object(exc))


if __name__ == "__main__":
    uvicorn.run(
        "summer_planner.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info",
    )
