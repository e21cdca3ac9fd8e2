import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from .config import settings
from .database import SessionLocal, get_db, init_db
from .core.middleware import (
    CSRFMiddleware,
    ExceptionHandlingMiddleware,
    register_exception_handlers,
)
from .schemas.result import Result, Error, ErrorCategory
from .services.membership_service import reconcile_memberships

# Import routes
from .api.v1 import auth, user, households, invitations

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    if settings.RECONCILE_ON_STARTUP:
        with SessionLocal() as db:
            reconcile_memberships(db)
    logger.info(f"{settings.PROJECT_NAME} {settings.VERSION} started ({settings.ENVIRONMENT})")
    yield


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    description="HomeKeeper API - Households, members, roles and invitations",
    lifespan=lifespan,
)

register_exception_handlers(app)

# Last added runs first: CORS, then unhandled-error catch-all, then CSRF.
app.add_middleware(CSRFMiddleware)
app.add_middleware(ExceptionHandlingMiddleware, log_internal_errors=True)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(
    auth.router, prefix=f"{settings.API_V1_STR}/auth", tags=["authentication"]
)
app.include_router(user.router, prefix=f"{settings.API_V1_STR}/users", tags=["users"])
app.include_router(
    households.router,
    prefix=f"{settings.API_V1_STR}/households",
    tags=["households"]
)
app.include_router(
    invitations.router,
    prefix=f"{settings.API_V1_STR}/invitations",
    tags=["invitations"]
)


@app.get("/", response_model=Result[dict])
async def root():
    """Root endpoint with API information"""
    return Result.successful(
        data={
            "message": f"Welcome to {settings.PROJECT_NAME} API",
            "version": settings.VERSION,
            "docs": "/docs",
            "status": "online",
        }
    )


@app.get("/health", response_model=Result[dict])
async def health_check(db: Session = Depends(get_db)):
    """Health check endpoint for monitoring"""
    try:
        db.execute(text("SELECT 1"))
        return Result.successful(data={"status": "healthy", "database": "connected"})
    except SQLAlchemyError as e:
        logger.error(f"Health check failed: {e}")
        return Result.failure(
            error=Error(
                message="Health check failed: database unavailable",
                status_code=503,
                category=ErrorCategory.INTERNAL,
            )
        )
