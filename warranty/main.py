import logging
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException
from warranty.core.config import settings
from warranty.core.errors import first_error_message
from warranty.core import redis_utils
from warranty.db.session import Base, engine
from warranty import models  # noqa: F401  (registers tables on Base.metadata)
from warranty.api.api_v1.endpoints import auth_admin as auth_admin_router
from warranty.api.api_v1.endpoints import admin_users as admin_users_router
from warranty.api.api_v1.endpoints import auth_customer as auth_customer_router
from warranty.api.api_v1.endpoints import submissions as submissions_router
from warranty.api.api_v1.endpoints import master_data as master_data_router
from warranty.api.api_v1.endpoints import tracking as tracking_router
from warranty.api.api_v1.endpoints import dashboard as dashboard_router

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Create all database tables
Base.metadata.create_all(bind=engine)

# Initialize FastAPI app
app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.PROJECT_VERSION,
    description="Warranty claim intake and processing API",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
)

# Setup CORS
if settings.BACKEND_CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin).strip() for origin in settings.BACKEND_CORS_ORIGINS],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition"],
        max_age=600,
    )


# Error bodies are always {"error": "<message>"}
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": first_error_message(exc.errors())},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Interner Serverfehler"},
    )


# Include routers
app.include_router(auth_admin_router.router, prefix="/api/auth/admin")
app.include_router(admin_users_router.router, prefix="/api/auth/admin")
app.include_router(auth_customer_router.router, prefix="/api/auth/customer")
app.include_router(submissions_router.router, prefix="/api")
app.include_router(master_data_router.router, prefix="/api")
app.include_router(tracking_router.router, prefix="/api")
app.include_router(dashboard_router.router, prefix="/api")

# Locally stored uploads are served by the API itself
if settings.BLOB_BACKEND == "local":
    app.mount("/uploads", StaticFiles(directory=settings.BLOB_LOCAL_DIR, check_dir=False), name="uploads")


# Root endpoints
@app.get("/", tags=["Root"])
async def root():
    """Welcome endpoint"""
    return {
        "message": "Gewährleistungsportal API",
        "docs": "/api/docs",
        "version": settings.PROJECT_VERSION,
    }


@app.get("/api/health", tags=["Root"])
async def health():
    """Health check: database reachability and Redis (optional)"""
    database_ok = True
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        database_ok = False

    return {
        "status": "ok" if database_ok else "degraded",
        "database": database_ok,
        "redis": redis_utils.check_redis_connection(),
        "version": settings.PROJECT_VERSION,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "warranty.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
