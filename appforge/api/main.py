import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from appforge import __version__
from appforge.common import setup_logger
from appforge.core.config import get_settings
from appforge.core.errors import RBACError, UnauthenticatedError
from appforge.api.routers import health, rbac, groups
from appforge.api.middleware.audit import AuditMiddleware

settings = get_settings()
setup_logger(settings)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.app_name,
    description="Role-based access control for the AppForge builder platform",
    version=__version__,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.debug else settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Audit middleware - request ids for audit events
app.add_middleware(AuditMiddleware)


@app.exception_handler(RBACError)
async def rbac_error_handler(request: Request, exc: RBACError):
    """Map classified RBAC errors to their HTTP status."""
    headers = None
    if isinstance(exc, UnauthenticatedError):
        headers = {"WWW-Authenticate": "Bearer"}
    if exc.status_code >= 500:
        logger.error("Unhandled RBAC error on %s: %s", request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "detail": exc.message},
        headers=headers,
    )


# Include routers
app.include_router(health.router)
app.include_router(rbac.router, prefix="/api")
app.include_router(groups.router, prefix="/api")


@app.get("/")
async def root():
    return {
        "name": settings.app_name,
        "version": __version__,
        "docs": "/docs" if settings.debug else None,
    }
