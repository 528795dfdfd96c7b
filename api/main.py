"""
IPA Store API - Main FastAPI Application

Backend for the sideloading store's mobile client:
- App submission gated by the free-upload quota and developer subscriptions
- Catalog reads with the review hold computed per request
- Stripe subscription verification and webhook reconciliation
- IPA and icon storage with signed URLs
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import settings
from utils.logger import logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown events"""
    logger.info("=" * 50)
    logger.info("  IPA Store API")
    logger.info(f"  -> http://{settings.API_HOST}:{settings.API_PORT}")
    logger.info(f"  -> store backend: {settings.STORE_BACKEND}")
    logger.info(f"  -> free uploads: {settings.FREE_UPLOAD_LIMIT}, review hold: {settings.REVIEW_PERIOD_HOURS:g}h")
    if not settings.stripe_configured:
        logger.warning("  -> STRIPE_SECRET_KEY not set, subscription verification disabled")
    if not settings.STRIPE_WEBHOOK_SECRET:
        logger.warning("  -> STRIPE_WEBHOOK_SECRET not set, Stripe webhooks will be rejected")
    logger.info("=" * 50)
    yield
    logger.info("IPA Store API shutting down...")


app = FastAPI(
    title="IPA Store API",
    description="App submission, review hold and developer subscriptions",
    version="1.0.0",
    lifespan=lifespan,
    redirect_slashes=False,
)

app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=settings.CORS_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=[
        "Accept",
        "Authorization",
        "Content-Type",
        "Origin",
        "X-Requested-With",
    ],
)


# ============================================================================
# Error envelope: the mobile client reads {"error": ...}
# ============================================================================

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    content = exc.detail if isinstance(exc.detail, dict) else {"error": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


def _first_validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    loc = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")]
    message = first.get("msg", "Invalid request")
    return f"{'.'.join(loc)}: {message}" if loc else message


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"error": _first_validation_message(exc)})


# Import and include routers
from api.routes import apps, developer, webhooks, push, ipa_storage, app_assets

app.include_router(apps.router, prefix="/api/apps", tags=["Apps"])
app.include_router(developer.router, prefix="/api/developer", tags=["Developer"])
app.include_router(webhooks.router, prefix="/api/webhooks", tags=["Webhooks"])
app.include_router(push.router, prefix="/api/push", tags=["Push Notifications"])
app.include_router(ipa_storage.router, prefix="/api/ipa-storage", tags=["IPA Storage"])
app.include_router(app_assets.router, prefix="/api/app-assets", tags=["App Assets"])


@app.get("/")
async def root():
    """API root endpoint"""
    return {
        "name": "IPA Store API",
        "version": "1.0.0",
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.API_HOST, port=settings.API_PORT)
