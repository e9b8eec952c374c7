# main.py

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.middleware import SlowAPIMiddleware
from starlette.middleware.sessions import SessionMiddleware

from storefront.api import api_router
from storefront.core.config import settings
from storefront.core.error_handlers import add_request_id_middleware, setup_error_handlers
from storefront.core.rate_limiter import limiter
from storefront.database.core import Base, engine
from storefront.logging import logger

# Register every table on Base before create_all
from storefront.database import models  # noqa: F401


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables on startup."""
    try:
        logger.info("Starting database initialization...")
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables ready")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

    yield

    logger.info("Storefront API shutting down")


app = FastAPI(
    title=settings.API_TITLE,
    description=settings.API_DESCRIPTION,
    version=settings.API_VERSION,
    lifespan=lifespan
)

# Set up error handlers
setup_error_handlers(app)

# Rate limiting
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)

# Signed cookie session: OAuth state and the guest cart
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.SESSION_SECRET_KEY,
    same_site="lax",
    https_only=settings.ENVIRONMENT == "production",
    max_age=settings.SESSION_COOKIE_MAX_AGE,
    session_cookie=settings.SESSION_COOKIE_NAME
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add request ID middleware for better error tracking
app.middleware("http")(add_request_id_middleware)

app.include_router(api_router, prefix=settings.API_PREFIX)


@app.get("/")
async def root():
    return {"message": settings.API_TITLE, "version": settings.API_VERSION}


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


if __name__ == "__main__":
    uvicorn.run("main:app", host=settings.HOST, port=settings.PORT, reload=settings.ENVIRONMENT == "development")
