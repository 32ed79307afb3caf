"""
FastAPI application entry point
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from outreach.app.api.v1.admin import routes as admin
from outreach.app.api.v1.attachments import routes as attachments
from outreach.app.api.v1.auth import routes as auth
from outreach.app.api.v1.billing import routes as billing
from outreach.app.api.v1.dashboard import routes as dashboard
from outreach.app.api.v1.documents import routes as documents
from outreach.app.api.v1.emails import routes as emails
from outreach.app.api.v1.gmail import routes as gmail
from outreach.app.api.v1.misc import routes as misc
from outreach.app.api.v1.profile import routes as profile
from outreach.app.api.v1.recipients import routes as recipients
from outreach.app.api.v1.support import routes as support
from outreach.app.api.v1.tracking import routes as tracking
from outreach.app.core.config import settings
from outreach.app.core.logging_config import get_logger, setup_logging
from outreach.app.db.base import Base
from outreach.app.db.session import engine
from outreach.app.utils import cache

# Import models so they register with Base.metadata
import outreach.app.models  # noqa: F401

setup_logging()
logger = get_logger("main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        Base.metadata.create_all(bind=engine)
    except Exception:
        logger.exception("Database initialisation failed")
    await cache.connect()
    logger.info("%s %s started environment=%s", settings.app_name, settings.app_version, settings.environment)
    yield
    await cache.close()


app = FastAPI(
    title="OutreachAI API",
    description="AI-assisted personalized outreach emails with Gmail sending and open/click tracking",
    version=settings.app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.cors_origins.split(",") if o.strip()] or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed or missing input is a 400 with a readable reason."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": f"{field}: {message}" if field else message},
    )


for module in (
    auth, profile, documents, attachments, recipients, emails, gmail,
    tracking, billing, dashboard, support, misc, admin,
):
    app.include_router(module.router, prefix="/api")


@app.get("/")
def read_root():
    """Root endpoint"""
    return {"message": "OutreachAI API", "version": settings.app_version}


@app.get("/health")
def health_check():
    """Health check endpoint"""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
