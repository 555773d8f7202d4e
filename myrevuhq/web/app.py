"""
FastAPI Web Application - MyRevuHQ API
======================================

JSON API behind the MyRevuHQ dashboard: account settings, customers,
review-request SMS, billing, analytics, Twilio/Stripe webhooks and the
cron endpoints.

Every service is built once in create_app() and hung off app.state;
routers reach them through myrevuhq.web.deps.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from myrevuhq import __version__
from myrevuhq.application.billing import BillingService
from myrevuhq.application.errors import ServiceError
from myrevuhq.application.inbound import InboundSmsHandler
from myrevuhq.application.scheduler import ScheduledDispatcher
from myrevuhq.application.sms_sender import ReviewRequestSender
from myrevuhq.infrastructure.auth import SupabaseAuthClient, build_auth_client
from myrevuhq.infrastructure.billing import StripeClient, build_stripe_client
from myrevuhq.infrastructure.config import Settings, get_settings
from myrevuhq.infrastructure.email import ResendMailer, build_mailer
from myrevuhq.infrastructure.geo import CountryLookup
from myrevuhq.infrastructure.importer import ImportFormatError
from myrevuhq.infrastructure.persistence import Database
from myrevuhq.infrastructure.sms import MessagingProvider, build_messaging_provider

from .routes import account, analytics, auth, billing, cron, customers, geo, health, sms, twilio

logger = logging.getLogger(__name__)


def _register_exception_handlers(app: FastAPI):
    """Every error leaves the API as {"error": ...}."""

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(ImportFormatError)
    async def import_error_handler(request: Request, exc: ImportFormatError):
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": jsonable_encoder(exc.errors())})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=500, content={"error": "Internal server error"})


def create_app(
    settings: Optional[Settings] = None,
    db: Optional[Database] = None,
    messaging_provider: Optional[MessagingProvider] = None,
    stripe_client: Optional[StripeClient] = None,
    auth_client: Optional[SupabaseAuthClient] = None,
    mailer: Optional[ResendMailer] = None,
    country_lookup: Optional[CountryLookup] = None,
) -> FastAPI:
    """
    Build the application. Any collaborator left as None is built from settings.
    """
    settings = settings or get_settings()
    db = db or Database(settings.app.database_file)
    messaging_provider = messaging_provider or build_messaging_provider(settings.twilio)
    if stripe_client is None:
        stripe_client = build_stripe_client(settings.stripe)
    auth_client = auth_client or build_auth_client(settings.supabase)
    mailer = mailer or build_mailer(settings.email)
    country_lookup = country_lookup or CountryLookup()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        db.init()
        logger.info("Database ready")
        yield
        # Stripe calls go through the SDK's own client, nothing to close
        for client in (messaging_provider, auth_client, mailer, country_lookup):
            client.close()

    app = FastAPI(
        title="MyRevuHQ",
        description="Review request SMS for small businesses",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.app.cors_origin],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    sender = ReviewRequestSender(db, messaging_provider, settings.app)

    app.state.settings = settings
    app.state.db = db
    app.state.auth_client = auth_client
    app.state.sender = sender
    app.state.dispatcher = ScheduledDispatcher(
        db,
        sender,
        batch_size=settings.app.scheduler_batch_size,
        max_workers=settings.app.scheduler_max_workers,
    )
    app.state.billing = BillingService(db, stripe_client, mailer, settings)
    app.state.inbound = InboundSmsHandler(db)
    app.state.country_lookup = country_lookup

    _register_exception_handlers(app)

    for module in (health, auth, account, customers, sms, analytics, billing, twilio, cron, geo):
        app.include_router(module.router, prefix="/api")

    return app


app = create_app()
