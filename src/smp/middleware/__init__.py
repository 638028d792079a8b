"""Middleware registration."""

from fastapi import FastAPI

from smp.config import Settings
from smp.middleware.cors import setup_cors
from smp.middleware.error_handler import setup_error_handlers
from smp.middleware.logging import setup_logging
from smp.middleware.rate_limit import RateLimitMiddleware
from smp.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register logging, error envelopes and the middleware stack.

    Starlette runs middleware in reverse-add order (last added = outermost).
    CORS is added last so 429 responses from the rate limiter still carry CORS headers.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_window=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
