"""HTTP middleware: request logging and tenant resolution."""

import time
from typing import cast

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from booking_core.errors import TenantResolutionError
from booking_core.tenancy.context import TenantContext
from booking_core.tenancy.resolver import TenantResolver

logger = structlog.get_logger()

SKIP_PATHS: frozenset[str] = frozenset({"/health", "/docs", "/openapi.json", "/redoc"})

# ``request.state`` attribute holding verified token claims.
TOKEN_CLAIMS_STATE = "token_claims"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log HTTP requests with method, path, status code, and latency."""

    SKIP_PATHS = SKIP_PATHS

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        """Process request and log timing information."""
        if request.url.path in self.SKIP_PATHS:
            return await call_next(request)

        start = time.perf_counter()
        response = await call_next(request)
        latency_ms = int((time.perf_counter() - start) * 1000)

        logger.info(
            "http_request",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            latency_ms=latency_ms,
        )
        return response


class TenantResolutionMiddleware(BaseHTTPMiddleware):
    """Resolve the request's tenant before any route runs.

    Inputs are the verified token claims, the tenant header and the host.

    This package does not verify tokens. Deployments put their bearer-token
    middleware outside this one (registered with ``app.add_middleware``
    after it, or as an ASGI wrapper around the app). That middleware must
    store the decoded claims as a mapping on
    ``request.state.token_claims`` (``TOKEN_CLAIMS_STATE``), carrying the
    tenant claim (``settings.tenant_claim_name``, default ``tenant_id``) and
    ``sub`` for the acting user. Without it, the token step is skipped and
    the tenant comes from the header or subdomain only.

    The result is stored on ``request.state.tenant_context`` and bound to
    the structlog context for the rest of the request. An invalid tenant
    header ends the request with 401.
    """

    SKIP_PATHS = SKIP_PATHS

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in self.SKIP_PATHS:
            request.state.tenant_context = TenantContext.none()
            return await call_next(request)

        resolver = cast(TenantResolver, request.app.state.tenant_resolver)
        try:
            context = await resolver.resolve(
                claims=getattr(request.state, TOKEN_CLAIMS_STATE, None),
                headers=request.headers,
                host=request.headers.get("host"),
            )
        except TenantResolutionError as exc:
            return JSONResponse(status_code=401, content={"detail": str(exc)})

        request.state.tenant_context = context
        with structlog.contextvars.bound_contextvars(
            tenant_id=str(context.tenant_id) if context.tenant_id else None,
            tenant_source=context.resolved_from.value,
        ):
            return await call_next(request)
