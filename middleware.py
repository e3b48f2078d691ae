import logging
import time

from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware

from errors import INTERNAL_ERROR_MESSAGE, error_response

access_logger = logging.getLogger("access")
logger = logging.getLogger(__name__)

# Las de helmet por defecto, sin Content-Security-Policy
SECURITY_HEADERS = {
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Origin-Agent-Cluster": "?1",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "X-Content-Type-Options": "nosniff",
    "X-DNS-Prefetch-Control": "off",
    "X-Download-Options": "noopen",
    "X-Frame-Options": "SAMEORIGIN",
    "X-Permitted-Cross-Domain-Policies": "none",
    "X-XSS-Protection": "0",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Una línea por petición: GET /products 200 3.142 ms - 512"""

    async def dispatch(self, request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        access_logger.info(
            "%s %s %s %.3f ms - %s",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            response.headers.get("content-length", "-"),
        )
        return response


class PerimeterMiddleware(BaseHTTPMiddleware):
    """Consulta app.state.perimeter antes de enrutar. Sin perímetro configurado, deja pasar."""

    def __init__(self, app, requested: int = 1):
        super().__init__(app)
        self.requested = requested

    async def dispatch(self, request, call_next):
        perimeter = getattr(request.app.state, "perimeter", None)
        if perimeter is None:
            return await call_next(request)

        try:
            decision = await run_in_threadpool(perimeter.protect, request, self.requested)
        except Exception:
            logger.exception("Error en el control de admisión")
            return error_response(500, INTERNAL_ERROR_MESSAGE)

        if decision.is_denied():
            if decision.reason.is_rate_limit():
                return error_response(
                    429, "Too Many Requests",
                    headers={"Retry-After": str(decision.reason.retry_after or 1)},
                )
            if decision.reason.is_bot():
                return error_response(403, "Bot access denied")
            return error_response(403, "Forbidden")

        if any(result.reason.is_spoofed() for result in decision.results):
            return error_response(403, "Spoofed bot detected")

        return await call_next(request)
