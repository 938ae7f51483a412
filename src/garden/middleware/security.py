from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

# Headers applied to every response
_SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
}

# JSON-only API: nothing should ever be rendered or embedded.
_API_CSP = "default-src 'none'; frame-ancestors 'none'"
_DOCS_CSP = (
    "default-src 'self'; "
    "script-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
    "style-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
    "img-src 'self' data: https://fastapi.tiangolo.com; "
    "frame-ancestors 'none'"
)

_HSTS_VALUE = "max-age=31536000; includeSubDomains"


def _apply_security_headers(response: Response, path: str, is_https: bool) -> None:
    """Set standard security headers on a response."""
    for name, value in _SECURITY_HEADERS.items():
        response.headers[name] = value
    if path.startswith("/api/"):
        response.headers["Content-Security-Policy"] = _API_CSP
        response.headers["Cache-Control"] = "no-store"
    else:
        response.headers["Content-Security-Policy"] = _DOCS_CSP
    if is_https:
        response.headers["Strict-Transport-Security"] = _HSTS_VALUE


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds standard security headers to every HTTP response."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        _apply_security_headers(
            response,
            path=request.url.path,
            is_https=request.url.scheme == "https",
        )
        return response
