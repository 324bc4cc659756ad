"""
Request perimeter: security response headers and per-namespace rate limits.
"""
from collections.abc import Awaitable, Callable
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from app.core.config import settings
from app.core.logging import get_logger
from app.core.rate_limit import RateLimiter, rate_limiter

logger = get_logger(__name__)

CONTENT_SECURITY_POLICY = "; ".join([
    "default-src 'self'",
    "script-src 'self' 'unsafe-inline' 'unsafe-eval' https://js.stripe.com https://checkout.stripe.com",
    "style-src 'self' 'unsafe-inline' https://fonts.googleapis.com",
    "img-src 'self' data: https: blob:",
    "font-src 'self' https://fonts.gstatic.com",
    "connect-src 'self' https://api.stripe.com https://api.openai.com https://api.hubapi.com",
    "frame-src 'self' https://js.stripe.com https://checkout.stripe.com",
    "object-src 'none'",
    "base-uri 'self'",
    "form-action 'self'",
    "frame-ancestors 'none'",
    "upgrade-insecure-requests",
])

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
    "Content-Security-Policy": CONTENT_SECURITY_POLICY,
    "Server": "ProspecterApp/1.0",
}
HSTS_VALUE = "max-age=31536000; includeSubDomains; preload"


def get_client_ip(request: Request, trust_proxy: bool = True) -> str:
    if trust_proxy:
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()
        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip.strip()
    if request.client:
        return request.client.host
    return "unknown"


def is_secure_request(request: Request, trust_proxy: bool = True) -> bool:
    if request.url.scheme == "https":
        return True
    if trust_proxy:
        return request.headers.get("X-Forwarded-Proto", "").lower() == "https"
    return False


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: Any, trust_proxy: bool | None = None) -> None:
        super().__init__(app)
        self.trust_proxy = settings.TRUST_PROXY_HEADERS if trust_proxy is None else trust_proxy

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers[name] = value
        if is_secure_request(request, self.trust_proxy):
            response.headers["Strict-Transport-Security"] = HSTS_VALUE
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Three budgets over /api/ traffic. All applicable budgets are checked
    before any is counted, so a rejected request uses up none of them:

    - general:  key ``<ip>``
    - admin:    key ``admin-<ip>`` for /api/admin/ and /admin/
    - auth:     key ``auth-<ip>`` for /api/auth/
    """

    def __init__(
        self,
        app: Any,
        limiter: RateLimiter | None = None,
        window_ms: int | None = None,
        api_limit: int | None = None,
        admin_limit: int | None = None,
        auth_limit: int | None = None,
        trust_proxy: bool | None = None,
    ) -> None:
        super().__init__(app)
        self.limiter = limiter if limiter is not None else rate_limiter
        self.window_ms = window_ms if window_ms is not None else settings.RATE_LIMIT_WINDOW_MS
        self.api_limit = api_limit if api_limit is not None else settings.RATE_LIMIT_API
        self.admin_limit = admin_limit if admin_limit is not None else settings.RATE_LIMIT_ADMIN
        self.auth_limit = auth_limit if auth_limit is not None else settings.RATE_LIMIT_AUTH
        self.trust_proxy = settings.TRUST_PROXY_HEADERS if trust_proxy is None else trust_proxy

    def _budgets(self, path: str, ip: str) -> list[tuple[str, int, str]]:
        budgets = []
        if path.startswith("/api/"):
            budgets.append((ip, self.api_limit, "Too many requests"))
        if path.startswith("/api/admin/") or path.startswith("/admin/"):
            budgets.append((f"admin-{ip}", self.admin_limit, "Too many admin requests"))
        if path.startswith("/api/auth/"):
            budgets.append((f"auth-{ip}", self.auth_limit, "Too many authentication attempts"))
        return budgets

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        path = request.url.path
        ip = get_client_ip(request, self.trust_proxy)
        budgets = self._budgets(path, ip)
        if budgets:
            denied = self.limiter.acquire([(key, limit) for key, limit, _ in budgets], self.window_ms)
            if denied is not None:
                limit, message = next((lim, msg) for key, lim, msg in budgets if key == denied)
                logger.warning("rate_limit_exceeded", key=denied, path=path, limit=limit)
                retry_after = self.limiter.retry_after(denied, self.window_ms)
                return JSONResponse(
                    status_code=429,
                    content={"error": message},
                    headers={"Retry-After": str(retry_after)},
                )
        return await call_next(request)
