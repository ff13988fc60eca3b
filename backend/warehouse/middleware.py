import uuid
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from warehouse.config import DEBUG
from warehouse.utils.rate_limiter import api_limiter, client_ip

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers.update(SECURITY_HEADERS)
        if not DEBUG:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


class APIRateLimitMiddleware(BaseHTTPMiddleware):
    """/api/ 配下へのリクエストを IP 単位で制限"""

    async def dispatch(self, request: Request, call_next):
        if request.url.path.startswith("/api/"):
            ip_address = client_ip(request)
            if not api_limiter.is_allowed(ip_address):
                return JSONResponse(
                    status_code=429,
                    content={"detail": f"リクエスト数が多すぎます。{api_limiter.get_remaining_time(ip_address)}秒後に再試行してください"},
                )
        return await call_next(request)


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response
