from starlette.middleware.base import BaseHTTPMiddleware

from .observability import correlation_context


class RequestContextMiddleware(BaseHTTPMiddleware):
    HEADER_NAME = "X-Request-ID"

    async def dispatch(self, request, call_next):
        client_host = request.client.host if request.client else None
        request.state.ip = request.headers.get("x-forwarded-for", client_host)
        request.state.user_agent = request.headers.get("user-agent")
        with correlation_context(request.headers.get(self.HEADER_NAME)) as correlation_id:
            request.state.request_id = correlation_id
            response = await call_next(request)
        response.headers[self.HEADER_NAME] = correlation_id
        return response
