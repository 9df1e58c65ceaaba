import time
import logging
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger("access")

class LoggingMiddleware(BaseHTTPMiddleware):
    """Access log line per request, plus an X-Process-Time header"""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        client = request.client.host if request.client else "unknown"

        response = await call_next(request)

        process_time = time.time() - start_time
        log = logger.warning if response.status_code >= 500 else logger.info
        log(
            f"{request.method} {request.url.path} - "
            f"Client: {client} - "
            f"Status: {response.status_code} - "
            f"Time: {process_time:.4f}s"
        )

        response.headers["X-Process-Time"] = str(process_time)
        return response
