from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.types import ASGIApp

class BodySizeLimitMiddleware(BaseHTTPMiddleware):
    """
    Transport-level guard. Rejects an unparseable Content-Length and, when
    a request cap is configured, bodies that announce more than the cap.
    Per-file limits are enforced by the upload pipeline, not here.
    """

    def __init__(self, app: ASGIApp, max_request_bytes: Optional[int] = None):
        super().__init__(app)
        self.max_request_bytes = max_request_bytes

    async def dispatch(self, request: Request, call_next):
        cl = request.headers.get("content-length")
        if cl is not None:
            try:
                length = int(cl)
            except ValueError:
                return JSONResponse({"message": "Bad Content-Length"}, status_code=400)
            if self.max_request_bytes is not None and length > self.max_request_bytes:
                return JSONResponse({"message": "Request body too large"}, status_code=413)
        return await call_next(request)
