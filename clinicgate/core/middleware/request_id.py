"""
Per-request correlation.

Binds the request id (echoed back on x-request-id) and the caller's tenant
(X-Tenant-Id, when present) into the logging context, then logs one
request.complete line carrying both.
"""
import logging
import time
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware

from clinicgate.core.logging import LOGGER_NAME, latency_bucket_ms, request_id_ctx_var, tenant_id_ctx_var


logger = logging.getLogger(LOGGER_NAME)


class RequestIdMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, header_name: str = "x-request-id", tenant_header: str = "x-tenant-id"):
        super().__init__(app)
        self.header_name = header_name
        self.tenant_header = tenant_header

    async def dispatch(self, request, call_next):
        rid = request.headers.get(self.header_name) or str(uuid4())
        tenant_id = request.headers.get(self.tenant_header) or None
        request.state.request_id = rid
        request.state.tenant_id = tenant_id
        rid_token = request_id_ctx_var.set(rid)
        tenant_token = tenant_id_ctx_var.set(tenant_id)

        started = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            tenant_id_ctx_var.reset(tenant_token)
            request_id_ctx_var.reset(rid_token)
        elapsed_ms = (time.perf_counter() - started) * 1000

        response.headers[self.header_name] = rid

        # Redirects here are subscription denials; surface them above INFO
        level = logging.WARNING if response.status_code == 303 or response.status_code >= 500 else logging.INFO
        logger.log(
            level,
            "request.complete",
            extra={
                "request_id": rid,
                "tenant_id": tenant_id,
                "path": request.url.path,
                "method": request.method,
                "status": response.status_code,
                "latency_bucket": latency_bucket_ms(elapsed_ms),
            },
        )
        return response
