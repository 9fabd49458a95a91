"""
Middleware for observability features.
"""
import secrets
import time
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
import structlog

TRANSACTION_ID_HEADER = "X-Request-Id"


def new_transaction_id() -> str:
    return "tid_" + secrets.token_hex(5)


class TransactionIdMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add transaction IDs to all requests.

    - Extracts the transaction ID from the X-Request-Id header if present
    - Generates a new tid_ prefixed ID if not present
    - Binds it to the structlog context
    - Echoes it in the response headers
    """

    async def dispatch(self, request: Request, call_next):
        # Reuse the caller's transaction ID or mint one
        transaction_id = request.headers.get(TRANSACTION_ID_HEADER) or new_transaction_id()

        # Bind to structlog context
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            transaction_id=transaction_id,
            http_method=request.method,
            http_path=request.url.path,
        )

        # Process request, then echo the ID back
        response = await call_next(request)
        response.headers[TRANSACTION_ID_HEADER] = transaction_id
        return response


class MetricsMiddleware(BaseHTTPMiddleware):
    """
    Middleware to collect HTTP metrics for Prometheus.

    - Records request count by method, path, status
    - Records request duration histogram
    - Tracks active requests
    """

    def __init__(self, app, metrics):
        super().__init__(app)
        self.metrics = metrics

    async def dispatch(self, request: Request, call_next):
        # Refresh process gauges for scrapes, but don't count the scrape itself
        if request.url.path.startswith("/metrics"):
            self.metrics.update_system_metrics()
            return await call_next(request)

        # Track active requests
        active = self.metrics.http_requests_active.labels(service=self.metrics.service_name)
        active.inc()
        # Record start time
        start_time = time.time()
        logger = structlog.get_logger()

        try:
            # Process request
            response = await call_next(request)

            # Calculate duration
            duration = time.time() - start_time

            # Record metrics
            self.metrics.http_requests_total.labels(
                service=self.metrics.service_name,
                method=request.method,
                path=request.url.path,
                status=response.status_code,
            ).inc()

            self.metrics.http_request_duration.labels(
                service=self.metrics.service_name,
                method=request.method,
                path=request.url.path,
            ).observe(duration)

            # Probes hit these endpoints constantly
            logger.debug(
                "http_request",
                http_status=response.status_code,
                duration_ms=round(duration * 1000, 2),
            )

            return response

        except Exception as e:
            duration = time.time() - start_time

            # Record error metrics
            self.metrics.http_requests_total.labels(
                service=self.metrics.service_name,
                method=request.method,
                path=request.url.path,
                status=500,
            ).inc()

            # Log error
            logger.error(
                "http_request_error",
                error=str(e),
                error_type=type(e).__name__,
                duration_ms=round(duration * 1000, 2),
            )

            raise

        finally:
            # Decrement active requests
            active.dec()
