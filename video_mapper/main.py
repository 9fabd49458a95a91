"""
next-video-mapper - maps native video content into publication events.

Features:
- Queue consumer feeding the video mapper, mapped events sent back to the queue
- Structured logging with transaction IDs
- Prometheus metrics
- FT style health checks (/__health and /__gtg)
"""
import asyncio
import sys
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Callable, List, Optional

import httpx
from fastapi import FastAPI
from prometheus_client import make_asgi_app
from pydantic import ValidationError

from .adapters.base import MessageConsumer, MessageProducer
from .adapters.memory import InMemoryConsumer, InMemoryProducer
from .adapters.queue_proxy import QueueProxyConsumer, QueueProxyProducer
from .api.router import router
from .config import SERVICE_DESCRIPTION, SERVICE_NAME, VERSION, Settings, get_settings
from .errors import ConfigurationError
from .health import (
    HealthCheck,
    QueueProxyChecker,
    message_queue_producer_reachable,
    message_queue_proxy_reachable,
)
from .logging import get_logger, setup_logging
from .metrics import Metrics
from .middleware import MetricsMiddleware, TransactionIdMiddleware
from .services.handler import VideoMapperHandler

logger = get_logger()


@dataclass
class Service:
    """Everything the HTTP app owns for the lifetime of the process."""
    health_check: HealthCheck
    metrics: Metrics
    consumer: Optional[MessageConsumer] = None
    closers: List[Callable[[], None]] = field(default_factory=list)


def build_http_client(settings: Settings) -> httpx.Client:
    """Shared client for the consumer, producer and health checks."""
    return httpx.Client(
        timeout=httpx.Timeout(settings.HTTP_READ_TIMEOUT, connect=settings.HTTP_CONNECT_TIMEOUT),
        limits=httpx.Limits(max_keepalive_connections=settings.HTTP_MAX_KEEPALIVE),
    )


def build_service(settings: Settings) -> Service:
    """
    Wire the consumer, handler, producer and health checks.

    Raises:
        ConfigurationError: no queue address configured
    """
    if not settings.queue_addresses:
        raise ConfigurationError("No queue address provided. Quitting...")

    metrics = Metrics()
    client = build_http_client(settings)
    checks = []

    producer: MessageProducer
    if settings.QUEUE_ADAPTER == "memory":
        producer = InMemoryProducer()
        handler = VideoMapperHandler(producer, metrics=metrics)
        consumer: MessageConsumer = InMemoryConsumer(handler.on_message)
    else:
        producer = QueueProxyProducer(
            client,
            settings.producer_address,
            settings.Q_WRITE_TOPIC,
            queue=settings.Q_WRITE_QUEUE,
            authorization=settings.Q_AUTHORIZATION,
        )
        handler = VideoMapperHandler(producer, metrics=metrics)
        consumer = QueueProxyConsumer(
            client,
            settings.queue_addresses,
            settings.Q_GROUP,
            settings.Q_READ_TOPIC,
            handler.on_message,
            queue=settings.Q_READ_QUEUE,
            authorization=settings.Q_AUTHORIZATION,
            backoff_seconds=settings.CONSUMER_BACKOFF_SECONDS,
        )
        checks.append(
            message_queue_proxy_reachable(
                QueueProxyChecker(client),
                settings.queue_addresses,
                settings.Q_READ_TOPIC,
                settings.Q_AUTHORIZATION,
                settings.Q_READ_QUEUE,
            )
        )
    checks.append(message_queue_producer_reachable(producer))

    logger.info("config.loaded", adapter=settings.QUEUE_ADAPTER, **settings.describe())

    health_check = HealthCheck(
        checks,
        system_code="up-nvm",
        name="Dependent services healthcheck",
        description="Checks if all the dependent services are reachable and healthy.",
    )
    return Service(health_check=health_check, metrics=metrics, consumer=consumer, closers=[client.close])


def create_app(service: Service) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("service_starting", version=VERSION)
        if service.consumer is not None:
            service.consumer.start()
        yield
        logger.info("service_stopping")
        if service.consumer is not None:
            # Waits for the in-flight message
            await asyncio.to_thread(service.consumer.stop)
        for close in service.closers:
            close()
        service.metrics.app_up.labels(service=SERVICE_NAME, version=VERSION).set(0)

    app = FastAPI(
        title=SERVICE_NAME,
        version=VERSION,
        description=SERVICE_DESCRIPTION,
        lifespan=lifespan,
    )
    app.state.health_check = service.health_check

    # Added last runs first: the transaction ID is bound before metrics log
    app.add_middleware(MetricsMiddleware, metrics=service.metrics)
    app.add_middleware(TransactionIdMiddleware)

    app.include_router(router)
    app.mount("/metrics", make_asgi_app(registry=service.metrics.registry))
    return app


def run():
    """Process entry point."""
    try:
        settings = get_settings()
    except ValidationError as e:
        setup_logging()
        logger.error("config.invalid", error=str(e))
        sys.exit(1)

    setup_logging(json_output=settings.LOG_JSON)
    try:
        service = build_service(settings)
    except ConfigurationError as e:
        logger.error(str(e))
        sys.exit(1)

    import uvicorn

    uvicorn.run(create_app(service), host="0.0.0.0", port=settings.PORT, log_config=None)


if __name__ == "__main__":
    run()
