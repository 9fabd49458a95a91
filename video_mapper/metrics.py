"""
Prometheus metrics for the video mapper.
"""
from prometheus_client import Counter, Histogram, Gauge, Info, CollectorRegistry
import psutil
import os

from .config import SERVICE_NAME, VERSION


class Metrics:
    """
    Centralized metrics for the video mapper.
    """

    def __init__(self, service_name: str = SERVICE_NAME, version: str = VERSION, registry=None):
        self.service_name = service_name
        self.version = version
        self.registry = registry or CollectorRegistry()

        # HTTP Metrics
        self.http_requests_total = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["service", "method", "path", "status"],
            registry=self.registry,
        )

        self.http_request_duration = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["service", "method", "path"],
            registry=self.registry,
        )

        self.http_requests_active = Gauge(
            "http_requests_active",
            "Number of active HTTP requests",
            ["service"],
            registry=self.registry,
        )
        self.http_requests_active.labels(service=service_name).set(0)

        # Application Info
        self.app_info = Info(
            "app",
            "Application information",
            registry=self.registry,
        )
        self.app_info.info({"service": service_name, "version": version})

        self.app_up = Gauge(
            "app_up",
            "Application up status (1=up, 0=down)",
            ["service", "version"],
            registry=self.registry,
        )
        self.app_up.labels(service=service_name, version=version).set(1)

        # Queue messages
        self.messages_total = Counter(
            "video_mapper_messages_total",
            "Consumed messages by outcome",
            ["outcome"],
            registry=self.registry,
        )

        self.message_size_bytes = Histogram(
            "video_mapper_message_size_bytes",
            "Consumed message body size in bytes",
            buckets=(256, 1024, 4096, 16384, 65536, 262144, 1048576),
            registry=self.registry,
        )

        # System Metrics
        self._setup_process_metrics()

    def _setup_process_metrics(self):
        """Set up process-level metrics using psutil."""
        self.process_memory_bytes = Gauge(
            "process_resident_memory_bytes",
            "Resident memory size in bytes",
            ["service"],
            registry=self.registry,
        )

        self.process_open_fds = Gauge(
            "process_open_fds",
            "Number of open file descriptors",
            ["service"],
            registry=self.registry,
        )

        self.process_threads = Gauge(
            "process_threads",
            "Number of threads (consumer threads included)",
            ["service"],
            registry=self.registry,
        )

        self.update_system_metrics()

    def update_system_metrics(self):
        """Update system metrics from psutil."""
        process = psutil.Process(os.getpid())
        try:
            # Memory and threads
            self.process_memory_bytes.labels(service=self.service_name).set(process.memory_info().rss)
            self.process_threads.labels(service=self.service_name).set(process.num_threads())
        except psutil.Error:
            return

        # File descriptors
        try:
            self.process_open_fds.labels(service=self.service_name).set(process.num_fds())
        except AttributeError:
            # num_fds() not available on all platforms
            pass

    def record_message(self, outcome: str, size_bytes: int):
        """Record a consumed message and what happened to it."""
        # outcome: mapped / skipped / producer_failed
        self.messages_total.labels(outcome=outcome).inc()
        self.message_size_bytes.observe(size_bytes)
