"""In-memory queue adapters."""
import queue
import threading
from typing import List
import structlog
from .base import MessageConsumer, MessageHandler, MessageProducer
from ..event_models import Message

log = structlog.get_logger()


class InMemoryProducer(MessageProducer):
    """In-memory implementation of the producer; keeps every sent message."""

    def __init__(self):
        self._lock = threading.Lock()
        self._sent: List[Message] = []

    def send_message(self, message: Message) -> None:
        with self._lock:
            self._sent.append(message)
        log.info("message.sent", adapter="memory", transaction_id=message.headers.get("X-Request-Id"))

    def sent(self) -> List[Message]:
        with self._lock:
            return list(self._sent)

    def connectivity_check(self) -> str:
        """In-memory producer is always reachable."""
        return "In-memory queue is always reachable."


class InMemoryConsumer(MessageConsumer):
    """Dispatches messages put on a local queue, one at a time, in order."""

    def __init__(self, handler: MessageHandler, poll_interval: float = 0.1):
        self.handler = handler
        self.poll_interval = poll_interval
        self._queue: "queue.Queue[Message]" = queue.Queue()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def put(self, message: Message) -> None:
        self._queue.put(message)

    def start(self) -> None:
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="consumer-memory", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                message = self._queue.get(timeout=self.poll_interval)
            except queue.Empty:
                continue
            try:
                self.handler(message)
            except Exception as e:
                log.error("consumer.handler_failed", adapter="memory", error=str(e), exc_info=True)
            finally:
                self._queue.task_done()

    def join(self) -> None:
        """Block until every queued message has been handled."""
        self._queue.join()
