"""Bridges the inbound consumer, the video mapper and the outbound producer."""
import httpx
import structlog

from ..adapters.base import MessageProducer
from ..errors import MappingError, ProducerUnavailableError
from ..event_models import Message
from .video_mapper import X_REQUEST_ID, VideoMapper

log = structlog.get_logger()


class VideoMapperHandler:
    """
    Handles one consumed message at a time.

    Nothing raised while mapping or producing escapes on_message: the message
    counts as consumed whatever happens, and the next one is processed.
    """

    def __init__(self, producer: MessageProducer, mapper: VideoMapper | None = None, metrics=None):
        self.producer = producer
        self.mapper = mapper or VideoMapper()
        self.metrics = metrics

    def on_message(self, message: Message) -> None:
        tid = message.headers.get(X_REQUEST_ID, "")
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(transaction_id=tid)

        try:
            mapped, uuid = self.mapper.transform_msg(message)
        except MappingError as e:
            log.warning("message.skipped", error=str(e), error_type=type(e).__name__)
            self._record("skipped", message)
            return

        try:
            self.producer.send_message(mapped)
        except (ProducerUnavailableError, httpx.HTTPError) as e:
            log.error("producer.send_failed", uuid=uuid, error=str(e))
            self._record("producer_failed", message)
            return

        log.info("message.mapped", uuid=uuid)
        self._record("mapped", message)

    def _record(self, outcome: str, message: Message) -> None:
        if self.metrics is not None:
            self.metrics.record_message(outcome, len(message.body.encode("utf-8")))
