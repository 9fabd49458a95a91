"""Queue proxy adapters.

The queue proxy fronts the message queue with a REST API: consumer instances
are created per group, records travel base64-encoded, and the proxy routes to
a queue picked by the Host header.
"""
import base64
import binascii
import threading
from typing import List, Optional
from urllib.parse import urlparse

import httpx
import orjson
import structlog

from . import ft_message
from .base import MessageConsumer, MessageHandler, MessageProducer
from ..errors import ProducerUnavailableError, ProxyUnreachableError
from ..event_models import Message
from ..health import QueueProxyChecker

log = structlog.get_logger()

BINARY_CONTENT_TYPE = "application/vnd.kafka.binary.v1+json"
CONSUMER_CONTENT_TYPE = "application/vnd.kafka.v1+json"


def proxy_headers(queue: str, authorization: str, **extra: str) -> dict:
    headers = dict(extra)
    if queue:
        headers["Host"] = queue
    if authorization:
        headers["Authorization"] = authorization
    return headers


class QueueProxyProducer(MessageProducer):
    """Writes messages to a topic through the queue proxy."""

    def __init__(self, client: httpx.Client, address: str, topic: str, queue: str = "", authorization: str = ""):
        self.client = client
        self.address = address.rstrip("/")
        self.topic = topic
        self.queue = queue
        self.authorization = authorization
        self._checker = QueueProxyChecker(client)

    def send_message(self, message: Message) -> None:
        value = base64.b64encode(ft_message.encode(message).encode("utf-8")).decode("ascii")
        body = orjson.dumps({"records": [{"value": value}]})
        url = f"{self.address}/topics/{self.topic}"
        try:
            resp = self.client.post(
                url,
                content=body,
                headers=proxy_headers(self.queue, self.authorization, **{"Content-Type": BINARY_CONTENT_TYPE}),
            )
        except httpx.HTTPError as e:
            raise ProducerUnavailableError(f"Could not send message to {url}: {e}") from e

        if resp.status_code != httpx.codes.OK:
            raise ProducerUnavailableError(
                f"Unexpected response status {resp.status_code}. Expected: 200. {resp.text}"
            )

    def connectivity_check(self) -> str:
        self._checker.check_reachable([self.address], self.topic, self.authorization, self.queue)
        return "Connectivity to producer proxy is OK."


class QueueProxyConsumer(MessageConsumer):
    """
    Polls the queue proxy, one background thread per address.

    Each thread owns one consumer instance in the configured group and hands
    every record to the handler in the order the proxy returns them. Offsets
    are auto-committed by the proxy.
    """

    def __init__(
        self,
        client: httpx.Client,
        addresses: List[str],
        group: str,
        topic: str,
        handler: MessageHandler,
        queue: str = "",
        authorization: str = "",
        backoff_seconds: float = 8.0,
    ):
        self.client = client
        self.addresses = [a.rstrip("/") for a in addresses]
        self.group = group
        self.topic = topic
        self.handler = handler
        self.queue = queue
        self.authorization = authorization
        self.backoff_seconds = backoff_seconds
        self._stop = threading.Event()
        self._threads: list[threading.Thread] = []

    def start(self) -> None:
        self._stop.clear()
        for i, address in enumerate(self.addresses):
            thread = threading.Thread(target=self._run, args=(address,), name=f"consumer-{i}", daemon=True)
            self._threads.append(thread)
            thread.start()
        log.info("consumer.started", addresses=self.addresses, group=self.group, topic=self.topic)

    def stop(self) -> None:
        self._stop.set()
        for thread in self._threads:
            thread.join()
        self._threads = []
        log.info("consumer.stopped")

    def _run(self, address: str) -> None:
        instance: Optional[str] = None
        while not self._stop.is_set():
            try:
                if instance is None:
                    instance = self._create_instance(address)
                messages = self._consume(address, instance)
            except (httpx.HTTPError, ProxyUnreachableError, ValueError, KeyError, TypeError) as e:
                log.warning("consumer.poll_failed", address=address, error=str(e))
                if instance is not None:
                    self._destroy_instance(address, instance)
                    instance = None
                self._stop.wait(self.backoff_seconds)
                continue

            # A fetched batch is always drained, even when stopping
            for message in messages:
                self._dispatch(message)

            if not messages:
                self._stop.wait(self.backoff_seconds)

        if instance is not None:
            self._destroy_instance(address, instance)

    def _dispatch(self, message: Message) -> None:
        try:
            self.handler(message)
        except Exception as e:
            log.error("consumer.handler_failed", error=str(e), exc_info=True)

    def _create_instance(self, address: str) -> str:
        resp = self.client.post(
            f"{address}/consumers/{self.group}",
            content=orjson.dumps({"auto.offset.reset": "smallest", "auto.commit.enable": "true"}),
            headers=proxy_headers(self.queue, self.authorization, **{"Content-Type": CONSUMER_CONTENT_TYPE}),
        )
        if resp.status_code != httpx.codes.OK:
            raise ProxyUnreachableError(f"Unexpected response status {resp.status_code} creating consumer instance")
        instance = urlparse(resp.json()["base_uri"]).path
        log.info("consumer.instance_created", address=address, instance=instance)
        return instance

    def _consume(self, address: str, instance: str) -> List[Message]:
        resp = self.client.get(
            f"{address}{instance}/topics/{self.topic}",
            headers=proxy_headers(self.queue, self.authorization, Accept=BINARY_CONTENT_TYPE),
        )
        if resp.status_code != httpx.codes.OK:
            raise ProxyUnreachableError(f"Unexpected response status {resp.status_code} consuming from {self.topic}")
        messages = []
        for record in resp.json():
            message = self._decode_record(record)
            if message is not None:
                messages.append(message)
        return messages

    def _decode_record(self, record) -> Optional[Message]:
        """Decode one proxy record; a malformed record is logged and dropped on its own."""
        try:
            raw = base64.b64decode(record["value"])
        except (binascii.Error, KeyError, TypeError) as e:
            log.warning("consumer.record_skipped", topic=self.topic, error=str(e))
            return None
        # Invalid UTF-8 is replaced, not fatal; the mapper rejects the body if it matters
        return ft_message.decode(raw.decode("utf-8", errors="replace"))

    def _destroy_instance(self, address: str, instance: str) -> None:
        try:
            resp = self.client.delete(
                f"{address}{instance}",
                headers=proxy_headers(self.queue, self.authorization, Accept=CONSUMER_CONTENT_TYPE),
            )
            if resp.status_code != httpx.codes.NO_CONTENT:
                log.warning("consumer.destroy_failed", address=address, instance=instance, status=resp.status_code)
        except httpx.HTTPError as e:
            log.warning("consumer.destroy_failed", address=address, instance=instance, error=str(e))
