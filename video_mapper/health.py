"""
Health checks for the /__health and /__gtg endpoints.

The main dependency is the queue proxy: at least one configured address must
answer and list the topic we read from.
"""
import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Sequence

import httpx
import orjson
import structlog

from .api.schemas import CheckResult, HealthResult
from .errors import ProxyUnreachableError, TopicAbsentError

logger = structlog.get_logger()

PANIC_GUIDE = "https://dewey.ft.com/up-vm.html"


class QueueProxyChecker:
    """
    Probes queue proxies for a topic.

    Holds nothing but the shared HTTP client, so it can be called
    concurrently from health requests and the producer check.
    """

    def __init__(self, client: httpx.Client):
        self.client = client

    def check_reachable(self, addresses: Sequence[str], topic: str, auth_key: str = "", queue: str = "") -> None:
        """
        Succeed as soon as one address serves the topic.

        Addresses are probed in order and the remaining ones are skipped after
        the first success.

        Raises:
            ProxyUnreachableError: every address failed; the message names
                each address with its own failure
        """
        if not addresses:
            raise ProxyUnreachableError("No queue proxy address to check")

        errors = []
        for address in addresses:
            try:
                self.check_proxy(address, topic, auth_key, queue)
                return
            except ProxyUnreachableError as e:
                errors.append(f"For {address} there is an error {e} \n")
        raise ProxyUnreachableError("".join(errors))

    def check_proxy(self, address: str, topic: str, auth_key: str = "", queue: str = "") -> None:
        headers = {}
        if auth_key:
            headers["Authorization"] = auth_key
        if queue:
            headers["Host"] = queue

        try:
            resp = self.client.get(f"{address.rstrip('/')}/topics", headers=headers)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning("healthcheck.proxy_unreachable", address=address, error=str(e))
            raise ProxyUnreachableError(str(e) or type(e).__name__) from e

        if resp.status_code != httpx.codes.OK:
            raise ProxyUnreachableError(f"Proxy returned status: {resp.status_code}")
        check_topic_present(resp.content, topic)


def check_topic_present(body: bytes, topic: str) -> None:
    """
    Raises:
        TopicAbsentError: body is not a JSON array of names or lacks the topic
    """
    try:
        topics = orjson.loads(body)
    except orjson.JSONDecodeError as e:
        raise TopicAbsentError(f"Error occured and topic could not be found. {e}") from e
    if not isinstance(topics, list):
        raise TopicAbsentError("Error occured and topic could not be found. Expected a JSON array of topic names")
    if topic not in topics:
        raise TopicAbsentError("Topic was not found")


@dataclass
class Check:
    """A named dependency check. The checker returns its output or raises."""
    id: str
    name: str
    severity: int
    business_impact: str
    technical_summary: str
    panic_guide: str
    checker: Callable[[], str]


def message_queue_proxy_reachable(
    checker: QueueProxyChecker, addresses: Sequence[str], topic: str, auth_key: str = "", queue: str = ""
) -> Check:
    def run() -> str:
        checker.check_reachable(addresses, topic, auth_key, queue)
        return "Connectivity to the queue proxy is OK."

    return Check(
        id="message-queue-proxy-reachable",
        name="MessageQueueProxyReachable",
        severity=1,
        business_impact="Publishing or updating videos will not be possible, clients will not see the new content.",
        technical_summary="Message queue proxy is not reachable/healthy",
        panic_guide=PANIC_GUIDE,
        checker=run,
    )


def message_queue_producer_reachable(producer) -> Check:
    return Check(
        id="message-queue-producer-reachable",
        name="MessageQueueProducerReachable",
        severity=1,
        business_impact="Mapped videos will not reach the queue, clients will not see the new content.",
        technical_summary="Message queue proxy used for writing is not reachable/healthy",
        panic_guide=PANIC_GUIDE,
        checker=producer.connectivity_check,
    )


class HealthCheck:
    """
    Runs the registered checks.

    Provides:
    - the full report, checks run in parallel
    - good-to-go, checks run in order and stopping at the first failure
    """

    def __init__(self, checks: List[Check], system_code: str, name: str, description: str):
        self.checks = checks
        self.system_code = system_code
        self.name = name
        self.description = description

    def run_check(self, check: Check) -> CheckResult:
        ok = True
        try:
            output = check.checker()
        except Exception as e:
            logger.warning("healthcheck.failed", check=check.name, error=str(e))
            ok = False
            output = str(e)

        return CheckResult(
            id=check.id,
            name=check.name,
            ok=ok,
            severity=check.severity,
            business_impact=check.business_impact,
            technical_summary=check.technical_summary,
            panic_guide=check.panic_guide,
            check_output=output or "",
            last_updated=datetime.now(timezone.utc).isoformat(),
        )

    async def health(self) -> HealthResult:
        """Run every check in a worker thread and aggregate the results."""
        results = await asyncio.gather(
            *(asyncio.to_thread(self.run_check, check) for check in self.checks)
        )
        failing = [r.severity for r in results if not r.ok]
        return HealthResult(
            system_code=self.system_code,
            name=self.name,
            description=self.description,
            checks=list(results),
            ok=not failing,
            severity=min(failing) if failing else None,
        )

    def gtg(self) -> bool:
        for check in self.checks:
            try:
                check.checker()
            except Exception as e:
                logger.info("gtg.failed", check=check.name, error=str(e))
                return False
        return True
