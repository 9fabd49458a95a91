"""
Tests for the queue proxy checker and the health endpoints.
"""
import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from video_mapper.errors import ProxyUnreachableError, TopicAbsentError
from video_mapper.health import (
    Check,
    HealthCheck,
    QueueProxyChecker,
    check_topic_present,
    message_queue_proxy_reachable,
)
from video_mapper.main import Service, create_app
from video_mapper.metrics import Metrics

TOPIC = "NativeCmsPublicationEvents"


def proxy_client(routes: dict, seen: list | None = None) -> httpx.Client:
    """Client whose requests are answered per host by the given handlers."""
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return routes[request.url.host](request)

    return httpx.Client(transport=httpx.MockTransport(handler))


def serves(*topics):
    return lambda request: httpx.Response(200, json=list(topics))


def refuses(request):
    raise httpx.ConnectError("connection refused", request=request)


def test_check_reachable_first_address():
    seen = []
    checker = QueueProxyChecker(proxy_client({"a": serves(TOPIC), "b": serves(TOPIC)}, seen))

    assert checker.check_reachable(["http://a", "http://b"], TOPIC) is None
    assert [r.url.host for r in seen] == ["a"]
    assert seen[0].url.path == "/topics"


def test_check_reachable_falls_over_to_next_address():
    """Test that a failing first address does not fail the check."""
    seen = []
    checker = QueueProxyChecker(proxy_client({"a": refuses, "b": serves("other", TOPIC), "c": serves(TOPIC)}, seen))

    checker.check_reachable(["http://a", "http://b", "http://c"], TOPIC)

    assert [r.url.host for r in seen] == ["a", "b"]


def test_check_reachable_aggregates_every_failure():
    routes = {
        "a": refuses,
        "b": lambda request: httpx.Response(500),
        "c": lambda request: httpx.Response(200, content=b"not json"),
        "d": serves("other"),
    }
    checker = QueueProxyChecker(proxy_client(routes))

    with pytest.raises(ProxyUnreachableError) as exc:
        checker.check_reachable(["http://a", "http://b", "http://c", "http://d"], TOPIC)

    message = str(exc.value)
    assert "For http://a there is an error connection refused \n" in message
    assert "For http://b there is an error Proxy returned status: 500 \n" in message
    assert "For http://c there is an error Error occured and topic could not be found." in message
    assert "For http://d there is an error Topic was not found \n" in message
    assert message.index("http://a") < message.index("http://b") < message.index("http://c") < message.index("http://d")


def test_check_reachable_no_addresses():
    checker = QueueProxyChecker(proxy_client({}))

    with pytest.raises(ProxyUnreachableError):
        checker.check_reachable([], TOPIC)


def test_check_proxy_sends_auth_and_host_headers():
    seen = []
    checker = QueueProxyChecker(proxy_client({"a": serves(TOPIC)}, seen))

    checker.check_proxy("http://a", TOPIC, auth_key="Basic c2VjcmV0", queue="kafka")

    assert seen[0].headers["Authorization"] == "Basic c2VjcmV0"
    assert seen[0].headers["Host"] == "kafka"


def test_check_proxy_without_auth_or_queue():
    seen = []
    checker = QueueProxyChecker(proxy_client({"a": serves(TOPIC)}, seen))

    checker.check_proxy("http://a/", TOPIC)

    assert "Authorization" not in seen[0].headers
    assert seen[0].headers["Host"] == "a"
    assert seen[0].url.path == "/topics"


def test_check_proxy_invalid_address():
    checker = QueueProxyChecker(httpx.Client())

    with pytest.raises(ProxyUnreachableError):
        checker.check_proxy("not-an-address", TOPIC)


def test_check_topic_present():
    check_topic_present(b'["a", "NativeCmsPublicationEvents"]', TOPIC)

    with pytest.raises(TopicAbsentError, match="Topic was not found"):
        check_topic_present(b'["NativeCmsPublicationEventsX"]', TOPIC)
    with pytest.raises(TopicAbsentError, match="Error occured and topic could not be found"):
        check_topic_present(b'{"topics": []}', TOPIC)
    with pytest.raises(TopicAbsentError, match="Error occured and topic could not be found"):
        check_topic_present(b"", TOPIC)


def make_check(name: str, result=None, calls: list | None = None, severity: int = 1) -> Check:
    def run():
        if calls is not None:
            calls.append(name)
        if isinstance(result, Exception):
            raise result
        return result or f"{name} OK"

    return Check(
        id=name.lower(),
        name=name,
        severity=severity,
        business_impact="impact",
        technical_summary="summary",
        panic_guide="https://dewey.ft.com/up-vm.html",
        checker=run,
    )


def make_health_check(*checks: Check) -> HealthCheck:
    return HealthCheck(list(checks), system_code="up-nvm", name="Dependent services healthcheck", description="desc")


def make_client(health_check: HealthCheck) -> AsyncClient:
    app = create_app(Service(health_check=health_check, metrics=Metrics()))
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest.mark.asyncio
async def test_health_all_ok():
    """Test the health report when every check passes."""
    async with make_client(make_health_check(make_check("First"), make_check("Second"))) as client:
        r = await client.get("/__health")

    assert r.status_code == 200
    data = r.json()
    assert data["schemaVersion"] == 1
    assert data["systemCode"] == "up-nvm"
    assert data["name"] == "Dependent services healthcheck"
    assert data["ok"] is True
    assert "severity" not in data
    assert [c["name"] for c in data["checks"]] == ["First", "Second"]
    check = data["checks"][0]
    assert check["ok"] is True
    assert check["checkOutput"] == "First OK"
    assert check["businessImpact"] == "impact"
    assert check["technicalSummary"] == "summary"
    assert check["panicGuide"] == "https://dewey.ft.com/up-vm.html"
    assert "lastUpdated" in check


@pytest.mark.asyncio
async def test_health_with_failing_check():
    """Test that a failing check is reported but the endpoint still answers 200."""
    health_check = make_health_check(
        make_check("First"),
        make_check("Second", ProxyUnreachableError("For http://a there is an error boom \n"), severity=2),
    )
    async with make_client(health_check) as client:
        r = await client.get("/__health")

    assert r.status_code == 200
    data = r.json()
    assert data["ok"] is False
    assert data["severity"] == 2
    failing = data["checks"][1]
    assert failing["ok"] is False
    assert "boom" in failing["checkOutput"]


@pytest.mark.asyncio
async def test_health_with_proxy_check():
    checker = QueueProxyChecker(proxy_client({"a": refuses, "b": serves(TOPIC)}))
    check = message_queue_proxy_reachable(checker, ["http://a", "http://b"], TOPIC)
    async with make_client(make_health_check(check)) as client:
        r = await client.get("/__health")

    data = r.json()
    assert data["ok"] is True
    assert data["checks"][0]["name"] == "MessageQueueProxyReachable"
    assert data["checks"][0]["severity"] == 1


@pytest.mark.asyncio
async def test_gtg_ok():
    async with make_client(make_health_check(make_check("First"))) as client:
        r = await client.get("/__gtg")

    assert r.status_code == 200
    assert r.content == b""


@pytest.mark.asyncio
async def test_gtg_short_circuits_on_failure():
    """Test that gtg answers 503 at the first failing check."""
    calls = []
    health_check = make_health_check(
        make_check("First", ProxyUnreachableError("down"), calls),
        make_check("Second", calls=calls),
    )
    async with make_client(health_check) as client:
        r = await client.get("/__gtg")

    assert r.status_code == 503
    assert r.content == b""
    assert calls == ["First"]

