import asyncio
import json
from typing import Callable, List

import httpx
import pytest

from wikiextract.errors import AIError, AIErrorKind
from wikiextract.secret_store import CREDENTIAL_KEY, InMemorySecretStore
from wikiextract.services.llm.client import CompletionClient

API_URL = "https://api.anthropic.com/v1/messages"


def ok_body(text: str = "Hello", input_tokens: int = 12, output_tokens: int = 3) -> dict:
    return {
        "content": [{"type": "text", "text": text}],
        "usage": {"input_tokens": input_tokens, "output_tokens": output_tokens},
    }


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def make_client(
    handler: Callable[[httpx.Request], httpx.Response],
    sleep: RecordingSleep,
    api_key: str | None = "sk-test",
) -> CompletionClient:
    store = InMemorySecretStore({CREDENTIAL_KEY: api_key} if api_key else None)
    return CompletionClient(
        store,
        api_url=API_URL,
        retry_delay_s=2.0,
        max_retries=3,
        transport=httpx.MockTransport(handler),
        sleep=sleep,
    )


@pytest.mark.asyncio
async def test_complete_sends_headers_and_returns_usage() -> None:
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=ok_body("Paris"))

    client = make_client(handler, RecordingSleep())
    completion = await client.complete("Capital of France?", system="Be brief", max_tokens=50)
    await client.aclose()

    request = seen[0]
    assert request.headers["x-api-key"] == "sk-test"
    assert request.headers["anthropic-version"] == "2023-06-01"
    body = json.loads(request.content)
    assert body["max_tokens"] == 50
    assert body["system"] == "Be brief"
    assert body["messages"] == [{"role": "user", "content": "Capital of France?"}]
    assert completion.text == "Paris"
    assert completion.usage.input_tokens == 12
    assert completion.usage.output_tokens == 3


@pytest.mark.asyncio
async def test_default_max_tokens_and_no_system() -> None:
    seen: List[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return httpx.Response(200, json=ok_body())

    client = make_client(handler, RecordingSleep())
    await client.complete("hi")
    assert seen[0]["max_tokens"] == 4096
    assert "system" not in seen[0]


@pytest.mark.asyncio
async def test_three_rate_limits_then_success_uses_linear_backoff() -> None:
    statuses = [429, 429, 429, 200]
    calls: List[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        status = statuses[len(calls)]
        calls.append(status)
        if status == 200:
            return httpx.Response(200, json=ok_body("done"))
        return httpx.Response(status)

    sleep = RecordingSleep()
    client = make_client(handler, sleep)
    completion = await client.complete("retry me")

    assert completion.text == "done"
    assert len(calls) == 4
    assert sleep.delays == [2.0, 4.0, 6.0]


@pytest.mark.asyncio
async def test_rate_limit_exhausts_retries() -> None:
    calls: List[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(429)

    client = make_client(handler, RecordingSleep())
    with pytest.raises(AIError) as excinfo:
        await client.complete("hi")
    assert excinfo.value.kind is AIErrorKind.RATE_LIMITED
    assert len(calls) == 4


@pytest.mark.asyncio
async def test_server_errors_and_network_errors_are_retried() -> None:
    outcomes = ["connect", 502, 200]
    calls: List[object] = []

    def handler(request: httpx.Request) -> httpx.Response:
        outcome = outcomes[len(calls)]
        calls.append(outcome)
        if outcome == "connect":
            raise httpx.ConnectError("reset", request=request)
        if outcome == 200:
            return httpx.Response(200, json=ok_body("recovered"))
        return httpx.Response(outcome)

    sleep = RecordingSleep()
    client = make_client(handler, sleep)
    completion = await client.complete("hi")
    assert completion.text == "recovered"
    assert sleep.delays == [2.0, 4.0]


@pytest.mark.asyncio
async def test_unauthorized_is_fatal() -> None:
    calls: List[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(401)

    sleep = RecordingSleep()
    client = make_client(handler, sleep)
    with pytest.raises(AIError) as excinfo:
        await client.complete("hi")
    assert excinfo.value.kind is AIErrorKind.INVALID_CREDENTIAL
    assert len(calls) == 1
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_unexpected_status_is_not_retried() -> None:
    calls: List[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(400, json={"error": "bad request"})

    client = make_client(handler, RecordingSleep())
    with pytest.raises(AIError) as excinfo:
        await client.complete("hi")
    assert excinfo.value.kind is AIErrorKind.UNEXPECTED
    assert excinfo.value.status_code == 400
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_missing_credential_sends_nothing() -> None:
    calls: List[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(200, json=ok_body())

    client = make_client(handler, RecordingSleep(), api_key=None)
    with pytest.raises(AIError) as excinfo:
        await client.complete("hi")
    assert excinfo.value.kind is AIErrorKind.NO_CREDENTIAL
    assert calls == []


@pytest.mark.asyncio
async def test_malformed_body_is_invalid_response() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"content": [], "usage": {}})

    client = make_client(handler, RecordingSleep())
    with pytest.raises(AIError) as excinfo:
        await client.complete("hi")
    assert excinfo.value.kind is AIErrorKind.INVALID_RESPONSE


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("status_code", "expected"),
    [(200, True), (429, True), (401, False), (403, False), (500, False)],
)
async def test_check_credential(status_code: int, expected: bool) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert json.loads(request.content)["max_tokens"] == 10
        return httpx.Response(status_code, json=ok_body("OK"))

    client = make_client(handler, RecordingSleep())
    valid, message = await client.check_credential()
    assert valid is expected
    assert (message is None) is expected


@pytest.mark.asyncio
async def test_check_credential_without_key() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    client = make_client(handler, RecordingSleep(), api_key=None)
    assert await client.check_credential() == (False, "No API key configured")


@pytest.mark.asyncio
async def test_request_timeouts_are_retried_then_reported() -> None:
    calls: List[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        raise httpx.ReadTimeout("read timed out", request=request)

    sleep = RecordingSleep()
    client = CompletionClient(
        InMemorySecretStore({CREDENTIAL_KEY: "sk-test"}),
        api_url=API_URL,
        timeout_s=5.0,
        retry_delay_s=2.0,
        max_retries=3,
        transport=httpx.MockTransport(handler),
        sleep=sleep,
    )
    with pytest.raises(AIError) as excinfo:
        await client.complete("slow")

    assert excinfo.value.kind is AIErrorKind.TIMEOUT
    assert len(calls) == 4
    assert sleep.delays == [2.0, 4.0, 6.0]


@pytest.mark.asyncio
async def test_overall_deadline_raises_timeout() -> None:
    calls: List[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(503)

    async def slow_sleep(delay: float) -> None:
        await asyncio.sleep(1.0)

    client = CompletionClient(
        InMemorySecretStore({CREDENTIAL_KEY: "sk-test"}),
        api_url=API_URL,
        timeout_s=0.05,
        max_retries=3,
        transport=httpx.MockTransport(handler),
        sleep=slow_sleep,
    )
    with pytest.raises(AIError) as excinfo:
        await client.complete("never finishes")

    assert excinfo.value.kind is AIErrorKind.TIMEOUT
    assert len(calls) == 1
