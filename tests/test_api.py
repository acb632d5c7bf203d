import json
from pathlib import Path
from typing import Iterator

import httpx
import pytest
from fastapi.testclient import TestClient

from wikiextract.config import get_settings
from wikiextract.dependencies import (
    ServiceContainer,
    build_container,
    get_completion_client,
    get_discovery_service,
    get_pipeline,
    get_secret_store,
)
from wikiextract.main import app
from wikiextract.secret_store import CREDENTIAL_KEY, InMemorySecretStore

FIXTURES = Path(__file__).parent / "fixtures"
CONFUCIUS = (FIXTURES / "article_confucius.html").read_text(encoding="utf-8")

DISCOVERY_ANSWER = json.dumps(
    {
        "estimatedTotal": 75,
        "articles": [
            {"title": "Confucius", "description": "Chinese philosopher"},
            {"title": "Ghost", "description": "does not exist"},
        ],
    }
)


def wiki_handler(request: httpx.Request) -> httpx.Response:
    params = request.url.params
    if params.get("action") == "parse":
        if params.get("page") == "Nobody":
            return httpx.Response(200, json={"error": {"code": "missingtitle", "info": "missing"}})
        return httpx.Response(
            200,
            json={
                "parse": {
                    "title": params.get("page"),
                    "pageid": 5802,
                    "displaytitle": params.get("page"),
                    "text": CONFUCIUS,
                    "categories": [{"category": "Chinese_philosophers"}],
                }
            },
        )
    title = params.get("titles")
    if params.get("prop", "").startswith("extracts"):
        page = {
            "title": title,
            "extract": "Confucius was a Chinese philosopher. He taught ethics.",
            "categories": [{"title": f"Category:Topic {i}"} for i in range(7)],
            "thumbnail": {"source": "https://upload.example/c.jpg"},
            "fullurl": "https://en.wikipedia.org/wiki/Confucius",
        }
        return httpx.Response(200, json={"query": {"pages": [page]}})
    page = {"title": title, "missing": True} if title == "Ghost" else {"title": title, "pageid": 1}
    return httpx.Response(200, json={"query": {"pages": [page]}})


def llm_handler(request: httpx.Request) -> httpx.Response:
    body = json.loads(request.content)
    text = DISCOVERY_ANSWER if "system" in body else "person"
    return httpx.Response(
        200,
        json={
            "content": [{"type": "text", "text": text}],
            "usage": {"input_tokens": 50, "output_tokens": 5},
        },
    )


def make_container(api_key: str | None = "test-key", llm=llm_handler) -> ServiceContainer:
    store = InMemorySecretStore({CREDENTIAL_KEY: api_key} if api_key else None)
    return build_container(
        get_settings(),
        secret_store=store,
        wiki_transport=httpx.MockTransport(wiki_handler),
        llm_transport=httpx.MockTransport(llm),
    )


def use_container(container: ServiceContainer) -> None:
    app.dependency_overrides[get_secret_store] = lambda: container.secret_store
    app.dependency_overrides[get_completion_client] = lambda: container.completion_client
    app.dependency_overrides[get_pipeline] = lambda: container.pipeline
    app.dependency_overrides[get_discovery_service] = lambda: container.discovery


@pytest.fixture
def client() -> Iterator[TestClient]:
    use_container(make_container())
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client: TestClient) -> None:
    assert client.get("/health").json() == {"status": "ok"}


def test_ready_requires_credential(client: TestClient) -> None:
    assert client.get("/ready").status_code == 200
    use_container(make_container(api_key=None))
    assert client.get("/ready").status_code == 503


def test_llm_smoke_rejects_long_prompt(client: TestClient) -> None:
    response = client.post("/llm/smoke", json={"prompt": "x" * 2001})
    assert response.status_code == 422


def test_llm_smoke_returns_completion(client: TestClient) -> None:
    response = client.post("/llm/smoke", json={"prompt": "ping"})
    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["text"] == "person"
    assert (body["input_tokens"], body["output_tokens"]) == (50, 5)


def test_llm_smoke_maps_invalid_key_to_bad_gateway(client: TestClient) -> None:
    use_container(make_container(llm=lambda request: httpx.Response(401, json={})))
    response = client.post("/llm/smoke", json={"prompt": "ping"})
    assert response.status_code == 502


def test_extract_without_ai(client: TestClient) -> None:
    response = client.post("/extract", json={"source": "Confucius", "ai_enabled": False})
    assert response.status_code == 200
    body = response.json()
    assert body["steps"] == ["fetching", "parsing", "complete"]
    assert body["extraction"]["article"]["title"] == "Confucius"
    assert body["extraction"]["metadata"]["ai_enhanced"] is False
    assert body["extraction"]["classification"]["categories"] == ["Chinese philosophers"]


def test_extract_with_ai(client: TestClient) -> None:
    response = client.post("/extract", json={"source": "Confucius"})
    assert response.status_code == 200
    body = response.json()
    assert len(body["steps"]) == 9
    assert body["extraction"]["metadata"]["ai_enhanced"] is True
    assert body["extraction"]["metadata"]["tokens_used"] == {"input_tokens": 300, "output_tokens": 30}
    assert body["extraction"]["article"]["type"] == "person"


def test_extract_error_mapping(client: TestClient) -> None:
    assert client.post("/extract", json={"source": "Nobody"}).status_code == 404
    assert client.post("/extract", json={"source": "https://example.com/wiki/X"}).status_code == 422
    assert client.post("/extract", json={"source": "X", "summary_ratio": 2}).status_code == 422


def test_discover_returns_validated_candidates(client: TestClient) -> None:
    response = client.post("/discover", json={"query": "confucianism"})
    assert response.status_code == 200
    body = response.json()
    assert [c["title"] for c in body["candidates"]] == ["Confucius"]
    assert body["candidates"][0]["url"] == "https://en.wikipedia.org/wiki/Confucius"
    assert body["estimated_total"] == 75
    assert (body["input_tokens"], body["output_tokens"]) == (50, 5)


def test_discover_more_skips_loaded_titles(client: TestClient) -> None:
    response = client.post(
        "/discover/more", json={"query": "confucianism", "loaded_titles": ["confucius"]}
    )
    assert response.status_code == 200
    body = response.json()
    assert body["candidates"] == []
    assert body["estimated_total"] == 0


def test_discover_rejects_empty_query(client: TestClient) -> None:
    assert client.post("/discover", json={"query": ""}).status_code == 422


def test_preview_returns_intro_and_first_categories(client: TestClient) -> None:
    response = client.get("/preview", params={"source": "Confucius"})
    assert response.status_code == 200
    body = response.json()
    assert body["extract"] == "Confucius was a Chinese philosopher. He taught ethics."
    assert body["categories"] == [f"Topic {i}" for i in range(5)]
    assert body["thumbnail"] == "https://upload.example/c.jpg"
    assert body["page_url"] == "https://en.wikipedia.org/wiki/Confucius"
