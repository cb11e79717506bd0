import asyncio
import json
from typing import Any

from httpx import AsyncClient
from pydantic import SecretStr
import pytest

from app import app as app_module
from app.app import create_app
from app.config import Config
from cooksmart.exceptions import UpstreamError
from cooksmart.repository import PreferencesRepository
from fakes import FakeProvider, completion


QUERY = {
    "mealType": "lunch",
    "cuisine": "mediterranean",
    "dietConcerns": "pescatarian,dairyFree",
    "cookingTime": "35",
    "servings": "2",
    "targetCalories": "550",
}


def sse_events(text: str) -> list[dict[str, str]]:
    return [
        json.loads(line[len("data: ") :])
        for line in text.split("\n")
        if line.startswith("data: ")
    ]


@pytest.mark.asyncio
async def test_recipe_stream(async_client: AsyncClient, provider: FakeProvider) -> None:
    resp = await async_client.get("/recipeStream", params=QUERY)

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/event-stream")
    assert resp.headers["cache-control"] == "no-cache"

    events = sse_events(resp.text)
    assert events[0] == {"action": "start"}
    assert events[-1] == {"action": "close"}
    text = "".join(e["chunk"] for e in events if e["action"] == "chunk")
    assert text.startswith("Herb Chicken\nIngredients:")

    [call] = provider.calls
    prompt = call["messages"][0]["content"]  # pyright: ignore
    assert "Meal Type: lunch" in prompt
    assert "Dietary Concerns: pescatarian,dairyFree" in prompt
    assert "Cooking Time: 35 minutes" in prompt


@pytest.mark.parametrize(
    "override",
    (
        {"mealType": "brunch"},
        {"cookingTime": "a while"},
        {"servings": "0"},
    ),
)
@pytest.mark.asyncio
async def test_recipe_stream_rejects_bad_params(
    async_client: AsyncClient, provider: FakeProvider, override: dict[str, str]
) -> None:
    resp = await async_client.get("/recipeStream", params={**QUERY, **override})
    assert resp.status_code == 400
    [field] = override
    assert [d["field"] for d in resp.json()["details"]] == [field]
    assert provider.calls == []


@pytest.mark.asyncio
async def test_recipe_stream_upstream_failure(
    async_client: AsyncClient, provider: FakeProvider
) -> None:
    provider.deltas = completion(["Herb"], finish_reason=None)
    provider.fail_with = UpstreamError("invalid api key")

    resp = await async_client.get("/recipeStream", params=QUERY)

    assert resp.status_code == 200
    events = sse_events(resp.text)
    assert events[-1] == {"action": "error", "message": "upstream_failed"}
    assert {"action": "close"} not in events
    assert "invalid api key" not in resp.text


@pytest.mark.asyncio
async def test_preferences_defaults(async_client: AsyncClient) -> None:
    resp = await async_client.get("/preferences")
    assert resp.status_code == 200
    assert resp.json() == {
        "mealType": "dinner",
        "cuisine": "",
        "dietConcerns": [],
        "cookingTime": 30,
        "servings": 2,
        "targetCalories": 600,
    }


@pytest.mark.asyncio
async def test_preferences_round_trip(async_client: AsyncClient) -> None:
    prefs = {
        "mealType": "breakfast",
        "cuisine": "french",
        "dietConcerns": ["vegetarian"],
        "cookingTime": 15,
        "servings": 1,
        "targetCalories": 400,
    }
    resp = await async_client.put("/preferences", json=prefs)
    assert resp.status_code == 200
    assert resp.json() == prefs

    resp = await async_client.get("/preferences")
    assert resp.json() == prefs


@pytest.mark.asyncio
async def test_preferences_rejects_invalid_body(async_client: AsyncClient) -> None:
    resp = await async_client.put("/preferences", json={"servings": -1})
    assert resp.status_code == 400
    assert resp.json()["details"][0]["field"] == "servings"

    resp = await async_client.put("/preferences", content=b"not json")
    assert resp.status_code == 400
    assert resp.json() == {"error": "Body must be JSON."}


@pytest.mark.asyncio
async def test_recipe_stream_client_disconnect(
    config: Config, repo: PreferencesRepository
) -> None:
    provider = FakeProvider(completion(["Herb"], finish_reason=None), hang=True)
    app = create_app(config, provider=provider, repo=repo)
    scope = {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": "GET",
        "scheme": "http",
        "path": "/recipeStream",
        "raw_path": b"/recipeStream",
        "root_path": "",
        "query_string": b"mealType=lunch",
        "headers": [(b"host", b"test")],
        "client": ("127.0.0.1", 50000),
        "server": ("test", 80),
    }
    requests = [{"type": "http.request", "body": b"", "more_body": False}]
    sent: list[dict[str, Any]] = []

    async def receive() -> dict[str, Any]:
        if requests:
            return requests.pop()
        await asyncio.sleep(0.05)
        return {"type": "http.disconnect"}

    async def send(message: dict[str, Any]) -> None:
        sent.append(message)

    await asyncio.wait_for(app(scope, receive, send), timeout=5)

    body = b"".join(m.get("body", b"") for m in sent if m["type"] == "http.response.body")
    assert b'{"action": "start"}' in body
    assert b'"action": "close"' not in body
    assert provider.closed == 1


@pytest.mark.asyncio
async def test_lifespan_closes_openai_provider(
    config: Config, monkeypatch: pytest.MonkeyPatch
) -> None:
    created: list[FakeProvider] = []

    class ClosingProvider(FakeProvider):
        def __init__(self, *, api_key: str, base_url: str | None) -> None:
            super().__init__([])
            self.api_key = api_key
            self.shutdowns = 0
            created.append(self)

        async def close(self) -> None:
            self.shutdowns += 1

    monkeypatch.setattr(app_module, "OpenAIProvider", ClosingProvider)
    cfg = config.model_copy(update={"openai_api_key": SecretStr("sk-test")})
    app = create_app(cfg)

    async with app.router.lifespan_context(app):
        [provider] = created
        assert app.state.relay.provider is provider
        assert provider.api_key == "sk-test"
        assert provider.shutdowns == 0
    assert provider.shutdowns == 1
