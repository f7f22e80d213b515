import httpx
import openai

from dependencies import get_ai_client
from services.ai_service import estimate_cost

ARTICLE = "Remote teams need clear written communication, shared calendars and a habit of async updates."


def _status_error(cls, status):
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    return cls("provider error", response=httpx.Response(status, request=request), body=None)


def test_estimate_cost():
    assert estimate_cost(1000) == 0.045
    assert estimate_cost(0) == 0.0
    assert estimate_cost(1234) == 0.0555


def test_generate_requires_login(client):
    assert client.post("/api/generate/content", json={"prompt": "Write about focus at work"}).status_code == 401


def test_generate_content(client, register, fake_ai):
    _, headers = register()
    fake_ai.completions.reply = "<h2>Focus</h2><p>Body</p>"
    fake_ai.completions.tokens = 1500

    res = client.post("/api/generate/content", json={"prompt": "Write about focus at work", "length": "short",
                                                     "tone": "casual"}, headers=headers)
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["content"] == "<h2>Focus</h2><p>Body</p>"
    assert data["tokensUsed"] == 1500
    assert data["estimatedCost"] == 0.0675
    assert data["settings"] == {"tone": "casual", "length": "short", "style": "blog"}

    call = fake_ai.completions.calls[0]
    assert call["model"] == "gpt-4"
    assert call["max_tokens"] == 600
    assert "Target word count: 300 words" in call["messages"][1]["content"]


def test_generate_content_validation(client, register):
    _, headers = register()
    res = client.post("/api/generate/content", json={"prompt": "short", "length": "epic"}, headers=headers)
    assert res.status_code == 400
    assert {e["field"] for e in res.json()["errors"]} == {"prompt", "length"}


def test_generate_titles_splits_lines(client, register, fake_ai):
    _, headers = register()
    fake_ai.completions.reply = "First title\n\n  Second title  \nThird title\n"
    res = client.post("/api/generate/title", json={"topic": "Remote work", "keywords": ["async"]}, headers=headers)
    data = res.json()["data"]
    assert data["titles"] == ["First title", "Second title", "Third title"]
    assert data["keywords"] == ["async"]
    assert fake_ai.completions.calls[0]["temperature"] == 0.8


def test_generate_tags_filters_and_lowercases(client, register, fake_ai):
    _, headers = register()
    fake_ai.completions.reply = "Remote Work, async ,, " + "x" * 51 + ", Calendars"
    res = client.post("/api/generate/tags", json={"content": ARTICLE, "count": 5}, headers=headers)
    data = res.json()["data"]
    assert data["tags"] == ["remote work", "async", "calendars"]
    assert data["count"] == 3
    assert data["topic"] is None

    bad = client.post("/api/generate/tags", json={"content": ARTICLE, "count": 30}, headers=headers)
    assert bad.status_code == 400


def test_generate_meta(client, register, fake_ai):
    _, headers = register()
    fake_ai.completions.reply = "  Learn how remote teams stay aligned.  "
    res = client.post("/api/generate/meta", json={"title": "Remote team habits", "content": ARTICLE},
                      headers=headers)
    data = res.json()["data"]
    assert data["metaDescription"] == "Learn how remote teams stay aligned."
    assert data["characterCount"] == len("Learn how remote teams stay aligned.")


def test_provider_errors_are_mapped(client, register, fake_ai):
    _, headers = register()
    payload = {"prompt": "Write about focus at work"}

    fake_ai.completions.error = _status_error(openai.RateLimitError, 429)
    res = client.post("/api/generate/content", json=payload, headers=headers)
    assert res.status_code == 429
    assert res.json()["message"] == "Rate limit exceeded. Please try again later."

    fake_ai.completions.error = _status_error(openai.AuthenticationError, 401)
    res = client.post("/api/generate/content", json=payload, headers=headers)
    assert res.status_code == 500
    assert res.json()["message"] == "AI service configuration error. Please contact support."

    fake_ai.completions.error = openai.APIConnectionError(request=httpx.Request("POST", "https://api.openai.com"))
    res = client.post("/api/generate/content", json=payload, headers=headers)
    assert res.status_code == 500
    assert res.json()["message"] == "Failed to generate content. Please try again."


def test_missing_api_key(app, client, register, settings):
    app.dependency_overrides.pop(get_ai_client)
    settings.openai_api_key = ""
    _, headers = register()

    res = client.post("/api/generate/meta", json={"title": "Remote team habits", "content": ARTICLE},
                      headers=headers)
    assert res.status_code == 500
    assert res.json()["message"] == "AI service configuration error. Please contact support."
