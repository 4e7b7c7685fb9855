import pytest
import tenacity
from google.api_core import exceptions as google_exceptions
from pydantic import BaseModel

import ai_client
from ai_client import GeminiClient, parse_data_uri
from errors import AIGenerationError, APIError


def test_parse_data_uri():
    assert parse_data_uri("data:image/jpeg;base64,aGVsbG8=") == ("image/jpeg", b"hello")


@pytest.mark.parametrize("value", ["", "https://example.com/a.png", "data:image/png;base64,@@@"])
def test_parse_data_uri_rejects(value):
    with pytest.raises(APIError) as exc:
        parse_data_uri(value)
    assert "photoDataUri" in exc.value.errors


def test_is_rate_limited():
    assert ai_client.is_rate_limited(google_exceptions.ResourceExhausted("quota"))
    assert ai_client.is_rate_limited(RuntimeError("429 Too Many Requests"))
    assert not ai_client.is_rate_limited(RuntimeError("500 boom"))


def test_retry_backs_off_on_rate_limit(monkeypatch):
    sleeps = []
    monkeypatch.setattr(tenacity.nap, "sleep", sleeps.append)
    attempts = {"n": 0}

    def flaky():
        attempts["n"] += 1
        if attempts["n"] < 3:
            raise google_exceptions.ResourceExhausted("quota")
        return "ok"

    client = GeminiClient("", "model", max_retries=3, retry_base_seconds=2)
    assert client._with_retry(flaky) == "ok"
    assert sleeps == [2, 4]


def test_retry_gives_up(monkeypatch):
    monkeypatch.setattr(tenacity.nap, "sleep", lambda s: None)

    def always_limited():
        raise google_exceptions.ResourceExhausted("quota")

    client = GeminiClient("", "model", max_retries=2)
    with pytest.raises(google_exceptions.ResourceExhausted):
        client._with_retry(always_limited)


def test_other_errors_are_not_retried(monkeypatch):
    sleeps = []
    monkeypatch.setattr(tenacity.nap, "sleep", sleeps.append)

    def broken():
        raise ValueError("bad request")

    with pytest.raises(ValueError):
        GeminiClient("", "model")._with_retry(broken)
    assert sleeps == []


def test_missing_key():
    with pytest.raises(AIGenerationError, match="Gemini API key is not configured"):
        GeminiClient("", "model").generate_text("hi")


def test_strip_fences():
    assert ai_client._strip_fences('```json\n{"a": 1}\n```') == '{"a": 1}'


class FakeResponse:
    def __init__(self, text):
        self.text = text


def fake_model(reply, seen):
    class FakeModel:
        def __init__(self, name, **kwargs):
            seen["model"] = name

        def generate_content(self, contents, generation_config=None):
            seen["contents"] = contents
            seen["generation_config"] = generation_config
            return FakeResponse(reply)

    return FakeModel


class Diagnosis(BaseModel):
    diagnosis: str
    recommendedActions: str


def test_generate_json_validates_into_schema(monkeypatch):
    seen = {}
    reply = '```json\n{"diagnosis": "Aphids", "recommendedActions": "Neem oil."}\n```'
    monkeypatch.setattr(ai_client.genai, "GenerativeModel", fake_model(reply, seen))
    client = GeminiClient("key", "gemini-test")

    out = client.generate_json("Look at this leaf", Diagnosis, media=("image/png", b"png-bytes"))
    assert out == Diagnosis(diagnosis="Aphids", recommendedActions="Neem oil.")
    assert seen["model"] == "gemini-test"
    assert seen["generation_config"] == {"response_mime_type": "application/json"}
    assert seen["contents"][1] == {"mime_type": "image/png", "data": b"png-bytes"}


@pytest.mark.parametrize("reply,message", [
    ("", "The AI returned an empty response."),
    ('{"diagnosis": "Aphids"}', "The AI returned data in an unexpected format."),
    ("not json at all", "The AI returned data in an unexpected format."),
])
def test_generate_json_rejects_bad_output(monkeypatch, reply, message):
    monkeypatch.setattr(ai_client.genai, "GenerativeModel", fake_model(reply, {}))
    with pytest.raises(AIGenerationError, match=message):
        GeminiClient("key", "gemini-test").generate_json("Look at this leaf", Diagnosis)
