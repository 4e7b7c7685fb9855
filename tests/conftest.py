import mongomock
import pytest

from app import create_app


class StubAI:
    """Stands in for GeminiClient; replies are queued per call type."""

    def __init__(self):
        self.text_replies = []
        self.json_replies = {}
        self.chat_reply = "Stub agronomist answer."
        self.transcript = "hello from the field"
        self.error = None
        self.calls = []
        self.tool_results = []

    def generate_text(self, prompt, model=None, system=None):
        self.calls.append(("text", prompt, model))
        if self.error:
            raise self.error
        return self.text_replies.pop(0) if self.text_replies else "stub reply"

    def generate_json(self, prompt, schema, model=None, media=None):
        self.calls.append(("json", prompt, model, media))
        if self.error:
            raise self.error
        return schema.model_validate(self.json_replies[schema.__name__])

    def chat_with_tools(self, prompt, system, tools, model=None):
        self.calls.append(("chat", prompt, system))
        if self.error:
            raise self.error
        self.tool_results = [tool() for tool in tools]
        return self.chat_reply

    def transcribe(self, wav_path, model=None):
        self.calls.append(("transcribe", wav_path))
        return self.transcript


class StubSynthesizer:
    def __init__(self, pcm=b"\x00\x10" * 2400):
        self.pcm = pcm
        self.texts = []

    def synthesize(self, text):
        self.texts.append(text)
        return self.pcm


@pytest.fixture
def database():
    return mongomock.MongoClient().get_database("croptrade_test")


@pytest.fixture
def ai():
    return StubAI()


@pytest.fixture
def tts():
    return StubSynthesizer()


@pytest.fixture
def app(database, ai, tts):
    app = create_app(
        overrides={
            "TESTING": True,
            "JWT_SECRET_KEY": "test-secret",
            "WEATHER_API": "",
            "FRONTEND_ORIGINS": ["http://localhost:3000"],
        },
        database=database,
        ai_client=ai,
        synthesizer=tts,
    )
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def signup(client):
    """Create a user with the given role and return ``(user, auth headers)``."""
    counter = {"n": 0}

    def _signup(role="Farmer", first="Asha", last="Patel"):
        counter["n"] += 1
        res = client.post("/auth/signup", json={
            "firstName": first,
            "lastName": last,
            "email": f"user{counter['n']}@example.com",
            "password": "secret123",
        })
        assert res.status_code == 201
        body = res.get_json()
        headers = {"Authorization": f"Bearer {body['token']}"}
        if role != "Farmer":
            res = client.patch("/auth/me/role", json={"role": role}, headers=headers)
            assert res.status_code == 200
        return body["user"], headers

    return _signup


@pytest.fixture
def listing(client, signup):
    """A listing owned by a fresh farmer: ``(listing, farmer headers)``."""
    _, headers = signup("Farmer")
    res = client.post("/listings", json={
        "cropType": "Wheat",
        "variety": "Sharbati",
        "quantity": 100,
        "unit": "quintal",
        "pricePerUnit": 2400,
        "location": "Sehore, Madhya Pradesh",
        "harvestDate": "2024-04-10",
        "description": "Golden sharbati wheat, cleaned and graded.",
    }, headers=headers)
    assert res.status_code == 201
    return res.get_json(), headers
