import random

from fastapi.testclient import TestClient

from meme_captions.errors import NetworkFailure
from meme_captions.fallback import GENERIC_CAPTIONS
from meme_captions.proxy import create_app
from meme_captions.schema import ImproveReply, Theme


class FakeBackend:
    def __init__(self, fail=False):
        self.fail = fail
        self.requests = []

    async def generate_caption(self, request):
        self.requests.append(request)
        if self.fail:
            raise NetworkFailure("llm down")
        return "ME PRETENDING TO WORK"

    async def generate_themes(self, template_name):
        if self.fail:
            raise NetworkFailure("llm down")
        return [Theme(name="Office", description="Work", topText="A", bottomText="B")]

    async def improve_text(self, top_text, bottom_text, context="meme humor"):
        if self.fail:
            raise NetworkFailure("llm down")
        return ImproveReply(improvedTop=top_text.upper() + "!!")


def _client(backend=None):
    return TestClient(create_app(endpoint=backend, rng=random.Random(0)))


def test_root_and_health():
    client = _client(FakeBackend())
    assert client.get("/").json() == {"message": "Meme Generator API is running"}
    health = client.get("/health").json()
    assert health["status"] == "healthy"
    assert health["aiAvailable"] is True
    assert _client().get("/health").json()["aiAvailable"] is False


def test_generate_caption_success():
    backend = FakeBackend()
    resp = _client(backend).post("/api/generate-caption", json={"templateName": "Drake", "position": "bottom"})
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "caption": "ME PRETENDING TO WORK"}
    req = backend.requests[0]
    assert req.template_name == "Drake"
    assert req.position == "bottom"
    assert req.context == "general internet humor"


def test_generate_caption_without_backend_reports_failure():
    resp = _client().post("/api/generate-caption", json={"templateName": "Drake", "position": "top"})
    data = resp.json()
    assert data["success"] is False
    assert data["caption"] in GENERIC_CAPTIONS["top"]


def test_generate_caption_backend_error():
    resp = _client(FakeBackend(fail=True)).post(
        "/api/generate-caption", json={"templateName": "Drake", "position": "bottom"}
    )
    data = resp.json()
    assert data["success"] is False
    assert data["caption"] in GENERIC_CAPTIONS["bottom"]


def test_generate_caption_rejects_bad_position():
    resp = _client().post("/api/generate-caption", json={"templateName": "Drake", "position": "middle"})
    assert resp.status_code == 422


def test_generate_themes():
    data = _client(FakeBackend()).post("/api/generate-themes", json={"templateName": "Drake"}).json()
    assert data["success"] is True
    assert data["themes"] == [{"name": "Office", "description": "Work", "topText": "A", "bottomText": "B"}]

    data = _client(FakeBackend(fail=True)).post("/api/generate-themes", json={"templateName": "Two Buttons"}).json()
    assert [t["name"] for t in data["themes"]] == ["Good vs Evil", "Smart vs Dumb"]


def test_improve_text():
    resp = _client(FakeBackend()).post("/api/improve-text", json={"topText": "meh", "bottomText": ""})
    assert resp.json() == {"improvedTop": "MEH!!", "improvedBottom": None}
    assert _client().post("/api/improve-text", json={"topText": "meh"}).status_code == 503
    assert _client(FakeBackend(fail=True)).post("/api/improve-text", json={"topText": "meh"}).status_code == 502


class BuggyBackend:
    async def generate_caption(self, request):
        raise TypeError("'NoneType' object is not subscriptable")

    async def generate_themes(self, template_name):
        raise KeyError("themes")

    async def improve_text(self, top_text, bottom_text, context="meme humor"):
        raise RuntimeError("boom")


def test_unexpected_backend_errors_stay_inside_routes():
    client = _client(BuggyBackend())
    data = client.post("/api/generate-caption", json={"templateName": "Drake", "position": "top"}).json()
    assert data["success"] is False
    assert data["caption"] in GENERIC_CAPTIONS["top"]

    themes = client.post("/api/generate-themes", json={"templateName": "Two Buttons"}).json()
    assert themes["success"] is True
    assert [t["name"] for t in themes["themes"]] == ["Good vs Evil", "Smart vs Dumb"]

    assert client.post("/api/improve-text", json={"topText": "meh"}).status_code == 502
