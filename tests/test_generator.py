import asyncio
import random

from meme_captions.cache import cache_key
from meme_captions.config import GeneratorConfig
from meme_captions.errors import MalformedResponse, NetworkFailure
from meme_captions.fallback import CAPTIONS, CONTEXT_CAPTIONS, GENERIC_CAPTIONS, PREDEFINED_THEMES, TEXT_VARIATIONS
from meme_captions.generator import CaptionGenerator
from meme_captions.remote import HTTPCaptionEndpoint, LiteLLMCaptionEndpoint
from meme_captions.schema import ImproveReply, Theme

# Avoid real rate-limit waits in most tests
FAST = dict(request_delay_ms=0, fetch_timeout_ms=2000)


class FakeEndpoint:
    def __init__(self, fail=None, caption=None, themes=None, improve=None, delay=0.0):
        self.fail = fail
        self.caption = caption
        self.themes = themes
        self.improve = improve
        self.delay = delay
        self.calls = []
        self.in_flight = 0
        self.peak = 0

    async def generate_caption(self, request):
        self.calls.append(request)
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.fail:
                raise self.fail
            if self.caption is not None:
                return self.caption
            return f"AI {request.template_name.upper()} {request.position.upper()}"
        finally:
            self.in_flight -= 1

    async def generate_themes(self, template_name):
        if self.fail:
            raise self.fail
        return self.themes or []

    async def improve_text(self, top_text, bottom_text, context="meme humor"):
        if self.fail:
            raise self.fail
        return self.improve or ImproveReply()


def _gen(endpoint, **cfg):
    config = GeneratorConfig(**{**FAST, **cfg})
    return CaptionGenerator(config, endpoint=endpoint, rng=random.Random(1234))


def test_cache_hit_makes_one_remote_call():
    ep = FakeEndpoint()
    gen = _gen(ep)

    async def go():
        a = await gen.generate_caption_with_meta("Drake", "top")
        b = await gen.generate_caption_with_meta("Drake", "top")
        return a, b

    a, b = asyncio.run(go())
    assert len(ep.calls) == 1
    assert a.text == b.text == "AI DRAKE TOP"
    assert a.source == "remote"
    assert b.source == "cache"
    assert gen.cache.get(cache_key("Drake", "top")) == "AI DRAKE TOP"


def test_cache_disabled_always_calls_through():
    ep = FakeEndpoint()
    gen = _gen(ep, cache_enabled=False)

    async def go():
        await gen.generate_caption("Drake", "top")
        await gen.generate_caption("Drake", "top")

    asyncio.run(go())
    assert len(ep.calls) == 2
    assert len(gen.cache) == 0


def test_duplicate_concurrent_requests_coalesce():
    ep = FakeEndpoint(delay=0.01)
    gen = _gen(ep)

    async def go():
        return await asyncio.gather(
            gen.generate_caption("Drake", "top"),
            gen.generate_caption("Drake", "top"),
        )

    a, b = asyncio.run(go())
    assert a == b
    # second one is answered from cache when the worker reaches it
    assert len(ep.calls) == 1
    assert gen.request_count == 1


def test_remote_failure_falls_back_to_bank():
    ep = FakeEndpoint(fail=NetworkFailure("down"))
    gen = _gen(ep)
    result = asyncio.run(gen.generate_caption_with_meta("Distracted Boyfriend", "top"))
    assert result.source == "fallback"
    assert result.error == "network_failure"
    assert result.text in CAPTIONS["distraction"]["top"]
    # fallbacks are not cached
    assert len(gen.cache) == 0


def test_malformed_reply_falls_back():
    ep = FakeEndpoint(caption="   ")
    gen = _gen(ep)
    result = asyncio.run(gen.generate_caption_with_meta("Two Buttons", "bottom"))
    assert result.error == "malformed_response"
    assert result.text in CAPTIONS["choice"]["bottom"]


def test_timeout_counts_as_network_failure():
    ep = FakeEndpoint(delay=1.0)
    gen = _gen(ep, fetch_timeout_ms=50)
    result = asyncio.run(gen.generate_caption_with_meta("Drake", "bottom"))
    assert result.source == "fallback"
    assert result.error == "network_failure"
    assert result.text in CAPTIONS["comparison"]["bottom"]


def test_context_is_used_for_fallback():
    ep = FakeEndpoint(fail=MalformedResponse("nope"))
    gen = _gen(ep)
    text = asyncio.run(gen.generate_caption("Success Kid", "top", "work"))
    assert text in CONTEXT_CAPTIONS["work"]["top"]


def test_fallback_mode_off_uses_generic_list():
    ep = FakeEndpoint(fail=NetworkFailure("down"))
    gen = _gen(ep, fallback_mode=False)
    text = asyncio.run(gen.generate_caption("Distracted Boyfriend", "bottom"))
    assert text in GENERIC_CAPTIONS["bottom"]


def test_http_500_resolves_with_fallback(monkeypatch):
    class Resp:
        ok = False
        status_code = 500

        def json(self):
            return {}

    monkeypatch.setattr("meme_captions.remote.requests.post", lambda *a, **k: Resp())
    config = GeneratorConfig(**FAST)
    gen = CaptionGenerator(config, endpoint=HTTPCaptionEndpoint(config), rng=random.Random(0))
    result = asyncio.run(gen.generate_caption_with_meta("Distracted Boyfriend", "top"))
    assert result.source == "fallback"
    assert result.error == "network_failure"
    assert result.text in CAPTIONS["distraction"]["top"]


def test_quota_ceiling_short_circuits():
    ep = FakeEndpoint()
    gen = _gen(ep, max_ai_requests=3)

    async def go():
        for i in range(3):
            await gen.generate_caption("Drake", "top", f"ctx{i}")
        return await gen.generate_caption_with_meta("Drake", "bottom")

    result = asyncio.run(go())
    assert len(ep.calls) == 3
    assert result.source == "fallback"
    assert result.error == "quota_exceeded"
    assert result.text in CAPTIONS["comparison"]["bottom"]
    assert result.remaining_requests == 0
    assert gen.quota_reached


def test_quota_is_hard_even_for_queued_requests():
    ep = FakeEndpoint()
    gen = _gen(ep, max_ai_requests=1)

    async def go():
        # both pass the up-front check before either has been issued
        return await asyncio.gather(
            gen.generate_caption_with_meta("Drake", "top"),
            gen.generate_caption_with_meta("Drake", "bottom"),
        )

    first, second = asyncio.run(go())
    assert len(ep.calls) == 1
    assert first.source == "remote"
    assert second.error == "quota_exceeded"


def test_failed_calls_still_count_toward_quota():
    ep = FakeEndpoint(fail=NetworkFailure("down"))
    gen = _gen(ep, max_ai_requests=2)

    async def go():
        for pos in ("top", "bottom", "top"):
            await gen.generate_caption("Drake", pos, "x")

    asyncio.run(go())
    assert len(ep.calls) == 2
    assert gen.request_count == 2


def test_generate_both_goes_through_queue():
    ep = FakeEndpoint(delay=0.01)
    gen = _gen(ep)
    top, bottom = asyncio.run(gen.generate_both("Drake"))
    assert (top, bottom) == ("AI DRAKE TOP", "AI DRAKE BOTTOM")
    assert [c.position for c in ep.calls] == ["top", "bottom"]
    assert ep.peak == 1


def test_generate_both_respects_rate_limit():
    ep = FakeEndpoint()
    gen = _gen(ep, request_delay_ms=30)
    clock = []

    async def go():
        loop = asyncio.get_running_loop()
        start = loop.time()
        await gen.generate_both("Drake")
        clock.append(loop.time() - start)

    asyncio.run(go())
    assert clock[0] >= 0.025


def test_reset_clears_cache_but_not_counter():
    ep = FakeEndpoint()
    gen = _gen(ep)

    async def go():
        await gen.generate_caption("Drake", "top")
        gen.reset()
        await gen.generate_caption("Drake", "top")

    asyncio.run(go())
    assert len(ep.calls) == 2
    assert gen.request_count == 2
    assert gen.remaining_requests == 8


def test_themes_remote_success_passthrough():
    remote = [Theme(name="X", description="d", topText="A", bottomText="B")]
    gen = _gen(FakeEndpoint(themes=remote))
    themes = asyncio.run(gen.generate_themes("Drake"))
    assert [t.name for t in themes] == ["X"]


def test_themes_fallback_by_category():
    gen = _gen(FakeEndpoint(fail=NetworkFailure("down")))
    themes = asyncio.run(gen.generate_themes("Drake Hotline Bling"))
    assert [t.name for t in themes] == ["Before vs After", "Expectation vs Reality"]
    assert themes[0].top_text in TEXT_VARIATIONS["BEFORE THE UPDATE"]


def test_themes_empty_reply_falls_back():
    gen = _gen(FakeEndpoint(themes=[]))
    themes = asyncio.run(gen.generate_themes("Two Buttons"))
    assert [t.name for t in themes] == ["Good vs Evil", "Smart vs Dumb"]


def test_themes_predefined_when_fallback_mode_off():
    gen = _gen(FakeEndpoint(fail=NetworkFailure("down")), fallback_mode=False)
    themes = asyncio.run(gen.generate_themes("Drake"))
    assert len(themes) == 6
    assert [t.name for t in themes] == [t.name for t in PREDEFINED_THEMES]


def test_improve_text_local_when_remote_down():
    gen = _gen(FakeEndpoint(fail=NetworkFailure("down")))
    improved = asyncio.run(gen.improve_text("hello", ""))
    assert improved.top.startswith("HELLO!")
    assert improved.bottom == ""


def test_improve_text_remote_partial_reply_keeps_original():
    ep = FakeEndpoint(improve=ImproveReply(improvedTop="WAY FUNNIER"))
    gen = _gen(ep)
    improved = asyncio.run(gen.improve_text("meh", "keep me"))
    assert improved.top == "WAY FUNNIER"
    assert improved.bottom == "keep me"


def test_improve_text_noop_reply_uses_local():
    gen = _gen(FakeEndpoint(improve=ImproveReply()))
    improved = asyncio.run(gen.improve_text("", "bye"))
    assert improved.top == ""
    assert improved.bottom.startswith("BYE!")


def test_improve_text_blank_inputs_unchanged():
    class Boom(FakeEndpoint):
        async def improve_text(self, *a, **k):
            raise AssertionError("should not be called")

    gen = _gen(Boom())
    improved = asyncio.run(gen.improve_text("  ", ""))
    assert improved.top == "  "
    assert improved.bottom == ""


class BrokenEndpoint:
    """Raises errors outside the service's own taxonomy."""

    def __init__(self):
        self.calls = 0

    async def generate_caption(self, request):
        self.calls += 1
        raise RuntimeError("unexpected bug")

    async def generate_themes(self, template_name):
        raise KeyError("themes")

    async def improve_text(self, top_text, bottom_text, context="meme humor"):
        raise ValueError("improve")


def test_unexpected_caption_error_falls_back():
    ep = BrokenEndpoint()
    gen = _gen(ep)
    result = asyncio.run(gen.generate_caption_with_meta("Distracted Boyfriend", "top"))
    assert ep.calls == 1
    assert result.source == "fallback"
    assert result.error == "network_failure"
    assert result.text in CAPTIONS["distraction"]["top"]


def test_unexpected_themes_error_falls_back():
    gen = _gen(BrokenEndpoint())
    themes = asyncio.run(gen.generate_themes("Two Buttons"))
    assert [t.name for t in themes] == ["Good vs Evil", "Smart vs Dumb"]


def test_unexpected_improve_error_uses_local():
    gen = _gen(BrokenEndpoint())
    improved = asyncio.run(gen.improve_text("hello", ""))
    assert improved.top.startswith("HELLO!")
    assert improved.bottom == ""


def test_litellm_reply_without_choices_falls_back(monkeypatch):
    class NoChoices:
        choices = None

    async def fake_acompletion(**kwargs):
        return NoChoices()

    monkeypatch.setattr("meme_captions.remote.litellm.acompletion", fake_acompletion)
    gen = _gen(LiteLLMCaptionEndpoint("test-model"))
    result = asyncio.run(gen.generate_caption_with_meta("Distracted Boyfriend", "top"))
    assert result.source == "fallback"
    assert result.error == "malformed_response"
    assert result.text in CAPTIONS["distraction"]["top"]


def test_over_quota_queued_request_skips_rate_limit_wait():
    ep = FakeEndpoint()
    gen = _gen(ep, max_ai_requests=1, request_delay_ms=500)

    async def go():
        loop = asyncio.get_running_loop()
        start = loop.time()
        results = await asyncio.gather(
            gen.generate_caption_with_meta("Drake", "top"),
            gen.generate_caption_with_meta("Drake", "bottom"),
        )
        return results, loop.time() - start

    (first, second), elapsed = asyncio.run(go())
    assert first.source == "remote"
    assert second.error == "quota_exceeded"
    assert len(ep.calls) == 1
    # no 500ms wait for a request that never reaches the network
    assert elapsed < 0.25


def test_queued_duplicate_reports_cache_source():
    ep = FakeEndpoint(delay=0.01)
    gen = _gen(ep)

    async def go():
        return await asyncio.gather(
            gen.generate_caption_with_meta("Drake", "top"),
            gen.generate_caption_with_meta("Drake", "top"),
        )

    first, second = asyncio.run(go())
    assert len(ep.calls) == 1
    assert first.source == "remote"
    assert second.source == "cache"
    assert second.text == first.text
