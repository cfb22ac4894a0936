"""Caption generation orchestrator: cache, quota, queue and fallback."""
from __future__ import annotations

import asyncio
import logging
import random
from typing import List, Optional, Protocol, Tuple

from . import fallback
from .cache import CaptionCache, cache_key
from .config import GeneratorConfig
from .errors import CaptionServiceError, MalformedResponse, NetworkFailure, QuotaExceeded
from .improve import local_text_enhancement
from .remote import HTTPCaptionEndpoint
from .request_queue import RequestQueue
from .schema import CaptionRequest, CaptionResult, ImproveReply, ImprovedText, Position, Theme

logger = logging.getLogger(__name__)


class CaptionEndpoint(Protocol):
    async def generate_caption(self, request: CaptionRequest) -> str: ...

    async def generate_themes(self, template_name: str) -> List[Theme]: ...

    async def improve_text(self, top_text: str, bottom_text: str, context: str = ...) -> ImproveReply: ...


class CaptionGenerator:
    """Session-scoped entry point for caption, theme and improve requests.

    Create one per session. The cache, the queue and the request counter are
    shared by every call made through the instance.
    """

    def __init__(
        self,
        config: Optional[GeneratorConfig] = None,
        endpoint: Optional[CaptionEndpoint] = None,
        rng: Optional[random.Random] = None,
        cache: Optional[CaptionCache] = None,
    ):
        self.config = config or GeneratorConfig()
        self.endpoint = endpoint if endpoint is not None else HTTPCaptionEndpoint(self.config)
        self.rng = rng if rng is not None else random.Random()
        self.cache = cache if cache is not None else CaptionCache(self.config.max_cache_size)
        self.request_count = 0
        self.queue = RequestQueue(
            self._issue,
            request_delay=self.config.request_delay,
            lookup=self._cached,
            admit=self._admit,
        )

    # -- session state -------------------------------------------------

    @property
    def remaining_requests(self) -> int:
        return max(0, self.config.max_ai_requests - self.request_count)

    @property
    def quota_reached(self) -> bool:
        return self.request_count >= self.config.max_ai_requests

    def reset(self) -> None:
        """Forget cached captions; call when the active template changes."""
        self.cache.clear()

    # -- internals -----------------------------------------------------

    def _cached(self, request: CaptionRequest) -> Optional[str]:
        if not self.config.cache_enabled:
            return None
        return self.cache.get(cache_key(request.template_name, request.position, request.context))

    def _admit(self, request: CaptionRequest) -> None:
        # Checked on the worker before the rate-limit wait
        if self.quota_reached:
            raise QuotaExceeded(f"limit of {self.config.max_ai_requests} AI requests reached")

    async def _issue(self, request: CaptionRequest) -> str:
        # Runs on the queue worker, one call at a time
        self.request_count += 1
        try:
            caption = await asyncio.wait_for(
                self.endpoint.generate_caption(request),
                timeout=self.config.fetch_timeout,
            )
        except asyncio.TimeoutError as exc:
            raise NetworkFailure(f"no reply within {self.config.fetch_timeout}s") from exc
        if not isinstance(caption, str) or not caption.strip():
            raise MalformedResponse("empty caption")
        if self.config.cache_enabled:
            self.cache.put(cache_key(request.template_name, request.position, request.context), caption)
        return caption

    def _result(self, text: str, source: str, error: Optional[str] = None) -> CaptionResult:
        return CaptionResult(
            text=text,
            source=source,
            error=error,
            request_count=self.request_count,
            remaining_requests=self.remaining_requests,
        )

    # -- public API ----------------------------------------------------

    def fallback_caption(self, template_name: str, position: Position, context: Optional[str] = None) -> str:
        if not self.config.fallback_mode:
            return fallback.generic_caption(position, self.rng)
        analysis = fallback.classify(template_name)
        if context:
            return fallback.contextual_caption(analysis, position, context, self.rng)
        return fallback.fallback_caption(analysis, position, self.rng)

    async def generate_caption_with_meta(
        self,
        template_name: str,
        position: Position,
        context: Optional[str] = None,
    ) -> CaptionResult:
        """Return a caption plus where it came from.

        Returns:
            CaptionResult with ``source`` one of cache/remote/fallback and
            ``error`` set to the failure kind when the fallback was used.
            Remote problems never raise.
        """
        request = CaptionRequest(template_name=template_name, position=position, context=context)

        hit = self._cached(request)
        if hit is not None:
            logger.debug("Cache hit for: %s", cache_key(template_name, position, context))
            return self._result(hit, "cache")

        if self.quota_reached:
            logger.warning("AI limit reached (%d requests); using fallback", self.request_count)
            return self._result(self.fallback_caption(template_name, position, context), "fallback", QuotaExceeded.kind)

        try:
            caption, from_cache = await self.queue.submit(request)
        except CaptionServiceError as exc:
            logger.warning("AI service unavailable (%s: %s); using fallback", exc.kind, exc)
            return self._result(self.fallback_caption(template_name, position, context), "fallback", exc.kind)
        except Exception:
            logger.exception("Unexpected caption endpoint error; using fallback")
            return self._result(self.fallback_caption(template_name, position, context), "fallback", NetworkFailure.kind)

        return self._result(caption, "cache" if from_cache else "remote")

    async def generate_caption(self, template_name: str, position: Position, context: Optional[str] = None) -> str:
        result = await self.generate_caption_with_meta(template_name, position, context)
        return result.text

    async def generate_both(self, template_name: str, context: Optional[str] = None) -> Tuple[str, str]:
        """Top and bottom captions; both go through the shared queue."""
        top, bottom = await asyncio.gather(
            self.generate_caption(template_name, "top", context),
            self.generate_caption(template_name, "bottom", context),
        )
        return top, bottom

    async def generate_themes(self, template_name: str) -> List[Theme]:
        try:
            themes = await asyncio.wait_for(
                self.endpoint.generate_themes(template_name),
                timeout=self.config.fetch_timeout,
            )
            if themes:
                return list(themes)
            logger.warning("Themes endpoint returned nothing; using predefined themes")
        except (CaptionServiceError, asyncio.TimeoutError) as exc:
            logger.warning("Themes request failed (%s); using predefined themes", exc)
        except Exception:
            logger.exception("Unexpected themes endpoint error; using predefined themes")

        if self.config.fallback_mode:
            themes = fallback.fallback_themes(fallback.classify(template_name), self.rng)
            if themes:
                return themes
        return [t.model_copy() for t in fallback.PREDEFINED_THEMES]

    async def improve_text(self, top_text: str, bottom_text: str) -> ImprovedText:
        if not (top_text or "").strip() and not (bottom_text or "").strip():
            return ImprovedText(top=top_text or "", bottom=bottom_text or "")

        try:
            reply = await asyncio.wait_for(
                self.endpoint.improve_text(top_text, bottom_text, "meme humor"),
                timeout=self.config.fetch_timeout,
            )
            if reply.improved_top or reply.improved_bottom:
                return ImprovedText(
                    top=reply.improved_top or top_text,
                    bottom=reply.improved_bottom or bottom_text,
                )
        except (CaptionServiceError, asyncio.TimeoutError) as exc:
            logger.warning("AI improvement failed, using local enhancement: %s", exc)
        except Exception:
            logger.exception("Unexpected improve endpoint error; using local enhancement")

        return local_text_enhancement(top_text, bottom_text, self.rng)


__all__ = ["CaptionGenerator", "CaptionEndpoint"]
