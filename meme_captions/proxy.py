"""Thin HTTP proxy in front of the LLM.

Serves the JSON endpoints that HTTPCaptionEndpoint consumes. Without a
configured model the caption route still answers, with ``success: false``
and a canned caption, so the client knows to fall back.
"""

import logging
import random
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from . import fallback
from .generator import CaptionEndpoint
from .remote import LiteLLMCaptionEndpoint
from .schema import CaptionPayload, CaptionRequest, ImprovePayload, ThemesPayload

logger = logging.getLogger(__name__)


def create_app(
    endpoint: Optional[CaptionEndpoint] = None,
    model: Optional[str] = None,
    rng: Optional[random.Random] = None,
) -> FastAPI:
    """
    Build the proxy application.

    Args:
        endpoint: Backend that does the actual generation. Takes precedence over ``model``.
        model: litellm model id; used to build a LiteLLMCaptionEndpoint when no endpoint is given.
        rng: Random source for canned captions.

    Returns:
        Configured FastAPI app
    """
    if endpoint is None and model:
        endpoint = LiteLLMCaptionEndpoint(model)
    r = rng if rng is not None else random.Random()

    app = FastAPI(title="Meme Caption Proxy")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.get("/")
    async def root():
        return {"message": "Meme Generator API is running"}

    @app.get("/health")
    async def health():
        return {
            "status": "healthy",
            "aiAvailable": endpoint is not None,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.post("/api/generate-caption")
    async def generate_caption(payload: CaptionPayload):
        logger.info("Generating %s caption for: %s", payload.position, payload.template_name)
        if endpoint is None:
            logger.warning("No model configured, using fallback")
            return {"success": False, "caption": fallback.generic_caption(payload.position, r)}
        try:
            caption = await endpoint.generate_caption(CaptionRequest(
                template_name=payload.template_name,
                position=payload.position,
                context=payload.context,
            ))
        except Exception:
            logger.exception("Error generating caption")
            return {"success": False, "caption": fallback.generic_caption(payload.position, r)}
        return {"success": True, "caption": caption}

    @app.post("/api/generate-themes")
    async def generate_themes(payload: ThemesPayload):
        themes = None
        if endpoint is not None:
            try:
                themes = await endpoint.generate_themes(payload.template_name)
            except Exception:
                logger.exception("Error generating themes")
        if not themes:
            themes = fallback.fallback_themes(fallback.classify(payload.template_name), r)
        return {"success": True, "themes": [t.model_dump(by_alias=True) for t in themes]}

    @app.post("/api/improve-text")
    async def improve_text(payload: ImprovePayload):
        if endpoint is None:
            raise HTTPException(status_code=503, detail="No model configured")
        try:
            reply = await endpoint.improve_text(payload.top_text, payload.bottom_text, payload.context)
        except Exception as exc:
            logger.exception("Error improving text")
            raise HTTPException(status_code=502, detail=str(exc))
        return reply.model_dump(by_alias=True)

    return app


__all__ = ["create_app"]
