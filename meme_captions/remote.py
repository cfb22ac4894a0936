"""Remote caption backends.

Two implementations share one async interface
(``generate_caption`` / ``generate_themes`` / ``improve_text``):

 - HTTPCaptionEndpoint: talks JSON to the proxy (see proxy.py) over requests.
 - LiteLLMCaptionEndpoint: calls an LLM in-process via litellm; the proxy
   itself uses this one.

Both raise NetworkFailure / MalformedResponse; neither falls back on its own.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

import litellm
import requests
from jinja2 import Template
from pydantic import ValidationError

from .config import GeneratorConfig
from .errors import MalformedResponse, NetworkFailure
from .schema import CaptionRequest, ImproveReply, ParsedCaption, Theme
from .utils import normalize_caption, strip_label

logger = logging.getLogger(__name__)


def parse_caption_payload(data: Any) -> ParsedCaption:
    """Classify a caption endpoint reply as valid or malformed."""
    if not isinstance(data, dict):
        return ParsedCaption(kind="malformed", detail="reply is not a JSON object")
    if data.get("success") is False:
        return ParsedCaption(kind="malformed", detail="endpoint reported success=false")
    caption = data.get("caption")
    if not isinstance(caption, str) or not caption.strip():
        return ParsedCaption(kind="malformed", detail="missing caption field")
    return ParsedCaption(kind="valid", caption=caption.strip())


def parse_themes_payload(data: Any) -> List[Theme]:
    if not isinstance(data, dict) or data.get("success") is False:
        raise MalformedResponse("themes reply missing or unsuccessful")
    raw = data.get("themes")
    if not isinstance(raw, list):
        raise MalformedResponse("themes field is not a list")
    try:
        return [Theme.model_validate(t) for t in raw]
    except ValidationError as exc:
        raise MalformedResponse(f"invalid theme record: {exc}") from exc


class HTTPCaptionEndpoint:
    def __init__(self, config: Optional[GeneratorConfig] = None):
        self.config = config or GeneratorConfig()

    def _post(self, url: str, payload: Dict[str, Any]) -> Any:
        try:
            resp = requests.post(url, json=payload, timeout=self.config.fetch_timeout)
        except requests.RequestException as exc:
            raise NetworkFailure(f"{url}: {exc}") from exc
        if not resp.ok:
            raise NetworkFailure(f"{url} returned {resp.status_code}")
        try:
            return resp.json()
        except ValueError as exc:
            raise MalformedResponse(f"{url} returned non-JSON body") from exc

    async def _post_async(self, url: str, payload: Dict[str, Any]) -> Any:
        return await asyncio.to_thread(self._post, url, payload)

    async def generate_caption(self, request: CaptionRequest) -> str:
        data = await self._post_async(self.config.api_endpoint, {
            "templateName": request.template_name,
            "position": request.position,
            "context": request.context or self.config.default_context,
        })
        parsed = parse_caption_payload(data)
        if parsed.kind != "valid":
            raise MalformedResponse(parsed.detail or "malformed caption reply")
        return parsed.caption

    async def generate_themes(self, template_name: str) -> List[Theme]:
        data = await self._post_async(self.config.themes_endpoint, {"templateName": template_name})
        return parse_themes_payload(data)

    async def improve_text(self, top_text: str, bottom_text: str, context: str = "meme humor") -> ImproveReply:
        data = await self._post_async(self.config.improve_endpoint, {
            "topText": top_text,
            "bottomText": bottom_text,
            "context": context,
        })
        if not isinstance(data, dict):
            raise MalformedResponse("improve reply is not a JSON object")
        try:
            return ImproveReply.model_validate(data)
        except ValidationError as exc:
            raise MalformedResponse(f"invalid improve reply: {exc}") from exc


CAPTION_PROMPT = Template(
    """Create a funny meme caption for the {{ position }} of the "{{ template_name }}" meme template.
The context is: {{ context }}
Rules:
1. Make it ALL CAPS
2. Maximum {{ max_words }} words
3. Make it humorous and relevant to the template
4. No emojis
5. Keep it concise

Example for "Distracted Boyfriend" template:
Top: "MY CURRENT GIRLFRIEND"
Bottom: "SOMETHING SHINY AND NEW"

Generate the {{ position }} caption now:"""
)

IMPROVE_PROMPT = Template(
    """Make these meme captions funnier while keeping their meaning.
The context is: {{ context }}
Answer with exactly two lines, in ALL CAPS, no emojis:
TOP: <improved top caption>
BOTTOM: <improved bottom caption>

TOP: {{ top_text or "(empty)" }}
BOTTOM: {{ bottom_text or "(empty)" }}"""
)

THEMES_PROMPT = Template(
    """Suggest {{ count }} meme themes for the "{{ template_name }}" meme template.
Answer with one theme per line in the form:
NAME | SHORT DESCRIPTION | TOP CAPTION | BOTTOM CAPTION
Captions must be ALL CAPS. No numbering, no extra text."""
)


class LiteLLMCaptionEndpoint:
    def __init__(self, model: str, temperature: float = 0.9, timeout: float = 10.0, max_tokens: int = 50):
        self.model = model
        self.temperature = temperature
        self.timeout = timeout
        self.max_tokens = max_tokens

    async def _complete(self, prompt: str, max_tokens: Optional[int] = None) -> str:
        litellm.drop_params = True
        try:
            resp = await litellm.acompletion(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self.temperature,
                max_tokens=max_tokens or self.max_tokens,
                timeout=self.timeout,
            )
        except Exception as exc:
            raise NetworkFailure(f"{self.model}: {exc}") from exc
        try:
            content = resp.choices[0].message.content
        except (AttributeError, IndexError, TypeError) as exc:
            raise MalformedResponse(f"{self.model} returned no choices") from exc
        if not isinstance(content, str) or not content.strip():
            raise MalformedResponse(f"{self.model} returned empty content")
        return content

    async def generate_caption(self, request: CaptionRequest) -> str:
        prompt = CAPTION_PROMPT.render(
            position=request.position,
            template_name=request.template_name,
            context=request.context or "general internet humor",
            max_words=8,
        )
        caption = normalize_caption(strip_label(await self._complete(prompt)))
        if not caption:
            raise MalformedResponse("caption empty after normalization")
        logger.info("Generated caption: %s", caption)
        return caption

    async def generate_themes(self, template_name: str, count: int = 3) -> List[Theme]:
        raw = await self._complete(THEMES_PROMPT.render(template_name=template_name, count=count), max_tokens=300)
        themes = []
        for line in raw.splitlines():
            parts = [p.strip() for p in line.split("|")]
            if len(parts) != 4 or not all(parts):
                continue
            name, description, top, bottom = parts
            themes.append(Theme(
                name=name,
                description=description,
                topText=normalize_caption(top),
                bottomText=normalize_caption(bottom),
            ))
        if not themes:
            raise MalformedResponse("no parseable theme lines")
        return themes

    async def improve_text(self, top_text: str, bottom_text: str, context: str = "meme humor") -> ImproveReply:
        raw = await self._complete(
            IMPROVE_PROMPT.render(top_text=top_text, bottom_text=bottom_text, context=context),
            max_tokens=120,
        )
        top: Optional[str] = None
        bottom: Optional[str] = None
        for line in raw.splitlines():
            label = line.strip().upper()
            if label.startswith("TOP:"):
                top = normalize_caption(strip_label(line)) or None
            elif label.startswith("BOTTOM:"):
                bottom = normalize_caption(strip_label(line)) or None
        # keep empty inputs empty
        return ImproveReply(
            improvedTop=top if top_text else None,
            improvedBottom=bottom if bottom_text else None,
        )


__all__ = [
    "parse_caption_payload",
    "parse_themes_payload",
    "HTTPCaptionEndpoint",
    "LiteLLMCaptionEndpoint",
]
