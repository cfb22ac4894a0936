"""Local caption enhancement used when the improve endpoint is unavailable.

Uppercasing and the trailing "!" on short captions always apply; the meme
phrase suffix and the synonym swap are random, so pass a seeded
``random.Random`` for repeatable output.
"""
from __future__ import annotations

import random
import re
from typing import Dict, List, Optional

from .schema import ImprovedText

EMPHASIS_MAX_LEN = 20
PHRASE_MAX_LEN = 50
PHRASE_PROBABILITY = 0.3
SYNONYM_PROBABILITY = 0.7

MEME_PHRASES: List[str] = [
    " WHEN", " EVERYWHERE", " ALWAYS", " NEVER", " LITERALLY",
    " 100%", " FOR REAL", " THOUGH", " TBH", " I CAN'T",
]

SYNONYMS: Dict[str, List[str]] = {
    "GOOD": ["GREAT", "AMAZING", "EPIC", "LEGENDARY"],
    "BAD": ["TERRIBLE", "AWFUL", "HORRIBLE", "DISASTROUS"],
    "HAPPY": ["EXCITED", "THRILLED", "OVERJOYED", "ECSTATIC"],
    "SAD": ["DEVASTATED", "HEARTBROKEN", "DEPRESSED", "MISERABLE"],
    "BIG": ["HUGE", "ENORMOUS", "MASSIVE", "GIGANTIC"],
    "SMALL": ["TINY", "MINUSCULE", "MICROSCOPIC", "PETITE"],
}


def emphasize(text: str) -> str:
    enhanced = text.upper()
    if len(enhanced) < EMPHASIS_MAX_LEN and not enhanced.endswith(("!", "?", ".")):
        enhanced += "!"
    return enhanced


def add_meme_phrase(text: str, rng: random.Random) -> str:
    if len(text) < PHRASE_MAX_LEN and rng.random() < PHRASE_PROBABILITY:
        return text + rng.choice(MEME_PHRASES)
    return text


def swap_synonyms(text: str, rng: random.Random) -> str:
    # one pick per word, applied to every occurrence of it
    for word, alternatives in SYNONYMS.items():
        pattern = re.compile(rf"\b{word}\b")
        if pattern.search(text):
            text = pattern.sub(rng.choice(alternatives), text)
    return text


def enhance_text(text: str, rng: Optional[random.Random] = None) -> str:
    if not isinstance(text, str) or not text:
        return text
    r = rng if rng is not None else random.Random()
    enhanced = add_meme_phrase(emphasize(text), r)
    if r.random() < SYNONYM_PROBABILITY:
        enhanced = swap_synonyms(enhanced, r)
    return enhanced


def local_text_enhancement(top_text: str, bottom_text: str, rng: Optional[random.Random] = None) -> ImprovedText:
    r = rng if rng is not None else random.Random()
    top = enhance_text(top_text, r)
    bottom = enhance_text(bottom_text, r)
    return ImprovedText(
        top=top if isinstance(top, str) else "",
        bottom=bottom if isinstance(bottom, str) else "",
    )


__all__ = ["enhance_text", "local_text_enhancement", "emphasize", "swap_synonyms", "SYNONYMS", "MEME_PHRASES"]
