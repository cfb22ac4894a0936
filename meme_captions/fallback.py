"""Offline caption and theme bank.

Used whenever the remote endpoint is unavailable. Selection is random, so
callers that need repeatable output pass a seeded ``random.Random``.
"""
from __future__ import annotations

import random
from typing import Dict, List, Optional, Sequence, Tuple

from .schema import Position, TemplateAnalysis, Theme

# (keywords, category); first rule with any keyword in the name wins
CATEGORY_RULES: Sequence[Tuple[Tuple[str, ...], str]] = (
    (("drake",), "comparison"),
    (("distract", "boyfriend"), "distraction"),
    (("button",), "choice"),
    (("brain", "expanding"), "evolution"),
    (("bernie",), "political"),
    (("uno",), "gaming"),
    (("buff", "doge"), "comparison"),
    (("exit", "ramp"), "choice"),
    (("balloon",), "distraction"),
    (("change my mind",), "debate"),
)

# every matching rule contributes its tags
THEME_RULES: Sequence[Tuple[Tuple[str, ...], Tuple[str, ...]]] = (
    (("hotline", "bling"), ("music", "style")),
    (("change my mind",), ("debate", "opinion")),
    (("exit", "ramp"), ("driving", "confusion")),
    (("balloon",), ("escape", "freedom")),
    (("cheems",), ("dog", "meme")),
)

# applied in order, last match wins
MOOD_RULES: Sequence[Tuple[Tuple[str, ...], str]] = (
    (("happy", "smile"), "happy"),
    (("sad", "cry"), "sad"),
    (("angry", "mad"), "angry"),
    (("confus",), "confused"),
)

CAPTIONS: Dict[str, Dict[str, List[str]]] = {
    "comparison": {
        "top": [
            "WHEN YOU SEE THE PERFECT SOLUTION",
            "THE WAY I PLANNED MY DAY",
            "EXPECTATIONS FOR THE WEEKEND",
            "HOW I THINK I LOOK",
        ],
        "bottom": [
            "VS WHAT ACTUALLY HAPPENS",
            "REALITY AT 3 PM",
            "WHAT I ACTUALLY DO",
            "HOW I ACTUALLY LOOK",
        ],
    },
    "distraction": {
        "top": [
            "MY CURRENT RESPONSIBILITY",
            "THE TASK I'M SUPPOSED TO DO",
            "MY ORIGINAL PLAN",
        ],
        "bottom": [
            "A NEW SHINY DISTRACTION",
            "WHAT I ACTUALLY GET DONE",
            "MY BRAIN SEEING SOMETHING NEW",
        ],
    },
    "choice": {
        "top": [
            "CHOOSE: GET WORK DONE",
            "OPTION A: BE PRODUCTIVE",
            "PRESS FOR SUCCESS",
        ],
        "bottom": [
            "OR: WATCH MEMES ALL DAY",
            "OPTION B: PROCRASTINATE",
            "PRESS FOR FUN",
        ],
    },
    "evolution": {
        "top": [
            "SMALL BRAIN: REGULAR THINKING",
            "LEVEL 1: BASIC UNDERSTANDING",
            "STAGE ONE: BEGINNER",
        ],
        "bottom": [
            "GALAXY BRAIN: ADVANCED KNOWLEDGE",
            "LEVEL 100: EXPERT MODE",
            "FINAL FORM: MASTER",
        ],
    },
    "generic": {
        "top": [
            "WHEN YOU FINALLY SUCCEED",
            "ME TRYING TO EXPLAIN",
            "HOW IT FEELS TO WIN",
            "WHEN THE PLAN WORKS",
        ],
        "bottom": [
            "AND NOBODY NOTICES",
            "VS WHAT THEY UNDERSTAND",
            "VICTORY DANCE INITIATED",
            "SUCCESS ACHIEVED",
        ],
    },
}

CONTEXT_CAPTIONS: Dict[str, Dict[str, List[str]]] = {
    "work": {
        "top": ["ME STARTING A NEW PROJECT", "THE DEADLINE APPROACHING"],
        "bottom": ["ME AT 11:59 PM", "PROCRASTINATION LEVEL: MAX"],
    },
    "school": {
        "top": ["STUDYING FOR EXAMS", "THE SYLLABUS"],
        "bottom": ["WHAT I ACTUALLY REMEMBER", "REALITY OF ONLINE CLASS"],
    },
    "gaming": {
        "top": ["TRYING TO WIN", "GAMER MODE ACTIVATED"],
        "bottom": ["GETTING DEFEATED", "CONTROLLER THROWN"],
    },
    "love": {
        "top": ["EXPECTATIONS FOR DATE NIGHT", "ROMANTIC MOVIES"],
        "bottom": ["REALITY OF NETFLIX & CHILL", "ACTUAL DATE NIGHT"],
    },
}

# Template-agnostic list, used when fallback_mode is off and by the proxy
GENERIC_CAPTIONS: Dict[str, List[str]] = {
    "top": [
        "WHEN YOU FINALLY UNDERSTAND",
        "ME TRYING TO EXPLAIN",
        "WHEN THE PLAN WORKS",
        "EXPECTATIONS VS REALITY",
        "BEFORE THE MEETING",
        "HOW I THINK I LOOK",
    ],
    "bottom": [
        "AND NOBODY NOTICES",
        "WHAT THEY ACTUALLY HEAR",
        "BUT IT ACTUALLY FAILED",
        "DREAMS VS ACTUALITY",
        "AFTER THE MEETING",
        "HOW I ACTUALLY LOOK",
    ],
}


def _theme(name: str, description: str, top: str, bottom: str) -> Theme:
    return Theme(name=name, description=description, topText=top, bottomText=bottom)


THEME_CATEGORIES: Dict[str, List[Theme]] = {
    "comparison": [
        _theme("Before vs After", "Contrast two states", "BEFORE THE UPDATE", "AFTER THE UPDATE"),
        _theme("Expectation vs Reality", "Dream vs actual outcome", "HOW I IMAGINED IT", "HOW IT ACTUALLY WENT"),
    ],
    "distraction": [
        _theme("Work vs Distraction", "Focus struggle", "MY IMPORTANT WORK", "A RANDOM THOUGHT"),
        _theme("Plan vs Actual", "Derailed plans", "MY ORIGINAL PLAN", "WHAT I ACTUALLY DID"),
    ],
    "choice": [
        _theme("Good vs Evil", "Moral dilemma", "DO THE RIGHT THING", "DO THE FUN THING"),
        _theme("Smart vs Dumb", "Decision making", "LOGICAL CHOICE", "WHAT I ACTUALLY CHOOSE"),
    ],
    "generic": [
        _theme("Success Story", "Achievement meme", "THE STRUGGLE", "THE VICTORY"),
        _theme("Tech Problems", "Digital life struggles", "WHEN THE CODE WORKS", "WHEN IT BREAKS IN PRODUCTION"),
        _theme("Social Media", "Online life", "INSTAGRAM LIFE", "REAL LIFE"),
    ],
}

PREDEFINED_THEMES: List[Theme] = [
    _theme("Tech Life", "Programmer struggles", "WHEN THE CODE COMPILES", "WHEN IT RUNS WITHOUT ERRORS"),
    _theme("Monday Mood", "Start of week struggles", "MONDAY MORNING ENERGY", "MONDAY AFTERNOON REALITY"),
    _theme("Social Media", "Online vs offline life", "INSTAGRAM PERFECTION", "REAL LIFE CHAOS"),
    _theme("Gamer Life", "Gaming struggles", "TRYING TO WIN", "GETTING DEFEATED INSTANTLY"),
    _theme("Student Life", "Academic struggles", "STUDYING ALL NIGHT", "FORGETTING EVERYTHING"),
    _theme("Work Life", "Office humor", "ME IN MEETINGS", "ME AFTER MEETINGS"),
]

TEXT_VARIATIONS: Dict[str, List[str]] = {
    "BEFORE THE UPDATE": ["BEFORE THE CHANGE", "OLD VERSION", "TRADITIONAL WAY"],
    "AFTER THE UPDATE": ["AFTER THE CHANGE", "NEW VERSION", "MODERN WAY"],
    "HOW I IMAGINED IT": ["MY EXPECTATIONS", "THE DREAM", "PERFECT SCENARIO"],
    "HOW IT ACTUALLY WENT": ["THE REALITY", "ACTUAL OUTCOME", "WHAT HAPPENED"],
}


def _rng(rng: Optional[random.Random]) -> random.Random:
    return rng if rng is not None else random.Random()


def classify(template_name: str) -> TemplateAnalysis:
    """Derive category, theme tags and mood from a template name.

    Never raises; anything unrecognised (including non-strings) is "generic".
    """
    name = template_name.lower() if isinstance(template_name, str) else ""

    category = "generic"
    for keywords, cat in CATEGORY_RULES:
        if any(k in name for k in keywords):
            category = cat
            break

    themes: List[str] = []
    for keywords, tags in THEME_RULES:
        if any(k in name for k in keywords):
            themes.extend(tags)

    mood = "neutral"
    for keywords, m in MOOD_RULES:
        if any(k in name for k in keywords):
            mood = m

    return TemplateAnalysis(type=category, themes=themes, mood=mood)


def _candidates(table: Dict[str, Dict[str, List[str]]], key: str, position: str) -> List[str]:
    options = table.get(key) or CAPTIONS["generic"]
    return options.get(position) or CAPTIONS["generic"]["top"]


def fallback_caption(analysis: TemplateAnalysis, position: Position, rng: Optional[random.Random] = None) -> str:
    return _rng(rng).choice(_candidates(CAPTIONS, analysis.type, position))


def contextual_caption(
    analysis: TemplateAnalysis,
    position: Position,
    context: Optional[str],
    rng: Optional[random.Random] = None,
) -> str:
    """Pick from the context table when ``context`` is a known one, else from the category table."""
    key = context.strip().lower() if isinstance(context, str) else ""
    if key in CONTEXT_CAPTIONS:
        return _rng(rng).choice(CONTEXT_CAPTIONS[key][position])
    return fallback_caption(analysis, position, rng)


def generic_caption(position: Position, rng: Optional[random.Random] = None) -> str:
    options = GENERIC_CAPTIONS.get(position) or GENERIC_CAPTIONS["top"]
    return _rng(rng).choice(options)


def vary_text(text: str, rng: Optional[random.Random] = None) -> str:
    options = TEXT_VARIATIONS.get(text)
    if not options:
        return text
    return _rng(rng).choice(options)


def fallback_themes(analysis: TemplateAnalysis, rng: Optional[random.Random] = None) -> List[Theme]:
    r = _rng(rng)
    themes = THEME_CATEGORIES.get(analysis.type) or THEME_CATEGORIES["generic"]
    return [
        t.model_copy(update={
            "top_text": vary_text(t.top_text, r),
            "bottom_text": vary_text(t.bottom_text, r),
        })
        for t in themes
    ]


__all__ = [
    "classify",
    "fallback_caption",
    "contextual_caption",
    "generic_caption",
    "fallback_themes",
    "vary_text",
    "PREDEFINED_THEMES",
    "CAPTIONS",
    "CONTEXT_CAPTIONS",
    "GENERIC_CAPTIONS",
]
