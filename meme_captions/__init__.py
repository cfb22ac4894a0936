"""meme_captions

AI caption and theme generation for a meme editor, with an offline fallback.

Primary entrypoints:
 - generator.py (CaptionGenerator: cache + rate-limited queue + fallback)
 - fallback.py (offline caption/theme bank and template classification)
 - proxy.py (FastAPI proxy that forwards prompts to an LLM via litellm)
 - cli.py (Typer CLI)
"""

__all__ = [
    "generator",
    "fallback",
    "proxy",
    "cli",
]
