"""Miscellaneous text helpers shared by the LLM backend and the proxy."""

MAX_CAPTION_WORDS = 8


def normalize_caption(raw: str, max_words: int = MAX_CAPTION_WORDS) -> str:
    """Uppercase, drop quotes and line breaks, and cap the word count."""
    caption = raw.strip().upper().replace('"', "").replace("\n", " ")
    words = caption.split()
    if len(words) > max_words:
        words = words[:max_words]
    return " ".join(words)


def strip_label(line: str) -> str:
    """Drop a leading ``TOP:``/``BOTTOM:`` label an LLM sometimes echoes back."""
    head, sep, tail = line.partition(":")
    if sep and head.strip().upper() in {"TOP", "BOTTOM"}:
        return tail.strip()
    return line.strip()
