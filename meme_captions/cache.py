"""In-memory caption cache.

Keys combine template, position and context so that the same logical request
always maps to the same entry. Eviction is by insertion order; reading an
entry does not keep it alive longer.
"""

from collections import OrderedDict
from typing import Optional

DEFAULT_CONTEXT_KEY = "default"


def cache_key(template_name: str, position: str, context: Optional[str] = None) -> str:
    """Return the cache key for a caption request.

    Example: Drake Hotline Bling-top-default or Drake Hotline Bling-top-work
    """
    return f"{template_name}-{position}-{context or DEFAULT_CONTEXT_KEY}"


class CaptionCache:
    def __init__(self, max_size: int = 100):
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self.max_size = max_size
        self._entries: "OrderedDict[str, str]" = OrderedDict()

    def get(self, key: str) -> Optional[str]:
        return self._entries.get(key)

    def put(self, key: str, value: str) -> None:
        if key in self._entries:
            # same slot, no reordering
            self._entries[key] = value
            return
        if len(self._entries) >= self.max_size:
            self._entries.popitem(last=False)
        self._entries[key] = value

    def clear(self) -> None:
        self._entries.clear()

    def keys(self):
        return list(self._entries.keys())

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


__all__ = ["cache_key", "CaptionCache", "DEFAULT_CONTEXT_KEY"]
