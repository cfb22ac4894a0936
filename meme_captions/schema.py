from pydantic import BaseModel, ConfigDict, Field
from typing import List, Literal, Optional


Position = Literal["top", "bottom"]
Category = Literal[
    "comparison",
    "distraction",
    "choice",
    "evolution",
    "political",
    "gaming",
    "debate",
    "generic",
]
Mood = Literal["neutral", "happy", "sad", "angry", "confused"]
CaptionSource = Literal["cache", "remote", "fallback"]


class CaptionRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    template_name: str
    position: Position
    context: Optional[str] = None


class TemplateAnalysis(BaseModel):
    type: Category = "generic"
    themes: List[str] = []
    mood: Mood = "neutral"


class Theme(BaseModel):
    """A ready-made top/bottom pairing offered to the user."""
    model_config = ConfigDict(populate_by_name=True)

    name: str
    description: str
    top_text: str = Field(alias="topText")
    bottom_text: str = Field(alias="bottomText")


class ImprovedText(BaseModel):
    top: str
    bottom: str


class CaptionResult(BaseModel):
    text: str
    source: CaptionSource
    # network_failure | malformed_response | quota_exceeded
    error: Optional[str] = None
    request_count: int = 0
    remaining_requests: int = 0


class ParsedCaption(BaseModel):
    """Tagged outcome of reading a caption endpoint reply."""
    kind: Literal["valid", "malformed"]
    caption: Optional[str] = None
    detail: Optional[str] = None


# Wire payloads (camelCase on the wire, snake_case in Python)

class CaptionPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    template_name: str = Field(alias="templateName")
    position: Position = "top"
    context: str = "general internet humor"


class ThemesPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    template_name: str = Field(alias="templateName")


class ImprovePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    top_text: str = Field("", alias="topText")
    bottom_text: str = Field("", alias="bottomText")
    context: str = "meme humor"


class ImproveReply(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    improved_top: Optional[str] = Field(None, alias="improvedTop")
    improved_bottom: Optional[str] = Field(None, alias="improvedBottom")
