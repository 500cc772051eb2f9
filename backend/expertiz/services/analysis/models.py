"""Analysis invoker data models."""
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, Field

from expertiz.models.report import MediaItem, MediaKind


@dataclass(frozen=True)
class MediaInput:
    """Reference to one stored media file handed to the invoker."""
    kind: MediaKind
    file_path: str
    mime_type: str
    filename: str

    @classmethod
    def from_item(cls, item: MediaItem) -> "MediaInput":
        return cls(
            kind=item.kind,
            file_path=item.file_path,
            mime_type=item.mime_type,
            filename=item.original_filename,
        )


class AnalysisOutcome(BaseModel):
    """Structured result of a successful analysis."""
    result: dict[str, Any]
    confidence: float | None = None
    model_version: str | None = None


class ChatMessage(BaseModel):
    role: str
    content: str | None = None


class ChatChoice(BaseModel):
    index: int = 0
    message: ChatMessage
    finish_reason: str | None = None


class ChatUsage(BaseModel):
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None


class ChatCompletionResponse(BaseModel):
    """Subset of an OpenAI chat completions response."""
    id: str | None = None
    model: str | None = None
    choices: list[ChatChoice] = Field(default_factory=list)
    usage: ChatUsage | None = None

    @property
    def content(self) -> str | None:
        if not self.choices:
            return None
        return self.choices[0].message.content


class TranscriptionResponse(BaseModel):
    text: str = ""
