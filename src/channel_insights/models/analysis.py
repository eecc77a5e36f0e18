from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class RawAnalysis(BaseModel):
    """Strategy analysis as returned by the model; every section may be missing."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    summary: str | None = None
    trends: str | None = None
    content_strategy: str | None = None
    posting_optimization: str | None = None
    next_video_ideas: list[str] | None = None
    improvements: list[str] | None = None

    @field_validator("summary", "trends", "content_strategy", "posting_optimization", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        if isinstance(value, list):
            return "\n".join(str(v) for v in value)
        return str(value)

    @field_validator("next_video_ideas", "improvements", mode="before")
    @classmethod
    def _coerce_list(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [line.strip(" -*") for line in value.splitlines() if line.strip(" -*")]
        if isinstance(value, list):
            return [str(v) for v in value if v is not None]
        return value


class ChannelAnalysis(BaseModel):
    summary: str
    trends: str = ""
    content_strategy: str = ""
    posting_optimization: str = ""
    next_video_ideas: list[str] = []
    improvements: list[str] = []
    degraded: bool = False
    error: str | None = None
    raw_text: str | None = None
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
