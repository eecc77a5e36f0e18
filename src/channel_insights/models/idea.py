from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from pydantic.alias_generators import to_camel

DEFAULT_TITLE = "Untitled video idea"
DEFAULT_TARGET_AUDIENCE = "Existing channel viewers"
DEFAULT_RECOMMENDED_LENGTH = "10-15 minutes"


class RawIdea(BaseModel):
    """Idea as returned by the model: every field may be missing.

    Accepts both camelCase keys (the shape shown in prompts) and snake_case.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    title: str | None = None
    concept: str | None = None
    reasoning: str | None = None
    target_audience: str | None = None
    structure: list[str] | None = None
    success_tips: list[str] | None = None
    recommended_length: str | None = None
    tags: list[str] | None = None

    @field_validator(
        "title", "concept", "reasoning", "target_audience", "recommended_length",
        mode="before",
    )
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        if isinstance(value, list):
            return " ".join(str(v) for v in value)
        return str(value)

    @field_validator("structure", "success_tips", "tags", mode="before")
    @classmethod
    def _coerce_list(cls, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, str):
            separator = "," if "," in value else "\n"
            return [part.strip() for part in value.split(separator) if part.strip()]
        if isinstance(value, list):
            return [str(v) for v in value if v is not None]
        return value


class IdeaBatchPayload(BaseModel):
    ideas: list[RawIdea]

    @model_validator(mode="before")
    @classmethod
    def _wrap_bare_ideas(cls, data: Any) -> Any:
        if isinstance(data, list):
            return {"ideas": data}
        if isinstance(data, dict) and "ideas" not in data:
            for key in ("contentIdeas", "content_ideas", "videoIdeas"):
                if key in data:
                    return {"ideas": data[key]}
            if "title" in data:
                return {"ideas": [data]}
        return data


class Idea(BaseModel):
    title: str
    concept: str
    reasoning: str
    target_audience: str
    structure: list[str]
    success_tips: list[str]
    recommended_length: str
    tags: list[str]
    degraded: bool = False


class IdeaReport(BaseModel):
    ideas: list[Idea]
    degraded: bool = False
    comment_strategy: str | None = None
    failures: list[str] = []
