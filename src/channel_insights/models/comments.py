from datetime import datetime
from typing import Literal

from pydantic import BaseModel

from channel_insights.models.content import Comment

Category = Literal["popular", "constructive", "improvement", "neutral"]
StrategyName = Literal["keyword", "generative", "keyword-fallback"]


class ClassifiedComment(BaseModel):
    id: str
    text: str
    author: str = ""
    like_count: int = 0
    published_at: datetime | None = None
    item_id: str = ""
    item_title: str | None = None
    category: Category
    score: int = 0
    reason: str | None = None

    @classmethod
    def from_comment(
        cls,
        comment: Comment,
        category: Category,
        score: int = 0,
        reason: str | None = None,
    ) -> "ClassifiedComment":
        return cls(
            **comment.model_dump(),
            category=category,
            score=score,
            reason=reason,
        )


class CommentStatistics(BaseModel):
    total_comments: int = 0
    average_likes: float = 0.0
    max_likes: int = 0
    total_likes: int = 0


class CommentSummary(BaseModel):
    overall_sentiment: str = "neutral"
    key_themes: list[str] = []
    audience_insights: str = ""


class ClassificationResult(BaseModel):
    strategy: StrategyName
    popular: list[ClassifiedComment] = []
    constructive: list[ClassifiedComment] = []
    improvement: list[ClassifiedComment] = []
    neutral_count: int = 0
    statistics: CommentStatistics = CommentStatistics()
    summary: CommentSummary = CommentSummary()
    fallback_reason: str | None = None
